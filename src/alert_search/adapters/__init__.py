"""Interfaces to the query parser, executor, list store and health probe."""

from alert_search.adapters.protocols import (
    HealthProbe,
    ListDataProvider,
    ListResolver,
    QueryExecutor,
    QueryParser,
)


__all__ = [
    "HealthProbe",
    "ListDataProvider",
    "ListResolver",
    "QueryExecutor",
    "QueryParser",
]
