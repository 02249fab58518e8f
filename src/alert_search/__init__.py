"""Saved-query evaluation, count gating and alert shaping for search backends."""

from alert_search.domain import (
    AlertRecord,
    ConfigurationError,
    EvaluationContext,
    HealthStatus,
    ResultKind,
    SavedQuery,
    SearchError,
)
from alert_search.registry import BackendRegistry
from alert_search.service_layer import ResultShaper, SearchPipeline


__all__ = [
    "AlertRecord",
    "BackendRegistry",
    "ConfigurationError",
    "EvaluationContext",
    "HealthStatus",
    "ResultKind",
    "ResultShaper",
    "SavedQuery",
    "SearchError",
    "SearchPipeline",
]
