"""Collaborator interfaces consumed by the search pipeline.

Parsing the query DSL, talking to the cluster, resolving named lists and
probing backend liveness all live outside this package. Implementations are
injected into ``SearchPipeline`` and ``EvaluationScheduler``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable


if TYPE_CHECKING:
    from alert_search.deployment_config import BackendConfig
    from alert_search.domain.model import HealthStatus, RawHit, ResolvedSettings


ListResolver = Callable[[str], list[Any]]


@runtime_checkable
class QueryParser(Protocol):
    """Translate a backend-agnostic query string into backend settings."""

    def parse(self, query: str) -> tuple[dict[str, Any], Any]:  # pragma: no cover - Protocol only
        """Return partial settings and an opaque query representation."""


@runtime_checkable
class QueryExecutor(Protocol):
    """Issue a query against the cluster."""

    def execute(
        self,
        settings: ResolvedSettings,
        query: Any,
        list_resolver: ListResolver,
    ) -> int | Sequence[RawHit]:  # pragma: no cover - Protocol only
        """Return the hit count when ``settings.count`` is set, else the hits."""


@runtime_checkable
class ListDataProvider(Protocol):
    """Look up named reference lists (allow lists, deny lists, ...)."""

    def get_list_data(self, names: Iterable[str]) -> dict[str, list[Any]]:  # pragma: no cover - Protocol only
        """Return a mapping of list name to values; unknown names may be omitted."""


@runtime_checkable
class HealthProbe(Protocol):
    """Report whether a backend is able to serve queries at ``date``."""

    def probe(self, backend: BackendConfig, date: int) -> HealthStatus:  # pragma: no cover - Protocol only
        """Return the backend's liveness without raising."""
