"""Domain layer: value objects, window planning and count gating."""

from alert_search.domain.count_filter import passes_gate, resolve_filter_range
from alert_search.domain.errors import AlertSearchError, ConfigurationError, SearchError
from alert_search.domain.model import (
    AlertRecord,
    ConstructedQuery,
    CountFilter,
    EvaluationContext,
    HealthStatus,
    RawHit,
    ResolvedSettings,
    ResultKind,
    SavedQuery,
)
from alert_search.domain.window import QueryWindow, apply_window, default_size, plan_window


__all__ = [
    "AlertRecord",
    "AlertSearchError",
    "ConfigurationError",
    "ConstructedQuery",
    "CountFilter",
    "EvaluationContext",
    "HealthStatus",
    "QueryWindow",
    "RawHit",
    "ResolvedSettings",
    "ResultKind",
    "SavedQuery",
    "SearchError",
    "apply_window",
    "default_size",
    "passes_gate",
    "plan_window",
    "resolve_filter_range",
]
