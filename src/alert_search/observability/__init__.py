"""Observability module for OpenTelemetry-aligned tracing, metrics, and logging."""

from alert_search.observability.context import get_trace_context, set_trace_context, trace_context
from alert_search.observability.logging import JsonFormatter, configure_logging
from alert_search.observability.metrics import (
    ALERTS_EMITTED,
    EVALUATION_COUNT,
    LAST_SUCCESS,
    SEARCH_LATENCY,
    configure_metrics_exporter,
    init_metrics,
    serve_metrics,
    track_latency,
)
from alert_search.observability.tracing import (
    configure_trace_exporter,
    create_span,
    get_tracer,
    init_tracing,
)


__all__ = [
    "ALERTS_EMITTED",
    "EVALUATION_COUNT",
    "LAST_SUCCESS",
    "SEARCH_LATENCY",
    "JsonFormatter",
    "configure_logging",
    "configure_metrics_exporter",
    "configure_trace_exporter",
    "create_span",
    "get_trace_context",
    "get_tracer",
    "init_metrics",
    "init_tracing",
    "serve_metrics",
    "set_trace_context",
    "trace_context",
    "track_latency",
]
