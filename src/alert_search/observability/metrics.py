"""Prometheus metrics for saved-query evaluation, bridged to OpenTelemetry."""

from __future__ import annotations

from contextlib import contextmanager
import time
from typing import TYPE_CHECKING, Any

from opentelemetry import metrics as otel_metrics
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import (
    OTLPMetricExporter as GrpcOTLPMetricExporter,
)
from opentelemetry.exporter.otlp.proto.http.metric_exporter import (
    OTLPMetricExporter as HttpOTLPMetricExporter,
)
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricReader, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from prometheus_client import Counter, Gauge, Histogram, start_http_server


if TYPE_CHECKING:
    from collections.abc import Generator
    from threading import Thread
    from wsgiref.simple_server import WSGIServer

    from alert_search.deployment_config import ObservabilityCollectorConfig


_meter_holder: dict[str, Any] = {"meter": None, "provider": None, "reader": None}


def init_metrics(
    service_name: str = "alert-search",
    resource_attributes: dict[str, str] | None = None,
    metric_readers: list[MetricReader] | None = None,
) -> MeterProvider:
    """Initialize OpenTelemetry metrics."""
    provider = _meter_holder.get("provider")
    if isinstance(provider, MeterProvider):
        return provider

    attributes = {"service.name": service_name}
    if resource_attributes:
        attributes.update(resource_attributes)
    resource = Resource.create(attributes)
    provider = MeterProvider(resource=resource, metric_readers=metric_readers or [])
    otel_metrics.set_meter_provider(provider)
    _meter_holder["provider"] = provider
    _meter_holder["meter"] = otel_metrics.get_meter(__name__)
    return provider


def configure_metrics_exporter(
    config: ObservabilityCollectorConfig | None,
    provider: MeterProvider | None = None,
    *,
    service_name: str = "alert-search",
    resource_attributes: dict[str, str] | None = None,
) -> MetricReader | None:
    """Push metrics to the OTLP collector alongside traces.

    A meter provider cannot gain readers after creation, so an existing
    provider without a reader is replaced by one carrying the exporter.
    """
    if not config or not config.enabled:
        return None

    endpoint = config.collector_endpoint
    if config.otlp_protocol == "http" and endpoint.endswith("/v1/traces"):
        endpoint = endpoint.removesuffix("/v1/traces") + "/v1/metrics"

    if config.otlp_protocol == "grpc":
        exporter = GrpcOTLPMetricExporter(
            endpoint=endpoint,
            headers=config.headers,
            timeout=config.timeout_seconds,
            insecure=config.grpc_insecure,
        )
    else:
        exporter = HttpOTLPMetricExporter(
            endpoint=endpoint,
            headers=config.headers,
            timeout=config.timeout_seconds,
        )

    reader = PeriodicExportingMetricReader(exporter)

    active_provider = provider or _meter_holder.get("provider")
    if not isinstance(active_provider, MeterProvider):
        init_metrics(service_name=service_name, resource_attributes=resource_attributes, metric_readers=[reader])
        _meter_holder["reader"] = reader
        return reader

    if _meter_holder.get("reader") is None:
        resource = getattr(active_provider, "resource", None) or getattr(active_provider, "_resource", None)
        if resource is None:
            resource = Resource.create({})
        replacement = MeterProvider(resource=resource, metric_readers=[reader])
        otel_metrics.set_meter_provider(replacement)
        _meter_holder["provider"] = replacement
        _meter_holder["meter"] = otel_metrics.get_meter(__name__)
        _meter_holder["reader"] = reader
        return reader
    return _meter_holder["reader"]


def _get_meter():
    meter = _meter_holder.get("meter")
    if meter is None:
        # Proxy meter; binds to whichever provider is installed later.
        meter = otel_metrics.get_meter(__name__)
        _meter_holder["meter"] = meter
    return meter


def _label_key(labels: dict[str, str]) -> tuple[tuple[str, str], ...]:
    return tuple(sorted(labels.items()))


class _BoundMetric:
    def __init__(self, wrapper: MetricBridge, labels: dict[str, str]) -> None:
        self._wrapper = wrapper
        self._labels = labels

    def inc(self, amount: float = 1.0) -> None:
        self._wrapper.inc(self._labels, amount)

    def observe(self, value: float) -> None:
        self._wrapper.observe(self._labels, value)

    def set(self, value: float) -> None:
        self._wrapper.set(self._labels, value)


class MetricBridge:
    """Bridge Prometheus metrics to optional OTel instruments."""

    def __init__(
        self,
        prom_metric: Counter | Histogram | Gauge,
        *,
        otel_name: str,
        otel_description: str,
        otel_kind: str,
    ) -> None:
        self._prom_metric = prom_metric
        self._otel_name = otel_name
        self._otel_description = otel_description
        self._otel_kind = otel_kind
        self._otel_instrument = None
        self._last_values: dict[tuple[tuple[str, str], ...], float] = {}

    def labels(self, **labels: str) -> _BoundMetric:
        return _BoundMetric(self, labels)

    def _ensure_otel_instrument(self):
        if self._otel_instrument is not None:
            return self._otel_instrument
        meter = _get_meter()
        if self._otel_kind == "counter":
            self._otel_instrument = meter.create_counter(self._otel_name, description=self._otel_description)
        elif self._otel_kind == "histogram":
            self._otel_instrument = meter.create_histogram(self._otel_name, description=self._otel_description)
        elif self._otel_kind == "gauge":
            self._otel_instrument = meter.create_up_down_counter(self._otel_name, description=self._otel_description)
        else:
            raise ValueError(f"Unknown metric kind: {self._otel_kind}")
        return self._otel_instrument

    def inc(self, labels: dict[str, str], amount: float) -> None:
        self._prom_metric.labels(**labels).inc(amount)
        otel = self._ensure_otel_instrument()
        otel.add(amount, labels)

    def observe(self, labels: dict[str, str], value: float) -> None:
        self._prom_metric.labels(**labels).observe(value)
        otel = self._ensure_otel_instrument()
        otel.record(value, labels)

    def set(self, labels: dict[str, str], value: float) -> None:
        self._prom_metric.labels(**labels).set(value)
        otel = self._ensure_otel_instrument()
        key = _label_key(labels)
        last = self._last_values.get(key, 0.0)
        delta = value - last
        if delta:
            otel.add(delta, labels)
        self._last_values[key] = value


_SEARCH_LATENCY_PROM = Histogram(
    "alert_search_latency_seconds",
    "Saved-query evaluation latency (count and data queries)",
    ["backend"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

_EVALUATION_COUNT_PROM = Counter(
    "alert_search_evaluations_total",
    "Saved-query evaluations by outcome",
    ["backend", "outcome"],
)

_ALERTS_EMITTED_PROM = Counter(
    "alert_search_alerts_emitted_total",
    "Alert records produced by evaluations",
    ["backend"],
)

_LAST_SUCCESS_PROM = Gauge(
    "alert_search_last_success_timestamp",
    "Evaluation instant of the last successful run per saved query",
    ["saved_query"],
)

_OTLP_EXPORT_ERRORS_PROM = Counter(
    "alert_search_otlp_export_errors_total",
    "Total OTLP export configuration errors",
    ["protocol"],
)

_OTLP_EXPORT_STATUS_PROM = Gauge(
    "alert_search_otlp_exporter_enabled",
    "OTLP exporter enabled status (1=enabled, 0=disabled)",
    ["protocol"],
)

SEARCH_LATENCY = MetricBridge(
    _SEARCH_LATENCY_PROM,
    otel_name="alert_search_latency_seconds",
    otel_description="Saved-query evaluation latency (count and data queries)",
    otel_kind="histogram",
)

EVALUATION_COUNT = MetricBridge(
    _EVALUATION_COUNT_PROM,
    otel_name="alert_search_evaluations_total",
    otel_description="Saved-query evaluations by outcome",
    otel_kind="counter",
)

ALERTS_EMITTED = MetricBridge(
    _ALERTS_EMITTED_PROM,
    otel_name="alert_search_alerts_emitted_total",
    otel_description="Alert records produced by evaluations",
    otel_kind="counter",
)

LAST_SUCCESS = MetricBridge(
    _LAST_SUCCESS_PROM,
    otel_name="alert_search_last_success_timestamp",
    otel_description="Evaluation instant of the last successful run per saved query",
    otel_kind="gauge",
)

OTLP_EXPORT_ERRORS = MetricBridge(
    _OTLP_EXPORT_ERRORS_PROM,
    otel_name="alert_search_otlp_export_errors_total",
    otel_description="Total OTLP export configuration errors",
    otel_kind="counter",
)

OTLP_EXPORT_STATUS = MetricBridge(
    _OTLP_EXPORT_STATUS_PROM,
    otel_name="alert_search_otlp_exporter_enabled",
    otel_description="OTLP exporter enabled status (1=enabled, 0=disabled)",
    otel_kind="gauge",
)


@contextmanager
def track_latency(histogram: MetricBridge, **labels: str) -> Generator[None, None, None]:
    """Context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        histogram.labels(**labels).observe(time.perf_counter() - start)


def serve_metrics(port: int, addr: str = "0.0.0.0") -> tuple[WSGIServer, Thread]:
    """Expose the Prometheus registry on ``/metrics`` from a daemon thread."""
    return start_http_server(port, addr=addr)
