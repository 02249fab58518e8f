"""Unit tests for observability module."""

import json
import logging
import sys
from types import SimpleNamespace
from unittest.mock import Mock

from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode
from prometheus_client import REGISTRY
import pytest

from alert_search.deployment_config import BackendConfig, ObservabilityCollectorConfig
from alert_search.domain.errors import SearchError
from alert_search.domain.model import ResolvedSettings, ResultKind
from alert_search.observability import (
    EVALUATION_COUNT,
    JsonFormatter,
    configure_logging,
    configure_trace_exporter,
    configure_metrics_exporter,
    create_span,
    get_trace_context,
    set_trace_context,
    track_latency,
)
from alert_search.observability import metrics as metrics_module, tracing as tracing_module
from alert_search.observability.context import update_span_id, with_otel_span
from alert_search.observability.metrics import SEARCH_LATENCY, MetricBridge
from alert_search.service_layer.search_pipeline import SearchPipeline
from tests.fixtures.fakes import FakeExecutor, FakeParser


def _record(msg: str = "test message", level: int = logging.INFO) -> logging.LogRecord:
    return logging.LogRecord(
        name="alert_search.services.evaluation_scheduler",
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


@pytest.fixture
def span_exporter(monkeypatch) -> InMemorySpanExporter:
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    monkeypatch.setitem(tracing_module._tracer_holder, "tracer", provider.get_tracer("test"))
    return exporter


@pytest.mark.unit
class TestJsonFormatter:
    """Tests for structured JSON logging."""

    def test_format_includes_trace_context(self):
        data = json.loads(JsonFormatter().format(_record()))

        assert data["message"] == "test message"
        assert data["level"] == "INFO"
        assert data["component"] == "evaluation_scheduler"
        assert "timestamp" in data
        assert "trace_id" in data
        assert "span_id" in data

    def test_format_includes_backend_tags(self):
        set_trace_context("aa" * 16, "bb" * 8, backend="logs", saved_query="errors")

        data = json.loads(JsonFormatter().format(_record()))

        assert data["backend"] == "logs"
        assert data["saved_query"] == "errors"
        assert data["trace_id"] == "aa" * 16

    def test_format_includes_extra_fields(self):
        record = _record()
        record.alerts = 3

        data = json.loads(JsonFormatter().format(record))

        assert data["alerts"] == 3

    def test_format_truncates_and_redacts(self):
        record = _record("x" * 5000)
        record.api_key = "secret"

        data = json.loads(JsonFormatter().format(record))

        assert data["message"].endswith("...")
        assert data["api_key"] == "[REDACTED]"

    def test_format_includes_exception(self):
        try:
            raise SearchError("shard failure")
        except SearchError:
            record = _record("boom", logging.ERROR)
            record.exc_info = sys.exc_info()

        data = json.loads(JsonFormatter().format(record))

        assert "shard failure" in data["exception"]

    def test_json_default_handles_set_and_bytes(self):
        formatter = JsonFormatter()
        assert formatter._json_default({3, 1, 2}) == [1, 2, 3]
        assert formatter._json_default(b"ok") == "ok"


@pytest.mark.unit
class TestConfigureLogging:
    def test_installs_single_stdout_handler(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            configure_logging("debug", json_output=True, logger_levels={"alert_search.registry": "warning"})

            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, JsonFormatter)
            assert logging.getLogger("alert_search.registry").level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
            logging.getLogger("alert_search.registry").setLevel(logging.NOTSET)


@pytest.mark.unit
class TestTraceContext:
    """Tests for trace context propagation."""

    def test_get_trace_context_generates_ids(self):
        ctx = get_trace_context()
        assert len(ctx["trace_id"]) == 32
        assert len(ctx["span_id"]) == 16

    def test_update_span_id_preserves_trace_id(self):
        set_trace_context("aa" * 16, "bb" * 8, backend="logs")
        update_span_id("cc" * 8)
        ctx = get_trace_context()
        assert ctx["trace_id"] == "aa" * 16
        assert ctx["span_id"] == "cc" * 8
        assert ctx["backend"] == "logs"

    def test_with_otel_span_extracts_context(self):
        span_ctx = SimpleNamespace(trace_id=0x1234, span_id=0x5678)
        fake_span = SimpleNamespace(get_span_context=lambda: span_ctx)
        ctx = with_otel_span(fake_span)
        assert ctx["trace_id"].endswith("1234")
        assert ctx["span_id"].endswith("5678")

    def test_create_span_publishes_span_id(self, span_exporter):
        set_trace_context("aa" * 16, "bb" * 8)

        with create_span("test.context") as span:
            expected = format(span.get_span_context().span_id, "016x")
            assert get_trace_context()["span_id"] == expected
            assert get_trace_context()["trace_id"] == "aa" * 16


@pytest.mark.unit
class TestTracing:
    """Tests for OpenTelemetry tracing."""

    def test_create_span_records_errors(self, span_exporter):
        with pytest.raises(RuntimeError), create_span("test.operation", attributes={"key": "value", "skip": None}):
            raise RuntimeError("boom")

        (span,) = span_exporter.get_finished_spans()
        assert span.name == "test.operation"
        assert span.attributes == {"key": "value"}
        assert span.status.status_code == StatusCode.ERROR
        assert len(span.events) == 1

    def test_pipeline_search_emits_span(self, span_exporter):
        backend = BackendConfig(name="logs")
        pipeline = SearchPipeline(backend, FakeParser(), FakeExecutor(count=2))
        settings = ResolvedSettings(index="logstash", **{"from": 100, "to": 200})

        pipeline.search(200, settings, "q", [], None, ResultKind.COUNT, [5, None])

        (span,) = span_exporter.get_finished_spans()
        assert span.name == "alert_search.search"
        assert span.attributes["search.backend"] == "logs"
        assert span.attributes["search.count"] == 2
        assert span.attributes["search.outcome"] == "suppressed"

    def test_configure_trace_exporter_disabled_is_noop(self):
        provider = Mock()
        configure_trace_exporter(ObservabilityCollectorConfig(enabled=False), provider=provider)
        configure_trace_exporter(None, provider=provider)
        provider.add_span_processor.assert_not_called()

    def test_configure_trace_exporter_adds_span_processor(self, monkeypatch):
        provider = TracerProvider()
        config = ObservabilityCollectorConfig(
            enabled=True,
            otlp_protocol="http",
            collector_endpoint="http://collector/v1/traces",
        )
        monkeypatch.setattr(tracing_module, "HttpOTLPSpanExporter", Mock(return_value=InMemorySpanExporter()))
        add_processor = Mock()
        provider.add_span_processor = add_processor  # type: ignore[method-assign]

        configure_trace_exporter(config, provider=provider)

        add_processor.assert_called_once()


@pytest.mark.unit
class TestMetrics:
    def test_metric_bridge_rejects_unknown_kind(self):
        bridge = MetricBridge(Mock(), otel_name="x", otel_description="x", otel_kind="summary")
        with pytest.raises(ValueError, match="Unknown metric kind"):
            bridge.labels(backend="logs").inc()

    def test_track_latency_observes_duration(self):
        with track_latency(SEARCH_LATENCY, backend="latency-test"):
            pass

        assert REGISTRY.get_sample_value("alert_search_latency_seconds_count", {"backend": "latency-test"}) == 1.0

    def test_evaluation_counter_is_exposed(self):
        EVALUATION_COUNT.labels(backend="exposition-test", outcome="count").inc()

        labels = {"backend": "exposition-test", "outcome": "count"}
        assert REGISTRY.get_sample_value("alert_search_evaluations_total", labels) == 1.0


@pytest.mark.unit
class TestMetricsExporter:
    @pytest.fixture
    def meter_holder(self, monkeypatch):
        for key in ("provider", "meter", "reader"):
            monkeypatch.setitem(metrics_module._meter_holder, key, None)
        return metrics_module._meter_holder

    def test_disabled_collector_installs_nothing(self, meter_holder):
        assert configure_metrics_exporter(ObservabilityCollectorConfig(enabled=False)) is None
        assert configure_metrics_exporter(None) is None
        assert meter_holder["reader"] is None

    def test_enabled_collector_installs_reader(self, meter_holder, monkeypatch):
        reader = InMemoryMetricReader()
        exporter_cls = Mock()
        monkeypatch.setattr(metrics_module, "HttpOTLPMetricExporter", exporter_cls)
        monkeypatch.setattr(metrics_module, "PeriodicExportingMetricReader", Mock(return_value=reader))
        original = MeterProvider()
        meter_holder["provider"] = original
        config = ObservabilityCollectorConfig(
            enabled=True,
            otlp_protocol="http",
            collector_endpoint="http://collector:4318/v1/traces",
        )

        installed = configure_metrics_exporter(config)

        assert installed is reader
        assert meter_holder["reader"] is reader
        assert exporter_cls.call_args.kwargs["endpoint"] == "http://collector:4318/v1/metrics"
        assert meter_holder["provider"] is not original
        assert configure_metrics_exporter(config) is reader

    def test_grpc_collector_keeps_endpoint(self, meter_holder, monkeypatch):
        exporter_cls = Mock()
        monkeypatch.setattr(metrics_module, "GrpcOTLPMetricExporter", exporter_cls)
        monkeypatch.setattr(metrics_module, "PeriodicExportingMetricReader", Mock(return_value=InMemoryMetricReader()))

        configure_metrics_exporter(ObservabilityCollectorConfig(enabled=True, collector_endpoint="http://collector:4317"))

        assert exporter_cls.call_args.kwargs["endpoint"] == "http://collector:4317"
        assert exporter_cls.call_args.kwargs["insecure"] is True
        assert isinstance(meter_holder["provider"], MeterProvider)
