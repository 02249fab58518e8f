"""Unit tests for process bootstrap and wiring."""

import json
import logging
from unittest.mock import Mock

import pytest

from alert_search import app as app_module
from alert_search.app import create_app
from alert_search.config import Settings
from alert_search.domain.errors import ConfigurationError
from alert_search.domain.model import ResultKind, SavedQuery
from tests.fixtures.fakes import FakeExecutor, FakeHealthProbe, FakeListProvider, FakeParser


pytestmark = pytest.mark.unit


@pytest.fixture
def deployment_file(tmp_path, monkeypatch):
    path = tmp_path / "deployment.json"
    path.write_text(
        json.dumps(
            {
                "backends": [
                    {"name": "logs", "hosts": ["es-1:9200"], "index": "logstash", "date_field": "@timestamp"},
                    {"name": "audit", "index": "audit"},
                ],
                "log_profile": {"level": "warning", "json_output": False},
            }
        )
    )
    monkeypatch.setenv("ALERT_SEARCH_CONFIG", str(path))
    monkeypatch.setenv("DEFAULT_BACKEND", "logs")
    return path


@pytest.fixture(autouse=True)
def isolate_observability(monkeypatch):
    monkeypatch.setattr(app_module, "configure_logging", lambda *args, **kwargs: None)
    monkeypatch.setattr(app_module, "init_tracing", lambda *args, **kwargs: None)
    monkeypatch.setattr(app_module, "init_metrics", lambda *args, **kwargs: None)
    monkeypatch.setattr(app_module, "configure_metrics_exporter", lambda *args, **kwargs: None)


class TestCreateApp:
    def test_wires_registry_and_collaborators(self, deployment_file):
        parser, executor = FakeParser(), FakeExecutor()
        probe = FakeHealthProbe()

        app = create_app(parser, executor, list_provider=FakeListProvider(), health_probe=probe)

        assert app.registry.names() == ["logs", "audit"]
        assert app.parser is parser
        assert app.executor is executor
        assert app.health_probe is probe

    def test_applies_log_profile(self, deployment_file, monkeypatch):
        calls = []
        monkeypatch.setattr(app_module, "configure_logging", lambda *args, **kwargs: calls.append((args, kwargs)))

        create_app(FakeParser(), FakeExecutor())

        assert calls[-1] == (("warning", False), {"logger_levels": {}})

    def test_log_settings_fill_gaps_in_profile(self, tmp_path, monkeypatch):
        path = tmp_path / "deployment.json"
        path.write_text(json.dumps({"backends": [{"name": "logs"}]}))
        monkeypatch.setenv("ALERT_SEARCH_CONFIG", str(path))
        monkeypatch.setenv("LOG_LEVEL", "debug")
        calls = []
        monkeypatch.setattr(app_module, "configure_logging", lambda *args, **kwargs: calls.append((args, kwargs)))

        create_app(FakeParser(), FakeExecutor())

        assert calls == [(("debug", False), {"logger_levels": {}})]

    def test_profile_json_output_overrides_settings(self, tmp_path, monkeypatch):
        path = tmp_path / "deployment.json"
        path.write_text(json.dumps({"backends": [{"name": "logs"}], "log_profile": {"json_output": True}}))
        monkeypatch.setenv("ALERT_SEARCH_CONFIG", str(path))
        calls = []
        monkeypatch.setattr(app_module, "configure_logging", lambda *args, **kwargs: calls.append((args, kwargs)))

        create_app(FakeParser(), FakeExecutor())

        assert calls == [(("info", True), {"logger_levels": {}})]

    def test_enabled_collector_exports_metrics(self, tmp_path, monkeypatch):
        path = tmp_path / "deployment.json"
        path.write_text(
            json.dumps(
                {
                    "backends": [{"name": "logs"}],
                    "observability": {"enabled": True, "otlp_protocol": "http"},
                }
            )
        )
        monkeypatch.setenv("ALERT_SEARCH_CONFIG", str(path))
        metrics_exporter, trace_exporter = Mock(), Mock()
        monkeypatch.setattr(app_module, "configure_metrics_exporter", metrics_exporter)
        monkeypatch.setattr(app_module, "configure_trace_exporter", trace_exporter)

        app = create_app(FakeParser(), FakeExecutor())

        (config,), kwargs = metrics_exporter.call_args
        assert config is app.registry.deployment.observability
        assert config.enabled is True
        assert kwargs["service_name"] == "alert-search-test"
        trace_exporter.assert_called_once()

    def test_missing_deployment_is_configuration_error(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ALERT_SEARCH_CONFIG", str(tmp_path / "missing.json"))

        with pytest.raises(ConfigurationError):
            create_app(FakeParser(), FakeExecutor(), settings=Settings())  # type: ignore[call-arg]


class TestAlertSearchApp:
    def test_pipeline_for_named_and_default_backend(self, deployment_file):
        app = create_app(FakeParser(), FakeExecutor())

        assert app.pipeline_for("audit").backend.name == "audit"
        assert app.pipeline_for().backend.name == "logs"

    def test_pipeline_for_unknown_backend(self, deployment_file):
        app = create_app(FakeParser(), FakeExecutor())

        with pytest.raises(ConfigurationError):
            app.pipeline_for("metrics")

    @pytest.mark.asyncio
    async def test_schedule_start_and_stop(self, deployment_file, caplog):
        executor = FakeExecutor(count=4)
        app = create_app(FakeParser(), executor)
        scheduler = app.schedule(
            SavedQuery(name="count-errors", backend="audit", result_kind=ResultKind.COUNT, range_minutes=10),
            schedule="0 0 1 1 *",
        )

        with caplog.at_level(logging.INFO, logger="alert_search.app"):
            await app.start()
        result = await scheduler.trigger_evaluation(1_700_000_000)
        await app.stop()

        assert scheduler.pipeline.backend.name == "audit"
        assert scheduler.schedule == "0 0 1 1 *"
        assert result["success"] is True
        assert "Started 1 saved-query scheduler(s)" in caplog.text
        assert scheduler.is_initialized is False

    def test_schedule_defaults_to_settings(self, deployment_file):
        app = create_app(FakeParser(), FakeExecutor())

        scheduler = app.schedule(SavedQuery(name="q"))

        assert scheduler.schedule == "* * * * *"
        assert app.schedulers == [scheduler]

    @pytest.mark.asyncio
    async def test_metrics_port_serves_registry_while_running(self, deployment_file, monkeypatch):
        monkeypatch.setenv("METRICS_PORT", "9464")
        server = Mock()
        serve = Mock(return_value=(server, Mock()))
        monkeypatch.setattr(app_module, "serve_metrics", serve)
        app = create_app(FakeParser(), FakeExecutor())

        await app.start()
        serve.assert_called_once_with(9464)
        await app.stop()

        server.shutdown.assert_called_once()
        server.server_close.assert_called_once()
        assert app.metrics_server is None

    @pytest.mark.asyncio
    async def test_metrics_port_zero_serves_nothing(self, deployment_file, monkeypatch):
        serve = Mock()
        monkeypatch.setattr(app_module, "serve_metrics", serve)
        app = create_app(FakeParser(), FakeExecutor())

        await app.start()
        await app.stop()

        serve.assert_not_called()
