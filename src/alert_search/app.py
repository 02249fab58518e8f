"""Process bootstrap: settings, logging, tracing and pipeline wiring."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import TYPE_CHECKING

from alert_search.config import Settings
from alert_search.observability.logging import configure_logging
from alert_search.observability.metrics import configure_metrics_exporter, init_metrics, serve_metrics
from alert_search.observability.tracing import configure_trace_exporter, init_tracing
from alert_search.registry import BackendRegistry
from alert_search.service_layer.search_pipeline import SearchPipeline
from alert_search.services.evaluation_scheduler import EvaluationScheduler


if TYPE_CHECKING:
    from threading import Thread
    from wsgiref.simple_server import WSGIServer

    from alert_search.adapters.protocols import HealthProbe, ListDataProvider, QueryExecutor, QueryParser
    from alert_search.domain.model import SavedQuery
    from alert_search.services.evaluation_scheduler import AlertSink


logger = logging.getLogger(__name__)


@dataclass
class AlertSearchApp:
    """Long-lived collaborators shared by every saved query in the process."""

    settings: Settings
    registry: BackendRegistry
    parser: QueryParser
    executor: QueryExecutor
    list_provider: ListDataProvider | None = None
    health_probe: HealthProbe | None = None
    schedulers: list[EvaluationScheduler] = field(default_factory=list)
    metrics_server: tuple[WSGIServer, Thread] | None = None

    def pipeline_for(self, backend: str | None = None) -> SearchPipeline:
        """Build a pipeline bound to a configured backend.

        Raises:
            ConfigurationError: If the backend is not configured
        """
        return SearchPipeline(
            self.registry.get(backend),
            self.parser,
            self.executor,
            self.list_provider,
        )

    def schedule(
        self,
        saved_query: SavedQuery,
        *,
        sink: AlertSink | None = None,
        schedule: str | None = None,
        last_success_date: int = 0,
    ) -> EvaluationScheduler:
        scheduler = EvaluationScheduler(
            saved_query,
            self.pipeline_for(saved_query.backend),
            schedule=schedule or self.settings.evaluation_schedule,
            sink=sink,
            health_probe=self.health_probe,
            last_success_date=last_success_date,
        )
        self.schedulers.append(scheduler)
        return scheduler

    async def start(self) -> None:
        if self.settings.metrics_port and self.metrics_server is None:
            self.metrics_server = serve_metrics(self.settings.metrics_port)
            logger.info("Serving Prometheus metrics on port %d", self.settings.metrics_port)
        for scheduler in self.schedulers:
            await scheduler.initialize()
        logger.info("Started %d saved-query scheduler(s)", len(self.schedulers))

    async def stop(self) -> None:
        for scheduler in self.schedulers:
            await scheduler.stop()
        if self.metrics_server is not None:
            server, _thread = self.metrics_server
            server.shutdown()
            server.server_close()
            self.metrics_server = None


def create_app(
    parser: QueryParser,
    executor: QueryExecutor,
    *,
    list_provider: ListDataProvider | None = None,
    health_probe: HealthProbe | None = None,
    settings: Settings | None = None,
) -> AlertSearchApp:
    """Load configuration, set up observability and return the wired app.

    Raises:
        ConfigurationError: If the deployment file is missing or invalid
    """
    settings = settings or Settings()
    registry = BackendRegistry.from_settings(settings)

    # Profile values win; unset ones fall back to the process settings.
    profile = registry.deployment.log_profile
    configure_logging(
        profile.level or settings.log_level,
        settings.log_json if profile.json_output is None else profile.json_output,
        logger_levels=profile.logger_levels,
    )

    observability = registry.deployment.observability
    resource_attributes = dict(observability.resource_attributes)
    configure_metrics_exporter(
        observability,
        service_name=settings.service_name,
        resource_attributes=resource_attributes,
    )
    init_metrics(settings.service_name, resource_attributes=resource_attributes)
    provider = init_tracing(settings.service_name, resource_attributes=resource_attributes)
    configure_trace_exporter(observability, provider)

    return AlertSearchApp(
        settings=settings,
        registry=registry,
        parser=parser,
        executor=executor,
        list_provider=list_provider,
        health_probe=health_probe,
    )
