"""Cron-driven evaluation of a single saved query."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from contextlib import suppress
from datetime import datetime, timezone
import inspect
import logging
import time
from typing import TYPE_CHECKING, Any

from cron_converter import Cron

from alert_search.domain.errors import SearchError
from alert_search.domain.model import AlertRecord, EvaluationContext, HealthStatus, SavedQuery
from alert_search.observability.context import generate_span_id, generate_trace_id, set_trace_context
from alert_search.observability.metrics import LAST_SUCCESS

from .scheduler_protocol import EvaluationSchedulerProtocol


if TYPE_CHECKING:
    from alert_search.adapters.protocols import HealthProbe
    from alert_search.service_layer.search_pipeline import SearchPipeline


logger = logging.getLogger(__name__)

AlertSink = Callable[[SavedQuery, list[AlertRecord]], Awaitable[None] | None]


class EvaluationScheduler(EvaluationSchedulerProtocol):
    """Evaluate one saved query on a cron schedule.

    Tracks the last successful evaluation instant so consecutive windows
    line up, hands records to ``sink``, and backs off exponentially after
    failed runs. The pipeline is synchronous and runs in a worker thread;
    evaluations never overlap.
    """

    BASE_RETRY_DELAY = 60
    MAX_RETRY_DELAY = 3600
    MAX_WAIT_SECONDS = 60.0

    def __init__(
        self,
        saved_query: SavedQuery,
        pipeline: SearchPipeline,
        *,
        schedule: str | None = None,
        sink: AlertSink | None = None,
        health_probe: HealthProbe | None = None,
        last_success_date: int = 0,
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.saved_query = saved_query
        self.pipeline = pipeline
        self.schedule = schedule
        self.enabled = enabled
        self._sink = sink
        self._health_probe = health_probe
        self._clock = clock
        self._cron = self._build_cron(schedule)

        self._initialized = False
        self._running = False
        self._scheduler_task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()
        self._evaluation_lock = asyncio.Lock()

        self._last_success_date = last_success_date
        self._total_evaluations = 0
        self._total_alerts = 0
        self._errors = 0
        self._consecutive_failures = 0
        self._next_run_at: datetime | None = None
        self._last_result: dict[str, Any] | None = None
        self._backend_status: HealthStatus | None = None

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def running(self) -> bool:
        if self._scheduler_task:
            return self._running and not self._scheduler_task.done()
        return self._running

    @property
    def last_success_date(self) -> int:
        return self._last_success_date

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "saved_query": self.saved_query.name,
            "backend": self.pipeline.backend.name,
            "schedule": self.schedule,
            "total_evaluations": self._total_evaluations,
            "total_alerts": self._total_alerts,
            "errors": self._errors,
            "consecutive_failures": self._consecutive_failures,
            "last_success_date": self._last_success_date or None,
            "next_run_at": self._next_run_at.isoformat() if self._next_run_at else None,
            "backend_status": self._backend_status.value if self._backend_status else None,
            "last_result": self._last_result,
        }

    async def initialize(self) -> bool:
        if self.is_initialized:
            return True
        if not self.enabled:
            logger.debug("Scheduler for %s disabled; skipping initialization", self.saved_query.name)
            return False

        self._initialized = True
        if self._cron:
            self._start_scheduler_loop()
        return True

    async def stop(self) -> None:
        self._stop_event.set()
        if self._scheduler_task is not None:
            self._scheduler_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._scheduler_task
            self._scheduler_task = None

        self._running = False
        self._initialized = False

    async def trigger_evaluation(self, instant: int | None = None) -> dict:
        if not self.is_initialized:
            return {"success": False, "message": "Scheduler not initialized"}
        if self._evaluation_lock.locked():
            return {"success": False, "message": "Evaluation already running"}
        return await self._evaluate_and_record(instant)

    def _build_cron(self, schedule: str | None) -> Cron | None:
        if not schedule:
            return None
        try:
            return Cron(schedule)
        except Exception as exc:  # pragma: no cover - invalid config should fail fast
            logger.error("Invalid cron schedule '%s': %s", schedule, exc)
            raise

    def _start_scheduler_loop(self) -> None:
        if self._scheduler_task and not self._scheduler_task.done():
            return

        self._stop_event.clear()
        self._running = True
        self._scheduler_task = asyncio.create_task(self._run_scheduler_loop())

    async def _run_scheduler_loop(self) -> None:
        assert self._cron is not None

        try:
            while not self._stop_event.is_set():
                now = datetime.now(timezone.utc)
                next_run = self._cron.schedule(start_date=now).next()
                self._next_run_at = next_run

                wait_seconds = max(0.0, (next_run - now).total_seconds())
                if await self._wait_for_stop(min(wait_seconds, self.MAX_WAIT_SECONDS)):
                    break
                if datetime.now(timezone.utc) < next_run:
                    continue

                result = await self._evaluate_and_record(None)
                if not result.get("success"):
                    delay = min(
                        self.BASE_RETRY_DELAY * (2 ** (self._consecutive_failures - 1)),
                        self.MAX_RETRY_DELAY,
                    )
                    if await self._wait_for_stop(delay):
                        break
        except asyncio.CancelledError:  # pragma: no cover - cooperative cancellation
            raise
        except Exception:  # pragma: no cover - defensive logging
            logger.error("Scheduler loop for %s failed", self.saved_query.name, exc_info=True)
        finally:
            self._running = False

    async def _wait_for_stop(self, timeout: float) -> bool:
        if timeout <= 0:
            return self._stop_event.is_set()
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def _evaluate_and_record(self, instant: int | None) -> dict:
        async with self._evaluation_lock:
            result = await self._evaluate(int(self._clock()) if instant is None else instant)
        self._record_result(result)
        return result

    async def _evaluate(self, instant: int) -> dict[str, Any]:
        set_trace_context(
            generate_trace_id(),
            generate_span_id(),
            backend=self.pipeline.backend.name,
            saved_query=self.saved_query.name,
        )
        context = EvaluationContext(
            instant=instant,
            range_minutes=self.saved_query.range_minutes,
            last_success_date=self._last_success_date,
        )

        try:
            alerts = await asyncio.to_thread(self.pipeline.evaluate, self.saved_query, context)
        except SearchError as exc:
            logger.error(
                "Evaluation of %s failed on backend %s: %s",
                self.saved_query.name,
                self.pipeline.backend.name,
                exc.message,
            )
            self._backend_status = await self._probe_backend(instant)
            return {
                "success": False,
                "message": f"Search failed: {exc.message}",
                "instant": instant,
                "backend_status": self._backend_status.value,
            }

        try:
            await self._deliver(alerts)
        except Exception as exc:
            logger.error("Alert sink rejected %d record(s) for %s", len(alerts), self.saved_query.name, exc_info=True)
            return {"success": False, "message": f"Alert delivery failed: {exc}", "instant": instant}

        self._last_success_date = instant
        self._backend_status = HealthStatus.HEALTHY
        LAST_SUCCESS.labels(saved_query=self.saved_query.name or "unnamed").set(instant)
        logger.debug("Evaluation of %s produced %d alert(s)", self.saved_query.name, len(alerts))
        return {"success": True, "instant": instant, "alerts": len(alerts)}

    async def _deliver(self, alerts: list[AlertRecord]) -> None:
        if self._sink is None or not alerts:
            return
        outcome = self._sink(self.saved_query, alerts)
        if inspect.isawaitable(outcome):
            await outcome

    async def _probe_backend(self, instant: int) -> HealthStatus:
        if self._health_probe is None:
            return HealthStatus.UNKNOWN
        try:
            return await asyncio.to_thread(self._health_probe.probe, self.pipeline.backend, instant)
        except Exception:
            logger.warning("Health probe for %s raised", self.pipeline.backend.name, exc_info=True)
            return HealthStatus.UNKNOWN

    def _record_result(self, result: dict[str, Any]) -> None:
        self._last_result = result
        if result.get("success"):
            self._total_evaluations += 1
            self._total_alerts += result.get("alerts", 0)
            self._consecutive_failures = 0
        else:
            self._errors += 1
            self._consecutive_failures += 1
