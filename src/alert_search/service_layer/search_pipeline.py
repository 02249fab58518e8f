"""Saved-query evaluation against a time-indexed search backend.

Every evaluation runs a count query first. The count is checked against the
saved query's inclusive count filter; only when it passes does the pipeline
run the data query (FIELDS) or synthesize a single record (COUNT,
NO_RESULTS). A failed gate is a normal outcome and yields no records.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import random
from typing import TYPE_CHECKING, Any

from alert_search.domain.count_filter import passes_gate, resolve_filter_range
from alert_search.domain.errors import SearchError
from alert_search.domain.model import (
    AlertRecord,
    ConstructedQuery,
    EvaluationContext,
    RawHit,
    ResolvedSettings,
    ResultKind,
    SavedQuery,
)
from alert_search.domain.window import apply_window
from alert_search.observability.metrics import ALERTS_EMITTED, EVALUATION_COUNT, SEARCH_LATENCY, track_latency
from alert_search.observability.tracing import create_span
from alert_search.service_layer.result_shaper import ResultShaper


if TYPE_CHECKING:
    from alert_search.adapters.protocols import ListDataProvider, QueryExecutor, QueryParser
    from alert_search.deployment_config import BackendConfig


OUTCOME_SUPPRESSED = "suppressed"
OUTCOME_ERROR = "error"


class SearchPipeline:
    """Plan, gate and shape saved-query evaluations for one backend.

    The pipeline holds no per-evaluation state; the same instance may serve
    any number of saved queries against ``backend``.
    """

    def __init__(
        self,
        backend: BackendConfig,
        parser: QueryParser,
        executor: QueryExecutor,
        list_provider: ListDataProvider | None = None,
        *,
        shaper: ResultShaper | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.backend = backend
        self.parser = parser
        self.executor = executor
        self.list_provider = list_provider
        self.shaper = shaper or ResultShaper()
        self._rng = rng or random.Random()

    def is_time_based(self) -> bool:
        return self.backend.date_based

    def get_list(self, name: str) -> list[Any]:
        """Resolve a named reference list; unknown lists are empty."""
        if self.list_provider is None:
            return []
        return list(self.list_provider.get_list_data([name]).get(name, []))

    def build_settings(self, saved_query: SavedQuery) -> ConstructedQuery:
        """Parse the saved query and overlay this backend's configuration.

        Raises:
            SearchError: If the query cannot be parsed into valid settings
        """
        try:
            partial, query = self.parser.parse(saved_query.query)
            settings = ResolvedSettings.model_validate(dict(partial))
        except Exception as exc:
            raise SearchError(str(exc), backend=self.backend.name) from exc

        if self.backend.hosts:
            settings.host = self._rng.choice(self.backend.hosts)
        if self.backend.index is not None:
            settings.index = self.backend.index
        settings.date_based = self.backend.date_based

        fields = list(saved_query.fields)
        date_field = self.backend.resolve_date_field(saved_query.event_time_based)
        if date_field is not None:
            settings.date_field = date_field
            # The timestamp must come back even when the query projects fields.
            if fields:
                fields.append(date_field)
        if fields:
            settings.fields = fields

        return ConstructedQuery(
            settings=settings,
            query=query,
            fields=fields,
            date_field=date_field,
            result_kind=saved_query.result_kind,
            filter_range=saved_query.filter_range,
        )

    def execute(self, context: EvaluationContext, constructed: ConstructedQuery) -> list[AlertRecord]:
        """Window the constructed query at ``context.instant`` and run it."""
        settings = constructed.settings.model_copy(deep=True)
        apply_window(settings, context.instant, context.range_minutes, context.last_success_date)
        return self.search(
            context.instant,
            settings,
            constructed.query,
            constructed.fields,
            constructed.date_field,
            constructed.result_kind,
            constructed.filter_range,
        )

    def evaluate(self, saved_query: SavedQuery, context: EvaluationContext) -> list[AlertRecord]:
        return self.execute(context, self.build_settings(saved_query))

    def search(
        self,
        date: int,
        settings: ResolvedSettings,
        query: Any,
        fields: Sequence[str] | None,
        date_field: str | None,
        result_kind: ResultKind | int,
        filter_range: Any,
    ) -> list[AlertRecord]:
        """Run the count query, apply the gate, and produce alert records.

        Args:
            date: Evaluation instant in epoch seconds
            settings: Fully resolved settings, including the window
            query: Parsed query representation, passed through to the executor
            fields: Field projection requested by the saved query
            date_field: Field to derive record timestamps from
            result_kind: FIELDS, COUNT or NO_RESULTS
            filter_range: Inclusive ``[lower, upper]`` count bounds

        Returns:
            Alert records; empty when the gate suppresses the evaluation

        Raises:
            SearchError: If the count or data query fails
        """
        bounds = resolve_filter_range(result_kind, filter_range)
        labels = {"backend": self.backend.name}

        with (
            create_span(
                "alert_search.search",
                attributes={
                    "search.backend": self.backend.name,
                    "search.index": settings.index,
                    "search.from": settings.from_,
                    "search.to": settings.to,
                },
            ) as span,
            track_latency(SEARCH_LATENCY, **labels),
        ):
            try:
                kind = ResultKind(result_kind)
                count = self._count(settings, query)
                span.set_attribute("search.count", count)

                if not passes_gate(count, bounds):
                    alerts: list[AlertRecord] = []
                    outcome = OUTCOME_SUPPRESSED
                elif kind is ResultKind.FIELDS:
                    hits = self._hits(settings, query)
                    alerts = self.shaper.shape_all(hits, date, date_field, fields)
                    outcome = kind.name.lower()
                elif kind is ResultKind.COUNT:
                    alerts = [AlertRecord(timestamp=date, content={"count": count})]
                    outcome = kind.name.lower()
                else:
                    alerts = [AlertRecord(timestamp=date)]
                    outcome = kind.name.lower()
            except Exception as exc:
                EVALUATION_COUNT.labels(outcome=OUTCOME_ERROR, **labels).inc()
                raise SearchError(str(exc), backend=self.backend.name) from exc

            span.set_attribute("search.outcome", outcome)
            EVALUATION_COUNT.labels(outcome=outcome, **labels).inc()
            if alerts:
                ALERTS_EMITTED.labels(**labels).inc(len(alerts))
            return alerts

    def _count(self, settings: ResolvedSettings, query: Any) -> int:
        result = self.executor.execute(settings.for_count(), query, self.get_list)
        if isinstance(result, Mapping):
            result = result["count"]
        if isinstance(result, bool) or not isinstance(result, int):
            raise TypeError(f"Count query returned {type(result).__name__}, expected int")
        return result

    def _hits(self, settings: ResolvedSettings, query: Any) -> Sequence[RawHit]:
        result = self.executor.execute(settings, query, self.get_list)
        if isinstance(result, (Mapping, str, bytes)) or not isinstance(result, Sequence):
            raise TypeError(f"Data query returned {type(result).__name__}, expected a sequence of hits")
        return result
