"""Domain models for saved-query evaluation.

Value objects are immutable (frozen=True); ResolvedSettings is the one
mutable model and is built fresh for every evaluation.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


RawHit = dict[str, Any]
CountFilter = tuple[int | None, int | None]


class ResultKind(IntEnum):
    """What a saved query emits once the count gate passes."""

    FIELDS = 0
    COUNT = 1
    NO_RESULTS = 2


class HealthStatus(str, Enum):
    """Liveness of a search backend as reported by a health probe."""

    HEALTHY = "healthy"
    UNREACHABLE = "unreachable"
    UNKNOWN = "unknown"


class SavedQuery(BaseModel):
    """Immutable description of what to run on every evaluation."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    backend: str | None = None
    query: str = ""
    fields: list[str] = Field(default_factory=list)
    result_kind: ResultKind = ResultKind.FIELDS
    # Not validated here; malformed ranges are coerced during gating.
    filter_range: Any = None
    range_minutes: int = Field(default=0, ge=0)
    event_time_based: bool = False


class EvaluationContext(BaseModel):
    """Per-run bundle supplied by the scheduler."""

    model_config = ConfigDict(frozen=True)

    instant: int
    range_minutes: int = Field(ge=0)
    last_success_date: int = 0


class ResolvedSettings(BaseModel):
    """Backend execution parameters for a single evaluation.

    Parsers may contribute keys that are not modelled here; they are kept as
    extra fields and handed to the executor untouched.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True, validate_assignment=True)

    host: str | None = None
    index: str | None = None
    date_based: bool = False
    date_field: str | None = None
    fields: list[str] | None = None
    from_: int | None = Field(default=None, alias="from")
    to: int | None = None
    size: int | None = Field(default=None, ge=0)
    count: bool = False

    def for_count(self) -> ResolvedSettings:
        """Return an independent copy configured for a count-only query."""
        return self.model_copy(update={"count": True}, deep=True)


class ConstructedQuery(BaseModel):
    """Output of the planning step, consumed by SearchPipeline.execute."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    settings: ResolvedSettings
    query: Any = None
    fields: list[str] = Field(default_factory=list)
    date_field: str | None = None
    result_kind: ResultKind = ResultKind.FIELDS
    filter_range: Any = None


class AlertRecord(BaseModel):
    """Normalized output unit handed to the alerting framework."""

    model_config = ConfigDict(frozen=True)

    timestamp: int
    content: dict[str, Any] = Field(default_factory=dict)
