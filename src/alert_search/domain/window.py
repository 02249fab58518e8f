"""Query window planning.

Consecutive evaluations should tile time without gaps or overlaps. Scheduler
jitter means the computed window start rarely equals the previous run's end
exactly, so a start within ``CONTINUITY_TOLERANCE_SECONDS`` of the last
successful evaluation snaps to it.
"""

from __future__ import annotations

from dataclasses import dataclass

from alert_search.domain.model import ResolvedSettings


CONTINUITY_TOLERANCE_SECONDS = 10
RESULTS_PER_DAY = 500
MINUTES_PER_DAY = 1440


@dataclass(slots=True, frozen=True)
class QueryWindow:
    """Absolute ``[start, end]`` bounds in epoch seconds."""

    start: int
    end: int


def plan_window(instant: int, range_minutes: int, last_success_date: int | None = None) -> QueryWindow:
    start = instant - range_minutes * 60
    if last_success_date is not None and abs(last_success_date - start) < CONTINUITY_TOLERANCE_SECONDS:
        start = last_success_date
    return QueryWindow(start=start, end=instant)


def default_size(range_minutes: int) -> int:
    """500 results per started day of lookback."""
    return (range_minutes // MINUTES_PER_DAY + 1) * RESULTS_PER_DAY


def apply_window(
    settings: ResolvedSettings,
    instant: int,
    range_minutes: int,
    last_success_date: int | None = None,
) -> ResolvedSettings:
    """Write the window bounds and, when unset, the default size into ``settings``."""
    window = plan_window(instant, range_minutes, last_success_date)
    settings.from_ = window.start
    settings.to = window.end
    if settings.size is None:
        settings.size = default_size(range_minutes)
    return settings
