"""Count gate resolution.

A count filter is an inclusive ``(lower, upper)`` pair where ``None`` leaves
that side unbounded. Anything that is not a two-element sequence means "no
gating requested" and is coerced rather than rejected.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from alert_search.domain.model import CountFilter, ResultKind


UNBOUNDED: CountFilter = (None, None)
EXACTLY_ZERO: CountFilter = (0, 0)


def resolve_filter_range(result_kind: ResultKind | int, filter_range: Any) -> CountFilter:
    if result_kind == ResultKind.NO_RESULTS:
        return EXACTLY_ZERO

    if isinstance(filter_range, (str, bytes)) or not isinstance(filter_range, Sequence):
        return UNBOUNDED
    if len(filter_range) != 2:
        return UNBOUNDED

    lower, upper = filter_range
    return (lower, upper)


def passes_gate(count: int, filter_range: CountFilter) -> bool:
    lower, upper = filter_range
    if lower is not None and count < lower:
        return False
    if upper is not None and count > upper:
        return False
    return True
