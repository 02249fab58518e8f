"""Turn raw search hits into alert records."""

from __future__ import annotations

from collections.abc import Sequence
import math
from typing import Any

import pendulum

from alert_search.domain.model import AlertRecord, RawHit


METADATA_FIELDS: tuple[str, ...] = ("_index", "_type", "_id", "_score")
PRERESOLVED_TIME_FIELD = "time"
UNPARSABLE_TIMESTAMP = 0


def coerce_timestamp(value: Any) -> int:
    """Convert a hit's date value into epoch seconds.

    All-digit strings are taken as epoch seconds; any other string is parsed
    as a free-form date/time (UTC unless it carries an offset). Values that
    cannot be interpreted yield ``UNPARSABLE_TIMESTAMP``.
    """
    if isinstance(value, bool):
        return UNPARSABLE_TIMESTAMP
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else UNPARSABLE_TIMESTAMP
    if not isinstance(value, str):
        return UNPARSABLE_TIMESTAMP

    text = value.strip()
    if text.isascii() and text.isdigit():
        return int(text)

    try:
        parsed = pendulum.parse(text, strict=False)
    except (ValueError, TypeError, OverflowError):
        return UNPARSABLE_TIMESTAMP
    if not isinstance(parsed, pendulum.DateTime):
        return UNPARSABLE_TIMESTAMP
    return parsed.int_timestamp


class ResultShaper:
    """Strip engine metadata and derive a timestamp for each hit.

    ``_index``, ``_type``, ``_id`` and ``_score`` come back on every hit; they
    are dropped unless the saved query's field list names them.
    """

    def __init__(self, metadata_fields: Sequence[str] = METADATA_FIELDS) -> None:
        self.metadata_fields = tuple(metadata_fields)

    def shape(
        self,
        hit: RawHit,
        date: int,
        date_field: str | None,
        fields: Sequence[str] | None = None,
    ) -> AlertRecord:
        content = dict(hit)
        requested = set(fields or ())

        if PRERESOLVED_TIME_FIELD in content:
            timestamp = coerce_timestamp(content[PRERESOLVED_TIME_FIELD])
        elif date_field and date_field in content:
            timestamp = coerce_timestamp(content.pop(date_field))
        else:
            timestamp = date

        for field in self.metadata_fields:
            if field not in requested:
                content.pop(field, None)

        return AlertRecord(timestamp=timestamp, content=content)

    def shape_all(
        self,
        hits: Sequence[RawHit],
        date: int,
        date_field: str | None,
        fields: Sequence[str] | None = None,
    ) -> list[AlertRecord]:
        return [self.shape(hit, date, date_field, fields) for hit in hits]
