"""Time helpers shared by period computation, storage, and the reaper."""

from __future__ import annotations

import datetime as dt

END_OF_DAY = dt.time(23, 59, 59, 999_000)


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp suitable for DB defaults."""
    return dt.datetime.now(dt.UTC)


def ensure_utc(value: dt.datetime) -> dt.datetime:
    """Return ``value`` as an aware UTC datetime.

    Naive values are rejected rather than guessed at.
    """
    if value.tzinfo is None:
        msg = f"expected a timezone-aware datetime, got naive {value.isoformat()}"
        raise ValueError(msg)
    return value.astimezone(dt.UTC)


def start_of_day(day: dt.date) -> dt.datetime:
    """Return midnight UTC on ``day``."""
    return dt.datetime.combine(day, dt.time.min, tzinfo=dt.UTC)


def end_of_day(day: dt.date) -> dt.datetime:
    """Return the last millisecond of ``day`` in UTC."""
    return dt.datetime.combine(day, END_OF_DAY, tzinfo=dt.UTC)
