"""General utility helpers shared across modules."""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from typing import Optional

MS_PER_HOUR = 3_600_000
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def now_ms() -> int:
    """Return the current wall-clock time as integer epoch milliseconds."""

    return time.time_ns() // 1_000_000


def ms_to_datetime(value_ms: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=value_ms)


def datetime_to_ms(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - _EPOCH) // timedelta(milliseconds=1)


def iso_utc(value: datetime | int) -> str:
    """Format a datetime or epoch-ms value as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""

    if isinstance(value, datetime):
        dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        dt = dt.astimezone(timezone.utc)
    else:
        dt = ms_to_datetime(value)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_iso8601(value: str) -> datetime:
    """Parse ISO timestamps and normalise trailing Z."""

    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def hours_between(start_ms: int, end_ms: int) -> float:
    return (end_ms - start_ms) / MS_PER_HOUR


def format_duration(start_ms: int, end_ms: Optional[int] = None) -> str:
    """Format an elapsed span as ``Xh Ym`` or ``Ym``.

    An open span is measured up to now.
    """

    end = end_ms if end_ms is not None else now_ms()
    minutes = max(0, end - start_ms) // 60_000
    hours, mins = divmod(minutes, 60)
    if hours > 0:
        return f"{hours}h {mins}m"
    return f"{mins}m"
