"""Calendar window calculation.

Every calendar written in one task run covers the same range of whole years:

- start: January 1st (00:00:00.000) of the year containing `now - past`
- end: January 1st of the year *after* the one containing `now + future`

Rounding the end up a year means truncation can never leave the tail of the
requested range uncovered.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sky_calendars.models.calendar import CalendarWindow

DEFAULT_WINDOW_PAST_MS = 31536000000  # 1 year
DEFAULT_WINDOW_FUTURE_MS = 63072000000  # 2 years


def year_start(time: datetime, years: int = 0) -> datetime:
    """Truncate a time to the first instant of its year, optionally shifted by whole years."""
    return time.replace(
        year=time.year + years,
        month=1,
        day=1,
        hour=0,
        minute=0,
        second=0,
        microsecond=0,
    )


def compute_window(
    now: datetime,
    past_ms: int = DEFAULT_WINDOW_PAST_MS,
    future_ms: int = DEFAULT_WINDOW_FUTURE_MS,
) -> CalendarWindow:
    """Compute the year-aligned window for a task run.

    Args:
        now: Reference time; naive values are taken as UTC
        past_ms: How far back to cover, in milliseconds
        future_ms: How far ahead to cover, in milliseconds

    Returns:
        CalendarWindow in the timezone of `now`
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    start = year_start(now - timedelta(milliseconds=past_ms))
    end = year_start(now + timedelta(milliseconds=future_ms), years=1)
    return CalendarWindow(start=start, end=end)
