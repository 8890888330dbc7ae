"""
Report window resolution.

Turns a period selector into a concrete [start, end] window. Day
boundaries are evaluated in the clinic's configured timezone, so "today"
is the same calendar day for every caller.

Rolling periods are trailing windows ending at today's day-end:
    week    -> last 7 calendar days (today included)
    month   -> last 30 calendar days
    quarter -> last 90 calendar days
    year    -> last 365 calendar days
They are NOT calendar-aligned ("month" is not "this calendar month").
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator, Optional
from zoneinfo import ZoneInfo

from exceptions import InvalidWindowError
from models.reports import CustomRange, ReportPeriod, ReportRange, ROLLING_PERIOD_DAYS

DAY_END = time(23, 59, 59, 999000)


def start_of_day(day: date, tz: ZoneInfo) -> datetime:
    """00:00:00.000 of a calendar day in tz."""
    return datetime.combine(day, time.min, tzinfo=tz)


def end_of_day(day: date, tz: ZoneInfo) -> datetime:
    """23:59:59.999 of a calendar day in tz."""
    return datetime.combine(day, DAY_END, tzinfo=tz)


def local_day(instant: datetime, tz: ZoneInfo) -> date:
    """Calendar day of an instant in tz. Naive instants are taken as UTC."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(tz).date()


def to_utc_iso(instant: datetime) -> str:
    """UTC ISO-8601 with milliseconds and a Z suffix."""
    return (
        instant.astimezone(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def build_range(start: datetime, end: datetime) -> ReportRange:
    """Wrap a start/end pair into a ReportRange."""
    return ReportRange(
        start=start,
        end=end,
        start_iso=to_utc_iso(start),
        end_iso=to_utc_iso(end),
    )


def resolve_window(
    period: ReportPeriod,
    tz: ZoneInfo,
    now: datetime,
    custom_range: Optional[CustomRange] = None,
) -> ReportRange:
    """
    Resolve a period selector into a concrete window.

    Args:
        period: Period selector
        tz: Timezone whose calendar days anchor the window
        now: Current instant (timezone-aware)
        custom_range: Required bounds when period is CUSTOM

    Returns:
        ReportRange with both bounds

    Raises:
        InvalidWindowError: CUSTOM without both bounds, or start after end
    """
    period = ReportPeriod(period)

    if period == ReportPeriod.CUSTOM:
        return _resolve_custom(custom_range, tz)

    today = local_day(now, tz)
    end = end_of_day(today, tz)

    if period == ReportPeriod.TODAY:
        return build_range(start_of_day(today, tz), end)

    days = ROLLING_PERIOD_DAYS[period]
    first_day = today - timedelta(days=days - 1)
    return build_range(start_of_day(first_day, tz), end)


def _resolve_custom(custom_range: Optional[CustomRange], tz: ZoneInfo) -> ReportRange:
    """Use caller-supplied instants verbatim (no day snapping)."""
    start = custom_range.start if custom_range else None
    end = custom_range.end if custom_range else None

    if start is None or end is None:
        raise InvalidWindowError(
            "Custom period requires both start and end",
            details={
                "start": start.isoformat() if start else None,
                "end": end.isoformat() if end else None,
            }
        )

    # Naive instants are wall-clock times in the clinic timezone
    if start.tzinfo is None:
        start = start.replace(tzinfo=tz)
    if end.tzinfo is None:
        end = end.replace(tzinfo=tz)

    if start > end:
        raise InvalidWindowError(
            "Custom period start must not be after end",
            details={"start": start.isoformat(), "end": end.isoformat()}
        )

    return build_range(start, end)


def iter_window_days(window: ReportRange, tz: ZoneInfo) -> Iterator[date]:
    """Every calendar day touched by the window, in order, both ends included."""
    day = local_day(window.start, tz)
    last = local_day(window.end, tz)
    while day <= last:
        yield day
        day += timedelta(days=1)
