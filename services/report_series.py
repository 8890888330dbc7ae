"""
Daily series and status distribution.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable
from zoneinfo import ZoneInfo

from models.reports import DayBucket, ReportRange, StatusCount
from parsers.appointment_parser import ParsedAppointment
from services.report_window import iter_window_days, local_day
from utils.number_utils import ZERO, to_money


def build_daily_series(
    appointments: Iterable[ParsedAppointment],
    window: ReportRange,
    tz: ZoneInfo,
) -> tuple[DayBucket, ...]:
    """
    Bucket appointments per calendar day (in tz) across the whole window.

    Every day between window start and end appears exactly once, in
    ascending order. Days without appointments are zero-filled.
    Appointments falling outside the window's days are ignored.

    Args:
        appointments: Parsed appointments
        window: Resolved report window
        tz: Timezone defining calendar days

    Returns:
        Contiguous tuple of DayBucket
    """
    totals: dict[date, dict] = {
        day: {"revenue": ZERO, "total": 0, "completed": 0}
        for day in iter_window_days(window, tz)
    }

    for appointment in appointments:
        bucket = totals.get(local_day(appointment.occurs_at, tz))
        if bucket is None:
            continue
        bucket["total"] += 1
        if appointment.is_completed:
            bucket["completed"] += 1
            bucket["revenue"] += appointment.value

    return tuple(
        DayBucket(
            day=day,
            revenue=to_money(stats["revenue"]),
            total=stats["total"],
            completed=stats["completed"],
        )
        for day, stats in totals.items()
    )


def count_statuses(appointments: Iterable[ParsedAppointment]) -> dict[str, int]:
    """Appointment count per status label, first-seen order."""
    counts: dict[str, int] = {}
    for appointment in appointments:
        counts[appointment.status] = counts.get(appointment.status, 0) + 1
    return counts


def to_status_counts(counts: dict[str, int]) -> tuple[StatusCount, ...]:
    """Status tally as StatusCount list, largest first (stable on ties)."""
    ordered = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return tuple(StatusCount(status=status, total=total) for status, total in ordered)


def build_status_distribution(
    appointments: Iterable[ParsedAppointment],
) -> tuple[StatusCount, ...]:
    """Tally appointments per status label."""
    return to_status_counts(count_statuses(appointments))


def total_revenue(appointments: Iterable[ParsedAppointment]) -> Decimal:
    """Sum of completed appointment values."""
    return sum((a.realized_value for a in appointments), ZERO)
