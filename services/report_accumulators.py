"""
Keyed accumulators for report aggregation.

One pass over parsed appointments fills four accumulators:
- by procedure: revenue split evenly across the appointment's procedures
- by package: revenue split evenly across the appointment's packages
- by professional: full appointment value
- by client: full appointment value

Revenue attribution for multi-item appointments:
    A completed appointment worth 100 with procedures [A, B] adds 50 to A
    and 50 to B. A non-completed appointment adds 1 to each total and
    nothing to revenue. An appointment with no links in a dimension does
    not touch that dimension at all.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Sequence

from parsers.appointment_parser import ParsedAppointment
from utils.number_utils import ZERO, safe_divide


@dataclass
class AccumulatorEntry:
    """Running totals for one key."""
    id: str
    total: int = 0
    completed: int = 0
    revenue: Decimal = ZERO

    def add(self, completed: bool, revenue: Decimal = ZERO) -> None:
        self.total += 1
        if completed:
            self.completed += 1
            self.revenue += revenue


@dataclass
class ReportAccumulators:
    """All keyed folds produced by one pass."""
    procedures: dict[str, AccumulatorEntry] = field(default_factory=dict)
    packages: dict[str, AccumulatorEntry] = field(default_factory=dict)
    professionals: dict[str, AccumulatorEntry] = field(default_factory=dict)
    clients: dict[str, AccumulatorEntry] = field(default_factory=dict)

    # professional id -> status label -> count
    professional_status: dict[str, dict[str, int]] = field(default_factory=dict)
    # professional id -> links on completed appointments
    professional_procedures_sold: dict[str, int] = field(default_factory=dict)
    professional_packages_sold: dict[str, int] = field(default_factory=dict)

    # client id -> procedure/package id -> appointments referencing it
    client_procedures: dict[str, dict[str, int]] = field(default_factory=dict)
    client_packages: dict[str, dict[str, int]] = field(default_factory=dict)


def attributed_revenue(appointment: ParsedAppointment, link_count: int) -> Decimal:
    """
    Revenue each linked item receives from one appointment.

    Completed: value / link_count. Otherwise (or with no links): 0.
    """
    if not appointment.is_completed:
        return ZERO
    return safe_divide(appointment.value, link_count)


def _entry(accumulator: dict[str, AccumulatorEntry], key: str) -> AccumulatorEntry:
    entry = accumulator.get(key)
    if entry is None:
        entry = AccumulatorEntry(id=key)
        accumulator[key] = entry
    return entry


def _count(counter: dict[str, int], key: str, amount: int = 1) -> None:
    counter[key] = counter.get(key, 0) + amount


def add_attributed(
    accumulator: dict[str, AccumulatorEntry],
    appointment: ParsedAppointment,
    item_ids: Sequence[str],
) -> None:
    """Apply the even-split attribution rule for one dimension."""
    if not item_ids:
        return
    share = attributed_revenue(appointment, len(item_ids))
    for item_id in item_ids:
        _entry(accumulator, item_id).add(appointment.is_completed, share)


def add_appointment(acc: ReportAccumulators, appointment: ParsedAppointment) -> None:
    """Fold one appointment into every accumulator."""
    completed = appointment.is_completed
    value = appointment.realized_value

    add_attributed(acc.procedures, appointment, appointment.procedure_ids)
    add_attributed(acc.packages, appointment, appointment.package_ids)

    professional_id = appointment.professional_id
    if professional_id:
        _entry(acc.professionals, professional_id).add(completed, value)
        _count(acc.professional_status.setdefault(professional_id, {}), appointment.status)
        if completed and appointment.procedure_ids:
            _count(acc.professional_procedures_sold, professional_id, len(appointment.procedure_ids))
        if completed and appointment.package_ids:
            _count(acc.professional_packages_sold, professional_id, len(appointment.package_ids))

    client_id = appointment.client_id
    if client_id:
        _entry(acc.clients, client_id).add(completed, value)
        if appointment.procedure_ids:
            counts = acc.client_procedures.setdefault(client_id, {})
            for procedure_id in appointment.procedure_ids:
                _count(counts, procedure_id)
        if appointment.package_ids:
            counts = acc.client_packages.setdefault(client_id, {})
            for package_id in appointment.package_ids:
                _count(counts, package_id)


def accumulate(appointments: Iterable[ParsedAppointment]) -> ReportAccumulators:
    """
    Build all accumulators in a single pass.

    Args:
        appointments: Parsed appointments

    Returns:
        ReportAccumulators
    """
    acc = ReportAccumulators()
    for appointment in appointments:
        add_appointment(acc, appointment)
    return acc
