"""
Rankings and per-entity projections.

Rankings sort an accumulator descending by a metric and keep the first N.
Python's sort is stable, so entries with equal metric keep first-seen
order. That order depends on the order rows come back from the database,
so ties are NOT guaranteed to rank the same way across re-runs.
"""

from typing import Mapping, Optional, Sequence

from models.reports import (
    ClientAnalysis,
    ClientItem,
    ClientSummary,
    ProfessionalAnalysis,
    RankedItem,
)
from services.report_accumulators import AccumulatorEntry, ReportAccumulators
from services.report_series import to_status_counts
from utils.number_utils import safe_rate, to_money

RANK_METRICS = ("total", "completed", "revenue")

# Display name used when a lookup has no row for an id
FALLBACK_PROCEDURE_NAME = "Procedimento"
FALLBACK_PACKAGE_NAME = "Pacote"
FALLBACK_PROFESSIONAL_NAME = "Profissional"
FALLBACK_CLIENT_NAME = "Cliente"


def rank_entries(
    accumulator: Mapping[str, AccumulatorEntry],
    limit: Optional[int] = None,
    by: str = "total",
) -> list[AccumulatorEntry]:
    """
    Sort accumulator entries descending by a metric.

    Args:
        accumulator: id -> AccumulatorEntry
        limit: Keep at most this many entries (None keeps all)
        by: "total", "completed" or "revenue"

    Returns:
        Ranked entries
    """
    if by not in RANK_METRICS:
        raise ValueError(f"Cannot rank by {by!r}; expected one of {RANK_METRICS}")

    ranked = sorted(
        accumulator.values(),
        key=lambda entry: getattr(entry, by),
        reverse=True
    )
    return ranked if limit is None else ranked[:limit]


def top_counts(counts: Mapping[str, int], limit: int) -> list[tuple[str, int]]:
    """Most frequent ids of a frequency map, largest first."""
    return sorted(counts.items(), key=lambda item: item[1], reverse=True)[:limit]


def entry_ids(entries: Sequence[AccumulatorEntry]) -> list[str]:
    return [entry.id for entry in entries]


def to_ranked_items(
    entries: Sequence[AccumulatorEntry],
    names: Mapping[str, str],
    fallback_name: str,
) -> tuple[RankedItem, ...]:
    """Attach names and conversion to ranked entries."""
    return tuple(
        RankedItem(
            id=entry.id,
            name=names.get(entry.id) or fallback_name,
            total=entry.total,
            completed=entry.completed,
            conversion=safe_rate(entry.completed, entry.total),
            revenue=to_money(entry.revenue),
        )
        for entry in entries
    )


def to_client_summaries(
    entries: Sequence[AccumulatorEntry],
    names: Mapping[str, str],
) -> tuple[ClientSummary, ...]:
    return tuple(
        ClientSummary(
            id=entry.id,
            name=names.get(entry.id) or FALLBACK_CLIENT_NAME,
            appointments_total=entry.total,
            appointments_completed=entry.completed,
            revenue=to_money(entry.revenue),
        )
        for entry in entries
    )


def build_professional_analysis(
    acc: ReportAccumulators,
    names: Mapping[str, str],
) -> tuple[ProfessionalAnalysis, ...]:
    """
    Breakdown for every professional, highest revenue first.

    Includes the status tally and how many procedure/package links were
    on completed appointments ("sold" counts, not revenue weighted).
    """
    return tuple(
        ProfessionalAnalysis(
            id=entry.id,
            name=names.get(entry.id) or FALLBACK_PROFESSIONAL_NAME,
            revenue=to_money(entry.revenue),
            appointments_total=entry.total,
            appointments_completed=entry.completed,
            procedures_sold=acc.professional_procedures_sold.get(entry.id, 0),
            packages_sold=acc.professional_packages_sold.get(entry.id, 0),
            status=to_status_counts(acc.professional_status.get(entry.id, {})),
        )
        for entry in rank_entries(acc.professionals, by="revenue")
    )


def client_item_ids(
    clients: Sequence[AccumulatorEntry],
    frequencies: Mapping[str, Mapping[str, int]],
    item_limit: int,
) -> list[str]:
    """Distinct item ids that will appear in the client analysis."""
    ids: dict[str, None] = {}
    for client in clients:
        for item_id, _ in top_counts(frequencies.get(client.id, {}), item_limit):
            ids[item_id] = None
    return list(ids)


def _client_items(
    counts: Mapping[str, int],
    names: Mapping[str, str],
    fallback_name: str,
    limit: int,
) -> tuple[ClientItem, ...]:
    return tuple(
        ClientItem(id=item_id, name=names.get(item_id) or fallback_name, total=total)
        for item_id, total in top_counts(counts, limit)
    )


def build_client_analysis(
    clients: Sequence[AccumulatorEntry],
    acc: ReportAccumulators,
    client_names: Mapping[str, str],
    procedure_names: Mapping[str, str],
    package_names: Mapping[str, str],
    item_limit: int,
) -> tuple[ClientAnalysis, ...]:
    """
    Per-client projection with most frequent procedures and packages.

    Reuses the frequency maps built during accumulation; the appointment
    list is not scanned again.

    Args:
        clients: Already ranked client entries
        acc: Accumulators holding the per-client frequency maps
        client_names: client id -> name
        procedure_names: procedure id -> name
        package_names: package id -> name
        item_limit: Max procedures and max packages per client

    Returns:
        ClientAnalysis per client, in the given order
    """
    return tuple(
        ClientAnalysis(
            id=client.id,
            name=client_names.get(client.id) or FALLBACK_CLIENT_NAME,
            appointments_total=client.total,
            appointments_completed=client.completed,
            revenue=to_money(client.revenue),
            procedures=_client_items(
                acc.client_procedures.get(client.id, {}),
                procedure_names,
                FALLBACK_PROCEDURE_NAME,
                item_limit,
            ),
            packages=_client_items(
                acc.client_packages.get(client.id, {}),
                package_names,
                FALLBACK_PACKAGE_NAME,
                item_limit,
            ),
        )
        for client in clients
    )
