"""
Reports service: builds the clinic analytics snapshot.

Pipeline for one call:
1. Resolve the period into a window (clinic timezone day boundaries)
2. Read appointments (row-capped), new-client count and plan -> package links
3. Parse rows into canonical appointments
4. One pass to fill the procedure/package/professional/client accumulators
5. Daily series (gap-filled) and status distribution
6. Rankings, professional analysis, client analysis
7. One batched name lookup per dimension
8. Assemble an immutable ReportSnapshot

Every call recomputes from scratch. Any failed read fails the whole call.
"""

from datetime import datetime, timezone
from typing import Callable, Optional

import structlog

from config import Settings, get_settings
from exceptions import TenantResolutionError
from models.reports import (
    CustomRange,
    ReportMetrics,
    ReportPeriod,
    ReportSnapshot,
)
from parsers.appointment_parser import collect_plan_ids, parse_appointments
from services.report_accumulators import accumulate
from services.report_data_source import ReportDataSource
from services.report_ranking import (
    FALLBACK_PACKAGE_NAME,
    FALLBACK_PROCEDURE_NAME,
    FALLBACK_PROFESSIONAL_NAME,
    build_client_analysis,
    build_professional_analysis,
    client_item_ids,
    entry_ids,
    rank_entries,
    to_client_summaries,
    to_ranked_items,
)
from services.report_series import (
    build_daily_series,
    build_status_distribution,
    total_revenue,
)
from services.report_window import resolve_window
from utils.number_utils import safe_divide, safe_rate, to_money

logger = structlog.get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReportsService:
    """
    Clinic analytics business logic.

    Collaborators are injected so the pipeline can run against any
    data source and a fixed clock.
    """

    def __init__(
        self,
        data_source: Optional[ReportDataSource] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.settings = settings or get_settings()
        self.data_source = data_source or ReportDataSource()
        self.clock = clock

    def compute(
        self,
        tenant_id: Optional[str],
        period: ReportPeriod,
        custom_range: Optional[CustomRange] = None,
    ) -> ReportSnapshot:
        """
        Compute the full report snapshot for one clinic and period.

        Args:
            tenant_id: Clinic admin profile id
            period: Period selector
            custom_range: Bounds, required when period is CUSTOM

        Returns:
            ReportSnapshot

        Raises:
            TenantResolutionError: tenant_id is missing (before any read)
            InvalidWindowError: CUSTOM period without valid bounds
            UpstreamReadError: any Supabase read failed
        """
        if not tenant_id or not str(tenant_id).strip():
            raise TenantResolutionError("missing tenant id")

        period = ReportPeriod(period)
        tz = self.settings.report_tz
        window = resolve_window(period, tz, self.clock(), custom_range)

        logger.info(
            "computing_report",
            tenant_id=tenant_id,
            period=period.value,
            start=window.start_iso,
            end=window.end_iso
        )

        source = self.data_source
        rows = source.fetch_appointments(tenant_id, window, self.settings.report_row_cap)
        new_clients = source.count_new_clients(tenant_id, window)
        plan_packages = source.resolve_plan_packages(tenant_id, collect_plan_ids(rows))

        appointments = [
            a for a in parse_appointments(rows, plan_packages)
            if window.contains(a.occurs_at)
        ]
        acc = accumulate(appointments)

        # Global metrics
        total = len(appointments)
        completed = sum(1 for a in appointments if a.is_completed)
        revenue = total_revenue(appointments)
        metrics = ReportMetrics(
            revenue=to_money(revenue),
            average_ticket=to_money(safe_divide(revenue, completed)),
            conversion=safe_rate(completed, total),
            new_clients_count=new_clients,
            total=total,
            completed=completed,
        )

        # Rankings
        top_n = self.settings.report_top_items
        item_limit = self.settings.report_client_items
        top_procedures = rank_entries(acc.procedures, top_n)
        top_packages = rank_entries(acc.packages, top_n)
        top_professionals = rank_entries(acc.professionals, top_n, by="revenue")
        top_clients = rank_entries(acc.clients, top_n, by="revenue")
        analysed_clients = rank_entries(
            acc.clients, self.settings.report_top_client_analysis, by="revenue"
        )

        # One lookup per dimension, covering every id shown
        procedure_ids = _merge_ids(
            entry_ids(top_procedures),
            client_item_ids(analysed_clients, acc.client_procedures, item_limit),
        )
        package_ids = _merge_ids(
            entry_ids(top_packages),
            client_item_ids(analysed_clients, acc.client_packages, item_limit),
        )
        client_ids = _merge_ids(entry_ids(top_clients), entry_ids(analysed_clients))

        procedure_names = source.resolve_names(tenant_id, "procedures", procedure_ids)
        package_names = source.resolve_names(tenant_id, "packages", package_ids)
        professional_names = source.resolve_names(
            tenant_id, "professionals", list(acc.professionals)
        )
        client_names = source.resolve_names(tenant_id, "clients", client_ids)

        snapshot = ReportSnapshot(
            period=period,
            range=window,
            metrics=metrics,
            top_procedures=to_ranked_items(top_procedures, procedure_names, FALLBACK_PROCEDURE_NAME),
            top_packages=to_ranked_items(top_packages, package_names, FALLBACK_PACKAGE_NAME),
            professional_performance=to_ranked_items(
                top_professionals, professional_names, FALLBACK_PROFESSIONAL_NAME
            ),
            professional_analysis=build_professional_analysis(acc, professional_names),
            top_clients=to_client_summaries(top_clients, client_names),
            client_analysis=build_client_analysis(
                analysed_clients,
                acc,
                client_names,
                procedure_names,
                package_names,
                item_limit,
            ),
            daily_series=build_daily_series(appointments, window, tz),
            status_distribution=build_status_distribution(appointments),
        )

        logger.info(
            "report_computed",
            tenant_id=tenant_id,
            period=period.value,
            records=total,
            completed=completed,
            days=len(snapshot.daily_series),
            revenue=float(metrics.revenue)
        )

        return snapshot


def _merge_ids(*groups: list[str]) -> list[str]:
    """Concatenate id lists without duplicates, first-seen order."""
    merged: dict[str, None] = {}
    for group in groups:
        for item_id in group:
            merged[item_id] = None
    return list(merged)


# Singleton instance
_reports_service: Optional[ReportsService] = None


def get_reports_service() -> ReportsService:
    """Get or create ReportsService instance."""
    global _reports_service
    if _reports_service is None:
        _reports_service = ReportsService()
    return _reports_service
