"""
Supabase reads used by the reports pipeline.

Every read is scoped to one clinic (admin_profile_id) passed explicitly
by the caller. Name and plan lookups are batched: one query per id set.
Any failed read is raised as UpstreamReadError; nothing is retried here.
"""

import structlog

from config import get_supabase_client
from exceptions import UpstreamReadError
from models.reports import ReportRange
from parsers.appointment_parser import APPOINTMENT_COLUMNS

logger = structlog.get_logger(__name__)

TENANT_COLUMN = "admin_profile_id"

# Dimension -> (table, name column)
NAME_SOURCES = {
    "procedures": ("procedimentos", "nome"),
    "packages": ("protocolos_pacotes", "nome"),
    "professionals": ("profissionais_clinica", "nome"),
    "clients": ("pacientes", "nome_completo"),
}


class ReportDataSource:
    """
    Read-only access to the clinic tables behind the reports.

    Tables:
        agendamentos_clinica: appointments
        pacientes: clients (new-client count and names)
        planos_tratamento: plan -> package links
        procedimentos, protocolos_pacotes, profissionais_clinica: names
    """

    def __init__(self, client=None):
        self.db = client if client is not None else get_supabase_client()

    # ===================
    # APPOINTMENTS
    # ===================

    def fetch_appointments(
        self,
        tenant_id: str,
        window: ReportRange,
        row_cap: int
    ) -> list[dict]:
        """
        Raw appointments whose data_inicio falls inside the window.

        Args:
            tenant_id: Clinic admin profile id
            window: Resolved report window
            row_cap: Maximum rows to read (extra rows are dropped)

        Returns:
            Raw agendamentos_clinica rows
        """
        logger.debug(
            "fetching_appointments",
            tenant_id=tenant_id,
            start=window.start_iso,
            end=window.end_iso,
            row_cap=row_cap
        )

        try:
            result = (
                self.db.table("agendamentos_clinica")
                .select(APPOINTMENT_COLUMNS)
                .eq(TENANT_COLUMN, tenant_id)
                .gte("data_inicio", window.start_iso)
                .lte("data_inicio", window.end_iso)
                .limit(row_cap)
                .execute()
            )
        except Exception as e:
            logger.error(
                "fetch_appointments_failed",
                tenant_id=tenant_id,
                error=str(e),
                error_type=type(e).__name__
            )
            raise UpstreamReadError("fetch_appointments", e) from e

        rows = list(result.data or [])
        if len(rows) >= row_cap:
            logger.warning(
                "appointment_row_cap_reached",
                tenant_id=tenant_id,
                row_cap=row_cap
            )
        return rows

    # ===================
    # CLIENTS
    # ===================

    def count_new_clients(self, tenant_id: str, window: ReportRange) -> int:
        """Clients created inside the window."""
        try:
            result = (
                self.db.table("pacientes")
                .select("id", count="exact", head=True)
                .eq(TENANT_COLUMN, tenant_id)
                .gte("created_at", window.start_iso)
                .lte("created_at", window.end_iso)
                .execute()
            )
        except Exception as e:
            logger.error(
                "count_new_clients_failed",
                tenant_id=tenant_id,
                error=str(e),
                error_type=type(e).__name__
            )
            raise UpstreamReadError("count_new_clients", e) from e

        return result.count or 0

    # ===================
    # PLANS
    # ===================

    def resolve_plan_packages(self, tenant_id: str, plan_ids: list[str]) -> dict[str, str]:
        """
        Map treatment plan ids to their package id.

        Plans without a package are left out of the map.
        """
        if not plan_ids:
            return {}

        try:
            result = (
                self.db.table("planos_tratamento")
                .select("id, protocolo_pacote_id")
                .eq(TENANT_COLUMN, tenant_id)
                .in_("id", plan_ids)
                .execute()
            )
        except Exception as e:
            logger.error(
                "resolve_plan_packages_failed",
                tenant_id=tenant_id,
                plan_count=len(plan_ids),
                error=str(e),
                error_type=type(e).__name__
            )
            raise UpstreamReadError("resolve_plan_packages", e) from e

        return {
            str(row["id"]): str(row["protocolo_pacote_id"])
            for row in (result.data or [])
            if row.get("id") is not None and row.get("protocolo_pacote_id") is not None
        }

    # ===================
    # NAMES
    # ===================

    def resolve_names(self, tenant_id: str, dimension: str, ids: list[str]) -> dict[str, str]:
        """
        Display names for a set of ids in one query.

        Args:
            tenant_id: Clinic admin profile id
            dimension: "procedures", "packages", "professionals" or "clients"
            ids: Ids to look up

        Returns:
            id -> name for the ids found
        """
        table, name_column = NAME_SOURCES[dimension]
        if not ids:
            return {}

        try:
            result = (
                self.db.table(table)
                .select(f"id, {name_column}")
                .eq(TENANT_COLUMN, tenant_id)
                .in_("id", ids)
                .execute()
            )
        except Exception as e:
            logger.error(
                "resolve_names_failed",
                tenant_id=tenant_id,
                dimension=dimension,
                id_count=len(ids),
                error=str(e),
                error_type=type(e).__name__
            )
            raise UpstreamReadError(f"resolve_{dimension}_names", e) from e

        return {
            str(row["id"]): row[name_column]
            for row in (result.data or [])
            if row.get("id") is not None and row.get(name_column)
        }
