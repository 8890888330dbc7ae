"""
Report schemas for the clinic analytics endpoints.

A ReportSnapshot is the full result of one report computation: global
metrics, rankings, per-professional and per-client breakdowns, the daily
series and the status distribution, plus the resolved time window.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import Field

from models.base import BaseSchema, FrozenSchema


class ReportPeriod(str, Enum):
    """Period selector for reports."""
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"
    CUSTOM = "custom"


# Trailing window length in days for rolling periods
ROLLING_PERIOD_DAYS = {
    ReportPeriod.WEEK: 7,
    ReportPeriod.MONTH: 30,
    ReportPeriod.QUARTER: 90,
    ReportPeriod.YEAR: 365,
}


class AppointmentStatus(str, Enum):
    """Appointment status labels as stored in agendamentos_clinica."""
    SCHEDULED = "agendado"
    CONFIRMED = "confirmado"
    CHECKED_IN = "check_in"
    IN_PROGRESS = "em_andamento"
    COMPLETED = "concluido"
    CANCELLED = "cancelado"
    NO_SHOW = "nao_compareceu"
    RESCHEDULED = "remarcado"


UNKNOWN_STATUS = "desconhecido"


class ReportType(str, Enum):
    """Tabular export variants."""
    SALES = "sales"
    PROFESSIONALS = "professionals"
    PRODUCTS = "products"
    FINANCIAL = "financial"
    PIPELINE = "pipeline"
    CLIENTS = "clients"


# ===================
# INPUT
# ===================

class CustomRange(BaseSchema):
    """Caller-supplied bounds for the custom period."""

    start: Optional[datetime] = Field(None, description="Window start instant")
    end: Optional[datetime] = Field(None, description="Window end instant")


# ===================
# WINDOW
# ===================

class ReportRange(FrozenSchema):
    """Resolved report window."""

    start: datetime = Field(..., description="Window start (inclusive)")
    end: datetime = Field(..., description="Window end (inclusive)")
    start_iso: str = Field(..., description="Window start as UTC ISO-8601")
    end_iso: str = Field(..., description="Window end as UTC ISO-8601")

    def contains(self, instant: datetime) -> bool:
        """Check if an instant falls inside the window (both ends inclusive)."""
        return self.start <= instant <= self.end


# ===================
# METRICS
# ===================

class ReportMetrics(FrozenSchema):
    """Global metrics for the window."""

    revenue: Decimal = Field(..., description="Sum of completed appointment values")
    average_ticket: Decimal = Field(..., description="Revenue per completed appointment")
    conversion: int = Field(..., ge=0, le=100, description="Completed over total, in percent")
    new_clients_count: int = Field(..., ge=0, description="Clients created in the window")
    total: int = Field(..., ge=0, description="Appointments in the window")
    completed: int = Field(..., ge=0, description="Completed appointments in the window")


class RankedItem(FrozenSchema):
    """One entry of a ranking (procedure, package or professional)."""

    id: str
    name: str
    total: int = Field(..., ge=0)
    completed: int = Field(..., ge=0)
    conversion: int = Field(..., ge=0, le=100)
    revenue: Decimal = Field(..., ge=0)


class StatusCount(FrozenSchema):
    """Appointment count for one status label."""

    status: str
    total: int = Field(..., ge=0)


class ProfessionalAnalysis(FrozenSchema):
    """Per-professional breakdown."""

    id: str
    name: str
    revenue: Decimal = Field(..., ge=0)
    appointments_total: int = Field(..., ge=0)
    appointments_completed: int = Field(..., ge=0)
    procedures_sold: int = Field(..., ge=0, description="Procedure links on completed appointments")
    packages_sold: int = Field(..., ge=0, description="Package links on completed appointments")
    status: tuple[StatusCount, ...] = Field(default=(), description="Status tally, largest first")


class ClientSummary(FrozenSchema):
    """Per-client totals."""

    id: str
    name: str
    appointments_total: int = Field(..., ge=0)
    appointments_completed: int = Field(..., ge=0)
    revenue: Decimal = Field(..., ge=0)


class ClientItem(FrozenSchema):
    """How many appointments of a client referenced one procedure or package."""

    id: str
    name: str
    total: int = Field(..., ge=0)


class ClientAnalysis(ClientSummary):
    """Per-client totals with most frequent procedures and packages."""

    procedures: tuple[ClientItem, ...] = ()
    packages: tuple[ClientItem, ...] = ()


class DayBucket(FrozenSchema):
    """Aggregates for one calendar day."""

    day: date
    revenue: Decimal = Field(..., ge=0)
    total: int = Field(..., ge=0)
    completed: int = Field(..., ge=0)


# ===================
# SNAPSHOT
# ===================

class ReportSnapshot(FrozenSchema):
    """Complete result of one report computation."""

    period: ReportPeriod
    range: ReportRange
    metrics: ReportMetrics
    top_procedures: tuple[RankedItem, ...] = ()
    top_packages: tuple[RankedItem, ...] = ()
    professional_performance: tuple[RankedItem, ...] = ()
    professional_analysis: tuple[ProfessionalAnalysis, ...] = ()
    top_clients: tuple[ClientSummary, ...] = ()
    client_analysis: tuple[ClientAnalysis, ...] = ()
    daily_series: tuple[DayBucket, ...] = ()
    status_distribution: tuple[StatusCount, ...] = ()
