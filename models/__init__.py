"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema, FrozenSchema
from models.reports import (
    ReportPeriod,
    ROLLING_PERIOD_DAYS,
    AppointmentStatus,
    UNKNOWN_STATUS,
    ReportType,
    CustomRange,
    ReportRange,
    ReportMetrics,
    RankedItem,
    StatusCount,
    ProfessionalAnalysis,
    ClientSummary,
    ClientItem,
    ClientAnalysis,
    DayBucket,
    ReportSnapshot,
)

__all__ = [
    # Base
    "BaseSchema",
    "FrozenSchema",

    # Reports
    "ReportPeriod",
    "ROLLING_PERIOD_DAYS",
    "AppointmentStatus",
    "UNKNOWN_STATUS",
    "ReportType",
    "CustomRange",
    "ReportRange",
    "ReportMetrics",
    "RankedItem",
    "StatusCount",
    "ProfessionalAnalysis",
    "ClientSummary",
    "ClientItem",
    "ClientAnalysis",
    "DayBucket",
    "ReportSnapshot",
]
