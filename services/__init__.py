"""
Business logic services.

Each service handles one domain area.
"""

from services.reports_service import ReportsService, get_reports_service
from services.report_data_source import ReportDataSource
from services.report_export_service import ReportExportService, get_report_export_service
from services.tenant_service import TenantService, get_tenant_service

__all__ = [
    "ReportsService",
    "get_reports_service",
    "ReportDataSource",
    "ReportExportService",
    "get_report_export_service",
    "TenantService",
    "get_tenant_service",
]
