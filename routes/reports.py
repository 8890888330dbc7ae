"""
Reports API routes.

Clinic analytics: dashboard snapshot and tabular exports.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import structlog

from exceptions import AppError
from models.reports import CustomRange, ReportPeriod, ReportSnapshot
from services.report_export_service import get_report_export_service, parse_report_type
from services.reports_service import get_reports_service
from services.tenant_service import get_tenant_service

logger = structlog.get_logger(__name__)

router = APIRouter()

bearer_scheme = HTTPBearer(auto_error=False)


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# DEPENDENCIES
# ===================

def get_current_tenant(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """
    Resolve the clinic for the request's bearer token.

    Raises TenantResolutionError (401) when no clinic can be resolved.
    """
    token = credentials.credentials if credentials else None
    return get_tenant_service().resolve(token)


def _custom_range(period: ReportPeriod, start: Optional[datetime], end: Optional[datetime]) -> Optional[CustomRange]:
    if period != ReportPeriod.CUSTOM:
        return None
    return CustomRange(start=start, end=end)


# ===================
# SNAPSHOT
# ===================

@router.get("", response_model=ReportSnapshot)
async def get_reports(
    period: ReportPeriod = Query(ReportPeriod.MONTH, description="today, week, month, quarter, year or custom"),
    start: Optional[datetime] = Query(None, description="Custom period start (ISO-8601)"),
    end: Optional[datetime] = Query(None, description="Custom period end (ISO-8601)"),
    tenant_id: str = Depends(get_current_tenant),
):
    """
    Get the clinic analytics snapshot.

    Returns:
    - metrics: revenue, average ticket, conversion, new clients, totals
    - top procedures and packages (by appointment count)
    - professional performance and analysis
    - top clients and detailed client analysis
    - daily series (every day of the window) and status distribution

    Rolling periods (week/month/quarter/year) are trailing 7/30/90/365 days
    ending today. Custom requires both start and end.
    """
    try:
        service = get_reports_service()
        return service.compute(
            tenant_id,
            period,
            _custom_range(period, start, end)
        )
    except Exception as e:
        return handle_error(e)


# ===================
# EXPORT
# ===================

@router.get("/export/{report_type}")
async def export_report(
    report_type: str,
    period: ReportPeriod = Query(ReportPeriod.MONTH, description="today, week, month, quarter, year or custom"),
    start: Optional[datetime] = Query(None, description="Custom period start (ISO-8601)"),
    end: Optional[datetime] = Query(None, description="Custom period end (ISO-8601)"),
    file_format: str = Query("csv", alias="format", pattern="^(csv|xlsx)$", description="csv or xlsx"),
    client_id: Optional[list[str]] = Query(None, description="Restrict client analysis to these clients"),
    tenant_id: str = Depends(get_current_tenant),
):
    """
    Download one report as CSV or Excel.

    report_type: sales, professionals, products, financial, pipeline or clients.
    """
    try:
        parsed_type = parse_report_type(report_type)
        snapshot = get_reports_service().compute(
            tenant_id,
            period,
            _custom_range(period, start, end)
        )
        content, media_type, filename = get_report_export_service().export(
            snapshot,
            parsed_type,
            file_format=file_format,
            client_ids=client_id
        )
        return Response(
            content=content,
            media_type=media_type,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'}
        )
    except Exception as e:
        return handle_error(e)
