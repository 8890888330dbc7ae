"""
Custom exception classes for the application.

Every error carries a stable code, an HTTP status and a details dict.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "INVALID_WINDOW")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


class AuthenticationError(AppError):
    """Caller could not be identified (401)."""

    def __init__(
        self,
        message: str,
        code: str = "UNAUTHORIZED",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=401,
            details=details
        )


# ===================
# REPORT ERRORS
# ===================

class InvalidWindowError(ValidationError):
    """Custom report period requested without both bounds (or with reversed bounds)."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="INVALID_WINDOW",
            message=message,
            details=details
        )


class UpstreamReadError(ExternalServiceError):
    """A Supabase read needed by a report failed."""

    def __init__(self, operation: str, cause: Exception):
        super().__init__(
            service="supabase",
            message=f"Read '{operation}' failed: {cause}",
            details={
                "operation": operation,
                "error_type": type(cause).__name__,
            }
        )
        self.operation = operation
        self.cause = cause


class TenantResolutionError(AuthenticationError):
    """No clinic (admin profile) could be resolved for the request."""

    def __init__(self, reason: str):
        super().__init__(
            code="TENANT_RESOLUTION_FAILED",
            message="Could not resolve clinic for this request",
            details={"reason": reason}
        )


class InvalidReportTypeError(ValidationError):
    """Unknown export report type."""

    def __init__(self, report_type: str, valid: list[str]):
        super().__init__(
            code="INVALID_REPORT_TYPE",
            message=f"Unknown report type: {report_type}",
            details={"provided": report_type, "valid": valid}
        )
