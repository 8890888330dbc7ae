"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    ValidationError,
    ExternalServiceError,
    AuthenticationError,

    # Reports
    InvalidWindowError,
    UpstreamReadError,
    TenantResolutionError,
    InvalidReportTypeError,
)

__all__ = [
    # Base
    "AppError",
    "ValidationError",
    "ExternalServiceError",
    "AuthenticationError",

    # Reports
    "InvalidWindowError",
    "UpstreamReadError",
    "TenantResolutionError",
    "InvalidReportTypeError",
]
