"""
Tenant resolution.

A clinic is identified by its admin profile. Staff profiles point at the
clinic through profiles.admin_profile_id; the clinic owner's own profile
has no admin_profile_id and is the tenant itself.
"""

from typing import Optional

import structlog

from config import get_supabase_client
from exceptions import TenantResolutionError, UpstreamReadError

logger = structlog.get_logger(__name__)


class TenantService:
    """Resolves the clinic (admin_profile_id) for an authenticated user."""

    def __init__(self, client=None):
        self.db = client if client is not None else get_supabase_client()

    def resolve(self, access_token: Optional[str]) -> str:
        """
        Resolve the tenant for a Supabase access token.

        Args:
            access_token: Bearer token from the request

        Returns:
            admin_profile_id of the user's clinic

        Raises:
            TenantResolutionError: No token, invalid token, or no profile
            UpstreamReadError: Profile lookup failed
        """
        if not access_token:
            raise TenantResolutionError("missing access token")

        try:
            response = self.db.auth.get_user(access_token)
        except Exception as e:
            logger.warning(
                "tenant_auth_failed",
                error=str(e),
                error_type=type(e).__name__
            )
            raise TenantResolutionError("invalid access token") from e

        user = getattr(response, "user", None) if response else None
        if user is None:
            raise TenantResolutionError("user not authenticated")

        return self.resolve_for_user(user.id)

    def resolve_for_user(self, user_id: str) -> str:
        """Tenant id for a known user id."""
        try:
            result = (
                self.db.table("profiles")
                .select("id, admin_profile_id")
                .eq("id", user_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error(
                "profile_lookup_failed",
                user_id=user_id,
                error=str(e),
                error_type=type(e).__name__
            )
            raise UpstreamReadError("fetch_profile", e) from e

        if not result.data:
            raise TenantResolutionError("profile not found")

        profile = result.data[0]
        tenant_id = profile.get("admin_profile_id") or profile.get("id")
        if not tenant_id:
            raise TenantResolutionError("profile has no clinic")

        logger.debug("tenant_resolved", user_id=user_id, tenant_id=tenant_id)
        return tenant_id


# Singleton instance
_tenant_service: Optional[TenantService] = None


def get_tenant_service() -> TenantService:
    """Get or create TenantService instance."""
    global _tenant_service
    if _tenant_service is None:
        _tenant_service = TenantService()
    return _tenant_service
