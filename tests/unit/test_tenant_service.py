"""
Tests for TenantService — Access token to clinic resolution.
"""

from unittest.mock import MagicMock

import pytest

from exceptions import TenantResolutionError, UpstreamReadError
from services.tenant_service import TenantService, get_tenant_service


@pytest.fixture
def tenant_service(mock_db):
    return TenantService()


def authenticated(mock_supabase, user_id="user-1"):
    mock_supabase.auth.get_user.return_value = MagicMock(user=MagicMock(id=user_id))


class TestResolve:
    """Tests for resolve."""

    def test_staff_resolves_to_admin(self, tenant_service, mock_supabase):
        authenticated(mock_supabase)
        mock_supabase.set_table_data("profiles", [{"id": "user-1", "admin_profile_id": "admin-9"}])

        assert tenant_service.resolve("token") == "admin-9"

    def test_owner_resolves_to_self(self, tenant_service, mock_supabase):
        authenticated(mock_supabase)
        mock_supabase.set_table_data("profiles", [{"id": "user-1", "admin_profile_id": None}])

        assert tenant_service.resolve("token") == "user-1"

    @pytest.mark.parametrize("token", [None, ""])
    def test_missing_token(self, tenant_service, mock_supabase, token):
        with pytest.raises(TenantResolutionError) as exc:
            tenant_service.resolve(token)

        assert exc.value.status_code == 401
        mock_supabase.auth.get_user.assert_not_called()

    def test_invalid_token(self, tenant_service, mock_supabase):
        mock_supabase.auth.get_user.side_effect = RuntimeError("invalid JWT")

        with pytest.raises(TenantResolutionError):
            tenant_service.resolve("bad")

    def test_no_user(self, tenant_service, mock_supabase):
        mock_supabase.auth.get_user.return_value = MagicMock(user=None)

        with pytest.raises(TenantResolutionError):
            tenant_service.resolve("token")

    def test_profile_not_found(self, tenant_service, mock_supabase):
        authenticated(mock_supabase)
        mock_supabase.set_table_data("profiles", [])

        with pytest.raises(TenantResolutionError) as exc:
            tenant_service.resolve("token")

        assert exc.value.details["reason"] == "profile not found"

    def test_profile_read_failure(self, tenant_service, mock_supabase):
        authenticated(mock_supabase)
        mock_supabase.set_table_error("profiles", RuntimeError("down"))

        with pytest.raises(UpstreamReadError):
            tenant_service.resolve("token")


class TestGetTenantService:
    """Tests for get_tenant_service singleton."""

    def test_returns_same_instance(self, mock_db):
        assert get_tenant_service() is get_tenant_service()
