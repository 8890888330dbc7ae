"""
Shared test fixtures.

Provides a chainable mock Supabase client, a fixed clock and
appointment row builders for the reports pipeline.
"""

import os
import sys
from pathlib import Path

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings are loaded at import time
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("REPORT_TIMEZONE", "America/Sao_Paulo")

import pytest
from unittest.mock import MagicMock, patch
from datetime import datetime, timezone
from typing import Generator
from zoneinfo import ZoneInfo

from tests.factories import AppointmentRowFactory


# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data or []
        self.count = count if count is not None else len(self.data)


class MockSupabaseQuery:
    """
    Mock Supabase query builder with chainable methods.

    Records every filter call in `calls` so tests can assert on them.
    `in_` actually filters the rows by the given column.
    """

    def __init__(self, table_name: str, data: list = None, count: int = None, error: Exception = None, log: list = None):
        self.table_name = table_name
        self._data = data or []
        self._count = count
        self._error = error
        self._head = False
        self.calls = log if log is not None else []

    def _record(self, method, *args, **kwargs):
        self.calls.append((self.table_name, method, args, kwargs))

    def select(self, *args, **kwargs):
        self._record("select", *args, **kwargs)
        self._head = kwargs.get("head", False)
        return self

    def eq(self, column, value):
        self._record("eq", column, value)
        return self

    def gte(self, column, value):
        self._record("gte", column, value)
        return self

    def lte(self, column, value):
        self._record("lte", column, value)
        return self

    def in_(self, column, values):
        self._record("in_", column, list(values))
        allowed = set(values)
        self._data = [row for row in self._data if row.get(column) in allowed]
        return self

    def order(self, column, **kwargs):
        return self

    def limit(self, count):
        self._record("limit", count)
        self._data = self._data[:count]
        return self

    def execute(self) -> MockSupabaseResponse:
        if self._error is not None:
            raise self._error
        count = self._count if self._count is not None else len(self._data)
        return MockSupabaseResponse(
            data=[] if self._head else self._data,
            count=count
        )


class MockSupabaseTable:
    """Mock Supabase table with configurable responses."""

    def __init__(self, name: str, data: list = None, count: int = None, error: Exception = None, log: list = None):
        self._name = name
        self._data = data or []
        self._count = count
        self._error = error
        self._log = log

    def select(self, *args, **kwargs):
        query = MockSupabaseQuery(self._name, self._data.copy(), self._count, self._error, self._log)
        return query.select(*args, **kwargs)


class MockSupabaseClient:
    """Mock Supabase client."""

    def __init__(self):
        self._tables = {}
        self.calls = []
        self.auth = MagicMock()

    def set_table_data(self, table_name: str, data: list, count: int = None):
        """Configure mock data for a table."""
        self._tables[table_name] = {"data": data, "count": count, "error": None}

    def set_table_error(self, table_name: str, error: Exception):
        """Make every read on a table raise."""
        self._tables[table_name] = {"data": [], "count": None, "error": error}

    def table(self, name: str) -> MockSupabaseTable:
        """Get mock table."""
        config = self._tables.get(name, {"data": [], "count": None, "error": None})
        return MockSupabaseTable(name, config["data"], config["count"], config["error"], self.calls)

    def tables_read(self) -> list[str]:
        """Table names in the order their queries were started."""
        return [table for table, method, _, _ in self.calls if method == "select"]


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("agendamentos_clinica", [
                {"id": "a1", "data_inicio": "2024-01-01T12:00:00Z", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Any service built without an explicit client gets the mock.
    """
    with patch("services.report_data_source.get_supabase_client", return_value=mock_supabase):
        with patch("services.tenant_service.get_supabase_client", return_value=mock_supabase):
            yield mock_supabase


@pytest.fixture
def clinic_tz() -> ZoneInfo:
    """Clinic timezone used across the report tests."""
    return ZoneInfo("America/Sao_Paulo")


@pytest.fixture
def fixed_now() -> datetime:
    """2024-03-15 12:00 UTC (09:00 in São Paulo)."""
    return datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixed_clock(fixed_now):
    """Clock callable that always returns fixed_now."""
    return lambda: fixed_now


@pytest.fixture
def report_settings():
    """Settings stub with the report knobs."""
    settings = MagicMock()
    settings.report_tz = ZoneInfo("America/Sao_Paulo")
    settings.report_timezone = "America/Sao_Paulo"
    settings.report_row_cap = 15000
    settings.report_top_items = 10
    settings.report_top_client_analysis = 25
    settings.report_client_items = 6
    return settings


@pytest.fixture
def appointment_row():
    """
    Appointment row builder.

    Usage:
        def test_something(appointment_row):
            row = appointment_row(status="concluido", valor=150)
    """
    AppointmentRowFactory.reset_counter()
    return AppointmentRowFactory.create


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client():
    """
    Create FastAPI test client.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/")
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from main import app

    yield TestClient(app)
    app.dependency_overrides.clear()
