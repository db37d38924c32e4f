"""
Pytest fixtures for the HR kernel test suite.

Provides:
- Structured-logging setup and capture
- A deterministic clock (Monday 2024-06-03 08:00 UTC)
- Actors and employee groups
- An in-memory SQLite session with every table created

Environment Variables:
- HR_TEST_DATABASE_URL: run the database tests against another URL
  (e.g. postgresql://hr:hr@localhost/hr_test). Defaults to in-memory SQLite.
"""

import json
import logging
import os
from datetime import datetime, timezone
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from hr_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from hr_kernel.domain.clock import DeterministicClock
from hr_kernel.domain.values import Actor, EmployeeGroup, Role
from hr_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

START_TIME = datetime(2024, 6, 3, 8, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture hr_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, time_service):
            time_service.clock_in("emp-1")
            logs = captured_logs()
            assert any(r["message"] == "clocked_in" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("hr_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Time and identity
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(START_TIME)


@pytest.fixture
def employee() -> Actor:
    return Actor("emp-1", Role.EMPLOYEE)


@pytest.fixture
def manager() -> Actor:
    return Actor("mgr-1", Role.MANAGER)


@pytest.fixture
def hr_admin() -> Actor:
    return Actor("hr-1", Role.HR_ADMIN)


@pytest.fixture
def viewer() -> Actor:
    return Actor("view-1", Role.VIEWER)


@pytest.fixture
def full_time_group() -> EmployeeGroup:
    return EmployeeGroup(
        employee_id="emp-1",
        department_id="ENG",
        employment_type="FULL_TIME",
        job_title="Software Engineer",
        tenure_days=400,
    )


# =============================================================================
# Database fixtures
# =============================================================================


def get_database_url() -> str:
    return os.environ.get("HR_TEST_DATABASE_URL", "sqlite:///:memory:")


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """Fresh schema per test; the session is rolled back and closed afterwards."""
    init_engine_from_url(get_database_url())
    create_tables()
    db_session = get_session()
    try:
        yield db_session
    finally:
        db_session.rollback()
        db_session.close()
        drop_tables()
        reset_engine()
