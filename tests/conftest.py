"""
Pytest fixtures for the payables decision engine test suite.

Provides:
- Structured logging configuration and log capture
- Deterministic clock fixed at the shared as-of date
- In-memory and SQLite-backed repositories
"""

import json
import logging
from io import StringIO

import pytest

from payables_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from payables_kernel.domain.clock import DeterministicClock
from payables_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from payables_services.repository import InMemoryPayablesRepository
from payables_services.sql_repository import SqlPayablesRepository
from tests.factories import AS_OF


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
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
    Capture payables_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            service.recommend()
            logs = captured_logs()
            assert any(r["message"] == "recommendations_generated" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("payables_kernel")
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
# Clock and repositories
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock(AS_OF)


@pytest.fixture
def memory_repo():
    return InMemoryPayablesRepository()


@pytest.fixture
def sql_engine():
    """Fresh in-memory SQLite database per test."""
    engine = init_engine_from_url("sqlite:///:memory:")
    create_tables(engine)
    yield engine
    drop_tables(engine)
    reset_engine()


@pytest.fixture
def sql_repo(sql_engine):
    return SqlPayablesRepository(get_session_factory())


@pytest.fixture(params=["memory", "sql"])
def any_repo(request):
    """Run a test against both repository implementations."""
    if request.param == "memory":
        yield InMemoryPayablesRepository()
        return
    engine = init_engine_from_url("sqlite:///:memory:")
    create_tables(engine)
    yield SqlPayablesRepository(get_session_factory())
    drop_tables(engine)
    reset_engine()


@pytest.fixture(params=["memory", "sql"])
def concurrent_repo(request, tmp_path):
    """
    Both implementations, with the SQL one on a file database so each
    thread gets its own connection.
    """
    if request.param == "memory":
        yield InMemoryPayablesRepository()
        return
    engine = init_engine_from_url(f"sqlite:///{tmp_path / 'payables.db'}")
    create_tables(engine)
    yield SqlPayablesRepository(get_session_factory())
    drop_tables(engine)
    reset_engine()
