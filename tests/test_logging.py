"""Tests for the structured logging system (payables_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO

import pytest

from payables_kernel.domain.approval import WorkflowStatus
from payables_kernel.exceptions import DataIntegrityError
from payables_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Start each test unconfigured; restore the suite-wide setup afterwards."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


def _parse_log(stream: StringIO) -> dict:
    return _parse_all_logs(stream)[0]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "payables_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bills_optimized", extra={"optimized": 3, "skipped": 0})

        record = _parse_log(stream)
        assert record["optimized"] == 3
        assert record["skipped"] == 0

    def test_domain_values_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("values", extra={
            "amount": Decimal("1200.50"),
            "as_of": date(2024, 3, 1),
            "status": WorkflowStatus.PENDING,
            "ids": ("B1", "B2"),
        })

        record = _parse_log(stream)
        assert record["amount"] == "1200.50"
        assert record["as_of"] == "2024-03-01"
        assert record["status"] == "pending"
        assert record["ids"] == ["B1", "B2"]

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", bill_id="B1")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["bill_id"] == "B1"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "bill_id" not in record

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_payables_exception_attributes_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise DataIntegrityError("B7", "balance", "balance >= 0", "-5")
        except DataIntegrityError:
            get_logger("test").error("integrity_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "DATA_INTEGRITY_VIOLATION"
        assert record["exc_type"] == "DataIntegrityError"
        assert record["exc_bill_id"] == "B7"
        assert record["exc_invariant"] == "balance >= 0"

    def test_debug_filtered_at_info(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["first", "second"]


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", vendor_id="V1")
        assert LogContext.get_all() == {"correlation_id": "x", "vendor_id": "V1"}

    def test_none_leaves_field_untouched(self):
        LogContext.set(bill_id="B1")
        LogContext.set(bill_id=None)
        assert LogContext.get_all() == {"bill_id": "B1"}

    def test_unknown_field(self):
        with pytest.raises(KeyError):
            LogContext.set(event_id="nope")
        with pytest.raises(KeyError):
            with LogContext.bind(event_id="nope"):
                pass

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_restores_previous(self):
        LogContext.set(workflow_id="outer")
        with LogContext.bind(workflow_id="inner", actor_id="cfo_1"):
            assert LogContext.get_all() == {"workflow_id": "inner", "actor_id": "cfo_1"}
        assert LogContext.get_all() == {"workflow_id": "outer"}

    def test_bind_restores_on_error(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(bill_id="B1"):
                raise RuntimeError("fail")
        assert LogContext.get_all() == {}

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            bill_id="b",
            vendor_id="v",
            workflow_id="w",
            actor_id="a",
        )
        assert set(LogContext.get_all()) == set(LogContext.FIELD_NAMES)


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)
        assert logging.getLogger("payables_kernel").handlers == [h1]

    def test_get_logger_returns_child(self):
        assert get_logger("services.decision").name == "payables_kernel.services.decision"

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("engines.tracer").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "payables_kernel.engines.tracer"

    def test_reset_allows_reconfigure(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        reset_logging()
        h2, stream = _make_handler()
        configure_logging(handler=h2)
        get_logger("test").info("after_reset")
        assert _parse_log(stream)["message"] == "after_reset"
