"""Tests for the structured logging system (ledger_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


class TestStructuredFormatter:
    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        (record,) = _parse_all_logs(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "ledger_kernel.test"
        assert "ts" in record

    def test_extra_fields_and_types(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        entry_id = uuid4()
        get_logger("test").info(
            "journal_entry_posted",
            extra={"entry_id": entry_id, "amount": Decimal("10.50"), "chain_sequence": 3},
        )

        (record,) = _parse_all_logs(stream)
        assert record["entry_id"] == str(entry_id)
        assert record["amount"] == "10.50"
        assert record["chain_sequence"] == 3

    def test_ledger_exception_fields_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        from ledger_kernel.exceptions import AllocationExceedsBalanceError

        try:
            raise AllocationExceedsBalanceError("doc-1", "50.00", "40.00")
        except AllocationExceedsBalanceError:
            get_logger("test").error("allocation_failed", exc_info=True)

        (record,) = _parse_all_logs(stream)
        assert record["exc_code"] == "ALLOCATION_EXCEEDS_BALANCE"
        assert record["exc_type"] == "AllocationExceedsBalanceError"
        assert record["exc_requested"] == "50.00"
        assert record["exc_available"] == "40.00"
        assert "traceback" in record

    def test_level_filters_debug(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.debug("second")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["first"]

    def test_configure_is_idempotent(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        configure_logging(handler=handler)
        get_logger("test").warning("once")

        assert len(_parse_all_logs(stream)) == 1


class TestLogContext:
    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        tenant = uuid4()
        LogContext.set(correlation_id="abc-123", tenant_id=tenant)
        get_logger("test").info("with_context")

        (record,) = _parse_all_logs(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["tenant_id"] == str(tenant)

    def test_context_wins_over_extra(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        with LogContext.bind(payment_id="from-context"):
            get_logger("test").info("collide", extra={"payment_id": "from-extra"})

        (record,) = _parse_all_logs(stream)
        assert record["payment_id"] == "from-context"

    def test_bind_restores_previous(self):
        LogContext.set(correlation_id="outer")
        with LogContext.bind(correlation_id="inner", document_id="d-1"):
            assert LogContext.get_all() == {"correlation_id": "inner", "document_id": "d-1"}
        assert LogContext.get_all() == {"correlation_id": "outer"}

    def test_bind_ignores_unknown_and_none(self):
        with LogContext.bind(unknown_field="x", tenant_id=None):
            assert LogContext.get_all() == {}

    def test_clear(self):
        LogContext.set(actor_id="a", entry_id="e")
        LogContext.clear()
        assert LogContext.get_all() == {}
