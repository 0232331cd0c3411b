"""
Structured logging: JSON line format, context binding and setup.

Covers revision_kernel/logging_config.py directly and through the
lifecycle service, which binds order and actor context around every
action.
"""

import json
import logging
import threading
from datetime import UTC, date, datetime
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from revision_kernel.domain.revision import RevisionStatus
from revision_kernel.exceptions import ConflictingDraftError, OrderBusyError
from revision_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _fresh_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture
def json_stream():
    """Configure the kernel logger onto a StringIO; returns a line reader."""
    stream = StringIO()
    configure_logging(stream=stream, level=logging.DEBUG)

    def lines() -> list[dict]:
        return [json.loads(raw) for raw in stream.getvalue().splitlines() if raw]

    return lines


def _format(record_kwargs: dict, exc_info=None) -> dict:
    record = logging.LogRecord(
        name="revision_kernel.test",
        level=logging.ERROR,
        pathname=__file__,
        lineno=1,
        msg="formatted",
        args=(),
        exc_info=exc_info,
    )
    for key, value in record_kwargs.items():
        setattr(record, key, value)
    return json.loads(StructuredFormatter().format(record))


# ===========================================================================
# Line format
# ===========================================================================


class TestLineFormat:

    def test_core_keys(self, json_stream):
        get_logger("services.revision").info("revision_draft_created")

        [line] = json_stream()
        assert line["message"] == "revision_draft_created"
        assert line["level"] == "INFO"
        assert line["logger"] == "revision_kernel.services.revision"
        assert datetime.fromisoformat(line["ts"]).tzinfo is not None

    def test_extras_become_top_level_keys(self, json_stream):
        get_logger("services.revision").info(
            "revision_submitted",
            extra={"cycle_number": 2, "chain_levels": [1, 2, 3], "current_level": 1},
        )

        [line] = json_stream()
        assert line["cycle_number"] == 2
        assert line["chain_levels"] == [1, 2, 3]
        assert line["current_level"] == 1

    def test_values_from_the_revision_domain(self):
        revision_id = uuid4()
        line = _format({
            "revision_id": revision_id,
            "total": Decimal("6080.00"),
            "occurred_at": datetime(2024, 3, 1, 9, 30, tzinfo=UTC),
            "requested_date": date(2024, 4, 15),
            "status": RevisionStatus.PENDING_APPROVAL,
        })

        assert line["revision_id"] == str(revision_id)
        assert line["total"] == "6080.00"
        assert line["occurred_at"] == "2024-03-01T09:30:00+00:00"
        assert line["requested_date"] == "2024-04-15"
        assert line["status"] == "pending_approval"

    def test_unserializable_extra_does_not_break_the_line(self):
        line = _format({"lock": threading.Lock()})
        assert "lock" in line["lock"]

    def test_debug_dropped_at_info(self):
        stream = StringIO()
        configure_logging(stream=stream)
        logger = get_logger("engines")
        logger.debug("noise")
        logger.warning("revision_action_refused", extra={"action": "approve"})

        lines = [json.loads(raw) for raw in stream.getvalue().splitlines()]
        assert [entry["message"] for entry in lines] == ["revision_action_refused"]


# ===========================================================================
# Exceptions
# ===========================================================================


class TestExceptionFields:

    def test_plain_exception(self, json_stream):
        try:
            raise ValueError("version must look like N.M")
        except ValueError:
            get_logger("engines").exception("version_parse_failed")

        [line] = json_stream()
        assert line["exc_type"] == "ValueError"
        assert line["exc_message"] == "version must look like N.M"
        assert "Traceback" in line["traceback"]
        assert "exc_code" not in line

    def test_kernel_error_code_and_attributes(self, json_stream):
        try:
            raise ConflictingDraftError("PO-1", "rev-9", "pending_approval")
        except ConflictingDraftError:
            get_logger("services.revision").error("draft_refused", exc_info=True)

        [line] = json_stream()
        assert line["exc_type"] == "ConflictingDraftError"
        assert line["exc_code"] == "CONFLICTING_DRAFT"
        assert line["exc_order_number"] == "PO-1"
        assert line["exc_existing_revision_id"] == "rev-9"

    def test_busy_order_timeout_is_reported(self, json_stream):
        try:
            raise OrderBusyError("PO-7", 0.5)
        except OrderBusyError:
            get_logger("services.locks").warning("order_busy", exc_info=True)

        [line] = json_stream()
        assert line["exc_order_number"] == "PO-7"
        assert line["exc_timeout_seconds"] == 0.5


# ===========================================================================
# LogContext
# ===========================================================================


class TestLogContext:

    def test_set_ignores_none(self):
        LogContext.set(order_number="PO-1", actor_id=None)
        assert LogContext.get_all() == {"order_number": "PO-1"}

    def test_set_merges(self):
        LogContext.set(order_number="PO-1")
        LogContext.set(revision_id="rev-2")
        assert LogContext.get_all() == {"order_number": "PO-1", "revision_id": "rev-2"}

    def test_clear(self):
        LogContext.set(trace_id="t-1")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_nests_and_restores(self):
        with LogContext.bind(order_number="PO-1", actor_id="user-rep-1"):
            with LogContext.bind(revision_id="rev-3"):
                assert LogContext.get_all() == {
                    "order_number": "PO-1",
                    "actor_id": "user-rep-1",
                    "revision_id": "rev-3",
                }
            assert "revision_id" not in LogContext.get_all()
        assert LogContext.get_all() == {}

    def test_bind_restores_after_error(self):
        LogContext.set(order_number="PO-outer")
        with pytest.raises(RuntimeError):
            with LogContext.bind(order_number="PO-inner"):
                raise RuntimeError("boom")
        assert LogContext.get_all() == {"order_number": "PO-outer"}

    def test_bind_rejects_unknown_field_before_entering(self):
        with pytest.raises(TypeError, match="Unknown log context fields"):
            LogContext.bind(customer="ACME")

    def test_context_is_per_thread(self):
        LogContext.set(order_number="PO-main")
        seen = {}

        def worker():
            seen["worker"] = LogContext.get_all()

        thread = threading.Thread(target=worker)
        thread.start()
        thread.join()
        assert seen["worker"] == {}

    def test_context_fields_in_output(self, json_stream):
        with LogContext.bind(order_number="PO-1", correlation_id="req-42"):
            get_logger("services.revision").info("inside")
        get_logger("services.revision").info("outside")

        inside, outside = json_stream()
        assert inside["order_number"] == "PO-1"
        assert inside["correlation_id"] == "req-42"
        assert "order_number" not in outside


# ===========================================================================
# Service integration
# ===========================================================================


class TestServiceLogging:

    def test_draft_creation_carries_order_context(
        self, json_stream, service, opened_order, purchasing_agent,
    ):
        draft = service.create_draft(opened_order, purchasing_agent)

        created = [e for e in json_stream() if e["message"] == "revision_draft_created"]
        assert len(created) == 1
        assert created[0]["order_number"] == opened_order
        assert created[0]["actor_id"] == purchasing_agent.user_id
        assert created[0]["revision_id"] == draft.revision_id
        assert LogContext.get_all() == {}


# ===========================================================================
# Setup
# ===========================================================================


class TestConfigureLogging:

    def test_second_call_is_ignored(self):
        configure_logging(stream=StringIO())
        configure_logging(stream=StringIO())
        assert len(logging.getLogger("revision_kernel").handlers) == 1

    def test_does_not_propagate_to_root(self):
        configure_logging(stream=StringIO())
        assert logging.getLogger("revision_kernel").propagate is False

    def test_reset_allows_reconfiguration(self):
        first = StringIO()
        configure_logging(stream=first)
        reset_logging()
        second = StringIO()
        configure_logging(stream=second)

        get_logger("x").info("after_reset")
        assert first.getvalue() == ""
        assert "after_reset" in second.getvalue()

    def test_get_logger_namespace(self):
        assert get_logger("db.engine").name == "revision_kernel.db.engine"
