"""
Pytest fixtures for the revision kernel test suite.

Provides:
- Structured logging configuration and log capture
- Deterministic clock and id generator
- A lifecycle service wired to in-memory storage and an event collector
- Sample users, approvers and line items
- SQLite-backed sessions for persistence tests
"""

import json
import logging
from datetime import UTC, date, datetime
from decimal import Decimal
from io import StringIO

import pytest

from revision_config.schema import PURCHASE_ORDER_APPROVERS
from revision_engines.cost_delta import PURCHASE_ORDER_THRESHOLD
from revision_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from revision_kernel.domain.approval import CurrentUser
from revision_kernel.domain.clock import DeterministicClock
from revision_kernel.domain.events import InMemoryEventPublisher
from revision_kernel.domain.ids import SequentialIdGenerator
from revision_kernel.domain.revision import LineItem
from revision_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from revision_kernel.services.event_dispatcher import EventDispatcher
from revision_kernel.services.order_locks import OrderLockRegistry
from revision_kernel.services.repository import InMemoryRevisionRepository
from revision_kernel.services.revision_service import RevisionLifecycleService

ORDER_NUMBER = "PO-2024-001"


# =========================================================================
# Logging
# =========================================================================


@pytest.fixture(scope="session", autouse=True)
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
    Capture revision_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, service):
            service.create_draft(...)
            logs = captured_logs()
            assert any(r["message"] == "revision_draft_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("revision_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =========================================================================
# Time and ids
# =========================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(datetime(2024, 3, 1, 9, 0, 0, tzinfo=UTC))


@pytest.fixture
def id_generator():
    return SequentialIdGenerator()


# =========================================================================
# Users
# =========================================================================


@pytest.fixture
def purchasing_agent():
    """Non-approver who edits and submits revisions."""
    return CurrentUser(
        user_id="user-rep-1",
        name="Alex Rivera",
        role="Purchasing Agent",
    )


@pytest.fixture
def approver_users():
    """CurrentUser per approval level, keyed by level."""
    return {
        a.level: CurrentUser(
            user_id=a.approver_id,
            name=a.name,
            role=a.role,
            is_approver=True,
            approver_level=a.level,
        )
        for a in PURCHASE_ORDER_APPROVERS
    }


# =========================================================================
# Line items
# =========================================================================


@pytest.fixture
def standard_lines():
    """Two lines totalling $6,080.00."""
    return (
        LineItem(
            line_id="line-1",
            line_number=1,
            description="Steel mounting brackets",
            quantity=Decimal("100"),
            unit_price=Decimal("40.00"),
            requested_date=date(2024, 4, 15),
        ),
        LineItem(
            line_id="line-2",
            line_number=2,
            description="Hex bolt kit",
            quantity=Decimal("52"),
            unit_price=Decimal("40.00"),
            requested_date=date(2024, 4, 15),
        ),
    )


# =========================================================================
# Service wiring
# =========================================================================


@pytest.fixture
def event_collector():
    return InMemoryEventPublisher()


@pytest.fixture
def repository():
    return InMemoryRevisionRepository()


@pytest.fixture
def service(repository, deterministic_clock, id_generator, event_collector):
    """Lifecycle service with purchase-order approvers and thresholds."""
    return RevisionLifecycleService(
        repository,
        PURCHASE_ORDER_APPROVERS,
        PURCHASE_ORDER_THRESHOLD,
        clock=deterministic_clock,
        id_generator=id_generator,
        locks=OrderLockRegistry(timeout_seconds=1.0),
        dispatcher=EventDispatcher(event_collector),
    )


@pytest.fixture
def opened_order(service, standard_lines, purchasing_agent):
    """Order PO-2024-001 at confirmed version 1.0."""
    service.open_order(ORDER_NUMBER, standard_lines, purchasing_agent)
    return ORDER_NUMBER


@pytest.fixture
def order_with_draft(service, opened_order, purchasing_agent):
    """Order with a freshly created draft (version 1.1, no changes)."""
    service.create_draft(opened_order, purchasing_agent)
    return opened_order


# =========================================================================
# Database
# =========================================================================


@pytest.fixture
def sqlite_engine(tmp_path):
    """File-backed SQLite database with all revision tables."""
    engine = init_engine_from_url(f"sqlite:///{tmp_path / 'revisions.db'}")
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def session_factory(sqlite_engine):
    return get_session_factory()
