"""
revision_kernel.services.repository -- Storage for per-order revision state.

Responsibility:
    Load and store ``OrderRevisionState`` aggregates.  The lifecycle service
    only ever talks to the ``RevisionRepository`` protocol.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    - ``save`` replaces the whole aggregate for an order; callers build the
      complete new state before saving, so a failed transition never
      reaches storage.
    - SQLAlchemy: audit log rows are append-only.  A saved revision whose
      audit log does not extend the stored log is refused.

Failure modes:
    - OrderNotFoundError from ``load`` for an unknown order.
    - ImmutabilityViolationError if a save would rewrite stored audit entries.
"""

from __future__ import annotations

import threading
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from revision_kernel.domain.clock import Clock, SystemClock
from revision_kernel.domain.revision import OrderRevisionState, Revision
from revision_kernel.domain.serialization import (
    issue_from_dict,
    issue_to_dict,
    revision_from_dict,
    revision_to_dict,
)
from revision_kernel.exceptions import ImmutabilityViolationError, OrderNotFoundError
from revision_kernel.logging_config import get_logger
from revision_kernel.models.revision import (
    AuditLogEntryModel,
    OrderRecordModel,
    RevisionRecordModel,
    RevisionRole,
)

logger = get_logger("services.repository")


class RevisionRepository(Protocol):
    """Persistence collaborator for the lifecycle service."""

    def load(self, order_number: str) -> OrderRevisionState:
        ...

    def save(self, state: OrderRevisionState) -> None:
        ...

    def exists(self, order_number: str) -> bool:
        ...


class InMemoryRevisionRepository:
    """Dict-backed repository. States are immutable, so no copying is needed."""

    def __init__(self) -> None:
        self._states: dict[str, OrderRevisionState] = {}
        self._lock = threading.Lock()

    def load(self, order_number: str) -> OrderRevisionState:
        with self._lock:
            state = self._states.get(order_number)
        if state is None:
            raise OrderNotFoundError(order_number)
        return state

    def save(self, state: OrderRevisionState) -> None:
        with self._lock:
            self._states[state.order_number] = state

    def exists(self, order_number: str) -> bool:
        with self._lock:
            return order_number in self._states

    def order_numbers(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(sorted(self._states))


class SqlAlchemyRevisionRepository:
    """
    Repository over the revision ORM models.

    Each call runs in its own transaction from ``session_factory``.
    """

    def __init__(self, session_factory: sessionmaker[Session], clock: Clock | None = None):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    def exists(self, order_number: str) -> bool:
        with self._session_factory() as session:
            return self._order_record(session, order_number) is not None

    def load(self, order_number: str) -> OrderRevisionState:
        with self._session_factory() as session:
            order = self._order_record(session, order_number)
            if order is None:
                raise OrderNotFoundError(order_number)

            records = session.execute(
                select(RevisionRecordModel)
                .where(RevisionRecordModel.order_number == order_number)
                .order_by(RevisionRecordModel.role, RevisionRecordModel.position)
            ).scalars().all()

            revisions: dict[str, Revision] = {}
            active: Revision | None = None
            draft: Revision | None = None
            history: list[Revision] = []
            for record in records:
                revision = revisions.get(record.revision_id)
                if revision is None:
                    revision = revision_from_dict(
                        record.payload,
                        audit_log=self._load_audit_log(session, record.revision_id),
                    )
                    revisions[record.revision_id] = revision
                if record.role == RevisionRole.ACTIVE.value:
                    active = revision
                elif record.role == RevisionRole.DRAFT.value:
                    draft = revision
                else:
                    history.append(revision)

            if active is None:
                raise OrderNotFoundError(order_number)

            return OrderRevisionState(
                order_number=order_number,
                active_revision=active,
                draft=draft,
                history=tuple(history),
                open_issues=tuple(issue_from_dict(i) for i in order.open_issues),
            )

    def save(self, state: OrderRevisionState) -> None:
        with self._session_factory() as session, session.begin():
            order = self._order_record(session, state.order_number)
            if order is None:
                order = OrderRecordModel(
                    order_number=state.order_number,
                    open_issues=[],
                    created_at=self._clock.now(),
                )
                session.add(order)
            order.open_issues = [issue_to_dict(i) for i in state.open_issues]

            # Revision rows are a projection of the aggregate: rewrite them.
            session.execute(
                delete(RevisionRecordModel).where(
                    RevisionRecordModel.order_number == state.order_number
                )
            )
            placements: list[tuple[Revision, RevisionRole, int]] = [
                (state.active_revision, RevisionRole.ACTIVE, 0),
            ]
            if state.draft is not None:
                placements.append((state.draft, RevisionRole.DRAFT, 0))
            placements.extend(
                (revision, RevisionRole.HISTORY, position)
                for position, revision in enumerate(state.history)
            )

            appended: set[str] = set()
            for revision, role, position in placements:
                session.add(RevisionRecordModel(
                    order_number=state.order_number,
                    revision_id=revision.revision_id,
                    role=role.value,
                    position=position,
                    version=revision.version,
                    status=revision.status.value,
                    payload=revision_to_dict(revision, include_audit_log=False),
                ))
                if revision.revision_id not in appended:
                    self._append_audit_log(session, revision)
                    appended.add(revision.revision_id)

        logger.debug(
            "revision_state_saved",
            extra={
                "order_number": state.order_number,
                "has_draft": state.draft is not None,
                "history_size": len(state.history),
            },
        )

    # ------------------------------------------------------------------

    @staticmethod
    def _order_record(session: Session, order_number: str) -> OrderRecordModel | None:
        return session.execute(
            select(OrderRecordModel).where(OrderRecordModel.order_number == order_number)
        ).scalar_one_or_none()

    @staticmethod
    def _load_audit_log(session: Session, revision_id: str):
        rows = session.execute(
            select(AuditLogEntryModel)
            .where(AuditLogEntryModel.revision_id == revision_id)
            .order_by(AuditLogEntryModel.sequence)
        ).scalars().all()
        return tuple(row.to_dto() for row in rows)

    def _append_audit_log(self, session: Session, revision: Revision) -> None:
        stored = session.execute(
            select(AuditLogEntryModel.entry_id)
            .where(AuditLogEntryModel.revision_id == revision.revision_id)
            .order_by(AuditLogEntryModel.sequence)
        ).scalars().all()

        incoming = [e.entry_id for e in revision.audit_log]
        if incoming[: len(stored)] != list(stored):
            raise ImmutabilityViolationError(
                entity_type="RevisionAuditLog",
                entity_id=revision.revision_id,
                reason="stored audit entries must be a prefix of the saved log",
            )

        for sequence, entry in enumerate(revision.audit_log[len(stored):], start=len(stored)):
            session.add(AuditLogEntryModel.from_dto(
                entry,
                order_number=revision.order_number,
                revision_id=revision.revision_id,
                sequence=sequence,
            ))
