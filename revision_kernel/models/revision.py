"""
Module: revision_kernel.models.revision
Responsibility: ORM persistence for order revision state and the revision
    audit log.

Architecture position: Kernel > Models.  May import from db/base.py,
    domain/ (for DTO conversion) and exceptions.

Invariants enforced:
    - One OrderRecordModel per order number (UNIQUE).
    - One RevisionRecordModel per (order, revision, role); the stored roles
      are ``active``, ``draft`` and ``history``.
    - Audit log entries are append-only: ORM listeners refuse UPDATE and
      DELETE with ImmutabilityViolationError.

Failure modes:
    - IntegrityError on duplicate order / revision role / audit entry id.
    - ImmutabilityViolationError on audit entry UPDATE/DELETE.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Index, Integer, String, Text, UniqueConstraint, event
from sqlalchemy.orm import Mapped, mapped_column

from revision_kernel.db.base import Base
from revision_kernel.domain.revision import (
    AuditAction,
    AuditLogEntry,
    RevisionStatus,
)
from revision_kernel.exceptions import ImmutabilityViolationError


class RevisionRole(str, Enum):
    """Where a stored revision sits in its order's state."""

    ACTIVE = "active"
    DRAFT = "draft"
    HISTORY = "history"


class OrderRecordModel(Base):
    """One row per tracked order: identity plus open issues."""

    __tablename__ = "revision_orders"

    order_number: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    open_issues: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<OrderRecord {self.order_number}>"


class RevisionRecordModel(Base):
    """A stored revision in one role of its order's state.

    The JSON payload holds the revision without its audit log; audit
    entries live in ``revision_audit_log``.
    """

    __tablename__ = "order_revisions"

    __table_args__ = (
        UniqueConstraint(
            "order_number", "revision_id", "role",
            name="uq_order_revisions_role",
        ),
        Index("ix_order_revisions_order", "order_number", "role", "position"),
    )

    order_number: Mapped[str] = mapped_column(String(100), nullable=False)
    revision_id: Mapped[str] = mapped_column(String(64), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<RevisionRecord {self.order_number} {self.revision_id} "
            f"role={self.role} v{self.version} status={self.status}>"
        )


class AuditLogEntryModel(Base):
    """Persistent revision audit log entry. Append-only."""

    __tablename__ = "revision_audit_log"

    __table_args__ = (
        Index("ix_revision_audit_log_revision", "revision_id", "sequence"),
        UniqueConstraint("revision_id", "sequence", name="uq_revision_audit_log_seq"),
    )

    entry_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    order_number: Mapped[str] = mapped_column(String(100), nullable=False)
    revision_id: Mapped[str] = mapped_column(String(64), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    action: Mapped[str] = mapped_column(String(30), nullable=False)
    date: Mapped[datetime] = mapped_column(nullable=False)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    user_name: Mapped[str] = mapped_column(String(200), nullable=False)
    role: Mapped[str] = mapped_column(String(100), nullable=False)
    from_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    to_status: Mapped[str] = mapped_column(String(30), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<AuditLogEntry {self.entry_id} revision={self.revision_id} "
            f"action={self.action}>"
        )

    def to_dto(self) -> AuditLogEntry:
        """Convert ORM model to frozen domain DTO."""
        return AuditLogEntry(
            entry_id=self.entry_id,
            action=AuditAction(self.action),
            date=self.date,
            user_id=self.user_id,
            user=self.user_name,
            role=self.role,
            from_status=RevisionStatus(self.from_status) if self.from_status else None,
            to_status=RevisionStatus(self.to_status),
            notes=self.notes,
        )

    @classmethod
    def from_dto(
        cls,
        dto: AuditLogEntry,
        *,
        order_number: str,
        revision_id: str,
        sequence: int,
    ) -> AuditLogEntryModel:
        """Create ORM model from domain DTO."""
        return cls(
            entry_id=dto.entry_id,
            order_number=order_number,
            revision_id=revision_id,
            sequence=sequence,
            action=dto.action.value,
            date=dto.date,
            user_id=dto.user_id,
            user_name=dto.user,
            role=dto.role,
            from_status=dto.from_status.value if dto.from_status else None,
            to_status=dto.to_status.value,
            notes=dto.notes,
        )


# =============================================================================
# ORM-Level Immutability for the Audit Log (Append-Only)
# =============================================================================


@event.listens_for(AuditLogEntryModel, "before_update")
def prevent_audit_entry_update(mapper, connection, target):
    """Prevent updates to revision audit log entries."""
    raise ImmutabilityViolationError(
        entity_type="RevisionAuditLogEntry",
        entity_id=str(target.entry_id),
        reason="Audit log entries are append-only -- cannot modify",
    )


@event.listens_for(AuditLogEntryModel, "before_delete")
def prevent_audit_entry_delete(mapper, connection, target):
    """Prevent deletion of revision audit log entries."""
    raise ImmutabilityViolationError(
        entity_type="RevisionAuditLogEntry",
        entity_id=str(target.entry_id),
        reason="Audit log entries are append-only -- cannot delete",
    )
