"""ORM models for the revision kernel."""

from revision_kernel.models.revision import (
    AuditLogEntryModel,
    OrderRecordModel,
    RevisionRecordModel,
    RevisionRole,
)

__all__ = [
    "AuditLogEntryModel",
    "OrderRecordModel",
    "RevisionRecordModel",
    "RevisionRole",
]
