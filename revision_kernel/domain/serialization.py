"""
JSON-safe conversion of revision value objects.

Used by the SQLAlchemy repository to store a revision as a JSON payload
and by callers that expose revisions over an API.  Decimals, dates and
datetimes inside change values are tagged so they round-trip exactly.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from revision_kernel.domain.approval import (
    ApprovalAction,
    ApprovalChain,
    ApprovalCycle,
    ApprovalStep,
    ApprovalStepStatus,
    Approver,
    ChainOutcome,
    CycleOutcome,
)
from revision_kernel.domain.revision import (
    AuditAction,
    AuditLogEntry,
    EditType,
    LineItem,
    OrderRevisionState,
    Revision,
    RevisionChange,
    RevisionIssue,
    RevisionStatus,
)


def encode_value(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Decimal):
        return {"__decimal__": str(value)}
    # datetime before date: datetime is a date subclass
    if isinstance(value, datetime):
        return {"__datetime__": value.isoformat()}
    if isinstance(value, date):
        return {"__date__": value.isoformat()}
    return str(value)


def decode_value(value: Any) -> Any:
    if isinstance(value, dict):
        if "__decimal__" in value:
            return Decimal(value["__decimal__"])
        if "__datetime__" in value:
            return datetime.fromisoformat(value["__datetime__"])
        if "__date__" in value:
            return date.fromisoformat(value["__date__"])
    return value


def _dt(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value is not None else None


def _parse_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value is not None else None


# -------------------------------------------------------------------------
# Approval types
# -------------------------------------------------------------------------


def approver_to_dict(approver: Approver) -> dict[str, Any]:
    return {
        "approver_id": approver.approver_id,
        "name": approver.name,
        "role": approver.role,
        "level": approver.level,
        "email": approver.email,
    }


def approver_from_dict(data: dict[str, Any]) -> Approver:
    return Approver(
        approver_id=data["approver_id"],
        name=data["name"],
        role=data["role"],
        level=int(data["level"]),
        email=data.get("email"),
    )


def chain_to_dict(chain: ApprovalChain) -> dict[str, Any]:
    return {
        "chain_id": chain.chain_id,
        "revision_id": chain.revision_id,
        "current_level": chain.current_level,
        "is_complete": chain.is_complete,
        "started_at": _dt(chain.started_at),
        "completed_at": _dt(chain.completed_at),
        "outcome": chain.outcome.value if chain.outcome else None,
        "steps": [
            {
                "level": s.level,
                "approver": approver_to_dict(s.approver),
                "status": s.status.value,
                "action": s.action.value if s.action else None,
                "notes": s.notes,
                "action_date": _dt(s.action_date),
                "action_by": s.action_by,
            }
            for s in chain.steps
        ],
    }


def chain_from_dict(data: dict[str, Any]) -> ApprovalChain:
    steps = tuple(
        ApprovalStep(
            level=s["level"],
            approver=approver_from_dict(s["approver"]),
            status=ApprovalStepStatus(s["status"]),
            action=ApprovalAction(s["action"]) if s.get("action") else None,
            notes=s.get("notes"),
            action_date=_parse_dt(s.get("action_date")),
            action_by=s.get("action_by"),
        )
        for s in data["steps"]
    )
    return ApprovalChain(
        chain_id=data["chain_id"],
        revision_id=data["revision_id"],
        steps=steps,
        current_level=data["current_level"],
        started_at=_parse_dt(data["started_at"]),
        is_complete=data["is_complete"],
        completed_at=_parse_dt(data.get("completed_at")),
        outcome=ChainOutcome(data["outcome"]) if data.get("outcome") else None,
    )


def cycle_to_dict(cycle: ApprovalCycle) -> dict[str, Any]:
    return {
        "cycle_id": cycle.cycle_id,
        "cycle_number": cycle.cycle_number,
        "submitted_at": _dt(cycle.submitted_at),
        "submitted_by": cycle.submitted_by,
        "submission_notes": cycle.submission_notes,
        "outcome": cycle.outcome.value,
        "reviewed_by": cycle.reviewed_by,
        "reviewer_role": cycle.reviewer_role,
        "reviewed_at": _dt(cycle.reviewed_at),
        "feedback": cycle.feedback,
        "chain": chain_to_dict(cycle.chain) if cycle.chain else None,
    }


def cycle_from_dict(data: dict[str, Any]) -> ApprovalCycle:
    return ApprovalCycle(
        cycle_id=data["cycle_id"],
        cycle_number=data["cycle_number"],
        submitted_at=_parse_dt(data["submitted_at"]),
        submitted_by=data["submitted_by"],
        submission_notes=data.get("submission_notes"),
        outcome=CycleOutcome(data["outcome"]),
        reviewed_by=data.get("reviewed_by"),
        reviewer_role=data.get("reviewer_role"),
        reviewed_at=_parse_dt(data.get("reviewed_at")),
        feedback=data.get("feedback"),
        chain=chain_from_dict(data["chain"]) if data.get("chain") else None,
    )


# -------------------------------------------------------------------------
# Revision types
# -------------------------------------------------------------------------


def line_item_to_dict(line: LineItem) -> dict[str, Any]:
    return {
        "line_id": line.line_id,
        "line_number": line.line_number,
        "description": line.description,
        "quantity": str(line.quantity),
        "unit_price": str(line.unit_price),
        "discount_percent": str(line.discount_percent),
        "requested_date": line.requested_date.isoformat() if line.requested_date else None,
        "promised_date": line.promised_date.isoformat() if line.promised_date else None,
        "notes": line.notes,
    }


def line_item_from_dict(data: dict[str, Any]) -> LineItem:
    return LineItem(
        line_id=data["line_id"],
        line_number=int(data["line_number"]),
        description=data["description"],
        quantity=Decimal(str(data["quantity"])),
        unit_price=Decimal(str(data["unit_price"])),
        discount_percent=Decimal(str(data.get("discount_percent", "0"))),
        requested_date=_parse_date(data.get("requested_date")),
        promised_date=_parse_date(data.get("promised_date")),
        notes=data.get("notes"),
    )


def change_to_dict(change: RevisionChange) -> dict[str, Any]:
    return {
        "change_id": change.change_id,
        "field": change.field,
        "line_number": change.line_number,
        "previous_value": encode_value(change.previous_value),
        "new_value": encode_value(change.new_value),
        "edit_type": change.edit_type.value,
        "changed_by": change.changed_by,
        "changed_at": _dt(change.changed_at),
        "description": change.description,
    }


def change_from_dict(data: dict[str, Any]) -> RevisionChange:
    return RevisionChange(
        change_id=data["change_id"],
        field=data["field"],
        line_number=data.get("line_number"),
        previous_value=decode_value(data.get("previous_value")),
        new_value=decode_value(data.get("new_value")),
        edit_type=EditType(data["edit_type"]),
        changed_by=data["changed_by"],
        changed_at=_parse_dt(data["changed_at"]),
        description=data.get("description", ""),
    )


def audit_entry_to_dict(entry: AuditLogEntry) -> dict[str, Any]:
    return {
        "entry_id": entry.entry_id,
        "action": entry.action.value,
        "date": _dt(entry.date),
        "user_id": entry.user_id,
        "user": entry.user,
        "role": entry.role,
        "from_status": entry.from_status.value if entry.from_status else None,
        "to_status": entry.to_status.value,
        "notes": entry.notes,
    }


def audit_entry_from_dict(data: dict[str, Any]) -> AuditLogEntry:
    return AuditLogEntry(
        entry_id=data["entry_id"],
        action=AuditAction(data["action"]),
        date=_parse_dt(data["date"]),
        user_id=data["user_id"],
        user=data["user"],
        role=data["role"],
        from_status=RevisionStatus(data["from_status"]) if data.get("from_status") else None,
        to_status=RevisionStatus(data["to_status"]),
        notes=data.get("notes"),
    )


def revision_to_dict(revision: Revision, *, include_audit_log: bool = True) -> dict[str, Any]:
    data: dict[str, Any] = {
        "revision_id": revision.revision_id,
        "order_number": revision.order_number,
        "version": revision.version,
        "status": revision.status.value,
        "base_version": revision.base_version,
        "line_items": [line_item_to_dict(line) for line in revision.line_items],
        "changes": [change_to_dict(c) for c in revision.changes],
        "changes_summary": revision.changes_summary,
        "approval_chain": (
            chain_to_dict(revision.approval_chain) if revision.approval_chain else None
        ),
        "approval_history": [cycle_to_dict(c) for c in revision.approval_history],
    }
    if include_audit_log:
        data["audit_log"] = [audit_entry_to_dict(e) for e in revision.audit_log]
    return data


def revision_from_dict(
    data: dict[str, Any],
    audit_log: tuple[AuditLogEntry, ...] | None = None,
) -> Revision:
    """Rebuild a Revision; ``audit_log`` overrides any log in ``data``."""
    if audit_log is None:
        audit_log = tuple(audit_entry_from_dict(e) for e in data.get("audit_log", ()))
    return Revision(
        revision_id=data["revision_id"],
        order_number=data["order_number"],
        version=data["version"],
        status=RevisionStatus(data["status"]),
        line_items=tuple(line_item_from_dict(x) for x in data.get("line_items", ())),
        changes=tuple(change_from_dict(x) for x in data.get("changes", ())),
        changes_summary=data.get("changes_summary", "No changes"),
        approval_chain=(
            chain_from_dict(data["approval_chain"]) if data.get("approval_chain") else None
        ),
        approval_history=tuple(
            cycle_from_dict(x) for x in data.get("approval_history", ())
        ),
        audit_log=audit_log,
        base_version=data.get("base_version"),
    )


def issue_to_dict(issue: RevisionIssue) -> dict[str, Any]:
    return {
        "issue_id": issue.issue_id,
        "kind": issue.kind,
        "title": issue.title,
        "raised_at": _dt(issue.raised_at),
        "raised_by": issue.raised_by,
        "description": issue.description,
    }


def issue_from_dict(data: dict[str, Any]) -> RevisionIssue:
    return RevisionIssue(
        issue_id=data["issue_id"],
        kind=data["kind"],
        title=data["title"],
        raised_at=_parse_dt(data["raised_at"]),
        raised_by=data["raised_by"],
        description=data.get("description", ""),
    )


def state_to_dict(state: OrderRevisionState) -> dict[str, Any]:
    return {
        "order_number": state.order_number,
        "active_revision": revision_to_dict(state.active_revision),
        "draft": revision_to_dict(state.draft) if state.draft else None,
        "history": [revision_to_dict(r) for r in state.history],
        "open_issues": [issue_to_dict(i) for i in state.open_issues],
    }


def state_from_dict(data: dict[str, Any]) -> OrderRevisionState:
    return OrderRevisionState(
        order_number=data["order_number"],
        active_revision=revision_from_dict(data["active_revision"]),
        draft=revision_from_dict(data["draft"]) if data.get("draft") else None,
        history=tuple(revision_from_dict(r) for r in data.get("history", ())),
        open_issues=tuple(issue_from_dict(i) for i in data.get("open_issues", ())),
    )
