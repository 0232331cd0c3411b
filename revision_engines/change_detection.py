"""
revision_engines.change_detection -- Line-item diff and change classification.

Responsibility:
    Diff an original and a proposed line-item collection (keyed by the
    stable ``line_id``) into an ordered tuple of classified
    ``RevisionChange`` records, and render the human-readable
    ``changes_summary``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import revision_kernel/domain types.

Invariants enforced:
    - Classification: quantity, unit price, discount and line add/remove
      are critical; every other field is non-critical.
    - Emission order: removals, then additions (each by line number), then
      per-line field changes in line-number order, critical fields before
      non-critical ones.  Summaries depend on this order.
    - Purity: the caller supplies actor, timestamp and id factory.

Failure modes:
    - ValueError if either collection repeats a ``line_id``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any

from revision_engines.tracer import traced_engine
from revision_kernel.domain.revision import (
    CRITICAL_CHANGE_FIELDS,
    ChangeField,
    EditType,
    LineItem,
    RevisionChange,
)

CRITICAL_LINE_FIELDS: tuple[ChangeField, ...] = (
    ChangeField.QUANTITY,
    ChangeField.UNIT_PRICE,
    ChangeField.DISCOUNT_PERCENT,
)

NON_CRITICAL_LINE_FIELDS: tuple[ChangeField, ...] = (
    ChangeField.REQUESTED_DATE,
    ChangeField.PROMISED_DATE,
    ChangeField.NOTES,
)

# Wording used in change descriptions
_DESCRIPTION_LABELS: dict[str, str] = {
    ChangeField.QUANTITY.value: "quantity",
    ChangeField.UNIT_PRICE.value: "unit price",
    ChangeField.DISCOUNT_PERCENT.value: "discount",
    ChangeField.REQUESTED_DATE.value: "requested date",
    ChangeField.PROMISED_DATE.value: "promised date",
    ChangeField.NOTES.value: "notes",
}

# Wording used in the aggregate summary
_SUMMARY_LABELS: dict[str, str] = {
    ChangeField.QUANTITY.value: "quantity",
    ChangeField.UNIT_PRICE.value: "price",
    ChangeField.DISCOUNT_PERCENT.value: "discount",
    ChangeField.ADD_LINE.value: "line added",
    ChangeField.REMOVE_LINE.value: "line removed",
    ChangeField.REQUESTED_DATE.value: "requested date",
    ChangeField.PROMISED_DATE.value: "promised date",
    ChangeField.NOTES.value: "notes",
}


def classify_field(field: str) -> EditType:
    """Critical for quantity/price/discount/line composition, else non-critical."""
    if field in CRITICAL_CHANGE_FIELDS:
        return EditType.CRITICAL
    return EditType.NON_CRITICAL


def has_critical_change(changes: Iterable[RevisionChange]) -> bool:
    return any(c.edit_type == EditType.CRITICAL for c in changes)


def _index(lines: Iterable[LineItem], side: str) -> dict[str, LineItem]:
    index: dict[str, LineItem] = {}
    for line in lines:
        if line.line_id in index:
            raise ValueError(f"Duplicate line_id {line.line_id!r} in {side} lines")
        index[line.line_id] = line
    return index


def _display(value: Any) -> str:
    if value is None:
        return "(none)"
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


@traced_engine("change_detection", "1.0", fingerprint_fields=("original", "proposed"))
def detect_changes(
    *,
    original: Iterable[LineItem],
    proposed: Iterable[LineItem],
    changed_by: str,
    changed_at: datetime,
    new_id: Callable[[], str],
) -> tuple[RevisionChange, ...]:
    """Diff two line collections into ordered, classified changes.

    Args:
        original: Lines of the revision being edited.
        proposed: Lines after the edit.
        changed_by: Acting user id stamped on every change.
        changed_at: Timestamp stamped on every change.
        new_id: Factory for change ids.

    Returns:
        Tuple of RevisionChange in emission order (possibly empty).
    """
    before = _index(original, "original")
    after = _index(proposed, "proposed")

    def make(field: str, line_number: int | None, previous: Any, new: Any,
             description: str) -> RevisionChange:
        return RevisionChange(
            change_id=new_id(),
            field=field,
            line_number=line_number,
            previous_value=previous,
            new_value=new,
            edit_type=classify_field(field),
            changed_by=changed_by,
            changed_at=changed_at,
            description=description,
        )

    changes: list[RevisionChange] = []

    removed = sorted(
        (line for lid, line in before.items() if lid not in after),
        key=lambda line: line.line_number,
    )
    for line in removed:
        changes.append(make(
            ChangeField.REMOVE_LINE.value,
            line.line_number,
            line.description,
            None,
            f"Removed line {line.line_number}: {line.description}",
        ))

    added = sorted(
        (line for lid, line in after.items() if lid not in before),
        key=lambda line: line.line_number,
    )
    for line in added:
        changes.append(make(
            ChangeField.ADD_LINE.value,
            line.line_number,
            None,
            line.description,
            f"Added line {line.line_number}: {line.description}",
        ))

    common = sorted(
        (after[lid] for lid in after if lid in before),
        key=lambda line: line.line_number,
    )
    for new_line in common:
        old_line = before[new_line.line_id]
        for field in CRITICAL_LINE_FIELDS + NON_CRITICAL_LINE_FIELDS:
            old_value = getattr(old_line, field.value)
            new_value = getattr(new_line, field.value)
            if old_value == new_value:
                continue
            changes.append(make(
                field.value,
                new_line.line_number,
                old_value,
                new_value,
                f"Line {new_line.line_number}: Changed "
                f"{_DESCRIPTION_LABELS[field.value]} from "
                f"{_display(old_value)} to {_display(new_value)}",
            ))

    return tuple(changes)


def summarize_changes(changes: Iterable[RevisionChange]) -> str:
    """Aggregate summary, e.g. ``"3 changes: 2 quantity, 1 price"``.

    Labels appear in first-appearance order of their field.
    """
    counts: dict[str, int] = {}
    total = 0
    for change in changes:
        label = _SUMMARY_LABELS.get(change.field, change.field.replace("_", " "))
        counts[label] = counts.get(label, 0) + 1
        total += 1
    if total == 0:
        return "No changes"
    noun = "change" if total == 1 else "changes"
    parts = ", ".join(f"{count} {label}" for label, count in counts.items())
    return f"{total} {noun}: {parts}"
