"""
Revision workflow (``revision_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the revision state machine plus
``REVISION_WORKFLOW``, the single table of legal status edges.  The
lifecycle service resolves every status change through
``find_transition``; an action without an edge is refused.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
* A guarded edge fires only when the caller confirms every guard on it.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from revision_kernel.domain.revision import RevisionStatus


@dataclass(frozen=True)
class Guard:
    """A named condition that must hold before a transition fires.

    The caller supplies the truth of each guard by name; see ``unmet_guard``.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow."""
    from_state: str
    to_state: str
    action: str
    guards: tuple[Guard, ...] = ()
    requires_approval: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state {self.initial_state} "
                "is not a declared state"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action} "
                    f"{t.from_state}->{t.to_state} references unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state {t.from_state} "
                    f"has outgoing transition {t.action}"
                )

    def actions_from(self, state: str) -> tuple[str, ...]:
        return tuple(t.action for t in self.transitions if t.from_state == state)


def find_transition(workflow: Workflow, state: str, action: str) -> Transition | None:
    """Return the edge for ``action`` out of ``state``, or None."""
    for t in workflow.transitions:
        if t.from_state == state and t.action == action:
            return t
    return None


def unmet_guard(transition: Transition, facts: Mapping[str, bool]) -> Guard | None:
    """First guard of ``transition`` not confirmed by ``facts``; missing facts fail."""
    for guard in transition.guards:
        if not facts.get(guard.name, False):
            return guard
    return None


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

HAS_CHANGES = Guard(
    name="has_changes",
    description="Draft records at least one change",
)

APPROVAL_REQUIRED = Guard(
    name="approval_required",
    description="A change is critical or the cost delta exceeds the threshold",
)

APPROVAL_NOT_REQUIRED = Guard(
    name="approval_not_required",
    description="All changes non-critical and cost delta within threshold",
)

APPROVER_AT_CURRENT_LEVEL = Guard(
    name="approver_at_current_level",
    description="Acting user is the approver of the chain's current step",
)

CHAIN_COMPLETE = Guard(
    name="chain_complete",
    description="Every approval step approved",
)


# -----------------------------------------------------------------------------
# Revision workflow
# -----------------------------------------------------------------------------

_DRAFT = RevisionStatus.DRAFT.value
_PENDING = RevisionStatus.PENDING_APPROVAL.value
_APPROVED = RevisionStatus.APPROVED.value
_REJECTED = RevisionStatus.REJECTED.value
_SENT = RevisionStatus.SENT.value
_CONFIRMED = RevisionStatus.CONFIRMED.value

REVISION_WORKFLOW = Workflow(
    name="order_revision",
    description="Order revision amendment, approval and re-confirmation",
    initial_state=_DRAFT,
    states=(_DRAFT, _PENDING, _APPROVED, _REJECTED, _SENT, _CONFIRMED),
    transitions=(
        Transition(_DRAFT, _PENDING, action="submit",
                   guards=(HAS_CHANGES, APPROVAL_REQUIRED), requires_approval=True),
        Transition(_REJECTED, _PENDING, action="resubmit",
                   guards=(HAS_CHANGES, APPROVAL_REQUIRED), requires_approval=True),
        Transition(_PENDING, _APPROVED, action="approve", guards=(CHAIN_COMPLETE,)),
        Transition(_PENDING, _REJECTED, action="reject",
                   guards=(APPROVER_AT_CURRENT_LEVEL,)),
        Transition(_PENDING, _REJECTED, action="request_changes",
                   guards=(APPROVER_AT_CURRENT_LEVEL,)),
        Transition(_DRAFT, _APPROVED, action="skip_approval",
                   guards=(HAS_CHANGES, APPROVAL_NOT_REQUIRED)),
        Transition(_APPROVED, _SENT, action="send"),
        Transition(_SENT, _CONFIRMED, action="confirm"),
    ),
    terminal_states=(_CONFIRMED,),
)
