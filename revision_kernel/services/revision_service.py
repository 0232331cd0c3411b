"""
revision_kernel.services.revision_service -- Revision lifecycle management.

Responsibility:
    Owns the active revision, the pending draft and the confirmed history
    of every order, and is the only component allowed to change them.
    Orchestrates the pure engines: change detection and versioning on
    edits, cost-delta and permission computation on every decision,
    chain building on submission and chain advancing on approval.

Architecture position:
    Kernel > Services.  May import from domain/, services/ and the pure
    revision_engines.  Persistence goes through ``RevisionRepository``.

Invariants enforced:
    - At most one draft-family revision per order (ConflictingDraftError).
    - Every status change is an edge of ``REVISION_WORKFLOW`` and appends
      exactly one audit log entry.  Intermediate approval steps append an
      entry whose from/to status are both ``pending_approval``.
    - Each transition builds the complete new state before storing it; a
      refused action leaves stored state untouched.
    - Mutations of one order are serialized by ``OrderLockRegistry``.
    - Events are dispatched after the lock is released; publish failures
      never fail a transition.
    - The acting user is always an explicit argument.

Failure modes:
    - OrderNotFoundError / DraftNotFoundError / IssueNotFoundError.
    - ConflictingDraftError, OrderAlreadyExistsError.
    - InvalidTransitionError for any action the user or status forbids.
    - OutOfOrderApprovalError / StaleApprovalStepError from the chain engine.
    - InvalidApprovalChainError when no approvers are configured.
    - OrderBusyError when the order lock times out.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from revision_engines.approval_chain import advance_chain, build_chain
from revision_engines.change_detection import (
    classify_field,
    detect_changes,
    has_critical_change,
    summarize_changes,
)
from revision_engines.cost_delta import (
    PURCHASE_ORDER_THRESHOLD,
    CostDelta,
    CostThresholdPolicy,
    evaluate_cost_delta,
)
from revision_engines.permissions import (
    RevisionPermissions,
    compute_permissions,
    requires_approval as derive_requires_approval,
)
from revision_engines.versioning import INITIAL_VERSION, next_version
from revision_kernel.domain.approval import (
    ApprovalAction,
    ApprovalChain,
    ApprovalCycle,
    ApprovalStep,
    Approver,
    ChainOutcome,
    CurrentUser,
    CycleOutcome,
)
from revision_kernel.domain.clock import Clock, SystemClock
from revision_kernel.domain.events import (
    RevisionEvent,
    RevisionEventType,
)
from revision_kernel.domain.ids import IdGenerator, UUIDIdGenerator
from revision_kernel.domain.revision import (
    EDITABLE_STATUSES,
    AuditAction,
    AuditLogEntry,
    ChangeField,
    ChangeInput,
    LineItem,
    OrderRevisionState,
    Revision,
    RevisionChange,
    RevisionIssue,
    RevisionStatus,
)
from revision_kernel.domain.workflow import (
    APPROVAL_NOT_REQUIRED,
    APPROVAL_REQUIRED,
    APPROVER_AT_CURRENT_LEVEL,
    CHAIN_COMPLETE,
    HAS_CHANGES,
    REVISION_WORKFLOW,
    Workflow,
    find_transition,
    unmet_guard,
)
from revision_kernel.exceptions import (
    ConflictingDraftError,
    DraftNotFoundError,
    InvalidTransitionError,
    IssueNotFoundError,
    OrderAlreadyExistsError,
    RevisionKernelError,
)
from revision_kernel.logging_config import LogContext, get_logger
from revision_kernel.services.event_dispatcher import EventDispatcher
from revision_kernel.services.order_locks import OrderLockRegistry
from revision_kernel.services.repository import (
    InMemoryRevisionRepository,
    RevisionRepository,
)

logger = get_logger("services.revision")

CostDeltaEvaluator = Callable[..., CostDelta]

NOTIFY_ISSUE_KIND = "notify_counterparty"
NOTIFY_SUPPLIER_TITLE = "Notify supplier of upcoming changes"
NOTIFY_CUSTOMER_TITLE = "Notify customer of upcoming changes"


@dataclass(frozen=True)
class _Outcome:
    """Result of a mutation computed under the order lock."""

    state: OrderRevisionState
    revision: Revision | None
    log_event: str
    log_extra: dict[str, Any] = field(default_factory=dict)
    events: tuple[RevisionEvent, ...] = ()
    changed: bool = True


class RevisionLifecycleService:
    """Revision state machine for amending confirmed orders."""

    def __init__(
        self,
        repository: RevisionRepository | None = None,
        approvers: Sequence[Approver] = (),
        cost_threshold: CostThresholdPolicy = PURCHASE_ORDER_THRESHOLD,
        *,
        clock: Clock | None = None,
        id_generator: IdGenerator | None = None,
        cost_delta_evaluator: CostDeltaEvaluator = evaluate_cost_delta,
        locks: OrderLockRegistry | None = None,
        dispatcher: EventDispatcher | None = None,
        notification_issue_title: str | None = NOTIFY_SUPPLIER_TITLE,
        workflow: Workflow = REVISION_WORKFLOW,
    ) -> None:
        self._repository = repository if repository is not None else InMemoryRevisionRepository()
        self._approvers = tuple(approvers)
        self._cost_threshold = cost_threshold
        self._clock = clock or SystemClock()
        self._ids = id_generator or UUIDIdGenerator()
        self._evaluate_cost_delta = cost_delta_evaluator
        self._locks = locks or OrderLockRegistry()
        self._dispatcher = dispatcher or EventDispatcher(None)
        self._notification_issue_title = notification_issue_title
        self._workflow = workflow

    @property
    def approvers(self) -> tuple[Approver, ...]:
        return self._approvers

    def close(self) -> None:
        """Flush queued events and release the dispatcher's worker threads."""
        self._dispatcher.close()

    # =====================================================================
    # Queries
    # =====================================================================

    def get_active(self, order_number: str) -> Revision:
        return self._repository.load(order_number).active_revision

    def get_draft(self, order_number: str) -> Revision | None:
        return self._repository.load(order_number).draft

    def get_history(self, order_number: str) -> tuple[Revision, ...]:
        return self._repository.load(order_number).history

    def get_open_issues(self, order_number: str) -> tuple[RevisionIssue, ...]:
        return self._repository.load(order_number).open_issues

    def get_cost_delta(self, order_number: str) -> CostDelta | None:
        """Active total vs draft total; None when there is no draft."""
        return self._cost_delta(self._repository.load(order_number))

    def requires_approval(self, order_number: str) -> bool:
        state = self._repository.load(order_number)
        if state.draft is None:
            return False
        return self._requires_approval(state)

    def get_permissions(self, order_number: str, user: CurrentUser) -> RevisionPermissions:
        state = self._repository.load(order_number)
        return self._permissions(state, user)

    def current_approval_step(self, order_number: str) -> ApprovalStep | None:
        draft = self._repository.load(order_number).draft
        if draft is None or draft.status != RevisionStatus.PENDING_APPROVAL:
            return None
        if draft.approval_chain is None:
            return None
        return draft.approval_chain.current_step

    def next_approver(self, order_number: str) -> Approver | None:
        step = self.current_approval_step(order_number)
        return step.approver if step is not None else None

    # =====================================================================
    # Order seeding and issues
    # =====================================================================

    def open_order(
        self,
        order_number: str,
        line_items: Sequence[LineItem],
        actor: CurrentUser,
    ) -> Revision:
        """Start tracking an order with its confirmed revision 1.0."""
        lines = _sorted_lines(line_items)
        with LogContext.bind(order_number=order_number, actor_id=actor.user_id):
            with self._locks.hold(order_number):
                if self._repository.exists(order_number):
                    raise OrderAlreadyExistsError(order_number)
                now = self._clock.now()
                revision = Revision(
                    revision_id=self._ids.new_id(),
                    order_number=order_number,
                    version=INITIAL_VERSION,
                    status=RevisionStatus.CONFIRMED,
                    line_items=lines,
                    audit_log=(
                        self._audit(
                            AuditAction.CREATED, actor, None,
                            RevisionStatus.CONFIRMED, "Order opened", now,
                        ),
                    ),
                )
                state = OrderRevisionState(
                    order_number=order_number,
                    active_revision=revision,
                    history=(revision,),
                )
                self._repository.save(state)
            logger.info(
                "order_opened",
                extra={
                    "revision_id": revision.revision_id,
                    "version": revision.version,
                    "line_count": len(lines),
                    "total": revision.total,
                },
            )
        return revision

    def acknowledge_issue(self, order_number: str, issue_id: str, actor: CurrentUser) -> None:
        """Close an open issue on the order."""

        def mutate(state: OrderRevisionState) -> _Outcome:
            remaining = tuple(i for i in state.open_issues if i.issue_id != issue_id)
            if len(remaining) == len(state.open_issues):
                raise IssueNotFoundError(order_number, issue_id)
            return _Outcome(
                state=replace(state, open_issues=remaining),
                revision=state.draft,
                log_event="revision_issue_acknowledged",
                log_extra={"issue_id": issue_id},
            )

        self._run(order_number, "acknowledge_issue", actor, mutate)

    # =====================================================================
    # Draft lifecycle
    # =====================================================================

    def create_draft(self, order_number: str, actor: CurrentUser) -> Revision:
        """Open a draft from the active revision."""

        def mutate(state: OrderRevisionState) -> _Outcome:
            if state.draft is not None:
                raise ConflictingDraftError(
                    order_number, state.draft.revision_id, state.draft.status.value,
                )
            active = state.active_revision
            if actor.is_approver:
                raise InvalidTransitionError(
                    "create_draft", active.status.value,
                    "approvers cannot edit revisions", actor.user_id,
                )
            now = self._clock.now()
            draft = Revision(
                revision_id=self._ids.new_id(),
                order_number=order_number,
                version=next_version(active.version, False),
                status=RevisionStatus.DRAFT,
                line_items=active.line_items,
                audit_log=(
                    self._audit(
                        AuditAction.CREATED, actor, None, RevisionStatus.DRAFT,
                        f"Draft created from version {active.version}", now,
                    ),
                ),
                base_version=active.version,
            )
            issues = state.open_issues
            if self._notification_issue_title is not None:
                issues = issues + (RevisionIssue(
                    issue_id=self._ids.new_id(),
                    kind=NOTIFY_ISSUE_KIND,
                    title=self._notification_issue_title,
                    raised_at=now,
                    raised_by=actor.user_id,
                    description=f"Revision {draft.version} of order {order_number} is in progress",
                ),)
            return _Outcome(
                state=replace(state, draft=draft, open_issues=issues),
                revision=draft,
                log_event="revision_draft_created",
                log_extra={"base_version": active.version, "version": draft.version},
                events=(self._event(RevisionEventType.DRAFT_CREATED, draft, actor, now),),
            )

        return self._run(order_number, "create_draft", actor, mutate)

    def record_change(
        self,
        order_number: str,
        change_input: ChangeInput,
        actor: CurrentUser,
    ) -> Revision:
        """Append one classified change and recompute version and summary."""

        def mutate(state: OrderRevisionState) -> _Outcome:
            draft = self._require_draft(state, "record_change")
            self._check_editable(draft, actor, "record_change")
            now = self._clock.now()
            field_name = _field_name(change_input.field)
            change = RevisionChange(
                change_id=self._ids.new_id(),
                field=field_name,
                line_number=change_input.line_number,
                previous_value=change_input.previous_value,
                new_value=change_input.new_value,
                edit_type=classify_field(field_name),
                changed_by=actor.user_id,
                changed_at=now,
                description=change_input.description or _default_description(change_input),
            )
            updated = self._with_changes(state, draft, draft.changes + (change,))
            return _Outcome(
                state=replace(state, draft=updated),
                revision=updated,
                log_event="revision_change_recorded",
                log_extra={
                    "field": change.field,
                    "edit_type": change.edit_type.value,
                    "version": updated.version,
                },
                events=(self._event(
                    RevisionEventType.CHANGE_RECORDED, updated, actor, now,
                    {"change_id": change.change_id, "field": change.field},
                ),),
            )

        return self._run(order_number, "record_change", actor, mutate)

    def update_line_items(
        self,
        order_number: str,
        new_lines: Sequence[LineItem],
        actor: CurrentUser,
    ) -> Revision:
        """Replace the draft's lines, recording every detected change."""

        def mutate(state: OrderRevisionState) -> _Outcome:
            draft = self._require_draft(state, "update_line_items")
            self._check_editable(draft, actor, "update_line_items")
            now = self._clock.now()
            detected = detect_changes(
                original=draft.line_items,
                proposed=tuple(new_lines),
                changed_by=actor.user_id,
                changed_at=now,
                new_id=self._ids.new_id,
            )
            if not detected:
                return _Outcome(
                    state=state,
                    revision=draft,
                    log_event="revision_line_items_unchanged",
                    changed=False,
                )
            updated = self._with_changes(
                state,
                replace(draft, line_items=_sorted_lines(new_lines)),
                draft.changes + detected,
            )
            return _Outcome(
                state=replace(state, draft=updated),
                revision=updated,
                log_event="revision_line_items_updated",
                log_extra={
                    "detected": len(detected),
                    "critical": sum(1 for c in detected if c.is_critical),
                    "version": updated.version,
                },
                events=tuple(
                    self._event(
                        RevisionEventType.CHANGE_RECORDED, updated, actor, now,
                        {"change_id": c.change_id, "field": c.field},
                    )
                    for c in detected
                ),
            )

        return self._run(order_number, "update_line_items", actor, mutate)

    def discard(self, order_number: str, actor: CurrentUser) -> Revision:
        """Drop the draft (draft or rejected only) and its open issues."""

        def mutate(state: OrderRevisionState) -> _Outcome:
            draft = self._require_draft(state, "discard")
            if draft.status not in EDITABLE_STATUSES:
                raise InvalidTransitionError(
                    "discard", draft.status.value,
                    "only draft or rejected revisions can be discarded", actor.user_id,
                )
            now = self._clock.now()
            return _Outcome(
                state=replace(state, draft=None, open_issues=()),
                revision=draft,
                log_event="revision_discarded",
                log_extra={"version": draft.version, "status": draft.status.value},
                events=(self._event(RevisionEventType.DISCARDED, draft, actor, now),),
            )

        return self._run(order_number, "discard", actor, mutate)

    # =====================================================================
    # Approval routing
    # =====================================================================

    def submit_for_approval(
        self,
        order_number: str,
        actor: CurrentUser,
        notes: str | None = None,
    ) -> Revision:
        """Build a fresh chain, open a new approval cycle, move to pending."""

        def mutate(state: OrderRevisionState) -> _Outcome:
            draft = self._require_draft(state, "submit")
            action = "resubmit" if draft.status == RevisionStatus.REJECTED else "submit"
            perms = self._permissions(state, actor)
            if not perms.can_submit:
                raise InvalidTransitionError(
                    action, draft.status.value,
                    self._submit_refusal(state, draft, actor), actor.user_id,
                )
            target = self._resolve(draft, action, actor, {
                HAS_CHANGES.name: bool(draft.changes),
                APPROVAL_REQUIRED.name: self._requires_approval(state),
            })
            now = self._clock.now()
            chain = build_chain(
                revision_id=draft.revision_id,
                approvers=self._approvers,
                chain_id=self._ids.new_id(),
                now=now,
            )
            cycle = ApprovalCycle(
                cycle_id=self._ids.new_id(),
                cycle_number=len(draft.approval_history) + 1,
                submitted_at=now,
                submitted_by=actor.name,
                submission_notes=notes,
            )
            audit_action = (
                AuditAction.RESUBMITTED if draft.approval_history else AuditAction.SUBMITTED
            )
            updated = replace(
                draft,
                status=target,
                approval_chain=chain,
                approval_history=draft.approval_history + (cycle,),
                audit_log=draft.audit_log + (
                    self._audit(audit_action, actor, draft.status, target, notes, now),
                ),
            )
            return _Outcome(
                state=replace(state, draft=updated),
                revision=updated,
                log_event="revision_submitted",
                log_extra={
                    "cycle_number": cycle.cycle_number,
                    "chain_levels": [s.level for s in chain.steps],
                    "current_level": chain.current_level,
                },
                events=(self._event(
                    RevisionEventType.SUBMITTED, updated, actor, now,
                    {
                        "cycle_number": cycle.cycle_number,
                        "next_approver_id": chain.current_step.approver.approver_id,
                    },
                ),),
            )

        return self._run(order_number, "submit", actor, mutate)

    def approve(
        self,
        order_number: str,
        actor: CurrentUser,
        notes: str | None = None,
    ) -> Revision:
        """Approve the actor's step; the last approval approves the revision."""
        return self._decide(order_number, actor, ApprovalAction.APPROVE, notes)

    def reject(self, order_number: str, actor: CurrentUser, notes: str) -> Revision:
        """Reject at the actor's step; short-circuits the chain."""
        return self._decide(order_number, actor, ApprovalAction.REJECT, notes)

    def request_changes(self, order_number: str, actor: CurrentUser, notes: str) -> Revision:
        """Send the revision back for edits; short-circuits the chain."""
        return self._decide(order_number, actor, ApprovalAction.REQUEST_CHANGES, notes)

    def _decide(
        self,
        order_number: str,
        actor: CurrentUser,
        decision: ApprovalAction,
        notes: str | None,
    ) -> Revision:
        action = decision.value

        def mutate(state: OrderRevisionState) -> _Outcome:
            draft = self._require_draft(state, action)
            status = draft.status.value
            if draft.status != RevisionStatus.PENDING_APPROVAL:
                raise InvalidTransitionError(
                    action, status, "revision is not pending approval", actor.user_id,
                )
            if not actor.is_approver:
                raise InvalidTransitionError(
                    action, status, "only approvers can decide approval steps", actor.user_id,
                )
            chain = draft.approval_chain
            if chain is None:
                raise InvalidTransitionError(
                    action, status, "revision has no approval chain", actor.user_id,
                )
            actor_step = _actor_step(chain, actor.user_id)
            if actor_step is None:
                raise InvalidTransitionError(
                    action, status, "user is not an approver on this chain", actor.user_id,
                )
            if decision != ApprovalAction.APPROVE and not (notes and notes.strip()):
                raise InvalidTransitionError(
                    action, status, "notes are required", actor.user_id,
                )

            now = self._clock.now()
            advanced = advance_chain(
                chain,
                level=actor_step.level,
                action=decision,
                actor_id=actor.user_id,
                notes=notes,
                now=now,
            )

            if not advanced.is_complete:
                updated = replace(
                    draft,
                    approval_chain=advanced,
                    audit_log=draft.audit_log + (
                        self._audit(
                            AuditAction.STEP_APPROVED, actor, draft.status,
                            draft.status, notes, now,
                        ),
                    ),
                )
                return _Outcome(
                    state=replace(state, draft=updated),
                    revision=updated,
                    log_event="approval_step_advanced",
                    log_extra={
                        "approved_level": actor_step.level,
                        "current_level": advanced.current_level,
                    },
                    events=(self._event(
                        RevisionEventType.STEP_APPROVED, updated, actor, now,
                        {
                            "level": actor_step.level,
                            "next_level": advanced.current_level,
                            "next_approver_id": advanced.current_step.approver.approver_id,
                        },
                    ),),
                )

            if advanced.outcome == ChainOutcome.APPROVED:
                audit_action = AuditAction.APPROVED
                cycle_outcome = CycleOutcome.APPROVED
                event_type = RevisionEventType.APPROVED
                log_event = "revision_approved"
            elif decision == ApprovalAction.REQUEST_CHANGES:
                audit_action = AuditAction.CHANGES_REQUESTED
                cycle_outcome = CycleOutcome.CHANGES_REQUESTED
                event_type = RevisionEventType.CHANGES_REQUESTED
                log_event = "revision_changes_requested"
            else:
                audit_action = AuditAction.REJECTED
                cycle_outcome = CycleOutcome.REJECTED
                event_type = RevisionEventType.REJECTED
                log_event = "revision_rejected"

            target = self._resolve(draft, action, actor, {
                CHAIN_COMPLETE.name: advanced.outcome == ChainOutcome.APPROVED,
                APPROVER_AT_CURRENT_LEVEL.name: actor_step.level == chain.current_level,
            })
            history = draft.approval_history
            if history:
                closed = replace(
                    history[-1],
                    outcome=cycle_outcome,
                    reviewed_by=actor.name,
                    reviewer_role=actor.role,
                    reviewed_at=now,
                    feedback=notes,
                    chain=advanced,
                )
                history = history[:-1] + (closed,)
            updated = replace(
                draft,
                status=target,
                approval_chain=advanced,
                approval_history=history,
                audit_log=draft.audit_log + (
                    self._audit(audit_action, actor, draft.status, target, notes, now),
                ),
            )
            return _Outcome(
                state=replace(state, draft=updated),
                revision=updated,
                log_event=log_event,
                log_extra={
                    "level": actor_step.level,
                    "outcome": advanced.outcome.value,
                    "cycle_outcome": cycle_outcome.value,
                },
                events=(self._event(
                    event_type, updated, actor, now, {"level": actor_step.level},
                ),),
            )

        return self._run(order_number, action, actor, mutate)

    # =====================================================================
    # Sending and confirmation
    # =====================================================================

    def send_onward(self, order_number: str, actor: CurrentUser) -> Revision:
        """Send an approved revision to the counterparty."""

        def mutate(state: OrderRevisionState) -> _Outcome:
            draft = self._require_draft(state, "send")
            if not self._permissions(state, actor).can_send_onward:
                raise InvalidTransitionError(
                    "send", draft.status.value, "revision is not approved", actor.user_id,
                )
            target = self._resolve(draft, "send", actor)
            now = self._clock.now()
            updated = replace(
                draft,
                status=target,
                audit_log=draft.audit_log + (
                    self._audit(AuditAction.SENT, actor, draft.status, target, None, now),
                ),
            )
            return _Outcome(
                state=replace(state, draft=updated),
                revision=updated,
                log_event="revision_sent",
                log_extra={"version": updated.version, "skipped_approval": False},
                events=(self._event(
                    RevisionEventType.SENT, updated, actor, now, {"skipped_approval": False},
                ),),
            )

        return self._run(order_number, "send", actor, mutate)

    def skip_approval_and_send(self, order_number: str, actor: CurrentUser) -> Revision:
        """draft -> approved -> sent in one step when no approval is required."""

        def mutate(state: OrderRevisionState) -> _Outcome:
            draft = self._require_draft(state, "skip_approval")
            if not self._permissions(state, actor).can_skip_approval:
                raise InvalidTransitionError(
                    "skip_approval", draft.status.value,
                    self._skip_refusal(state, draft, actor), actor.user_id,
                )
            approved = self._resolve(draft, "skip_approval", actor, {
                HAS_CHANGES.name: bool(draft.changes),
                APPROVAL_NOT_REQUIRED.name: not self._requires_approval(state),
            })
            sent = self._resolve(replace(draft, status=approved), "send", actor)
            now = self._clock.now()
            updated = replace(
                draft,
                status=sent,
                audit_log=draft.audit_log + (
                    self._audit(
                        AuditAction.APPROVED, actor, draft.status, approved,
                        "Approval not required", now,
                    ),
                    self._audit(
                        AuditAction.SENT, actor, approved, sent,
                        "Sent directly (approval not required)", now,
                    ),
                ),
            )
            return _Outcome(
                state=replace(state, draft=updated),
                revision=updated,
                log_event="revision_sent",
                log_extra={"version": updated.version, "skipped_approval": True},
                events=(self._event(
                    RevisionEventType.SENT, updated, actor, now, {"skipped_approval": True},
                ),),
            )

        return self._run(order_number, "skip_approval", actor, mutate)

    def confirm(
        self,
        order_number: str,
        confirmed_by: CurrentUser,
        notes: str | None = None,
    ) -> Revision:
        """Promote a sent revision to the order's active revision."""

        def mutate(state: OrderRevisionState) -> _Outcome:
            draft = self._require_draft(state, "confirm")
            target = self._resolve(draft, "confirm", confirmed_by)
            now = self._clock.now()
            confirmed = replace(
                draft,
                status=target,
                audit_log=draft.audit_log + (
                    self._audit(
                        AuditAction.CONFIRMED, confirmed_by, draft.status, target, notes, now,
                    ),
                ),
            )
            return _Outcome(
                state=replace(
                    state,
                    active_revision=confirmed,
                    draft=None,
                    history=state.history + (confirmed,),
                    open_issues=(),
                ),
                revision=confirmed,
                log_event="revision_confirmed",
                log_extra={
                    "version": confirmed.version,
                    "previous_version": state.active_revision.version,
                },
                events=(self._event(RevisionEventType.CONFIRMED, confirmed, confirmed_by, now),),
            )

        return self._run(order_number, "confirm", confirmed_by, mutate)

    # =====================================================================
    # Internals
    # =====================================================================

    def _run(
        self,
        order_number: str,
        action: str,
        actor: CurrentUser,
        mutate: Callable[[OrderRevisionState], _Outcome],
    ) -> Revision | None:
        with LogContext.bind(order_number=order_number, actor_id=actor.user_id):
            with self._locks.hold(order_number):
                state = self._repository.load(order_number)
                try:
                    outcome = mutate(state)
                except RevisionKernelError as exc:
                    logger.warning(
                        "revision_action_refused",
                        extra={
                            "action": action,
                            "error_code": exc.code,
                            "reason": str(exc),
                        },
                    )
                    raise
                if outcome.changed:
                    self._repository.save(outcome.state)

            revision_id = outcome.revision.revision_id if outcome.revision else None
            with LogContext.bind(revision_id=revision_id):
                logger.info(outcome.log_event, extra=outcome.log_extra)
            self._dispatcher.dispatch(outcome.events)
        return outcome.revision

    def _require_draft(self, state: OrderRevisionState, action: str) -> Revision:
        if state.draft is None:
            raise DraftNotFoundError(state.order_number, action)
        return state.draft

    def _resolve(
        self,
        revision: Revision,
        action: str,
        actor: CurrentUser,
        facts: Mapping[str, bool] | None = None,
    ) -> RevisionStatus:
        transition = find_transition(self._workflow, revision.status.value, action)
        if transition is None:
            raise InvalidTransitionError(
                action, revision.status.value,
                f"no '{action}' transition from {revision.status.value}", actor.user_id,
            )
        guard = unmet_guard(transition, facts or {})
        if guard is not None:
            raise InvalidTransitionError(
                action, revision.status.value,
                f"guard {guard.name} not met: {guard.description}", actor.user_id,
            )
        return RevisionStatus(transition.to_state)

    @staticmethod
    def _check_editable(draft: Revision, actor: CurrentUser, action: str) -> None:
        if actor.is_approver:
            raise InvalidTransitionError(
                action, draft.status.value, "approvers cannot edit revisions", actor.user_id,
            )
        if draft.status not in EDITABLE_STATUSES:
            raise InvalidTransitionError(
                action, draft.status.value,
                "revision is only editable in draft or rejected", actor.user_id,
            )

    def _with_changes(
        self,
        state: OrderRevisionState,
        draft: Revision,
        changes: tuple[RevisionChange, ...],
    ) -> Revision:
        base = draft.base_version or state.active_revision.version
        return replace(
            draft,
            changes=changes,
            version=next_version(base, has_critical_change(changes)),
            changes_summary=summarize_changes(changes),
        )

    def _cost_delta(self, state: OrderRevisionState) -> CostDelta | None:
        if state.draft is None:
            return None
        return self._evaluate_cost_delta(
            original_total=state.active_revision.total,
            current_total=state.draft.total,
            policy=self._cost_threshold,
        )

    def _requires_approval(self, state: OrderRevisionState) -> bool:
        return derive_requires_approval(state.draft, self._cost_delta(state))

    def _permissions(self, state: OrderRevisionState, user: CurrentUser) -> RevisionPermissions:
        draft = state.draft
        return compute_permissions(
            user,
            draft,
            draft.approval_chain if draft is not None else None,
            requires_approval=draft is not None and self._requires_approval(state),
        )

    def _submit_refusal(
        self, state: OrderRevisionState, draft: Revision, actor: CurrentUser,
    ) -> str:
        if actor.is_approver:
            return "approvers cannot submit revisions"
        if draft.status not in EDITABLE_STATUSES:
            return f"revision is {draft.status.value}"
        if not draft.changes:
            return "no changes recorded"
        return "approval is not required; skip approval and send instead"

    def _skip_refusal(
        self, state: OrderRevisionState, draft: Revision, actor: CurrentUser,
    ) -> str:
        if actor.is_approver:
            return "approvers cannot send revisions"
        if draft.status != RevisionStatus.DRAFT:
            return f"revision is {draft.status.value}"
        if not draft.changes:
            return "no changes recorded"
        return "approval is required"

    def _audit(
        self,
        action: AuditAction,
        actor: CurrentUser,
        from_status: RevisionStatus | None,
        to_status: RevisionStatus,
        notes: str | None,
        now: datetime,
    ) -> AuditLogEntry:
        return AuditLogEntry(
            entry_id=self._ids.new_id(),
            action=action,
            date=now,
            user_id=actor.user_id,
            user=actor.name,
            role=actor.role,
            from_status=from_status,
            to_status=to_status,
            notes=notes,
        )

    def _event(
        self,
        event_type: RevisionEventType,
        revision: Revision,
        actor: CurrentUser,
        now: datetime,
        payload: dict[str, Any] | None = None,
    ) -> RevisionEvent:
        return RevisionEvent(
            event_id=self._ids.new_id(),
            event_type=event_type,
            order_number=revision.order_number,
            revision_id=revision.revision_id,
            version=revision.version,
            status=revision.status.value,
            actor_id=actor.user_id,
            occurred_at=now,
            payload=payload or {},
        )


def _sorted_lines(lines: Sequence[LineItem]) -> tuple[LineItem, ...]:
    ids = [line.line_id for line in lines]
    if len(set(ids)) != len(ids):
        raise ValueError("Line items must have unique line_id values")
    return tuple(sorted(lines, key=lambda line: line.line_number))


def _actor_step(chain: ApprovalChain, user_id: str) -> ApprovalStep | None:
    """
    The step ``user_id`` is deciding.

    An approver may hold several levels: the current step wins when it is
    theirs, then their earliest pending step, so an out-of-turn decision
    still reaches ``advance_chain`` and is refused there.
    """
    owned = [s for s in chain.steps if s.approver.approver_id == user_id]
    if not owned:
        return None
    current = chain.current_step
    if current is not None and current.approver.approver_id == user_id:
        return current
    pending = [s for s in owned if s.is_pending]
    return (pending or owned)[0]


def _field_name(field: str | ChangeField) -> str:
    return field.value if isinstance(field, ChangeField) else field


def _default_description(change: ChangeInput) -> str:
    label = _field_name(change.field).replace("_", " ")
    prefix = f"Line {change.line_number}: " if change.line_number is not None else ""
    return f"{prefix}Changed {label} from {change.previous_value} to {change.new_value}"
