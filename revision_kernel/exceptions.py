"""
Typed Exception Hierarchy for the Revision Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the revision engine (API handlers, UI adapters) must turn a
refused action into a user-visible validation message.  Matching on message
text is fragile, so every failure is:

  1. A TYPED exception class (catch by type, not message)
  2. Carrying a class-level CODE attribute (machine-readable, API-safe)
  3. Carrying structured DATA as attributes (not just a message string)

Example:
    try:
        service.approve(order_number, user, notes="ok")
    except InvalidTransitionError as e:
        return {"error": e.code, "action": e.action, "status": e.current_status}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    RevisionKernelError (base)
    |
    +-- TransitionError
    |   +-- InvalidTransitionError
    |
    +-- DraftError
    |   +-- ConflictingDraftError
    |   +-- DraftNotFoundError
    |
    +-- OrderError
    |   +-- OrderNotFoundError
    |   +-- OrderAlreadyExistsError
    |   +-- IssueNotFoundError
    |
    +-- ApprovalChainError
    |   +-- StaleApprovalStepError
    |   |   +-- OutOfOrderApprovalError
    |   +-- InvalidApprovalChainError
    |
    +-- VersionError
    |   +-- InvalidVersionError
    |
    +-- ConcurrencyError
    |   +-- OrderBusyError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                   | When Raised
-------------|------------------------|------------------------------------------
Transition   | INVALID_TRANSITION     | Action not permitted for status/role
-------------|------------------------|------------------------------------------
Draft        | CONFLICTING_DRAFT      | Second draft-family revision for an order
             | DRAFT_NOT_FOUND        | Operation needs a draft, none exists
-------------|------------------------|------------------------------------------
Order        | ORDER_NOT_FOUND        | Unknown order number
             | ORDER_ALREADY_EXISTS   | open_order() on an existing order
             | ISSUE_NOT_FOUND        | Unknown open issue id
-------------|------------------------|------------------------------------------
Approval     | STALE_APPROVAL_STEP    | Step already decided or chain complete
             | OUT_OF_ORDER_APPROVAL  | Level is not the chain's current level
             | INVALID_APPROVAL_CHAIN | No approvers / duplicate levels
-------------|------------------------|------------------------------------------
Version      | INVALID_VERSION        | Malformed major.minor string
-------------|------------------------|------------------------------------------
Concurrency  | ORDER_BUSY             | Order lock not acquired within timeout
-------------|------------------------|------------------------------------------
Immutability | IMMUTABILITY_VIOLATION | Rewriting an append-only audit record

All of these are recoverable at the caller.  The engine computes the new
state completely before storing it, so a raised error never leaves a
partially mutated revision behind.
"""


class RevisionKernelError(Exception):
    """
    Base exception for all revision kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "REVISION_KERNEL_ERROR"


# Transition-related exceptions


class TransitionError(RevisionKernelError):
    """Base exception for refused workflow actions."""

    code: str = "TRANSITION_ERROR"


class InvalidTransitionError(TransitionError):
    """
    Action is not permitted from the revision's current status or for the
    acting user's role (approving out of turn, submitting with no changes,
    sending before approval, ...).
    """

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        action: str,
        current_status: str | None,
        reason: str,
        actor_id: str | None = None,
    ):
        self.action = action
        self.current_status = current_status
        self.reason = reason
        self.actor_id = actor_id
        super().__init__(
            f"Cannot {action} revision in status {current_status!s}: {reason}"
        )


# Draft-related exceptions


class DraftError(RevisionKernelError):
    """Base exception for draft-revision errors."""

    code: str = "DRAFT_ERROR"


class ConflictingDraftError(DraftError):
    """
    An order already has a draft-family revision.

    At most one revision per order may be in draft, rejected,
    pending_approval, approved or sent at a time.
    """

    code: str = "CONFLICTING_DRAFT"

    def __init__(self, order_number: str, existing_revision_id: str, existing_status: str):
        self.order_number = order_number
        self.existing_revision_id = existing_revision_id
        self.existing_status = existing_status
        super().__init__(
            f"Order {order_number} already has pending revision "
            f"{existing_revision_id} in status {existing_status}"
        )


class DraftNotFoundError(DraftError):
    """Operation requires a draft revision but the order has none."""

    code: str = "DRAFT_NOT_FOUND"

    def __init__(self, order_number: str, action: str):
        self.order_number = order_number
        self.action = action
        super().__init__(
            f"Cannot {action}: order {order_number} has no pending revision"
        )


# Order-related exceptions


class OrderError(RevisionKernelError):
    """Base exception for order lookup errors."""

    code: str = "ORDER_ERROR"


class OrderNotFoundError(OrderError):
    """No revision state exists for the order number."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_number: str):
        self.order_number = order_number
        super().__init__(f"Order not found: {order_number}")


class OrderAlreadyExistsError(OrderError):
    """open_order() called for an order that is already tracked."""

    code: str = "ORDER_ALREADY_EXISTS"

    def __init__(self, order_number: str):
        self.order_number = order_number
        super().__init__(f"Order already exists: {order_number}")


class IssueNotFoundError(OrderError):
    """Open issue with given id does not exist on the order."""

    code: str = "ISSUE_NOT_FOUND"

    def __init__(self, order_number: str, issue_id: str):
        self.order_number = order_number
        self.issue_id = issue_id
        super().__init__(f"Issue {issue_id} not found on order {order_number}")


# Approval chain exceptions


class ApprovalChainError(RevisionKernelError):
    """Base exception for approval chain errors."""

    code: str = "APPROVAL_CHAIN_ERROR"


class StaleApprovalStepError(ApprovalChainError):
    """
    Advancing a chain at a step that can no longer be decided.

    Raised when the chain is already complete or the step at the requested
    level is no longer pending.
    """

    code: str = "STALE_APPROVAL_STEP"

    def __init__(self, chain_id: str, level: int, reason: str):
        self.chain_id = chain_id
        self.level = level
        self.reason = reason
        super().__init__(
            f"Approval chain {chain_id} cannot advance level {level}: {reason}"
        )


class OutOfOrderApprovalError(StaleApprovalStepError):
    """Requested level is not the chain's current level."""

    code: str = "OUT_OF_ORDER_APPROVAL"

    def __init__(self, chain_id: str, level: int, current_level: int):
        self.current_level = current_level
        super().__init__(
            chain_id,
            level,
            f"out of order, current level is {current_level}",
        )


class InvalidApprovalChainError(ApprovalChainError):
    """Approver list cannot form a chain (empty, duplicate levels)."""

    code: str = "INVALID_APPROVAL_CHAIN"

    def __init__(self, revision_id: str, reason: str):
        self.revision_id = revision_id
        self.reason = reason
        super().__init__(
            f"Cannot build approval chain for revision {revision_id}: {reason}"
        )


# Version exceptions


class VersionError(RevisionKernelError):
    """Base exception for version string errors."""

    code: str = "VERSION_ERROR"


class InvalidVersionError(VersionError):
    """Version string is not a dotted major.minor pair."""

    code: str = "INVALID_VERSION"

    def __init__(self, version: str):
        self.version = version
        super().__init__(f"Invalid revision version: {version!r}")


# Concurrency exceptions


class ConcurrencyError(RevisionKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OrderBusyError(ConcurrencyError):
    """
    Another mutating operation holds the order's lock.

    Mutations against one order are serialized; a caller that cannot
    acquire the lock within the configured timeout is refused rather than
    interleaved.
    """

    code: str = "ORDER_BUSY"

    def __init__(self, order_number: str, timeout_seconds: float):
        self.order_number = order_number
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Order {order_number} is busy: lock not acquired "
            f"within {timeout_seconds}s"
        )


# Immutability exceptions


class ImmutabilityError(RevisionKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify immutable {entity_type} {entity_id}: {reason}"
        )
