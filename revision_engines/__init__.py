"""
Module: revision_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines used by
    the revision lifecycle service.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import revision_kernel/domain types and kernel exceptions.
    MUST NOT import revision_kernel.services, db, models or revision_config.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()``; timestamps and ids are
      passed in by the service.
    - Decimal-only arithmetic for money.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from revision_engines.change_detection import detect_changes
    from revision_engines.versioning import next_version
    from revision_engines.approval_chain import build_chain, advance_chain
    from revision_engines.permissions import compute_permissions
    from revision_engines.cost_delta import evaluate_cost_delta
"""

from revision_engines.approval_chain import advance_chain, build_chain
from revision_engines.change_detection import (
    classify_field,
    detect_changes,
    has_critical_change,
    summarize_changes,
)
from revision_engines.cost_delta import (
    PURCHASE_ORDER_THRESHOLD,
    SALES_ORDER_THRESHOLD,
    CostDelta,
    CostThresholdPolicy,
    ThresholdMode,
    evaluate_cost_delta,
)
from revision_engines.permissions import (
    RevisionPermissions,
    compute_permissions,
    requires_approval,
)
from revision_engines.versioning import (
    INITIAL_VERSION,
    compare_versions,
    next_version,
    parse_version,
)

__all__ = [
    "advance_chain",
    "build_chain",
    "classify_field",
    "detect_changes",
    "has_critical_change",
    "summarize_changes",
    "PURCHASE_ORDER_THRESHOLD",
    "SALES_ORDER_THRESHOLD",
    "CostDelta",
    "CostThresholdPolicy",
    "ThresholdMode",
    "evaluate_cost_delta",
    "RevisionPermissions",
    "compute_permissions",
    "requires_approval",
    "INITIAL_VERSION",
    "compare_versions",
    "next_version",
    "parse_version",
]
