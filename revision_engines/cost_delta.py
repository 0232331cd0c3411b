"""
revision_engines.cost_delta -- Cost-delta evaluation against a threshold policy.

Responsibility:
    Compare an active order total with a draft total and decide whether the
    difference is large enough to require approval.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The lifecycle service
    receives ``evaluate_cost_delta`` (or any callable with the same
    signature) as an injected collaborator.

Invariants enforced:
    - Decimal-only arithmetic; ``delta`` is rounded half-up to cents.
    - ``percent_change`` is ``|delta / original_total|`` as a fraction
      (0.05 == 5%), and 0 when the original total is 0.
    - Thresholds are strict: a change exactly at the threshold does not
      exceed it.
    - ``OR`` mode exceeds when either threshold is exceeded, ``AND`` mode
      only when both are.

Failure modes:
    - ValueError on a negative threshold.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from revision_engines.tracer import traced_engine

CENT = Decimal("0.01")


class ThresholdMode(str, Enum):
    """How the percent and absolute thresholds combine."""

    OR = "OR"
    AND = "AND"


@dataclass(frozen=True)
class CostThresholdPolicy:
    """Approval threshold for cost changes.

    ``percent_threshold`` is a fraction (``Decimal("0.05")`` is 5%).
    """

    percent_threshold: Decimal
    absolute_threshold: Decimal
    mode: ThresholdMode = ThresholdMode.OR

    def __post_init__(self) -> None:
        if self.percent_threshold < 0:
            raise ValueError(
                f"percent_threshold must be non-negative, got {self.percent_threshold}"
            )
        if self.absolute_threshold < 0:
            raise ValueError(
                f"absolute_threshold must be non-negative, got {self.absolute_threshold}"
            )


PURCHASE_ORDER_THRESHOLD = CostThresholdPolicy(
    percent_threshold=Decimal("0.05"),
    absolute_threshold=Decimal("1000"),
    mode=ThresholdMode.OR,
)

SALES_ORDER_THRESHOLD = CostThresholdPolicy(
    percent_threshold=Decimal("0.03"),
    absolute_threshold=Decimal("500"),
    mode=ThresholdMode.OR,
)


@dataclass(frozen=True)
class CostDelta:
    """Result of comparing two order totals."""

    original_total: Decimal
    current_total: Decimal
    delta: Decimal
    percent_change: Decimal
    exceeds_threshold: bool
    exceeds_percent_threshold: bool
    exceeds_absolute_threshold: bool

    @property
    def direction(self) -> str:
        if self.delta > 0:
            return "increase"
        if self.delta < 0:
            return "decrease"
        return "unchanged"


@traced_engine(
    "cost_delta", "1.0",
    fingerprint_fields=("original_total", "current_total", "policy"),
)
def evaluate_cost_delta(
    *,
    original_total: Decimal,
    current_total: Decimal,
    policy: CostThresholdPolicy,
) -> CostDelta:
    """Evaluate the change between two totals under ``policy``."""
    delta = (current_total - original_total).quantize(CENT, rounding=ROUND_HALF_UP)
    if original_total == 0:
        percent_change = Decimal("0")
    else:
        percent_change = abs(delta / original_total)

    exceeds_percent = percent_change > policy.percent_threshold
    exceeds_absolute = abs(delta) > policy.absolute_threshold

    if policy.mode == ThresholdMode.AND:
        exceeds = exceeds_percent and exceeds_absolute
    else:
        exceeds = exceeds_percent or exceeds_absolute

    return CostDelta(
        original_total=original_total,
        current_total=current_total,
        delta=delta,
        percent_change=percent_change,
        exceeds_threshold=exceeds,
        exceeds_percent_threshold=exceeds_percent,
        exceeds_absolute_threshold=exceeds_absolute,
    )
