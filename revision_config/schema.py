"""
Revision Configuration Schema.

Defines the structure and sensible defaults for the revision engine:
which approvers route a submitted revision, the cost-delta threshold that
forces approval, and operational knobs (lock timeout, issue raising,
event dispatch).  Actual values are loaded from YAML at runtime.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Self

from revision_engines.cost_delta import (
    PURCHASE_ORDER_THRESHOLD,
    SALES_ORDER_THRESHOLD,
    CostThresholdPolicy,
    ThresholdMode,
)
from revision_kernel.domain.approval import Approver
from revision_kernel.logging_config import get_logger

logger = get_logger("config.schema")


class OrderKind(str, Enum):
    """Which side of the trade the orders are on."""

    PURCHASE = "purchase"
    SALES = "sales"


PURCHASE_ORDER_APPROVERS: tuple[Approver, ...] = (
    Approver("approver-1", "Michael Chen", "Purchasing Manager", 1,
             "michael.chen@company.com"),
    Approver("approver-2", "Jennifer Martinez", "Finance Director", 2,
             "jennifer.martinez@company.com"),
    Approver("approver-3", "Robert Johnson", "VP Operations", 3,
             "robert.johnson@company.com"),
)

SALES_ORDER_APPROVERS: tuple[Approver, ...] = (
    Approver("sales-approver-1", "Sales Manager", "sales_manager", 1),
    Approver("sales-approver-2", "Sales Director", "sales_director", 2),
)


@dataclass
class RevisionConfig:
    """
    Configuration schema for the revision engine.

    Defaults describe purchase-order revisions.  Override at instantiation
    or use one of the named constructors:

        config = RevisionConfig.for_sales_orders()
        config = RevisionConfig.from_dict(load_yaml_file(path))
    """

    order_kind: OrderKind = OrderKind.PURCHASE

    # Approval routing
    approvers: tuple[Approver, ...] = field(
        default_factory=lambda: PURCHASE_ORDER_APPROVERS
    )
    cost_threshold: CostThresholdPolicy = PURCHASE_ORDER_THRESHOLD

    # Concurrency
    lock_timeout_seconds: float = 5.0

    # Drafts
    raise_notification_issue: bool = True

    # Events
    dispatch_events_async: bool = False

    def __post_init__(self):
        if self.lock_timeout_seconds <= 0:
            raise ValueError(
                f"lock_timeout_seconds must be positive, got {self.lock_timeout_seconds}"
            )
        levels = [a.level for a in self.approvers]
        if len(set(levels)) != len(levels):
            raise ValueError(f"Duplicate approver levels: {sorted(levels)}")
        logger.info(
            "revision_config_initialized",
            extra={
                "order_kind": self.order_kind.value,
                "approver_count": len(self.approvers),
                "percent_threshold": str(self.cost_threshold.percent_threshold),
                "absolute_threshold": str(self.cost_threshold.absolute_threshold),
                "threshold_mode": self.cost_threshold.mode.value,
                "lock_timeout_seconds": self.lock_timeout_seconds,
                "raise_notification_issue": self.raise_notification_issue,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with purchase-order defaults."""
        logger.info("revision_config_created_with_defaults")
        return cls()

    @classmethod
    def for_purchase_orders(cls) -> Self:
        return cls(
            order_kind=OrderKind.PURCHASE,
            approvers=PURCHASE_ORDER_APPROVERS,
            cost_threshold=PURCHASE_ORDER_THRESHOLD,
        )

    @classmethod
    def for_sales_orders(cls) -> Self:
        return cls(
            order_kind=OrderKind.SALES,
            approvers=SALES_ORDER_APPROVERS,
            cost_threshold=SALES_ORDER_THRESHOLD,
        )

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from a dictionary (e.g., parsed YAML).

        ``order_kind`` is required and selects the preset that unspecified
        keys fall back to.

        Raises:
            KeyError: ``order_kind`` (or a required approver key) is missing.
            ValueError: A value has the wrong shape.
        """
        logger.info(
            "revision_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        kind = OrderKind(data["order_kind"])
        preset = cls.for_sales_orders() if kind == OrderKind.SALES else cls.for_purchase_orders()

        approvers = preset.approvers
        if "approvers" in data:
            approvers = tuple(parse_approver(a) for a in data["approvers"])

        threshold = preset.cost_threshold
        if "cost_threshold" in data:
            threshold = parse_cost_threshold(data["cost_threshold"])

        return cls(
            order_kind=kind,
            approvers=approvers,
            cost_threshold=threshold,
            lock_timeout_seconds=float(
                data.get("lock_timeout_seconds", preset.lock_timeout_seconds)
            ),
            raise_notification_issue=bool(
                data.get("raise_notification_issue", preset.raise_notification_issue)
            ),
            dispatch_events_async=bool(
                data.get("dispatch_events_async", preset.dispatch_events_async)
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_kind": self.order_kind.value,
            "approvers": [
                {
                    "id": a.approver_id,
                    "name": a.name,
                    "role": a.role,
                    "level": a.level,
                    "email": a.email,
                }
                for a in self.approvers
            ],
            "cost_threshold": {
                "percent": str(self.cost_threshold.percent_threshold),
                "absolute": str(self.cost_threshold.absolute_threshold),
                "mode": self.cost_threshold.mode.value,
            },
            "lock_timeout_seconds": self.lock_timeout_seconds,
            "raise_notification_issue": self.raise_notification_issue,
            "dispatch_events_async": self.dispatch_events_async,
        }


def _decimal(value: Any, name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{name} is not a number: {value!r}") from None


def parse_approver(data: dict[str, Any]) -> Approver:
    level = data["level"]
    if not isinstance(level, int) or isinstance(level, bool) or level < 1:
        raise ValueError(f"Approver level must be a positive integer, got {level!r}")
    return Approver(
        approver_id=str(data["id"]),
        name=data["name"],
        role=data["role"],
        level=level,
        email=data.get("email"),
    )


def parse_cost_threshold(data: dict[str, Any]) -> CostThresholdPolicy:
    mode = str(data.get("mode", "OR")).upper()
    try:
        threshold_mode = ThresholdMode(mode)
    except ValueError:
        raise ValueError(f"Unknown threshold mode: {data.get('mode')!r}") from None
    return CostThresholdPolicy(
        percent_threshold=_decimal(data["percent"], "cost_threshold.percent"),
        absolute_threshold=_decimal(data["absolute"], "cost_threshold.absolute"),
        mode=threshold_mode,
    )
