"""
Tests for the cost-delta engine.

Tests cover:
- Percent and absolute thresholds (strict comparison)
- OR / AND combination modes
- Zero original total
- Cent rounding of the delta
- Policy validation and presets
"""

from decimal import Decimal

import pytest

from revision_engines.cost_delta import (
    PURCHASE_ORDER_THRESHOLD,
    SALES_ORDER_THRESHOLD,
    CostThresholdPolicy,
    ThresholdMode,
    evaluate_cost_delta,
)


def evaluate(original: str, current: str, policy=PURCHASE_ORDER_THRESHOLD):
    return evaluate_cost_delta(
        original_total=Decimal(original),
        current_total=Decimal(current),
        policy=policy,
    )


class TestPresets:

    def test_purchase_order_preset(self):
        assert PURCHASE_ORDER_THRESHOLD.percent_threshold == Decimal("0.05")
        assert PURCHASE_ORDER_THRESHOLD.absolute_threshold == Decimal("1000")
        assert PURCHASE_ORDER_THRESHOLD.mode == ThresholdMode.OR

    def test_sales_order_preset(self):
        assert SALES_ORDER_THRESHOLD.percent_threshold == Decimal("0.03")
        assert SALES_ORDER_THRESHOLD.absolute_threshold == Decimal("500")

    def test_negative_threshold_rejected(self):
        with pytest.raises(ValueError):
            CostThresholdPolicy(Decimal("-0.01"), Decimal("100"))
        with pytest.raises(ValueError):
            CostThresholdPolicy(Decimal("0.01"), Decimal("-1"))


class TestEvaluateCostDelta:

    def test_small_increase_within_threshold(self):
        result = evaluate("6080.00", "6380.00")

        assert result.delta == Decimal("300.00")
        assert not result.exceeds_percent_threshold
        assert not result.exceeds_absolute_threshold
        assert not result.exceeds_threshold
        assert result.direction == "increase"

    def test_percent_threshold_exceeded(self):
        result = evaluate("6080.00", "6400.00")

        assert result.exceeds_percent_threshold
        assert not result.exceeds_absolute_threshold
        assert result.exceeds_threshold

    def test_absolute_threshold_exceeded_in_or_mode(self):
        result = evaluate("100000.00", "101200.00")

        assert not result.exceeds_percent_threshold
        assert result.exceeds_absolute_threshold
        assert result.exceeds_threshold

    def test_and_mode_requires_both(self):
        policy = CostThresholdPolicy(Decimal("0.05"), Decimal("1000"), ThresholdMode.AND)

        assert not evaluate("100000.00", "101200.00", policy).exceeds_threshold
        assert evaluate("10000.00", "11500.00", policy).exceeds_threshold

    def test_exactly_at_threshold_does_not_exceed(self):
        at_percent = evaluate("1000.00", "1050.00")
        at_absolute = evaluate("100000.00", "101000.00")

        assert at_percent.percent_change == Decimal("0.05")
        assert not at_percent.exceeds_threshold
        assert not at_absolute.exceeds_threshold

    def test_decrease_uses_magnitude(self):
        result = evaluate("6080.00", "5000.00")

        assert result.delta == Decimal("-1080.00")
        assert result.exceeds_absolute_threshold
        assert result.exceeds_percent_threshold
        assert result.direction == "decrease"

    def test_zero_original_total(self):
        result = evaluate("0", "1500.00")

        assert result.percent_change == Decimal("0")
        assert not result.exceeds_percent_threshold
        assert result.exceeds_absolute_threshold

    def test_no_change(self):
        result = evaluate("6080.00", "6080.00")
        assert result.delta == Decimal("0.00")
        assert result.direction == "unchanged"
        assert not result.exceeds_threshold

    def test_delta_rounded_half_up_to_cents(self):
        result = evaluate("10.000", "10.005")
        assert result.delta == Decimal("0.01")
