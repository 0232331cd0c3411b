"""
Tests for the engine tracer decorator.

Verifies that traced engines emit a REVISION_ENGINE_TRACE record with a
stable fingerprint of the named keyword arguments.
"""

from decimal import Decimal

import pytest

from revision_engines.cost_delta import PURCHASE_ORDER_THRESHOLD, evaluate_cost_delta
from revision_engines.tracer import compute_input_fingerprint, traced_engine


class TestComputeInputFingerprint:

    def test_deterministic(self):
        kwargs = {"a": Decimal("1.50"), "b": ("x", "y")}
        first = compute_input_fingerprint(("a", "b"), kwargs)
        second = compute_input_fingerprint(("a", "b"), dict(kwargs))
        assert first == second
        assert len(first) == 16

    def test_sensitive_to_values(self):
        one = compute_input_fingerprint(("a",), {"a": 1})
        two = compute_input_fingerprint(("a",), {"a": 2})
        assert one != two

    def test_missing_field_is_null(self):
        assert compute_input_fingerprint(("a",), {}) == compute_input_fingerprint(
            ("a",), {"a": None}
        )

    def test_dict_order_irrelevant(self):
        one = compute_input_fingerprint(("m",), {"m": {"x": 1, "y": 2}})
        two = compute_input_fingerprint(("m",), {"m": {"y": 2, "x": 1}})
        assert one == two


class TestTracedEngine:

    def test_emits_trace_record(self, captured_logs):
        @traced_engine("sample_engine", "2.1", fingerprint_fields=("value",))
        def double(*, value):
            return value * 2

        assert double(value=21) == 42

        traces = [r for r in captured_logs() if r["message"] == "REVISION_ENGINE_TRACE"]
        assert len(traces) == 1
        trace = traces[0]
        assert trace["engine_name"] == "sample_engine"
        assert trace["engine_version"] == "2.1"
        assert trace["input_fingerprint"] == compute_input_fingerprint(("value",), {"value": 21})
        assert trace["duration_ms"] >= 0

    def test_wraps_preserves_name(self):
        @traced_engine("x", "1.0")
        def some_engine():
            """Doc."""

        assert some_engine.__name__ == "some_engine"
        assert some_engine.__doc__ == "Doc."

    def test_real_engine_is_traced(self, captured_logs):
        evaluate_cost_delta(
            original_total=Decimal("100"),
            current_total=Decimal("110"),
            policy=PURCHASE_ORDER_THRESHOLD,
        )

        names = [
            r["engine_name"] for r in captured_logs()
            if r["message"] == "REVISION_ENGINE_TRACE"
        ]
        assert names == ["cost_delta"]

    def test_exception_propagates_without_trace(self, captured_logs):
        @traced_engine("failing", "1.0")
        def boom():
            raise ValueError("bad input")

        with pytest.raises(ValueError):
            boom()

        assert not [r for r in captured_logs() if r["message"] == "REVISION_ENGINE_TRACE"]
