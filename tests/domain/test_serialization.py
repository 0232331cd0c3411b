"""
Tests for JSON-safe serialization of revision state.

The SQLAlchemy repository stores revisions as JSON payloads, so a state
must survive ``json.dumps``/``json.loads`` unchanged.
"""

import json
from dataclasses import replace
from datetime import UTC, date, datetime
from decimal import Decimal

from revision_kernel.domain.serialization import (
    decode_value,
    encode_value,
    revision_from_dict,
    revision_to_dict,
    state_from_dict,
    state_to_dict,
)


class TestValueEncoding:

    def test_decimal_keeps_scale(self):
        decoded = decode_value(encode_value(Decimal("40.00")))
        assert decoded == Decimal("40.00")
        assert str(decoded) == "40.00"

    def test_dates_and_datetimes(self):
        moment = datetime(2024, 3, 1, 9, 30, tzinfo=UTC)
        assert decode_value(encode_value(moment)) == moment
        assert decode_value(encode_value(date(2024, 4, 15))) == date(2024, 4, 15)

    def test_plain_values_untouched(self):
        assert encode_value("text") == "text"
        assert encode_value(None) is None
        assert decode_value(7) == 7


class TestStateSerialization:

    def test_pending_state_survives_json(
        self, service, order_with_draft, standard_lines, purchasing_agent
    ):
        lines = (replace(standard_lines[0], quantity=Decimal("120")), standard_lines[1])
        service.update_line_items(order_with_draft, lines, purchasing_agent)
        service.submit_for_approval(order_with_draft, purchasing_agent, notes="Volume increase")
        state = service._repository.load(order_with_draft)

        restored = state_from_dict(json.loads(json.dumps(state_to_dict(state))))

        assert restored == state
        assert restored.draft.approval_chain.current_level == 1
        assert restored.draft.changes[0].new_value == Decimal("120")

    def test_revision_without_audit_log(self, service, opened_order):
        active = service.get_active(opened_order)

        data = revision_to_dict(active, include_audit_log=False)

        assert "audit_log" not in data
        restored = revision_from_dict(data, audit_log=active.audit_log)
        assert restored == active
