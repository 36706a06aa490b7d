"""Tests for Dispute creation, admin management and resolution."""

import pytest

from marketplace.dispute.dispute import (
    Dispute,
    DisputePriority,
    DisputeStatus,
    RefundStatus,
)
from marketplace.dispute.events import (
    DisputeClosed,
    DisputeEscalated,
    DisputeOpened,
    DisputeResolved,
    DisputeStatusChanged,
)
from marketplace.errors import StateConflictError, ValidationError

DESCRIPTION = "The blender arrived with a cracked jug and does not work."


def _dispute(dispute_type="quality", **overrides):
    defaults = {
        "order_id": "order-1",
        "buyer_id": "buyer-1",
        "vendor_id": "vendor-a",
        "dispute_type": dispute_type,
        "description": DESCRIPTION,
        "opened_by": "buyer-1",
        "opened_by_role": "buyer",
        "amount": 80.0,
    }
    defaults.update(overrides)
    return Dispute.open(**defaults)


class TestOpenDispute:
    def test_open_defaults(self):
        dispute = _dispute()

        assert dispute.id.startswith("dsp_")
        assert dispute.status == DisputeStatus.OPEN.value
        assert dispute.priority == DisputePriority.MEDIUM.value
        assert dispute.refund_status == RefundStatus.NONE.value
        assert isinstance(dispute._events[-1], DisputeOpened)

    def test_fraud_is_urgent(self):
        assert _dispute("fraud").priority == DisputePriority.URGENT.value

    def test_short_description_rejected(self):
        with pytest.raises(ValidationError) as exc:
            _dispute(description="Broken item")
        assert "description" in exc.value.messages

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            _dispute("mystery")

    def test_evidence_is_kept(self):
        dispute = _dispute(evidence=["https://cdn.example.com/crack.jpg"])
        assert dispute.evidence_uris == ["https://cdn.example.com/crack.jpg"]


class TestAdminManagement:
    def test_status_moves_freely_among_active_states(self):
        dispute = _dispute()
        dispute.update_status("investigating", "admin-1")
        dispute.update_status("escalated", "admin-1")
        dispute.update_status("open", "admin-1")

        assert dispute.status == DisputeStatus.OPEN.value
        changes = [e for e in dispute._events if isinstance(e, DisputeStatusChanged)]
        assert [c.to_status for c in changes] == ["investigating", "escalated", "open"]

    def test_status_update_cannot_resolve(self):
        with pytest.raises(ValidationError):
            _dispute().update_status("resolved", "admin-1")

    def test_settled_dispute_cannot_be_updated(self):
        dispute = _dispute()
        dispute.close("admin-1", "Buyer withdrew the complaint")
        with pytest.raises(StateConflictError):
            dispute.update_status("investigating", "admin-1")
        with pytest.raises(StateConflictError):
            dispute.update_priority("high", "admin-1")

    def test_reprioritise(self):
        dispute = _dispute()
        dispute.update_priority("high", "admin-1")
        assert dispute.priority == DisputePriority.HIGH.value

    def test_escalate_sets_urgent(self):
        dispute = _dispute()
        dispute.escalate("admin-1", "Vendor unresponsive")

        assert dispute.status == DisputeStatus.ESCALATED.value
        assert dispute.priority == DisputePriority.URGENT.value
        assert dispute.escalated_by == "admin-1"
        assert isinstance(dispute._events[-1], DisputeEscalated)

    def test_escalate_requires_reason(self):
        with pytest.raises(ValidationError):
            _dispute().escalate("admin-1", "  ")

    def test_close_from_escalated(self):
        dispute = _dispute()
        dispute.escalate("admin-1", "Vendor unresponsive")
        dispute.close("admin-1", "Handled offline")

        assert dispute.status == DisputeStatus.CLOSED.value
        assert dispute.closure_reason == "Handled offline"
        assert isinstance(dispute._events[-1], DisputeClosed)

    def test_close_requires_reason(self):
        with pytest.raises(ValidationError):
            _dispute().close("admin-1", "")


class TestResolution:
    def test_resolve_with_partial_refund(self):
        dispute = _dispute()
        dispute.update_status("investigating", "admin-1")
        dispute.resolve("partial_refund", "Refund the jug", "admin-1", order_total=200.0, refund_amount=80.0)

        assert dispute.status == DisputeStatus.RESOLVED.value
        assert dispute.refund_amount == 80.0
        assert dispute.resolved_at is not None
        assert isinstance(dispute._events[-1], DisputeResolved)

    def test_refund_amount_required_for_refunds(self):
        with pytest.raises(ValidationError) as exc:
            _dispute().resolve("full_refund", "Refund it", "admin-1", order_total=200.0)
        assert "refund_amount" in exc.value.messages

    def test_refund_amount_bounded_by_order_total(self):
        with pytest.raises(ValidationError):
            _dispute().resolve("full_refund", "Refund it", "admin-1", order_total=200.0, refund_amount=250.0)

    def test_refund_amount_must_be_positive(self):
        with pytest.raises(ValidationError):
            _dispute().resolve("partial_refund", "Refund it", "admin-1", order_total=200.0, refund_amount=0)

    def test_notes_required(self):
        with pytest.raises(ValidationError) as exc:
            _dispute().resolve("no_action", "", "admin-1", order_total=200.0)
        assert "resolution" in exc.value.messages

    def test_non_refund_resolution_drops_amount(self):
        dispute = _dispute()
        dispute.resolve("replacement", "Send a new jug", "admin-1", order_total=200.0, refund_amount=50.0)
        assert dispute.refund_amount is None

    def test_escalated_dispute_cannot_be_resolved_directly(self):
        dispute = _dispute()
        dispute.escalate("admin-1", "Vendor unresponsive")
        with pytest.raises(StateConflictError):
            dispute.resolve("no_action", "Nothing to do", "admin-1", order_total=200.0)

    def test_escalated_dispute_resolves_after_moving_back(self):
        dispute = _dispute()
        dispute.escalate("admin-1", "Vendor unresponsive")
        dispute.update_status("investigating", "admin-1")
        dispute.resolve("no_action", "Nothing to do", "admin-1", order_total=200.0)
        assert dispute.status == DisputeStatus.RESOLVED.value

    def test_resolved_dispute_cannot_be_closed(self):
        dispute = _dispute()
        dispute.resolve("no_action", "Nothing to do", "admin-1", order_total=200.0)
        with pytest.raises(StateConflictError):
            dispute.close("admin-1", "Done")
