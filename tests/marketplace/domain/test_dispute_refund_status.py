"""Tests for the dispute refund status machine and precondition order."""

import pytest

from marketplace.dispute.dispute import Dispute, RefundStatus
from marketplace.dispute.events import DisputeRefundCompleted, DisputeRefundFailed, DisputeRefundStarted
from marketplace.errors import StateConflictError


def _resolved(resolution_type="partial_refund", refund_amount=80.0, amount=None):
    dispute = Dispute.open(
        order_id="order-1",
        buyer_id="buyer-1",
        vendor_id="vendor-a",
        dispute_type="refund",
        description="Item was not as described in the listing.",
        opened_by="buyer-1",
        opened_by_role="buyer",
        amount=amount,
    )
    dispute.resolve(resolution_type, "Agreed refund", "admin-1", order_total=200.0, refund_amount=refund_amount)
    return dispute


class TestRefundPreconditions:
    def test_unresolved_dispute_is_not_refundable(self):
        dispute = Dispute.open(
            order_id="order-1",
            buyer_id="buyer-1",
            vendor_id="vendor-a",
            dispute_type="refund",
            description="Item was not as described in the listing.",
            opened_by="buyer-1",
            opened_by_role="buyer",
        )
        with pytest.raises(StateConflictError) as exc:
            dispute.assert_refundable()
        assert "must be resolved" in exc.value.message

    def test_non_refund_resolution_is_not_refundable(self):
        dispute = _resolved("replacement")
        with pytest.raises(StateConflictError) as exc:
            dispute.assert_refundable()
        assert "does not call for a refund" in exc.value.message

    def test_processing_is_reported_before_status(self):
        dispute = _resolved()
        dispute.begin_refund(80.0, "admin-1")
        with pytest.raises(StateConflictError) as exc:
            dispute.assert_refundable()
        assert exc.value.message == "Refund is already being processed"

    def test_completed_is_reported_first(self):
        dispute = _resolved()
        dispute.begin_refund(80.0, "admin-1")
        dispute.complete_refund(80.0, "rfd-1", commission_reversed=8.0)
        with pytest.raises(StateConflictError) as exc:
            dispute.assert_refundable()
        assert exc.value.message == "Refund already processed"


class TestRefundAmount:
    def test_request_wins(self):
        assert _resolved().refund_amount_for(50.0, 200.0) == 50.0

    def test_resolved_amount_next(self):
        assert _resolved().refund_amount_for(None, 200.0) == 80.0

    def test_disputed_amount_then_order_total(self):
        dispute = _resolved(resolution_type="partial_refund", refund_amount=60.0, amount=40.0)
        dispute.refund_amount = None
        assert dispute.refund_amount_for(None, 200.0) == 40.0
        dispute.amount = None
        assert dispute.refund_amount_for(None, 200.0) == 200.0


class TestRefundTransitions:
    def test_begin_marks_processing(self):
        dispute = _resolved()
        dispute.begin_refund(80.0, "admin-1")

        assert dispute.refund_status == RefundStatus.PROCESSING.value
        assert dispute.refund_requested_amount == 80.0
        assert isinstance(dispute._events[-1], DisputeRefundStarted)

    def test_complete(self):
        dispute = _resolved()
        dispute.begin_refund(80.0, "admin-1")
        dispute.complete_refund(80.0, "rfd-1", commission_reversed=8.0)

        assert dispute.refund_status == RefundStatus.COMPLETED.value
        assert dispute.refunded_amount == 80.0
        assert dispute.refund_reference == "rfd-1"
        assert isinstance(dispute._events[-1], DisputeRefundCompleted)

    def test_fail_then_retry(self):
        dispute = _resolved()
        dispute.begin_refund(80.0, "admin-1")
        dispute.fail_refund("Insufficient balance", 80.0)

        assert dispute.refund_status == RefundStatus.FAILED.value
        assert dispute.refund_failure_reason == "Insufficient balance"
        assert isinstance(dispute._events[-1], DisputeRefundFailed)

        dispute.begin_refund(80.0, "admin-1")
        assert dispute.refund_status == RefundStatus.PROCESSING.value
        assert dispute.refund_failure_reason is None

    def test_cannot_complete_without_processing(self):
        dispute = _resolved()
        with pytest.raises(StateConflictError):
            dispute.complete_refund(80.0, "rfd-1", commission_reversed=0.0)

    def test_completed_refund_cannot_fail(self):
        dispute = _resolved()
        dispute.begin_refund(80.0, "admin-1")
        dispute.complete_refund(80.0, "rfd-1", commission_reversed=8.0)
        with pytest.raises(StateConflictError):
            dispute.fail_refund("late failure")
