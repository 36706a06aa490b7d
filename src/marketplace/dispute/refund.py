"""Dispute refund commands.

Each command is its own unit of work, so the processing marker is durable
before the gateway is called and the outcome is recorded afterwards.
Completing a refund updates the dispute and the order together.
"""

import structlog
from protean import handle
from protean.fields import Boolean, Float, Identifier, String
from protean.utils.globals import current_domain

from marketplace.actor import ActorRole, require_role
from marketplace.dispute.dispute import Dispute, RefundStatus
from marketplace.dispute.lookup import get_dispute
from marketplace.domain import marketplace
from marketplace.errors import StateConflictError, ValidationError
from marketplace.order.lookup import get_order
from marketplace.order.order import Order, PaymentStatus

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Dispute")
class BeginDisputeRefund:
    dispute_id = Identifier(required=True)
    refund_amount = Float()
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@marketplace.command(part_of="Dispute")
class CompleteDisputeRefund:
    dispute_id = Identifier(required=True)
    amount = Float(required=True)
    refund_reference = String(max_length=255)


@marketplace.command(part_of="Dispute")
class RecordDisputeRefundPending:
    dispute_id = Identifier(required=True)
    amount = Float(required=True)
    refund_reference = String(max_length=255)


@marketplace.command(part_of="Dispute")
class FailDisputeRefund:
    dispute_id = Identifier(required=True)
    reason = String(max_length=500)
    amount = Float()


@marketplace.command(part_of="Dispute")
class ConfirmDisputeRefund:
    """Gateway confirmation of a refund that was accepted as pending."""

    dispute_id = Identifier(required=True)
    successful = Boolean(required=True)
    refund_reference = String(max_length=255)
    reason = String(max_length=500)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


def _refund_in_flight(order_id: str, dispute_id: str) -> Dispute | None:
    """Another dispute on the order whose refund is still with the gateway."""
    in_flight = (
        current_domain.repository_for(Dispute)
        ._dao.query.filter(order_id=str(order_id), refund_status=RefundStatus.PROCESSING.value)
        .limit(None)
        .all()
        .items
    )
    return next((d for d in in_flight if str(d.id) != str(dispute_id)), None)


def _complete(dispute: Dispute, amount: float, refund_reference: str | None) -> float:
    order = get_order(dispute.order_id)
    commission_reversed = order.apply_refund(str(dispute.id), amount)
    dispute.complete_refund(amount, refund_reference, commission_reversed)
    current_domain.repository_for(Order).add(order)
    current_domain.repository_for(Dispute).add(dispute)
    return commission_reversed


@marketplace.command_handler(part_of=Dispute)
class DisputeRefundHandler:
    @handle(BeginDisputeRefund)
    def begin(self, command):
        """Check every precondition and mark the refund as processing.

        Returns what the gateway call needs.
        """
        require_role(command.actor_role, ActorRole.ADMIN)
        dispute = get_dispute(command.dispute_id)
        dispute.assert_refundable()

        order = get_order(dispute.order_id)
        if not order.payment_reference:
            raise StateConflictError({"payment_reference": ["Order has no payment reference to refund against"]})
        if order.payment_status == PaymentStatus.REFUNDED.value:
            raise StateConflictError({"payment_status": ["Order payment has already been refunded"]})
        # One refund per order; a refund still with the gateway reserves it
        other = _refund_in_flight(order.id, dispute.id)
        if other is not None:
            raise StateConflictError(
                {"refund_status": [f"A refund for dispute {other.id} on this order is awaiting confirmation"]}
            )

        amount = dispute.refund_amount_for(command.refund_amount, order.total)
        if amount <= 0 or amount > order.total:
            raise ValidationError(
                {"refund_amount": [f"Refund amount must be greater than zero and at most {order.total}"]}
            )

        dispute.begin_refund(amount, str(command.actor_id))
        current_domain.repository_for(Dispute).add(dispute)

        logger.info("Dispute refund started", dispute_id=str(dispute.id), amount=amount)
        return {
            "amount": amount,
            "order_id": str(order.id),
            "payment_reference": order.payment_reference,
        }

    @handle(CompleteDisputeRefund)
    def complete(self, command):
        dispute = get_dispute(command.dispute_id)
        commission_reversed = _complete(dispute, command.amount, command.refund_reference)
        logger.info(
            "Dispute refund completed",
            dispute_id=str(dispute.id),
            amount=command.amount,
            commission_reversed=commission_reversed,
        )
        return commission_reversed

    @handle(RecordDisputeRefundPending)
    def record_pending(self, command):
        dispute = get_dispute(command.dispute_id)
        dispute.record_refund_pending(command.amount, command.refund_reference)
        current_domain.repository_for(Dispute).add(dispute)
        logger.info("Dispute refund pending at gateway", dispute_id=str(dispute.id))

    @handle(FailDisputeRefund)
    def fail(self, command):
        dispute = get_dispute(command.dispute_id)
        dispute.fail_refund(command.reason, command.amount)
        current_domain.repository_for(Dispute).add(dispute)
        logger.warning("Dispute refund failed", dispute_id=str(dispute.id), reason=command.reason)

    @handle(ConfirmDisputeRefund)
    def confirm(self, command):
        require_role(command.actor_role, ActorRole.SYSTEM, ActorRole.ADMIN)
        dispute = get_dispute(command.dispute_id)
        if dispute.refund_status != RefundStatus.PROCESSING.value:
            raise StateConflictError({"refund_status": ["No refund is awaiting confirmation"]})
        if command.refund_reference and dispute.refund_reference and command.refund_reference != dispute.refund_reference:
            raise ValidationError({"refund_reference": ["Refund reference does not match this dispute"]})

        if command.successful:
            _complete(dispute, dispute.refund_requested_amount, command.refund_reference)
        else:
            dispute.fail_refund(command.reason or "Refund failed at the gateway", dispute.refund_requested_amount)
            current_domain.repository_for(Dispute).add(dispute)
        return dispute.refund_status
