"""Dispute side effects — audit trail and notifications after commit."""

from protean.utils.mixins import handle

from marketplace.actor import ActorRole
from marketplace.dispute.dispute import Dispute
from marketplace.dispute.events import (
    DisputeClosed,
    DisputeEscalated,
    DisputeMessagePosted,
    DisputeOpened,
    DisputePriorityChanged,
    DisputeRefundCompleted,
    DisputeRefundFailed,
    DisputeRefundPending,
    DisputeRefundStarted,
    DisputeResolved,
    DisputeStatusChanged,
)
from marketplace.domain import marketplace
from marketplace.side_effects import notify, record_audit


@marketplace.event_handler(part_of=Dispute)
class DisputeSideEffects:
    @handle(DisputeOpened)
    def on_dispute_opened(self, event: DisputeOpened) -> None:
        record_audit(
            "DISPUTE_OPENED",
            "dispute",
            str(event.opened_by),
            event.opened_by_role,
            event.dispute_id,
            "dispute",
            {
                "order_id": str(event.order_id),
                "product_id": str(event.product_id) if event.product_id else None,
                "dispute_type": event.dispute_type,
                "priority": event.priority,
                "amount": event.amount,
            },
        )
        notify(
            event.vendor_id,
            ActorRole.VENDOR.value,
            "dispute_opened",
            "New Dispute",
            f"A dispute was opened on order {event.order_id}.",
            {"dispute_id": str(event.dispute_id), "order_id": str(event.order_id)},
        )

    @handle(DisputeStatusChanged)
    def on_status_changed(self, event: DisputeStatusChanged) -> None:
        record_audit(
            "DISPUTE_STATUS_CHANGED",
            "dispute",
            str(event.changed_by),
            ActorRole.ADMIN.value,
            event.dispute_id,
            "dispute",
            {"from": event.from_status, "to": event.to_status},
        )

    @handle(DisputePriorityChanged)
    def on_priority_changed(self, event: DisputePriorityChanged) -> None:
        record_audit(
            "DISPUTE_PRIORITY_CHANGED",
            "dispute",
            str(event.changed_by),
            ActorRole.ADMIN.value,
            event.dispute_id,
            "dispute",
            {"from": event.from_priority, "to": event.to_priority},
        )

    @handle(DisputeEscalated)
    def on_dispute_escalated(self, event: DisputeEscalated) -> None:
        record_audit(
            "DISPUTE_ESCALATED",
            "dispute",
            str(event.escalated_by),
            ActorRole.ADMIN.value,
            event.dispute_id,
            "dispute",
            {"reason": event.reason},
        )

    @handle(DisputeClosed)
    def on_dispute_closed(self, event: DisputeClosed) -> None:
        record_audit(
            "DISPUTE_CLOSED",
            "dispute",
            str(event.closed_by),
            ActorRole.ADMIN.value,
            event.dispute_id,
            "dispute",
            {"reason": event.reason},
        )
        payload = {"dispute_id": str(event.dispute_id), "order_id": str(event.order_id)}
        for user_id, role in ((event.buyer_id, ActorRole.BUYER), (event.vendor_id, ActorRole.VENDOR)):
            notify(
                user_id,
                role.value,
                "dispute_closed",
                "Dispute Closed",
                f"The dispute on order {event.order_id} has been closed.",
                payload,
            )

    @handle(DisputeResolved)
    def on_dispute_resolved(self, event: DisputeResolved) -> None:
        record_audit(
            "DISPUTE_RESOLVED",
            "dispute",
            str(event.resolved_by),
            ActorRole.ADMIN.value,
            event.dispute_id,
            "dispute",
            {"resolution_type": event.resolution_type, "refund_amount": event.refund_amount},
        )
        payload = {
            "dispute_id": str(event.dispute_id),
            "order_id": str(event.order_id),
            "resolution_type": event.resolution_type,
        }
        for user_id, role in ((event.buyer_id, ActorRole.BUYER), (event.vendor_id, ActorRole.VENDOR)):
            notify(
                user_id,
                role.value,
                "dispute_resolved",
                "Dispute Resolved",
                f"The dispute on order {event.order_id} has been resolved.",
                payload,
            )

    @handle(DisputeMessagePosted)
    def on_message_posted(self, event: DisputeMessagePosted) -> None:
        payload = {"dispute_id": str(event.dispute_id), "message_id": str(event.message_id)}
        recipients = ((event.buyer_id, ActorRole.BUYER), (event.vendor_id, ActorRole.VENDOR))
        for user_id, role in recipients:
            if str(user_id) == str(event.sender_id):
                continue
            notify(
                user_id,
                role.value,
                "dispute_message",
                "New Dispute Message",
                "There is a new message on your dispute.",
                payload,
            )

    @handle(DisputeRefundStarted)
    def on_refund_started(self, event: DisputeRefundStarted) -> None:
        record_audit(
            "DISPUTE_REFUND_STARTED",
            "refund",
            str(event.requested_by),
            ActorRole.ADMIN.value,
            event.dispute_id,
            "dispute",
            {"order_id": str(event.order_id), "amount": event.amount},
        )

    @handle(DisputeRefundPending)
    def on_refund_pending(self, event: DisputeRefundPending) -> None:
        record_audit(
            "DISPUTE_REFUND_PENDING",
            "refund",
            None,
            ActorRole.SYSTEM.value,
            event.dispute_id,
            "dispute",
            {"amount": event.amount, "refund_reference": event.refund_reference},
        )
        notify(
            event.buyer_id,
            ActorRole.BUYER.value,
            "refund_initiated",
            "Refund Initiated",
            f"Your refund of {event.amount:.2f} for order {event.order_id} has been initiated.",
            {"dispute_id": str(event.dispute_id), "amount": event.amount},
        )

    @handle(DisputeRefundCompleted)
    def on_refund_completed(self, event: DisputeRefundCompleted) -> None:
        record_audit(
            "DISPUTE_REFUND_PROCESSED",
            "refund",
            None,
            ActorRole.SYSTEM.value,
            event.dispute_id,
            "dispute",
            {
                "order_id": str(event.order_id),
                "amount": event.amount,
                "refund_reference": event.refund_reference,
                "commission_reversed": event.commission_reversed,
            },
        )
        payload = {
            "dispute_id": str(event.dispute_id),
            "order_id": str(event.order_id),
            "amount": event.amount,
        }
        notify(
            event.buyer_id,
            ActorRole.BUYER.value,
            "refund_processed",
            "Refund Processed",
            f"Your refund of {event.amount:.2f} for order {event.order_id} has been processed.",
            payload,
        )
        notify(
            event.vendor_id,
            ActorRole.VENDOR.value,
            "order_refunded",
            "Order Refunded",
            f"Order {event.order_id} was refunded {event.amount:.2f} after a dispute.",
            payload,
        )

    @handle(DisputeRefundFailed)
    def on_refund_failed(self, event: DisputeRefundFailed) -> None:
        record_audit(
            "DISPUTE_REFUND_FAILED",
            "refund",
            None,
            ActorRole.SYSTEM.value,
            event.dispute_id,
            "dispute",
            {"order_id": str(event.order_id), "amount": event.amount, "reason": event.reason},
        )
