"""Dispute domain events — immutable facts about the dispute lifecycle and refunds."""

from protean.fields import DateTime, Float, Identifier, String, Text

from marketplace.domain import marketplace


@marketplace.event(part_of="Dispute")
class DisputeOpened:
    """A buyer (or an admin on their behalf) opened a dispute."""

    __version__ = 1

    dispute_id = Identifier(required=True)
    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    product_id = Identifier()
    dispute_type = String(required=True)
    priority = String(required=True)
    amount = Float()
    opened_by = Identifier(required=True)
    opened_by_role = String(required=True)
    opened_at = DateTime(required=True)


@marketplace.event(part_of="Dispute")
class DisputeStatusChanged:
    __version__ = 1

    dispute_id = Identifier(required=True)
    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    changed_by = Identifier(required=True)
    changed_at = DateTime(required=True)


@marketplace.event(part_of="Dispute")
class DisputePriorityChanged:
    __version__ = 1

    dispute_id = Identifier(required=True)
    from_priority = String(required=True)
    to_priority = String(required=True)
    changed_by = Identifier(required=True)
    changed_at = DateTime(required=True)


@marketplace.event(part_of="Dispute")
class DisputeEscalated:
    __version__ = 1

    dispute_id = Identifier(required=True)
    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    reason = Text(required=True)
    escalated_by = Identifier(required=True)
    escalated_at = DateTime(required=True)


@marketplace.event(part_of="Dispute")
class DisputeClosed:
    __version__ = 1

    dispute_id = Identifier(required=True)
    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    reason = Text(required=True)
    closed_by = Identifier(required=True)
    closed_at = DateTime(required=True)


@marketplace.event(part_of="Dispute")
class DisputeResolved:
    __version__ = 1

    dispute_id = Identifier(required=True)
    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    resolution_type = String(required=True)
    resolution_notes = Text(required=True)
    refund_amount = Float()
    resolved_by = Identifier(required=True)
    resolved_at = DateTime(required=True)


@marketplace.event(part_of="Dispute")
class DisputeMessagePosted:
    __version__ = 1

    dispute_id = Identifier(required=True)
    message_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    sender_id = Identifier(required=True)
    sender_role = String(required=True)
    posted_at = DateTime(required=True)


@marketplace.event(part_of="Dispute")
class DisputeRefundStarted:
    """The refund was durably marked as processing; the gateway call follows."""

    __version__ = 1

    dispute_id = Identifier(required=True)
    order_id = Identifier(required=True)
    amount = Float(required=True)
    requested_by = Identifier(required=True)
    started_at = DateTime(required=True)


@marketplace.event(part_of="Dispute")
class DisputeRefundPending:
    """The gateway accepted the refund but will confirm it later."""

    __version__ = 1

    dispute_id = Identifier(required=True)
    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    amount = Float(required=True)
    refund_reference = String()
    pending_at = DateTime(required=True)


@marketplace.event(part_of="Dispute")
class DisputeRefundCompleted:
    __version__ = 1

    dispute_id = Identifier(required=True)
    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    amount = Float(required=True)
    refund_reference = String()
    commission_reversed = Float(required=True)
    completed_at = DateTime(required=True)


@marketplace.event(part_of="Dispute")
class DisputeRefundFailed:
    __version__ = 1

    dispute_id = Identifier(required=True)
    order_id = Identifier(required=True)
    amount = Float()
    reason = String(required=True)
    failed_at = DateTime(required=True)
