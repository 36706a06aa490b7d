"""Order domain events — immutable facts about order and item state changes.

All events are past tense, versioned, and carry the acting identity so the
audit trail and notifications can be produced after the unit of work commits.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from marketplace.domain import marketplace


@marketplace.event(part_of="Order")
class OrderPlaced:
    """A buyer placed an order; commission rates were snapshotted."""

    __version__ = 1

    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    vendor_ids = Text(required=True)  # JSON list
    item_count = Integer(required=True)
    total = Float(required=True)
    platform_commission = Float(required=True)
    placed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class PaymentRecorded:
    """The gateway confirmed payment for an order."""

    __version__ = 1

    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    payment_reference = String(required=True)
    recorded_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class PaymentFailed:
    """The gateway reported a failed payment for an order."""

    __version__ = 1

    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    reason = String()
    failed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class FulfillmentRecorded:
    """One or more items advanced through fulfillment.

    ``action`` names the operation (per-item, order-level or per-vendor) so
    downstream consumers do not need to diff item states.
    """

    __version__ = 1

    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    action = String(required=True)
    vendor_id = Identifier()
    item_ids = Text(required=True)  # JSON list
    item_status = String()
    courier_provider = String()
    courier_reference = String()
    actor_id = Identifier(required=True)
    actor_role = String(required=True)
    occurred_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderStatusChanged:
    """The order-level status moved along the state machine."""

    __version__ = 1

    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    actor_id = Identifier()
    actor_role = String()
    changed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderCancelled:
    """An admin cancelled an order before delivery."""

    __version__ = 1

    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    vendor_ids = Text(required=True)  # JSON list
    reason = String()
    restocked_items = Text(required=True)  # JSON list of {product_id, quantity}
    cancelled_by = Identifier(required=True)
    cancelled_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderRefunded:
    """A dispute refund completed; commission was reversed proportionally."""

    __version__ = 1

    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    dispute_id = Identifier(required=True)
    refund_amount = Float(required=True)
    commission_reversed = Float(required=True)
    platform_commission = Float(required=True)
    vendor_earnings = Float(required=True)
    refunded_at = DateTime(required=True)
