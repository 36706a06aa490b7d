"""Order side effects — audit trail and notifications after commit.

Reacts to Order events once the unit of work that raised them has
committed. Every sink call is best-effort (see marketplace.side_effects).
"""

import json

from protean.utils.mixins import handle

from marketplace.actor import ActorRole
from marketplace.domain import marketplace
from marketplace.order.events import (
    FulfillmentRecorded,
    OrderCancelled,
    OrderPlaced,
    OrderRefunded,
    OrderStatusChanged,
    PaymentFailed,
    PaymentRecorded,
)
from marketplace.order.order import FulfillmentAction, Order, OrderStatus
from marketplace.side_effects import notify, record_audit

_FULFILLMENT_AUDIT_ACTIONS = {
    FulfillmentAction.ITEM_PACKED.value: "ORDER_ITEM_PACKED",
    FulfillmentAction.ITEM_HANDED_TO_COURIER.value: "ORDER_ITEM_HANDED_TO_COURIER",
    FulfillmentAction.ITEM_DELIVERED.value: "ORDER_ITEM_DELIVERED",
    FulfillmentAction.ORDER_READY_FOR_PICKUP.value: "ORDER_READY_FOR_PICKUP",
    FulfillmentAction.ORDER_COURIER_BOOKED.value: "ORDER_COURIER_BOOKED",
    FulfillmentAction.ORDER_MARKED_DELIVERED.value: "ORDER_MARKED_DELIVERED",
    FulfillmentAction.VENDOR_ITEMS_READY_FOR_PICKUP.value: "VENDOR_ITEMS_READY_FOR_PICKUP",
    FulfillmentAction.VENDOR_COURIER_BOOKED.value: "VENDOR_COURIER_BOOKED",
    FulfillmentAction.VENDOR_ITEMS_DELIVERED.value: "VENDOR_ITEMS_DELIVERED",
}

# Buyer-facing messages, keyed by the order status the order just reached
_STATUS_NOTIFICATIONS = {
    OrderStatus.CONFIRMED.value: ("Order Confirmed", "Your order {order_id} has been confirmed."),
    OrderStatus.PREPARING.value: ("Order Being Prepared", "Your order {order_id} is being prepared."),
    OrderStatus.READY_FOR_PICKUP.value: ("Order Packed", "Your order {order_id} is packed and awaiting pickup."),
    OrderStatus.OUT_FOR_DELIVERY.value: ("Order On Its Way", "Your order {order_id} is out for delivery."),
    OrderStatus.DELIVERED.value: ("Order Delivered", "Your order {order_id} has been delivered."),
    OrderStatus.COMPLETED.value: ("Order Completed", "Your order {order_id} is complete."),
}


@marketplace.event_handler(part_of=Order)
class OrderSideEffects:
    @handle(OrderPlaced)
    def on_order_placed(self, event: OrderPlaced) -> None:
        record_audit(
            "ORDER_PLACED",
            "order",
            str(event.buyer_id),
            ActorRole.BUYER.value,
            event.order_id,
            "order",
            {"total": event.total, "platform_commission": event.platform_commission},
        )
        for vendor_id in json.loads(event.vendor_ids):
            notify(
                vendor_id,
                ActorRole.VENDOR.value,
                "new_order",
                "New Order",
                f"You have a new order {event.order_id}.",
                {"order_id": str(event.order_id)},
            )

    @handle(PaymentRecorded)
    def on_payment_recorded(self, event: PaymentRecorded) -> None:
        record_audit(
            "ORDER_PAYMENT_RECORDED",
            "order",
            None,
            ActorRole.SYSTEM.value,
            event.order_id,
            "order",
            {"payment_reference": event.payment_reference},
        )

    @handle(PaymentFailed)
    def on_payment_failed(self, event: PaymentFailed) -> None:
        record_audit(
            "ORDER_PAYMENT_FAILED",
            "order",
            None,
            ActorRole.SYSTEM.value,
            event.order_id,
            "order",
            {"reason": event.reason},
        )
        notify(
            event.buyer_id,
            ActorRole.BUYER.value,
            "payment_failed",
            "Payment Failed",
            f"Payment for order {event.order_id} could not be completed.",
            {"order_id": str(event.order_id)},
        )

    @handle(FulfillmentRecorded)
    def on_fulfillment_recorded(self, event: FulfillmentRecorded) -> None:
        record_audit(
            _FULFILLMENT_AUDIT_ACTIONS.get(event.action, event.action.upper()),
            "order",
            str(event.actor_id),
            event.actor_role,
            event.order_id,
            "order",
            {
                "vendor_id": event.vendor_id,
                "item_ids": json.loads(event.item_ids),
                "item_status": event.item_status,
                "courier_provider": event.courier_provider,
                "courier_reference": event.courier_reference,
            },
        )

    @handle(OrderStatusChanged)
    def on_order_status_changed(self, event: OrderStatusChanged) -> None:
        if event.to_status == OrderStatus.CANCELLED.value:
            return  # OrderCancelled covers it

        record_audit(
            "ORDER_STATUS_CHANGED",
            "order",
            str(event.actor_id) if event.actor_id else None,
            event.actor_role,
            event.order_id,
            "order",
            {"from": event.from_status, "to": event.to_status},
        )

        template = _STATUS_NOTIFICATIONS.get(event.to_status)
        if template:
            title, message = template
            notify(
                event.buyer_id,
                ActorRole.BUYER.value,
                "order_fulfilled" if event.to_status != OrderStatus.CONFIRMED.value else "order_confirmed",
                title,
                message.format(order_id=event.order_id),
                {"order_id": str(event.order_id), "status": event.to_status},
            )

    @handle(OrderCancelled)
    def on_order_cancelled(self, event: OrderCancelled) -> None:
        record_audit(
            "ORDER_CANCELLED",
            "order",
            str(event.cancelled_by),
            ActorRole.ADMIN.value,
            event.order_id,
            "order",
            {"reason": event.reason, "restocked_items": json.loads(event.restocked_items)},
        )
        payload = {"order_id": str(event.order_id), "reason": event.reason}
        notify(
            event.buyer_id,
            ActorRole.BUYER.value,
            "order_cancelled",
            "Order Cancelled",
            f"Your order {event.order_id} has been cancelled.",
            payload,
        )
        for vendor_id in json.loads(event.vendor_ids):
            notify(
                vendor_id,
                ActorRole.VENDOR.value,
                "order_cancelled",
                "Order Cancelled",
                f"Order {event.order_id} has been cancelled by the platform.",
                payload,
            )

    @handle(OrderRefunded)
    def on_order_refunded(self, event: OrderRefunded) -> None:
        record_audit(
            "ORDER_COMMISSION_REVERSED",
            "refund",
            None,
            ActorRole.SYSTEM.value,
            event.order_id,
            "order",
            {
                "dispute_id": str(event.dispute_id),
                "refund_amount": event.refund_amount,
                "commission_reversed": event.commission_reversed,
                "platform_commission": event.platform_commission,
                "vendor_earnings": event.vendor_earnings,
            },
        )
