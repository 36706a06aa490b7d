"""PlaceOrder — create an order with commission snapshots.

The commission rate of every item is resolved once, here, and stored on the
item. Later rate changes never touch existing orders.
"""

import json

import structlog
from protean import handle
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.actor import ActorRole, require_role
from marketplace.commission.resolver import rates_for
from marketplace.domain import marketplace
from marketplace.errors import ValidationError
from marketplace.inventory.stock import adjust_stock
from marketplace.order.order import Order

logger = structlog.get_logger(__name__)

_REQUIRED_ITEM_KEYS = ("product_id", "vendor_id", "quantity", "unit_price")


@marketplace.command(part_of="Order")
class PlaceOrder:
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)
    items = Text(required=True)  # JSON list of item dicts
    subtotal = Float(required=True)
    discount = Float(default=0.0)
    shipping = Float(default=0.0)
    tax = Float(default=0.0)
    total = Float(required=True)
    shipping_address = Text()  # JSON dict


@marketplace.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        require_role(command.actor_role, ActorRole.BUYER)

        items_data = json.loads(command.items) if isinstance(command.items, str) else command.items
        for entry in items_data or []:
            missing = [key for key in _REQUIRED_ITEM_KEYS if entry.get(key) is None]
            if missing:
                raise ValidationError({"items": [f"Item is missing {', '.join(missing)}"]})
            rates = rates_for(entry["vendor_id"], entry.get("category_id"))
            entry["commission_rate"] = rates.effective_rate
            entry["commission_rate_source"] = rates.source

        address = None
        if command.shipping_address:
            address = (
                json.loads(command.shipping_address)
                if isinstance(command.shipping_address, str)
                else command.shipping_address
            )

        order = Order.place(
            buyer_id=str(command.actor_id),
            items_data=items_data,
            subtotal=command.subtotal,
            discount=command.discount or 0.0,
            shipping=command.shipping or 0.0,
            tax=command.tax or 0.0,
            total=command.total,
            shipping_address=address,
        )

        adjust_stock(
            [{"product_id": str(i.product_id), "quantity": i.quantity} for i in order.items],
            reserve=True,
        )
        current_domain.repository_for(Order).add(order)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            buyer_id=str(command.actor_id),
            vendors=order.vendor_ids(),
            platform_commission=order.platform_commission,
        )
        return str(order.id)
