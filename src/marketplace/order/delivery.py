"""Aggregate fulfillment — order-level and per-vendor batch actions.

Order-level actions move every item of a single-vendor order at once and
require all items to have reached the prerequisite state. Per-vendor actions
touch only the acting vendor's items and ignore other vendors' progress.
"""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.actor import ActorRole, require_role
from marketplace.domain import marketplace
from marketplace.order.lookup import get_order
from marketplace.order.order import Order


# ---------------------------------------------------------------------------
# Order-level (single-vendor orders)
# ---------------------------------------------------------------------------
@marketplace.command(part_of="Order")
class MarkReadyForPickup:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@marketplace.command(part_of="Order")
class BookCourier:
    order_id = Identifier(required=True)
    courier_provider = String(max_length=100)
    courier_reference = String(max_length=255)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@marketplace.command(part_of="Order")
class MarkOrderDelivered:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


# ---------------------------------------------------------------------------
# Per-vendor
# ---------------------------------------------------------------------------
@marketplace.command(part_of="Order")
class VendorReadyForPickup:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@marketplace.command(part_of="Order")
class VendorBookCourier:
    order_id = Identifier(required=True)
    courier_provider = String(max_length=100)
    courier_reference = String(max_length=255)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@marketplace.command(part_of="Order")
class VendorMarkDelivered:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@marketplace.command_handler(part_of=Order)
class DeliveryHandler:
    @handle(MarkReadyForPickup)
    def mark_ready_for_pickup(self, command):
        require_role(command.actor_role, ActorRole.VENDOR, ActorRole.ADMIN)
        order = get_order(command.order_id)
        order.mark_ready_for_pickup(str(command.actor_id), command.actor_role)
        current_domain.repository_for(Order).add(order)
        return order.status

    @handle(BookCourier)
    def book_courier(self, command):
        require_role(command.actor_role, ActorRole.VENDOR, ActorRole.ADMIN)
        order = get_order(command.order_id)
        order.book_courier(
            str(command.actor_id),
            command.actor_role,
            courier_provider=command.courier_provider,
            courier_reference=command.courier_reference,
        )
        current_domain.repository_for(Order).add(order)
        return order.status

    @handle(MarkOrderDelivered)
    def mark_order_delivered(self, command):
        require_role(command.actor_role, ActorRole.VENDOR, ActorRole.ADMIN)
        order = get_order(command.order_id)
        order.mark_order_delivered(str(command.actor_id), command.actor_role)
        current_domain.repository_for(Order).add(order)
        return order.status

    @handle(VendorReadyForPickup)
    def vendor_ready_for_pickup(self, command):
        require_role(command.actor_role, ActorRole.VENDOR)
        order = get_order(command.order_id)
        items = order.vendor_ready_for_pickup(str(command.actor_id), command.actor_role)
        current_domain.repository_for(Order).add(order)
        return len(items)

    @handle(VendorBookCourier)
    def vendor_book_courier(self, command):
        require_role(command.actor_role, ActorRole.VENDOR)
        order = get_order(command.order_id)
        items = order.vendor_book_courier(
            str(command.actor_id),
            command.actor_role,
            courier_provider=command.courier_provider,
            courier_reference=command.courier_reference,
        )
        current_domain.repository_for(Order).add(order)
        return len(items)

    @handle(VendorMarkDelivered)
    def vendor_mark_delivered(self, command):
        require_role(command.actor_role, ActorRole.VENDOR)
        order = get_order(command.order_id)
        items = order.vendor_mark_delivered(str(command.actor_id), command.actor_role)
        current_domain.repository_for(Order).add(order)
        return len(items)
