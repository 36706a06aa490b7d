"""Per-item fulfillment — commands and handler.

Each command moves exactly one item one step along
pending → packed → handed_to_courier → delivered. Only the owning vendor
(or an admin) may move an item.
"""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.actor import ActorRole, require_role
from marketplace.domain import marketplace
from marketplace.order.lookup import get_order
from marketplace.order.order import Order


@marketplace.command(part_of="Order")
class PackItem:
    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@marketplace.command(part_of="Order")
class HandItemToCourier:
    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    courier_provider = String(max_length=100)
    courier_reference = String(max_length=255)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@marketplace.command(part_of="Order")
class MarkItemDelivered:
    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@marketplace.command_handler(part_of=Order)
class ItemFulfillmentHandler:
    @handle(PackItem)
    def pack_item(self, command):
        require_role(command.actor_role, ActorRole.VENDOR, ActorRole.ADMIN)
        order = get_order(command.order_id)
        order.pack_item(command.item_id, str(command.actor_id), command.actor_role)
        current_domain.repository_for(Order).add(order)
        return order.status

    @handle(HandItemToCourier)
    def hand_item_to_courier(self, command):
        require_role(command.actor_role, ActorRole.VENDOR, ActorRole.ADMIN)
        order = get_order(command.order_id)
        order.hand_item_to_courier(
            command.item_id,
            str(command.actor_id),
            command.actor_role,
            courier_provider=command.courier_provider,
            courier_reference=command.courier_reference,
        )
        current_domain.repository_for(Order).add(order)
        return order.status

    @handle(MarkItemDelivered)
    def mark_item_delivered(self, command):
        require_role(command.actor_role, ActorRole.VENDOR, ActorRole.ADMIN)
        order = get_order(command.order_id)
        order.mark_item_delivered(command.item_id, str(command.actor_id), command.actor_role)
        current_domain.repository_for(Order).add(order)
        return order.status
