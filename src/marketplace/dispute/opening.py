"""OpenDispute — a buyer (or an admin) disputes a delivered order.

Buyers may only dispute their own orders, and only within 48 hours of
delivery. Admin-initiated disputes skip both checks. On multi-vendor orders
the dispute must name the product, which also decides the vendor.
"""

import json

import structlog
from protean import handle
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.actor import ActorRole, is_admin, require_role
from marketplace.dispute.dispute import Dispute, DisputeStatus
from marketplace.domain import marketplace
from marketplace.errors import AuthorizationError, StateConflictError, ValidationError
from marketplace.order.lookup import get_order
from marketplace.order.order import Order, OrderStatus

logger = structlog.get_logger(__name__)

_DISPUTABLE_ORDER_STATUSES = {
    OrderStatus.DELIVERED.value,
    OrderStatus.COMPLETED.value,
    OrderStatus.DISPUTED.value,  # further products of a multi-vendor order
}


@marketplace.command(part_of="Dispute")
class OpenDispute:
    order_id = Identifier(required=True)
    dispute_type = String(required=True, max_length=20)
    description = Text(required=True)
    product_id = Identifier()
    amount = Float()
    evidence = Text()  # JSON list of URIs
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@marketplace.command_handler(part_of=Dispute)
class OpenDisputeHandler:
    @handle(OpenDispute)
    def open_dispute(self, command):
        require_role(command.actor_role, ActorRole.BUYER, ActorRole.ADMIN)
        admin = is_admin(command.actor_role)

        order = get_order(command.order_id)
        if not admin and str(order.buyer_id) != str(command.actor_id):
            raise AuthorizationError({"order_id": ["You can only dispute your own orders"]})
        if order.status not in _DISPUTABLE_ORDER_STATUSES:
            raise StateConflictError({"status": [f"Cannot dispute an order that is {order.status}"]})
        if not admin and not order.is_within_dispute_window():
            raise StateConflictError({"order_id": ["The 48 hour dispute window for this order has passed"]})

        item = None
        if command.product_id:
            item = order.item_for_product(command.product_id)
            if item is None:
                raise ValidationError({"product_id": ["Product is not part of this order"]})
            vendor_id = str(item.vendor_id)
        else:
            vendors = order.vendor_ids()
            if len(vendors) > 1:
                raise ValidationError({"product_id": ["Select the product you are disputing on multi-vendor orders"]})
            vendor_id = vendors[0]

        repo = current_domain.repository_for(Dispute)
        product_key = str(command.product_id) if command.product_id else None
        existing = repo._dao.query.filter(order_id=str(order.id)).limit(None).all().items
        active = [
            d
            for d in existing
            if d.status != DisputeStatus.CLOSED.value and (str(d.product_id) if d.product_id else None) == product_key
        ]
        if active:
            raise StateConflictError({"order_id": [f"An active dispute already exists: {active[0].id}"]})

        evidence = json.loads(command.evidence) if command.evidence else None
        amount = command.amount if command.amount is not None else (item.final_price if item else None)

        dispute = Dispute.open(
            order_id=str(order.id),
            buyer_id=str(order.buyer_id),
            vendor_id=vendor_id,
            dispute_type=command.dispute_type,
            description=command.description,
            opened_by=str(command.actor_id),
            opened_by_role=command.actor_role,
            product_id=product_key,
            amount=amount,
            evidence=evidence,
        )
        repo.add(dispute)

        order.mark_disputed(str(command.actor_id), command.actor_role)
        current_domain.repository_for(Order).add(order)

        logger.info(
            "Dispute opened",
            dispute_id=str(dispute.id),
            order_id=str(order.id),
            vendor_id=vendor_id,
            priority=dispute.priority,
        )
        return str(dispute.id)
