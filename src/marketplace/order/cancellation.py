"""CancelOrder — admin cancellation with inventory restore.

Cancelling an already-cancelled order is a no-op, so a retried request never
restores inventory twice.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.actor import ActorRole, require_role
from marketplace.domain import marketplace
from marketplace.inventory.stock import adjust_stock
from marketplace.order.lookup import get_order
from marketplace.order.order import Order

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(max_length=500)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@marketplace.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        require_role(command.actor_role, ActorRole.ADMIN)
        order = get_order(command.order_id)

        if not order.cancel(str(command.actor_id), command.actor_role, command.reason):
            logger.info("Order already cancelled", order_id=str(order.id))
            return False

        adjust_stock(
            [{"product_id": str(i.product_id), "quantity": i.quantity} for i in order.items],
            reserve=False,
        )
        current_domain.repository_for(Order).add(order)
        return True
