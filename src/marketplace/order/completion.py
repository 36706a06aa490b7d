"""Order completion — admin completion and the delivered-order sweep.

Delivered orders complete automatically once the dispute window has passed.
A failure on one order is logged and the sweep moves on.
"""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.actor import ActorRole, require_role
from marketplace.domain import marketplace
from marketplace.errors import MarketplaceError, StateConflictError
from marketplace.order.lookup import get_order
from marketplace.order.order import Order, OrderStatus

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class CompleteOrder:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@marketplace.command(part_of="Order")
class CompleteDeliveredOrders:
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@marketplace.command_handler(part_of=Order)
class CompletionHandler:
    @handle(CompleteOrder)
    def complete_order(self, command):
        require_role(command.actor_role, ActorRole.ADMIN, ActorRole.SYSTEM)
        order = get_order(command.order_id)
        if command.actor_role == ActorRole.SYSTEM.value and not order.is_due_for_completion():
            raise StateConflictError({"status": ["Order is still within its dispute window"]})
        order.complete(str(command.actor_id), command.actor_role)
        current_domain.repository_for(Order).add(order)
        return order.status

    @handle(CompleteDeliveredOrders)
    def complete_delivered_orders(self, command):
        require_role(command.actor_role, ActorRole.SYSTEM, ActorRole.ADMIN)

        repo = current_domain.repository_for(Order)
        delivered = repo._dao.query.filter(status=OrderStatus.DELIVERED.value).limit(None).all().items
        now = datetime.now(UTC)

        completed = 0
        for order in delivered:
            if not order.is_due_for_completion(now):
                continue
            try:
                order.complete(str(command.actor_id), command.actor_role)
                repo.add(order)
                completed += 1
            except MarketplaceError as exc:
                logger.error(
                    "Failed to auto-complete order",
                    order_id=str(order.id),
                    error=exc.message,
                )

        logger.info("Delivered orders swept", completed=completed, inspected=len(delivered))
        return completed
