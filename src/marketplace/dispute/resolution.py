"""ResolveDispute — an admin settles an open or investigating dispute.

Refund resolutions must carry a refund amount bounded by the order total.
Resolving only records the decision; money moves in the refund flow.
"""

import structlog
from protean import handle
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.actor import ActorRole, require_role
from marketplace.dispute.dispute import Dispute
from marketplace.dispute.lookup import get_dispute
from marketplace.domain import marketplace
from marketplace.order.lookup import get_order

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Dispute")
class ResolveDispute:
    dispute_id = Identifier(required=True)
    resolution_type = String(required=True, max_length=20)
    resolution = Text()
    refund_amount = Float()
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@marketplace.command_handler(part_of=Dispute)
class ResolveDisputeHandler:
    @handle(ResolveDispute)
    def resolve(self, command):
        require_role(command.actor_role, ActorRole.ADMIN)
        dispute = get_dispute(command.dispute_id)
        order = get_order(dispute.order_id)

        dispute.resolve(
            resolution_type=command.resolution_type,
            notes=command.resolution,
            resolved_by=str(command.actor_id),
            order_total=order.total,
            refund_amount=command.refund_amount,
        )
        current_domain.repository_for(Dispute).add(dispute)

        logger.info(
            "Dispute resolved",
            dispute_id=str(dispute.id),
            resolution_type=dispute.resolution_type,
            refund_amount=dispute.refund_amount,
        )
        return dispute.status
