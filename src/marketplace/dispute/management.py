"""Admin dispute management: status, priority, escalation and closure."""

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.actor import ActorRole, require_role
from marketplace.dispute.dispute import Dispute
from marketplace.dispute.lookup import get_dispute
from marketplace.domain import marketplace

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Dispute")
class UpdateDisputeStatus:
    dispute_id = Identifier(required=True)
    status = String(required=True, max_length=20)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@marketplace.command(part_of="Dispute")
class UpdateDisputePriority:
    dispute_id = Identifier(required=True)
    priority = String(required=True, max_length=20)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@marketplace.command(part_of="Dispute")
class EscalateDispute:
    dispute_id = Identifier(required=True)
    reason = Text(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@marketplace.command(part_of="Dispute")
class CloseDispute:
    dispute_id = Identifier(required=True)
    reason = Text(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@marketplace.command_handler(part_of=Dispute)
class DisputeManagementHandler:
    @handle(UpdateDisputeStatus)
    def update_status(self, command):
        require_role(command.actor_role, ActorRole.ADMIN)
        dispute = get_dispute(command.dispute_id)
        dispute.update_status(command.status, str(command.actor_id))
        current_domain.repository_for(Dispute).add(dispute)
        return dispute.status

    @handle(UpdateDisputePriority)
    def update_priority(self, command):
        require_role(command.actor_role, ActorRole.ADMIN)
        dispute = get_dispute(command.dispute_id)
        dispute.update_priority(command.priority, str(command.actor_id))
        current_domain.repository_for(Dispute).add(dispute)
        return dispute.priority

    @handle(EscalateDispute)
    def escalate(self, command):
        require_role(command.actor_role, ActorRole.ADMIN)
        dispute = get_dispute(command.dispute_id)
        dispute.escalate(str(command.actor_id), command.reason)
        current_domain.repository_for(Dispute).add(dispute)
        logger.info("Dispute escalated", dispute_id=str(dispute.id))
        return dispute.status

    @handle(CloseDispute)
    def close(self, command):
        require_role(command.actor_role, ActorRole.ADMIN)
        dispute = get_dispute(command.dispute_id)
        dispute.close(str(command.actor_id), command.reason)
        current_domain.repository_for(Dispute).add(dispute)
        logger.info("Dispute closed", dispute_id=str(dispute.id))
        return dispute.status
