"""PostDisputeMessage — buyer, vendor and admins talk on the dispute thread."""

from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.actor import ActorRole, require_role
from marketplace.dispute.dispute import Dispute
from marketplace.dispute.lookup import get_dispute
from marketplace.domain import marketplace


@marketplace.command(part_of="Dispute")
class PostDisputeMessage:
    dispute_id = Identifier(required=True)
    message = Text(required=True)
    sender_name = String(max_length=200)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@marketplace.command_handler(part_of=Dispute)
class DisputeMessageHandler:
    @handle(PostDisputeMessage)
    def post_message(self, command):
        require_role(command.actor_role, ActorRole.BUYER, ActorRole.VENDOR, ActorRole.ADMIN)
        dispute = get_dispute(command.dispute_id)
        message = dispute.post_message(
            sender_id=str(command.actor_id),
            sender_role=command.actor_role,
            body=command.message,
            sender_name=command.sender_name,
        )
        current_domain.repository_for(Dispute).add(dispute)
        return str(message.id)
