"""Dispute lookup shared by the dispute handlers and the refund flow."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from marketplace.dispute.dispute import Dispute
from marketplace.errors import NotFoundError


def get_dispute(dispute_id: str) -> Dispute:
    try:
        return current_domain.repository_for(Dispute).get(str(dispute_id))
    except ObjectNotFoundError as exc:
        raise NotFoundError({"dispute_id": [f"Dispute {dispute_id} not found"]}) from exc
