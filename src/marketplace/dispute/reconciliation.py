"""Refund reconciliation — moving a resolved dispute's refund through the gateway.

The flow runs in three steps, each in its own unit of work:

1. BeginDisputeRefund checks the preconditions and durably marks the refund
   as processing. A second request arriving while the gateway call is in
   flight finds that marker and is rejected.
2. The gateway is called outside any unit of work.
3. The outcome is recorded: completion (dispute and order together),
   pending, or failure.
"""

from dataclasses import dataclass

import structlog
from protean.utils.globals import current_domain

from marketplace.actor import ActorRole, require_role
from marketplace.dispute.dispute import RefundStatus
from marketplace.dispute.refund import (
    BeginDisputeRefund,
    CompleteDisputeRefund,
    FailDisputeRefund,
    RecordDisputeRefundPending,
)
from marketplace.errors import ExternalGatewayError
from marketplace.gateway import get_currency, get_gateway
from marketplace.gateway.port import REFUND_PENDING, REFUND_PROCESSED
from marketplace.money import to_minor_units

logger = structlog.get_logger(__name__)


@dataclass
class RefundOutcome:
    dispute_id: str
    refund_status: str
    amount: float
    refund_reference: str | None = None
    commission_reversed: float = 0.0


def process_dispute_refund(
    dispute_id: str,
    actor_id: str,
    actor_role: str,
    refund_amount: float | None = None,
    customer_note: str | None = None,
) -> RefundOutcome:
    """Issue the refund for a resolved dispute and reconcile the order.

    Raises ExternalGatewayError when the gateway does not process or accept
    the refund; the dispute is left with a failed refund status.
    """
    require_role(actor_role, ActorRole.ADMIN)

    started = current_domain.process(
        BeginDisputeRefund(
            dispute_id=dispute_id,
            refund_amount=refund_amount,
            actor_id=actor_id,
            actor_role=actor_role,
        ),
        asynchronous=False,
    )
    amount = started["amount"]

    try:
        result = get_gateway().refund_transaction(
            reference=started["payment_reference"],
            amount_minor_units=to_minor_units(amount),
            currency=get_currency(),
            notes=customer_note or f"Refund for dispute {dispute_id}",
            idempotency_key=f"dispute_refund_{dispute_id}",
        )
    except Exception as exc:
        logger.error("Refund gateway call raised", dispute_id=dispute_id, error=str(exc))
        _fail(dispute_id, f"Gateway error: {exc}", amount)
        raise ExternalGatewayError({"gateway": [f"Refund could not be processed: {exc}"]}) from exc

    if not result.success:
        reason = result.failure_reason or "Refund was rejected by the gateway"
        _fail(dispute_id, reason, amount)
        raise ExternalGatewayError({"gateway": [reason]})

    if result.status == REFUND_PENDING:
        current_domain.process(
            RecordDisputeRefundPending(
                dispute_id=dispute_id,
                amount=amount,
                refund_reference=result.refund_reference,
            ),
            asynchronous=False,
        )
        return RefundOutcome(
            dispute_id=dispute_id,
            refund_status=RefundStatus.PROCESSING.value,
            amount=amount,
            refund_reference=result.refund_reference,
        )

    if result.status != REFUND_PROCESSED:
        reason = f"Gateway returned an unexpected refund status: {result.status}"
        logger.error("Refund gateway status not recognised", dispute_id=dispute_id, status=result.status)
        _fail(dispute_id, reason, amount)
        raise ExternalGatewayError({"gateway": [reason]})

    commission_reversed = current_domain.process(
        CompleteDisputeRefund(
            dispute_id=dispute_id,
            amount=amount,
            refund_reference=result.refund_reference,
        ),
        asynchronous=False,
    )
    return RefundOutcome(
        dispute_id=dispute_id,
        refund_status=RefundStatus.COMPLETED.value,
        amount=amount,
        refund_reference=result.refund_reference,
        commission_reversed=commission_reversed,
    )


def _fail(dispute_id: str, reason: str, amount: float) -> None:
    current_domain.process(
        FailDisputeRefund(dispute_id=dispute_id, reason=reason[:500], amount=amount),
        asynchronous=False,
    )
