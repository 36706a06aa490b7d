"""Order payment — recording gateway payment outcomes.

RecordPayment is idempotent for the same reference so gateway webhooks can
be replayed safely. verify_and_record_payment asks the gateway first and
records whichever outcome it reports.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.actor import ActorRole, require_role
from marketplace.domain import marketplace
from marketplace.errors import ValidationError
from marketplace.gateway import get_gateway
from marketplace.money import to_minor_units
from marketplace.order.lookup import get_order
from marketplace.order.order import Order

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class RecordPayment:
    order_id = Identifier(required=True)
    payment_reference = String(required=True, max_length=255)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@marketplace.command(part_of="Order")
class RecordPaymentFailure:
    order_id = Identifier(required=True)
    reason = String(max_length=500)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@marketplace.command_handler(part_of=Order)
class PaymentHandler:
    @handle(RecordPayment)
    def record_payment(self, command):
        require_role(command.actor_role, ActorRole.SYSTEM, ActorRole.ADMIN)
        order = get_order(command.order_id)
        recorded = order.record_payment(command.payment_reference)
        current_domain.repository_for(Order).add(order)
        if not recorded:
            logger.info("Payment already recorded", order_id=str(order.id))
        return recorded

    @handle(RecordPaymentFailure)
    def record_payment_failure(self, command):
        require_role(command.actor_role, ActorRole.SYSTEM, ActorRole.ADMIN)
        order = get_order(command.order_id)
        order.record_payment_failure(command.reason)
        current_domain.repository_for(Order).add(order)


def verify_and_record_payment(order_id: str, payment_reference: str, actor_id: str = "system") -> bool:
    """Verify a payment with the gateway, then record the outcome on the order."""
    order = get_order(order_id)
    result = get_gateway().verify_payment(payment_reference)

    if result.success:
        if result.amount_minor_units is not None and result.amount_minor_units != to_minor_units(order.total):
            logger.warning(
                "Verified payment amount does not match order total",
                order_id=str(order_id),
                verified=result.amount_minor_units,
                expected=to_minor_units(order.total),
            )
            raise ValidationError({"amount": ["Verified payment amount does not match the order total"]})

        current_domain.process(
            RecordPayment(
                order_id=order_id,
                payment_reference=payment_reference,
                actor_id=actor_id,
                actor_role=ActorRole.SYSTEM.value,
            ),
            asynchronous=False,
        )
        return True

    current_domain.process(
        RecordPaymentFailure(
            order_id=order_id,
            reason=result.failure_reason,
            actor_id=actor_id,
            actor_role=ActorRole.SYSTEM.value,
        ),
        asynchronous=False,
    )
    return False
