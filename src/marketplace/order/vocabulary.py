"""Translation of legacy status and action spellings at the API boundary.

The state machines only ever see canonical values. Older clients still send
``created``, ``shipped``, ``fulfill`` and friends; these maps turn them into
their canonical equivalents. Canonical values pass through unchanged.
"""

from marketplace.errors import ValidationError
from marketplace.order.order import ItemStatus, OrderStatus

LEGACY_ORDER_STATUSES = {
    "created": OrderStatus.PENDING_PAYMENT.value,
    "processing": OrderStatus.CONFIRMED.value,
    "shipped": OrderStatus.OUT_FOR_DELIVERY.value,
    "fulfilled": OrderStatus.DELIVERED.value,
}

LEGACY_ITEM_STATUSES = {
    "shipped": ItemStatus.HANDED_TO_COURIER.value,
    "fulfilled": ItemStatus.DELIVERED.value,
}

# Canonical item actions
PACK = "pack"
HAND_TO_COURIER = "hand_to_courier"
MARK_DELIVERED = "mark_delivered"

ITEM_ACTIONS = {
    PACK: PACK,
    HAND_TO_COURIER: HAND_TO_COURIER,
    MARK_DELIVERED: MARK_DELIVERED,
    "handToCourier": HAND_TO_COURIER,
    "markDelivered": MARK_DELIVERED,
    # legacy
    "ship": HAND_TO_COURIER,
    "fulfill": MARK_DELIVERED,
}


def _translate(value: str, legacy: dict, canonical: set, field: str) -> str:
    if value in canonical:
        return value
    if value in legacy:
        return legacy[value]
    raise ValidationError({field: [f"Unknown {field} '{value}'"]})


def canonical_order_status(value: str) -> str:
    return _translate(value, LEGACY_ORDER_STATUSES, {s.value for s in OrderStatus}, "status")


def canonical_item_status(value: str) -> str:
    return _translate(value, LEGACY_ITEM_STATUSES, {s.value for s in ItemStatus}, "fulfillment_status")


def canonical_item_action(value: str) -> str:
    try:
        return ITEM_ACTIONS[value]
    except KeyError as exc:
        raise ValidationError({"action": [f"Unknown action '{value}'"]}) from exc
