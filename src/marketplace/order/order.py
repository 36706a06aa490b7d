"""Order aggregate (CQRS) — the ledger of a multi-vendor order.

An order holds items from any number of vendors. Each item carries its own
fulfillment status, scoped to the vendor that owns it, and a commission
snapshot taken when the order was placed. The order-level status follows
item reality: it advances when every item has reached the matching stage.

Order State Machine:
    PENDING_PAYMENT → CONFIRMED → PREPARING → READY_FOR_PICKUP → OUT_FOR_DELIVERY → DELIVERED → COMPLETED
    PREPARING → OUT_FOR_DELIVERY                  (multi-vendor orders, via vendor actions)
    DELIVERED → DISPUTED → COMPLETED
    {PENDING_PAYMENT, CONFIRMED, PREPARING, READY_FOR_PICKUP, OUT_FOR_DELIVERY} → CANCELLED

Item State Machine:
    PENDING → PACKED → HANDED_TO_COURIER → DELIVERED
"""

import json
from datetime import UTC, datetime, timedelta
from enum import Enum
from uuid import uuid4

from protean import invariant
from protean.exceptions import ValidationError as ProteanValidationError
from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    ValueObject,
)

from marketplace.actor import is_admin
from marketplace.commission.resolver import split_commission
from marketplace.domain import marketplace
from marketplace.errors import (
    AuthorizationError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from marketplace.money import amounts_equal, round_money, to_decimal
from marketplace.order.events import (
    FulfillmentRecorded,
    OrderCancelled,
    OrderPlaced,
    OrderRefunded,
    OrderStatusChanged,
    PaymentFailed,
    PaymentRecorded,
)

DISPUTE_WINDOW = timedelta(hours=48)
AUTO_COMPLETION_AGE = timedelta(hours=48)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING_PAYMENT = "pending_payment"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY_FOR_PICKUP = "ready_for_pickup"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DISPUTED = "disputed"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class ItemStatus(Enum):
    PENDING = "pending"
    PACKED = "packed"
    HANDED_TO_COURIER = "handed_to_courier"
    DELIVERED = "delivered"


class FulfillmentAction(Enum):
    ITEM_PACKED = "item_packed"
    ITEM_HANDED_TO_COURIER = "item_handed_to_courier"
    ITEM_DELIVERED = "item_delivered"
    ORDER_READY_FOR_PICKUP = "order_ready_for_pickup"
    ORDER_COURIER_BOOKED = "order_courier_booked"
    ORDER_MARKED_DELIVERED = "order_marked_delivered"
    VENDOR_ITEMS_READY_FOR_PICKUP = "vendor_items_ready_for_pickup"
    VENDOR_COURIER_BOOKED = "vendor_courier_booked"
    VENDOR_ITEMS_DELIVERED = "vendor_items_delivered"


_ITEM_RANK = {
    ItemStatus.PENDING: 0,
    ItemStatus.PACKED: 1,
    ItemStatus.HANDED_TO_COURIER: 2,
    ItemStatus.DELIVERED: 3,
}

_VALID_TRANSITIONS = {
    OrderStatus.PENDING_PAYMENT: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PREPARING, OrderStatus.CANCELLED},
    OrderStatus.PREPARING: {
        OrderStatus.READY_FOR_PICKUP,
        OrderStatus.OUT_FOR_DELIVERY,
        OrderStatus.CANCELLED,
    },
    OrderStatus.READY_FOR_PICKUP: {OrderStatus.OUT_FOR_DELIVERY, OrderStatus.CANCELLED},
    OrderStatus.OUT_FOR_DELIVERY: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: {OrderStatus.COMPLETED, OrderStatus.DISPUTED},
    OrderStatus.DISPUTED: {OrderStatus.COMPLETED},
    OrderStatus.COMPLETED: set(),  # terminal
    OrderStatus.CANCELLED: set(),  # terminal
}

# Item transitions are only accepted while the order is in one of these
_FULFILLABLE_STATUSES = {
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.READY_FOR_PICKUP,
    OrderStatus.OUT_FOR_DELIVERY,
}

# (current order status, minimum item rank) → next order status
_SYNC_RULES = [
    (OrderStatus.CONFIRMED, _ITEM_RANK[ItemStatus.PACKED], OrderStatus.PREPARING),
    (OrderStatus.PREPARING, _ITEM_RANK[ItemStatus.HANDED_TO_COURIER], OrderStatus.OUT_FOR_DELIVERY),
    (OrderStatus.READY_FOR_PICKUP, _ITEM_RANK[ItemStatus.HANDED_TO_COURIER], OrderStatus.OUT_FOR_DELIVERY),
    (OrderStatus.OUT_FOR_DELIVERY, _ITEM_RANK[ItemStatus.DELIVERED], OrderStatus.DELIVERED),
]


def new_order_id() -> str:
    return f"order_{uuid4().hex[:16]}"


def new_item_id() -> str:
    return f"oi_{uuid4().hex[:20]}"


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@marketplace.value_object(part_of="Order")
class ShippingAddress:
    """Delivery address as captured at checkout."""

    recipient_name = String(max_length=200)
    phone = String(max_length=50)
    street = String(max_length=255)
    city = String(max_length=100)
    region = String(max_length=100)
    country = String(max_length=100)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@marketplace.entity(part_of="Order")
class OrderItem:
    """A line item sold by one vendor. Commission fields never change after placement."""

    product_id = Identifier(required=True)
    product_name = String(max_length=255)
    vendor_id = Identifier(required=True)
    category_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    applied_discount = Float(default=0.0, min_value=0.0)
    final_price = Float(required=True, min_value=0.0)
    fulfillment_status = String(
        max_length=30,
        choices=ItemStatus,
        default=ItemStatus.PENDING.value,
    )
    commission_rate = Float(required=True, min_value=0.0, max_value=1.0)
    commission_rate_source = String(max_length=20)
    commission_amount = Float(required=True, min_value=0.0)
    vendor_earnings = Float(required=True, min_value=0.0)
    courier_provider = String(max_length=100)
    courier_reference = String(max_length=255)
    packed_at = DateTime()
    ready_for_pickup_at = DateTime()
    handed_to_courier_at = DateTime()
    delivered_at = DateTime()

    @property
    def rank(self) -> int:
        return _ITEM_RANK[ItemStatus(self.fulfillment_status)]


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@marketplace.aggregate
class Order:
    buyer_id = Identifier(required=True)
    items = HasMany(OrderItem)
    shipping_address = ValueObject(ShippingAddress)

    # Totals, taken as given from checkout
    subtotal = Float(required=True, min_value=0.0)
    discount = Float(default=0.0, min_value=0.0)
    shipping = Float(default=0.0, min_value=0.0)
    tax = Float(default=0.0, min_value=0.0)
    total = Float(required=True, min_value=0.0)

    # Commission bookkeeping (sum over items, adjusted by refunds)
    platform_commission = Float(default=0.0, min_value=0.0)
    vendor_earnings = Float(default=0.0, min_value=0.0)

    status = String(
        max_length=30,
        choices=OrderStatus,
        default=OrderStatus.PENDING_PAYMENT.value,
    )
    payment_status = String(
        max_length=20,
        choices=PaymentStatus,
        default=PaymentStatus.PENDING.value,
    )
    payment_reference = String(max_length=255)

    courier_provider = String(max_length=100)
    courier_reference = String(max_length=255)

    cancelled_by = Identifier()
    cancellation_reason = String(max_length=500)

    created_at = DateTime()
    updated_at = DateTime()
    paid_at = DateTime()
    delivered_at = DateTime()
    completed_at = DateTime()
    cancelled_at = DateTime()

    # -------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------
    @invariant.post
    def total_must_match_components(self):
        expected = to_decimal(self.subtotal) - to_decimal(self.discount) + to_decimal(self.shipping) + to_decimal(self.tax)
        if not amounts_equal(self.total, expected):
            raise ProteanValidationError({"total": ["Total must equal subtotal - discount + shipping + tax"]})

    @invariant.post
    def item_commission_must_split_final_price(self):
        for item in self.items or []:
            if not amounts_equal(to_decimal(item.commission_amount) + to_decimal(item.vendor_earnings), item.final_price):
                raise ProteanValidationError(
                    {"items": [f"Commission and vendor earnings of item {item.id} do not add up to its final price"]}
                )

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        buyer_id: str,
        items_data: list[dict],
        subtotal: float,
        total: float,
        discount: float = 0.0,
        shipping: float = 0.0,
        tax: float = 0.0,
        shipping_address: dict | None = None,
    ):
        """Place a new order.

        Each entry of ``items_data`` must already carry the resolved
        ``commission_rate`` (and optionally ``commission_rate_source``);
        final price and the commission split are computed here.
        """
        if not items_data:
            raise ValidationError({"items": ["An order must contain at least one item"]})

        amounts = {"subtotal": subtotal, "discount": discount, "shipping": shipping, "tax": tax, "total": total}
        for name, value in amounts.items():
            if value is None or value < 0:
                raise ValidationError({name: [f"{name.capitalize()} must be a non-negative amount"]})

        expected = to_decimal(subtotal) - to_decimal(discount) + to_decimal(shipping) + to_decimal(tax)
        if not amounts_equal(total, expected):
            raise ValidationError({"total": ["Total must equal subtotal - discount + shipping + tax"]})

        now = datetime.now(UTC)
        order = cls(
            id=new_order_id(),
            buyer_id=buyer_id,
            subtotal=round_money(subtotal),
            discount=round_money(discount),
            shipping=round_money(shipping),
            tax=round_money(tax),
            total=round_money(total),
            shipping_address=ShippingAddress(**shipping_address) if shipping_address else None,
            status=OrderStatus.PENDING_PAYMENT.value,
            payment_status=PaymentStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )

        commission_total = to_decimal(0)
        earnings_total = to_decimal(0)
        for data in items_data:
            item = cls._build_item(data)
            commission_total += to_decimal(item.commission_amount)
            earnings_total += to_decimal(item.vendor_earnings)
            order.add_items(item)

        order.platform_commission = round_money(commission_total)
        order.vendor_earnings = round_money(earnings_total)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                buyer_id=str(buyer_id),
                vendor_ids=json.dumps(order.vendor_ids()),
                item_count=len(order.items),
                total=order.total,
                platform_commission=order.platform_commission,
                placed_at=now,
            )
        )
        return order

    @staticmethod
    def _build_item(data: dict) -> OrderItem:
        quantity = data.get("quantity")
        unit_price = data.get("unit_price")
        applied_discount = data.get("applied_discount") or 0.0
        if quantity is None or quantity < 1:
            raise ValidationError({"quantity": ["Item quantity must be at least 1"]})
        if unit_price is None or unit_price < 0 or applied_discount < 0:
            raise ValidationError({"unit_price": ["Item prices must be non-negative"]})

        final_price = round_money(to_decimal(unit_price) * quantity - to_decimal(applied_discount))
        if final_price < 0:
            raise ValidationError({"applied_discount": ["Discount cannot exceed the item price"]})

        rate = data["commission_rate"]
        commission, earnings = split_commission(final_price, rate)
        return OrderItem(
            id=new_item_id(),
            product_id=data["product_id"],
            product_name=data.get("product_name"),
            vendor_id=data["vendor_id"],
            category_id=data.get("category_id"),
            quantity=quantity,
            unit_price=round_money(unit_price),
            applied_discount=round_money(applied_discount),
            final_price=final_price,
            fulfillment_status=ItemStatus.PENDING.value,
            commission_rate=rate,
            commission_rate_source=data.get("commission_rate_source"),
            commission_amount=commission,
            vendor_earnings=earnings,
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def vendor_ids(self) -> list[str]:
        return sorted({str(item.vendor_id) for item in self.items or []})

    def item(self, item_id: str) -> OrderItem:
        found = next((i for i in (self.items or []) if str(i.id) == str(item_id)), None)
        if found is None:
            raise NotFoundError({"item_id": [f"Item {item_id} not found in order {self.id}"]})
        return found

    def item_for_product(self, product_id: str) -> OrderItem | None:
        return next((i for i in (self.items or []) if str(i.product_id) == str(product_id)), None)

    def is_within_dispute_window(self, now: datetime | None = None) -> bool:
        delivered_at = _aware(self.delivered_at)
        if delivered_at is None:
            return False
        return (now or datetime.now(UTC)) - delivered_at <= DISPUTE_WINDOW

    def is_due_for_completion(self, now: datetime | None = None) -> bool:
        delivered_at = _aware(self.delivered_at)
        if OrderStatus(self.status) != OrderStatus.DELIVERED or delivered_at is None:
            return False
        return (now or datetime.now(UTC)) - delivered_at > AUTO_COMPLETION_AGE

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status: OrderStatus) -> None:
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise StateConflictError(
                {"status": [f"Cannot transition from {current.value} to {target_status.value}"]}
            )

    def _transition_to(self, target_status: OrderStatus, actor_id=None, actor_role=None, now=None) -> None:
        self._assert_can_transition(target_status)
        now = now or datetime.now(UTC)
        previous = self.status

        self.status = target_status.value
        self.updated_at = now
        if target_status == OrderStatus.DELIVERED:
            self.delivered_at = now
        elif target_status == OrderStatus.COMPLETED:
            self.completed_at = now

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                buyer_id=str(self.buyer_id),
                from_status=previous,
                to_status=target_status.value,
                actor_id=str(actor_id) if actor_id else None,
                actor_role=actor_role,
                changed_at=now,
            )
        )

    def _sync_status_from_items(self, actor_id, actor_role, now) -> None:
        """Advance the order status as far as item reality justifies."""
        lowest = min(item.rank for item in self.items)
        advanced = True
        while advanced:
            advanced = False
            current = OrderStatus(self.status)
            for from_status, min_rank, target in _SYNC_RULES:
                if current == from_status and lowest >= min_rank:
                    self._transition_to(target, actor_id, actor_role, now)
                    advanced = True
                    break

    def _assert_fulfillable(self) -> None:
        current = OrderStatus(self.status)
        if current not in _FULFILLABLE_STATUSES:
            raise StateConflictError({"status": [f"Items cannot be fulfilled while the order is {current.value}"]})

    def _record_fulfillment(
        self,
        action: FulfillmentAction,
        items: list[OrderItem],
        actor_id: str,
        actor_role: str,
        now: datetime,
        vendor_id: str | None = None,
        courier_provider: str | None = None,
        courier_reference: str | None = None,
    ) -> None:
        self.updated_at = now
        self.raise_(
            FulfillmentRecorded(
                order_id=str(self.id),
                buyer_id=str(self.buyer_id),
                action=action.value,
                vendor_id=str(vendor_id) if vendor_id else None,
                item_ids=json.dumps([str(i.id) for i in items]),
                item_status=items[0].fulfillment_status if items else None,
                courier_provider=courier_provider,
                courier_reference=courier_reference,
                actor_id=str(actor_id),
                actor_role=actor_role,
                occurred_at=now,
            )
        )

    @staticmethod
    def _move_item(item: OrderItem, target: ItemStatus, now: datetime, courier_provider=None, courier_reference=None):
        current = ItemStatus(item.fulfillment_status)
        if _ITEM_RANK[target] != _ITEM_RANK[current] + 1:
            raise StateConflictError(
                {"fulfillment_status": [f"Cannot move item {item.id} from {current.value} to {target.value}"]}
            )

        item.fulfillment_status = target.value
        if target == ItemStatus.PACKED:
            item.packed_at = now
        elif target == ItemStatus.HANDED_TO_COURIER:
            item.handed_to_courier_at = now
            if courier_provider:
                item.courier_provider = courier_provider
            if courier_reference:
                item.courier_reference = courier_reference
        elif target == ItemStatus.DELIVERED:
            item.delivered_at = now

    @staticmethod
    def _blocking(items: list[OrderItem], required: ItemStatus) -> list[OrderItem]:
        return [i for i in items if i.rank < _ITEM_RANK[required]]

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def record_payment(self, payment_reference: str) -> bool:
        """Record a confirmed payment. Returns False when already recorded."""
        if not payment_reference:
            raise ValidationError({"payment_reference": ["Payment reference is required"]})

        if self.payment_reference and self.payment_reference != payment_reference:
            raise StateConflictError({"payment_reference": ["Order already has a different payment reference"]})

        current = PaymentStatus(self.payment_status)
        if current == PaymentStatus.PAID:
            return False
        if current == PaymentStatus.REFUNDED:
            raise StateConflictError({"payment_status": ["Order payment has already been refunded"]})
        if OrderStatus(self.status) == OrderStatus.CANCELLED:
            raise StateConflictError({"status": ["Cannot record payment for a cancelled order"]})

        now = datetime.now(UTC)
        self.payment_reference = payment_reference
        self.payment_status = PaymentStatus.PAID.value
        self.paid_at = now
        self.updated_at = now
        self.raise_(
            PaymentRecorded(
                order_id=str(self.id),
                buyer_id=str(self.buyer_id),
                payment_reference=payment_reference,
                recorded_at=now,
            )
        )

        if OrderStatus(self.status) == OrderStatus.PENDING_PAYMENT:
            self._transition_to(OrderStatus.CONFIRMED, now=now)
        return True

    def record_payment_failure(self, reason: str | None = None) -> None:
        current = PaymentStatus(self.payment_status)
        if current not in (PaymentStatus.PENDING, PaymentStatus.FAILED):
            raise StateConflictError({"payment_status": [f"Cannot mark a {current.value} payment as failed"]})

        now = datetime.now(UTC)
        self.payment_status = PaymentStatus.FAILED.value
        self.updated_at = now
        self.raise_(
            PaymentFailed(
                order_id=str(self.id),
                buyer_id=str(self.buyer_id),
                reason=reason,
                failed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Per-item fulfillment
    # -------------------------------------------------------------------
    def _advance_item(
        self,
        item_id: str,
        target: ItemStatus,
        action: FulfillmentAction,
        actor_id: str,
        actor_role: str,
        courier_provider: str | None = None,
        courier_reference: str | None = None,
    ) -> OrderItem:
        self._assert_fulfillable()
        item = self.item(item_id)
        if not is_admin(actor_role) and str(item.vendor_id) != str(actor_id):
            raise AuthorizationError({"item_id": ["Only the vendor that owns this item can update it"]})

        now = datetime.now(UTC)
        self._move_item(item, target, now, courier_provider, courier_reference)
        self._record_fulfillment(
            action,
            [item],
            actor_id,
            actor_role,
            now,
            vendor_id=str(item.vendor_id),
            courier_provider=courier_provider,
            courier_reference=courier_reference,
        )
        self._sync_status_from_items(actor_id, actor_role, now)
        return item

    def pack_item(self, item_id: str, actor_id: str, actor_role: str) -> OrderItem:
        return self._advance_item(item_id, ItemStatus.PACKED, FulfillmentAction.ITEM_PACKED, actor_id, actor_role)

    def hand_item_to_courier(
        self,
        item_id: str,
        actor_id: str,
        actor_role: str,
        courier_provider: str | None = None,
        courier_reference: str | None = None,
    ) -> OrderItem:
        return self._advance_item(
            item_id,
            ItemStatus.HANDED_TO_COURIER,
            FulfillmentAction.ITEM_HANDED_TO_COURIER,
            actor_id,
            actor_role,
            courier_provider,
            courier_reference,
        )

    def mark_item_delivered(self, item_id: str, actor_id: str, actor_role: str) -> OrderItem:
        return self._advance_item(item_id, ItemStatus.DELIVERED, FulfillmentAction.ITEM_DELIVERED, actor_id, actor_role)

    # -------------------------------------------------------------------
    # Order-level aggregate fulfillment (single-vendor orders only)
    # -------------------------------------------------------------------
    def _assert_single_vendor_actor(self, actor_id: str, actor_role: str) -> None:
        vendors = self.vendor_ids()
        if len(vendors) > 1:
            raise StateConflictError(
                {
                    "order": [
                        f"Order has items from {len(vendors)} vendors; "
                        "order-level actions are only available on single-vendor orders, use vendor actions instead"
                    ]
                }
            )
        if not is_admin(actor_role) and vendors[0] != str(actor_id):
            raise AuthorizationError({"order": ["Only the vendor of this order can update it"]})

    def _assert_status(self, required: OrderStatus, action: str) -> None:
        current = OrderStatus(self.status)
        if current != required:
            raise StateConflictError(
                {"status": [f"Order must be {required.value} to {action}; it is {current.value}"]}
            )

    def mark_ready_for_pickup(self, actor_id: str, actor_role: str) -> None:
        """Mark the whole order ready for courier pickup. Every item must be packed."""
        self._assert_single_vendor_actor(actor_id, actor_role)
        blocking = self._blocking(self.items, ItemStatus.PACKED)
        if blocking:
            raise StateConflictError({"items": [f"{len(blocking)} item(s) have not been packed yet"]})
        self._assert_status(OrderStatus.PREPARING, "be marked ready for pickup")

        now = datetime.now(UTC)
        for item in self.items:
            item.ready_for_pickup_at = now
        self._record_fulfillment(
            FulfillmentAction.ORDER_READY_FOR_PICKUP,
            list(self.items),
            actor_id,
            actor_role,
            now,
            vendor_id=self.vendor_ids()[0],
        )
        self._transition_to(OrderStatus.READY_FOR_PICKUP, actor_id, actor_role, now)

    def book_courier(
        self,
        actor_id: str,
        actor_role: str,
        courier_provider: str,
        courier_reference: str | None = None,
    ) -> None:
        """Hand every packed item to the booked courier and send the order out."""
        if not courier_provider:
            raise ValidationError({"courier_provider": ["Courier provider is required"]})
        self._assert_single_vendor_actor(actor_id, actor_role)
        blocking = self._blocking(self.items, ItemStatus.PACKED)
        if blocking:
            raise StateConflictError({"items": [f"{len(blocking)} item(s) have not been packed yet"]})
        self._assert_status(OrderStatus.READY_FOR_PICKUP, "book a courier")

        now = datetime.now(UTC)
        moved = [i for i in self.items if ItemStatus(i.fulfillment_status) == ItemStatus.PACKED]
        for item in moved:
            self._move_item(item, ItemStatus.HANDED_TO_COURIER, now, courier_provider, courier_reference)
        self.courier_provider = courier_provider
        self.courier_reference = courier_reference
        self._record_fulfillment(
            FulfillmentAction.ORDER_COURIER_BOOKED,
            moved,
            actor_id,
            actor_role,
            now,
            vendor_id=self.vendor_ids()[0],
            courier_provider=courier_provider,
            courier_reference=courier_reference,
        )
        self._transition_to(OrderStatus.OUT_FOR_DELIVERY, actor_id, actor_role, now)

    def mark_order_delivered(self, actor_id: str, actor_role: str) -> None:
        """Confirm delivery of the whole order. Every item must be with the courier."""
        self._assert_single_vendor_actor(actor_id, actor_role)
        blocking = self._blocking(self.items, ItemStatus.HANDED_TO_COURIER)
        if blocking:
            raise StateConflictError({"items": [f"{len(blocking)} item(s) have not been handed to a courier yet"]})
        self._assert_status(OrderStatus.OUT_FOR_DELIVERY, "be marked delivered")

        now = datetime.now(UTC)
        moved = [i for i in self.items if ItemStatus(i.fulfillment_status) == ItemStatus.HANDED_TO_COURIER]
        for item in moved:
            self._move_item(item, ItemStatus.DELIVERED, now)
        self._record_fulfillment(
            FulfillmentAction.ORDER_MARKED_DELIVERED,
            moved,
            actor_id,
            actor_role,
            now,
            vendor_id=self.vendor_ids()[0],
        )
        self._transition_to(OrderStatus.DELIVERED, actor_id, actor_role, now)

    # -------------------------------------------------------------------
    # Per-vendor aggregate fulfillment
    # -------------------------------------------------------------------
    def _vendor_items(self, vendor_id: str) -> list[OrderItem]:
        return [i for i in (self.items or []) if str(i.vendor_id) == str(vendor_id)]

    @staticmethod
    def _no_eligible_items(vendor_id: str) -> StateConflictError:
        return StateConflictError({"items": [f"No eligible items for vendor {vendor_id} on this order"]})

    def vendor_ready_for_pickup(self, vendor_id: str, actor_role: str) -> list[OrderItem]:
        """Flag the vendor's packed items as ready for courier pickup."""
        self._assert_fulfillable()
        own = self._vendor_items(vendor_id)
        blocking = self._blocking(own, ItemStatus.PACKED)
        if blocking:
            raise StateConflictError({"items": [f"{len(blocking)} of your item(s) have not been packed yet"]})

        eligible = [
            i
            for i in own
            if ItemStatus(i.fulfillment_status) == ItemStatus.PACKED and i.ready_for_pickup_at is None
        ]
        if not eligible:
            raise self._no_eligible_items(vendor_id)

        now = datetime.now(UTC)
        for item in eligible:
            item.ready_for_pickup_at = now
        self._record_fulfillment(
            FulfillmentAction.VENDOR_ITEMS_READY_FOR_PICKUP,
            eligible,
            vendor_id,
            actor_role,
            now,
            vendor_id=vendor_id,
        )
        return eligible

    def vendor_book_courier(
        self,
        vendor_id: str,
        actor_role: str,
        courier_provider: str,
        courier_reference: str | None = None,
    ) -> list[OrderItem]:
        """Hand the vendor's packed items to its courier."""
        if not courier_provider:
            raise ValidationError({"courier_provider": ["Courier provider is required"]})
        self._assert_fulfillable()
        own = self._vendor_items(vendor_id)
        blocking = self._blocking(own, ItemStatus.PACKED)
        if blocking:
            raise StateConflictError({"items": [f"{len(blocking)} of your item(s) have not been packed yet"]})

        eligible = [i for i in own if ItemStatus(i.fulfillment_status) == ItemStatus.PACKED]
        if not eligible:
            raise self._no_eligible_items(vendor_id)

        now = datetime.now(UTC)
        for item in eligible:
            self._move_item(item, ItemStatus.HANDED_TO_COURIER, now, courier_provider, courier_reference)
        self._record_fulfillment(
            FulfillmentAction.VENDOR_COURIER_BOOKED,
            eligible,
            vendor_id,
            actor_role,
            now,
            vendor_id=vendor_id,
            courier_provider=courier_provider,
            courier_reference=courier_reference,
        )
        self._sync_status_from_items(vendor_id, actor_role, now)
        return eligible

    def vendor_mark_delivered(self, vendor_id: str, actor_role: str) -> list[OrderItem]:
        """Confirm delivery of the vendor's items that are with a courier."""
        self._assert_fulfillable()
        own = self._vendor_items(vendor_id)
        blocking = self._blocking(own, ItemStatus.HANDED_TO_COURIER)
        if blocking:
            raise StateConflictError(
                {"items": [f"{len(blocking)} of your item(s) have not been handed to a courier yet"]}
            )

        eligible = [i for i in own if ItemStatus(i.fulfillment_status) == ItemStatus.HANDED_TO_COURIER]
        if not eligible:
            raise self._no_eligible_items(vendor_id)

        now = datetime.now(UTC)
        for item in eligible:
            self._move_item(item, ItemStatus.DELIVERED, now)
        self._record_fulfillment(
            FulfillmentAction.VENDOR_ITEMS_DELIVERED,
            eligible,
            vendor_id,
            actor_role,
            now,
            vendor_id=vendor_id,
        )
        self._sync_status_from_items(vendor_id, actor_role, now)
        return eligible

    # -------------------------------------------------------------------
    # Cancellation, completion, disputes
    # -------------------------------------------------------------------
    def cancel(self, cancelled_by: str, actor_role: str, reason: str | None = None) -> bool:
        """Cancel the order. Returns False when it was already cancelled."""
        current = OrderStatus(self.status)
        if current == OrderStatus.CANCELLED:
            return False
        if OrderStatus.CANCELLED not in _VALID_TRANSITIONS[current]:
            raise StateConflictError({"status": [f"Cannot cancel an order that is {current.value}"]})

        now = datetime.now(UTC)
        self._transition_to(OrderStatus.CANCELLED, cancelled_by, actor_role, now)
        self.cancelled_by = cancelled_by
        self.cancellation_reason = reason
        self.cancelled_at = now
        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                buyer_id=str(self.buyer_id),
                vendor_ids=json.dumps(self.vendor_ids()),
                reason=reason,
                restocked_items=json.dumps(
                    [{"product_id": str(i.product_id), "quantity": i.quantity} for i in self.items]
                ),
                cancelled_by=str(cancelled_by),
                cancelled_at=now,
            )
        )
        return True

    def complete(self, actor_id: str | None = None, actor_role: str | None = None) -> None:
        self._transition_to(OrderStatus.COMPLETED, actor_id, actor_role)

    def mark_disputed(self, actor_id: str, actor_role: str) -> None:
        """Flag a delivered order as disputed. Completed orders keep their status."""
        if OrderStatus(self.status) == OrderStatus.DELIVERED:
            self._transition_to(OrderStatus.DISPUTED, actor_id, actor_role)

    # -------------------------------------------------------------------
    # Refunds
    # -------------------------------------------------------------------
    def apply_refund(self, dispute_id: str, refund_amount: float) -> float:
        """Mark the payment refunded and reverse commission proportionally.

        Returns the commission amount moved back to vendor earnings.
        """
        if PaymentStatus(self.payment_status) == PaymentStatus.REFUNDED:
            raise StateConflictError({"payment_status": ["Order payment has already been refunded"]})
        if refund_amount is None or refund_amount <= 0 or refund_amount > self.total:
            raise ValidationError({"refund_amount": ["Refund amount must be positive and cannot exceed the order total"]})

        commission = to_decimal(self.platform_commission)
        to_reverse = to_decimal(0)
        if commission > 0:
            ratio = min(to_decimal(refund_amount) / to_decimal(self.total), to_decimal(1))
            to_reverse = min(to_decimal(round_money(commission * ratio)), commission)

        now = datetime.now(UTC)
        self.platform_commission = round_money(max(commission - to_reverse, to_decimal(0)))
        self.vendor_earnings = round_money(to_decimal(self.vendor_earnings) + to_reverse)
        self.payment_status = PaymentStatus.REFUNDED.value
        self.updated_at = now
        self.raise_(
            OrderRefunded(
                order_id=str(self.id),
                buyer_id=str(self.buyer_id),
                dispute_id=str(dispute_id),
                refund_amount=round_money(refund_amount),
                commission_reversed=round_money(to_reverse),
                platform_commission=self.platform_commission,
                vendor_earnings=self.vendor_earnings,
                refunded_at=now,
            )
        )
        return round_money(to_reverse)
