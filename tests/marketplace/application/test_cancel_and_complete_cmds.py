"""Application tests for cancellation and completion."""

from datetime import UTC, datetime, timedelta

import pytest
from protean import current_domain

from marketplace.errors import AuthorizationError, StateConflictError
from marketplace.inventory.stock import SetStockLevel, stock_for
from marketplace.order.cancellation import CancelOrder
from marketplace.order.completion import CompleteDeliveredOrders, CompleteOrder
from marketplace.order.lookup import get_order
from marketplace.order.order import Order, OrderStatus, PaymentStatus


def _process(command):
    return current_domain.process(command, asynchronous=False)


def _cancel(order_id, role="admin", reason="Vendor out of stock"):
    return _process(CancelOrder(order_id=order_id, reason=reason, actor_id="admin-1", actor_role=role))


def _delivered_order(buyer_id, delivered_hours_ago):
    order = Order.place(
        buyer_id=buyer_id,
        items_data=[
            {"product_id": "prod-1", "vendor_id": "vendor-a", "quantity": 1, "unit_price": 40.0, "commission_rate": 0.1}
        ],
        subtotal=40.0,
        total=40.0,
    )
    order.record_payment(f"pay-{buyer_id}")
    item_id = order.items[0].id
    order.pack_item(item_id, "vendor-a", "vendor")
    order.hand_item_to_courier(item_id, "vendor-a", "vendor", "DHL")
    order.mark_item_delivered(item_id, "vendor-a", "vendor")
    order.delivered_at = datetime.now(UTC) - timedelta(hours=delivered_hours_ago)
    return order


def _age_delivery(order_id, hours):
    repo = current_domain.repository_for(Order)
    order = repo.get(order_id)
    order.delivered_at = datetime.now(UTC) - timedelta(hours=hours)
    repo.add(order)


class TestCancelOrder:
    def test_cancel_restores_tracked_stock(self, place_order):
        _process(SetStockLevel(product_id="prod-1", available=3, actor_id="vendor-a", actor_role="vendor"))
        order_id = place_order()
        assert stock_for("prod-1").available == 2

        assert _cancel(order_id) is True

        order = get_order(order_id)
        assert order.status == OrderStatus.CANCELLED.value
        assert order.cancellation_reason == "Vendor out of stock"
        assert order.payment_status == PaymentStatus.PAID.value
        assert stock_for("prod-1").available == 3

    def test_second_cancel_is_a_no_op(self, place_order):
        _process(SetStockLevel(product_id="prod-1", available=3, actor_id="vendor-a", actor_role="vendor"))
        order_id = place_order()
        _cancel(order_id)

        assert _cancel(order_id) is False
        assert stock_for("prod-1").available == 3

    def test_delivered_order_cannot_be_cancelled(self, place_order, deliver_order):
        order_id = deliver_order(place_order())
        with pytest.raises(StateConflictError):
            _cancel(order_id)

    def test_admin_only(self, place_order):
        with pytest.raises(AuthorizationError):
            _cancel(place_order(), role="buyer")


class TestCompleteOrder:
    def test_admin_completes_delivered_order(self, place_order, deliver_order):
        order_id = deliver_order(place_order())
        status = _process(CompleteOrder(order_id=order_id, actor_id="admin-1", actor_role="admin"))

        assert status == OrderStatus.COMPLETED.value
        assert get_order(order_id).completed_at is not None

    def test_system_waits_for_dispute_window(self, place_order, deliver_order):
        order_id = deliver_order(place_order())
        with pytest.raises(StateConflictError):
            _process(CompleteOrder(order_id=order_id, actor_id="system", actor_role="system"))

    def test_disputed_order_can_be_completed_by_admin(self, place_order, deliver_order, resolved_dispute):
        order_id = deliver_order(place_order())
        resolved_dispute(order_id, resolution_type="no_action", refund_amount=None)
        assert get_order(order_id).status == OrderStatus.DISPUTED.value

        _process(CompleteOrder(order_id=order_id, actor_id="admin-1", actor_role="admin"))
        assert get_order(order_id).status == OrderStatus.COMPLETED.value


class TestCompletionSweep:
    def test_sweep_completes_only_aged_deliveries(self, place_order, deliver_order):
        aged = deliver_order(place_order())
        fresh = deliver_order(place_order())
        _age_delivery(aged, 49)

        completed = _process(CompleteDeliveredOrders(actor_id="system", actor_role="system"))

        assert completed == 1
        assert get_order(aged).status == OrderStatus.COMPLETED.value
        assert get_order(fresh).status == OrderStatus.DELIVERED.value

    def test_sweep_reaches_every_delivered_order(self):
        repo = current_domain.repository_for(Order)
        for index in range(110):
            repo.add(_delivered_order(f"buyer-{index}", delivered_hours_ago=1))
        aged = _delivered_order("buyer-aged", delivered_hours_ago=49)
        repo.add(aged)

        completed = _process(CompleteDeliveredOrders(actor_id="system", actor_role="system"))

        assert completed == 1
        assert get_order(aged.id).status == OrderStatus.COMPLETED.value

    def test_sweep_with_nothing_due(self, place_order):
        place_order()
        assert _process(CompleteDeliveredOrders(actor_id="system", actor_role="system")) == 0

    def test_buyers_cannot_sweep(self):
        with pytest.raises(AuthorizationError):
            _process(CompleteDeliveredOrders(actor_id="buyer-1", actor_role="buyer"))
