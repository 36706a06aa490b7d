"""Application tests for PlaceOrder."""

import json

import pytest
from protean import current_domain

from marketplace.commission.management import SetCategoryCommissionRate
from marketplace.errors import AuthorizationError, StateConflictError, ValidationError
from marketplace.inventory.stock import SetStockLevel, stock_for
from marketplace.order.lookup import get_order
from marketplace.order.order import OrderStatus
from marketplace.order.placement import PlaceOrder


def _process(command):
    return current_domain.process(command, asynchronous=False)


def _place(items, role="buyer", **overrides):
    subtotal = sum(i["quantity"] * i["unit_price"] for i in items)
    values = {
        "actor_id": "buyer-1",
        "actor_role": role,
        "items": json.dumps(items),
        "subtotal": subtotal,
        "total": subtotal,
    }
    values.update(overrides)
    return _process(PlaceOrder(**values))


def _set_stock(product_id, available):
    _process(SetStockLevel(product_id=product_id, available=available, actor_id="admin-1", actor_role="admin"))


ITEMS = [
    {"product_id": "prod-1", "vendor_id": "vendor-a", "category_id": "cat-1", "quantity": 2, "unit_price": 50.0},
    {"product_id": "prod-2", "vendor_id": "vendor-b", "category_id": "cat-2", "quantity": 1, "unit_price": 100.0},
]


class TestPlaceOrderCommand:
    def test_place_persists_order(self):
        order_id = _place(ITEMS)
        order = get_order(order_id)

        assert order.status == OrderStatus.PENDING_PAYMENT.value
        assert str(order.buyer_id) == "buyer-1"
        assert len(order.items) == 2
        assert order.total == 200.0

    def test_rates_resolved_per_item(self):
        _process(SetCategoryCommissionRate(category_id="cat-2", rate=0.15, actor_id="admin-1", actor_role="admin"))

        order = get_order(_place(ITEMS))
        by_product = {str(i.product_id): i for i in order.items}

        assert by_product["prod-1"].commission_rate == 0.08
        assert by_product["prod-1"].commission_rate_source == "default"
        assert by_product["prod-2"].commission_rate == 0.15
        assert by_product["prod-2"].commission_rate_source == "category"
        assert order.platform_commission == 23.0
        assert order.vendor_earnings == 177.0

    def test_shipping_address_snapshot(self):
        address = {"recipient_name": "Efua", "street": "12 Ring Rd", "city": "Accra", "country": "GH"}
        order = get_order(_place(ITEMS, shipping_address=json.dumps(address)))
        assert order.shipping_address.city == "Accra"

    def test_only_buyers_place_orders(self):
        with pytest.raises(AuthorizationError):
            _place(ITEMS, role="vendor")

    def test_missing_item_keys_rejected(self):
        with pytest.raises(ValidationError):
            _place([{"product_id": "prod-1", "quantity": 1, "unit_price": 10.0}])

    def test_unbalanced_total_rejected(self):
        with pytest.raises(ValidationError):
            _place(ITEMS, total=150.0)


class TestStockReservation:
    def test_tracked_products_are_reserved(self):
        _set_stock("prod-1", 5)
        _place(ITEMS)
        assert stock_for("prod-1").available == 3
        assert stock_for("prod-2") is None

    def test_insufficient_stock_rejects_order(self):
        _set_stock("prod-1", 1)
        with pytest.raises(StateConflictError):
            _place(ITEMS)
        assert stock_for("prod-1").available == 1
