"""Application tests for commission rate commands and store-backed resolution."""

import pytest
from protean import current_domain

from marketplace.commission.management import (
    SetCategoryCommissionRate,
    SetDefaultCommissionRate,
    SetVendorCommissionRate,
)
from marketplace.commission.resolver import default_rate, rates_for, resolve
from marketplace.errors import AuthorizationError, ValidationError
from marketplace.order.lookup import get_order


def _process(command):
    return current_domain.process(command, asynchronous=False)


def _set_category(category_id, rate, role="admin"):
    return _process(SetCategoryCommissionRate(category_id=category_id, rate=rate, actor_id="admin-1", actor_role=role))


def _set_vendor(vendor_id, rate, role="admin"):
    return _process(SetVendorCommissionRate(vendor_id=vendor_id, rate=rate, actor_id="admin-1", actor_role=role))


class TestDefaultRate:
    def test_default_seeded_when_absent(self):
        assert default_rate() == 0.08
        assert rates_for("vendor-a", "cat-1").source == "default"

    def test_set_default(self):
        assert _process(SetDefaultCommissionRate(rate=0.1, actor_id="admin-1", actor_role="admin")) == 0.1
        assert default_rate() == 0.1

    def test_default_cannot_be_cleared(self):
        with pytest.raises(ValidationError):
            _process(SetDefaultCommissionRate(rate=None, actor_id="admin-1", actor_role="admin"))


class TestPrecedence:
    def test_category_over_default(self):
        _set_category("cat-1", 0.12)
        rates = rates_for("vendor-a", "cat-1")
        assert rates.effective_rate == 0.12
        assert rates.source == "category"
        assert rates.default_rate == 0.08

    def test_vendor_over_category(self):
        _set_category("cat-1", 0.12)
        _set_vendor("vendor-a", 0.05)
        rates = rates_for("vendor-a", "cat-1")
        assert rates.effective_rate == 0.05
        assert rates.source == "vendor"
        assert rates.category_rate == 0.12

    def test_cleared_vendor_override_falls_through(self):
        _set_category("cat-1", 0.12)
        _set_vendor("vendor-a", 0.05)
        _set_vendor("vendor-a", None)
        assert resolve("vendor-a", "cat-1") == 0.12

    def test_other_vendor_unaffected(self):
        _set_vendor("vendor-a", 0.05)
        assert resolve("vendor-b", None) == 0.08


class TestRateCommandValidation:
    def test_admin_only(self):
        with pytest.raises(AuthorizationError):
            _set_vendor("vendor-a", 0.05, role="vendor")

    def test_out_of_range_rejected(self):
        with pytest.raises(ValidationError):
            _set_category("cat-1", 1.5)

    def test_rate_stored_at_four_places(self):
        assert _set_vendor("vendor-a", 0.123456) == 0.1235


class TestRateSnapshot:
    def test_rate_change_does_not_touch_existing_items(self, place_order):
        _set_vendor("vendor-a", 0.1)
        order_id = place_order()

        _set_vendor("vendor-a", 0.2)

        item = get_order(order_id).items[0]
        assert item.commission_rate == 0.1
        assert item.commission_rate_source == "vendor"
        assert item.commission_amount == 20.0

    def test_new_orders_pick_up_new_rate(self, place_order):
        _set_vendor("vendor-a", 0.1)
        place_order()
        _set_vendor("vendor-a", 0.2)

        item = get_order(place_order()).items[0]
        assert item.commission_rate == 0.2
