"""Tests for proportional commission reversal on refunds."""

import pytest

from marketplace.errors import StateConflictError, ValidationError
from marketplace.order.events import OrderRefunded
from marketplace.order.order import Order, PaymentStatus


def _paid_order(total=200.0, rate=0.1):
    order = Order.place(
        buyer_id="buyer-1",
        items_data=[
            {"product_id": "prod-1", "vendor_id": "vendor-a", "quantity": 1, "unit_price": total, "commission_rate": rate}
        ],
        subtotal=total,
        total=total,
    )
    order.record_payment("pay-ref-1")
    return order


class TestApplyRefund:
    def test_partial_refund_reverses_proportionally(self):
        order = _paid_order()
        assert order.platform_commission == 20.0
        assert order.vendor_earnings == 180.0

        reversed_amount = order.apply_refund("dsp-1", 80.0)

        assert reversed_amount == 8.0
        assert order.platform_commission == 12.0
        assert order.vendor_earnings == 188.0
        assert order.payment_status == PaymentStatus.REFUNDED.value

    def test_full_refund_reverses_all_commission(self):
        order = _paid_order()
        assert order.apply_refund("dsp-1", 200.0) == 20.0
        assert order.platform_commission == 0.0
        assert order.vendor_earnings == 200.0

    def test_zero_commission_skips_reversal(self):
        order = _paid_order(rate=0.0)
        assert order.apply_refund("dsp-1", 50.0) == 0.0
        assert order.platform_commission == 0.0
        assert order.vendor_earnings == 200.0

    def test_refund_raises_event(self):
        order = _paid_order()
        order.apply_refund("dsp-1", 80.0)
        event = order._events[-1]
        assert isinstance(event, OrderRefunded)
        assert event.dispute_id == "dsp-1"
        assert event.commission_reversed == 8.0

    def test_refund_above_total_rejected(self):
        with pytest.raises(ValidationError):
            _paid_order().apply_refund("dsp-1", 200.01)

    def test_second_refund_rejected(self):
        order = _paid_order()
        order.apply_refund("dsp-1", 10.0)
        with pytest.raises(StateConflictError):
            order.apply_refund("dsp-2", 10.0)
