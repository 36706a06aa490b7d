"""Shared BDD fixtures and step definitions for the marketplace domain."""

import pytest
from pytest_bdd import given, parsers, then

from marketplace.dispute.dispute import Dispute
from marketplace.dispute.events import (
    DisputeClosed,
    DisputeEscalated,
    DisputeOpened,
    DisputeRefundCompleted,
    DisputeRefundFailed,
    DisputeRefundStarted,
    DisputeResolved,
    DisputeStatusChanged,
)
from marketplace.errors import MarketplaceError
from marketplace.order.events import FulfillmentRecorded, OrderRefunded, OrderStatusChanged
from marketplace.order.order import Order

_EVENT_CLASSES = {
    "FulfillmentRecorded": FulfillmentRecorded,
    "OrderStatusChanged": OrderStatusChanged,
    "OrderRefunded": OrderRefunded,
    "DisputeOpened": DisputeOpened,
    "DisputeStatusChanged": DisputeStatusChanged,
    "DisputeEscalated": DisputeEscalated,
    "DisputeClosed": DisputeClosed,
    "DisputeResolved": DisputeResolved,
    "DisputeRefundStarted": DisputeRefundStarted,
    "DisputeRefundCompleted": DisputeRefundCompleted,
    "DisputeRefundFailed": DisputeRefundFailed,
}


@pytest.fixture()
def error():
    """Container for the error raised by a When step."""
    return {"exc": None}


def _item(product_id, vendor_id, unit_price, rate=0.1):
    return {
        "product_id": product_id,
        "vendor_id": vendor_id,
        "category_id": "cat-bdd",
        "quantity": 1,
        "unit_price": unit_price,
        "commission_rate": rate,
        "commission_rate_source": "default",
    }


def _place(items_data):
    total = sum(i["unit_price"] for i in items_data)
    order = Order.place(buyer_id="buyer-bdd", items_data=items_data, subtotal=total, total=total)
    order.record_payment("pay_bdd")
    order._events.clear()
    return order


def _deliver(order):
    for item in order.items:
        order.pack_item(str(item.id), str(item.vendor_id), "vendor")
        order.hand_item_to_courier(str(item.id), str(item.vendor_id), "vendor")
        order.mark_item_delivered(str(item.id), str(item.vendor_id), "vendor")
    order._events.clear()


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse('a paid order for {price:f} from vendor "{vendor_id}"'),
    target_fixture="order",
)
def paid_single_vendor_order(price, vendor_id):
    return _place([_item("prod-1", vendor_id, price)])


@given(
    parsers.cfparse('a paid order with items from vendors "{first}" and "{second}"'),
    target_fixture="order",
)
def paid_multi_vendor_order(first, second):
    return _place([_item("prod-1", first, 100.0), _item("prod-2", second, 50.0)])


@given(
    parsers.cfparse('a delivered order for {price:f} at commission rate {rate:f}'),
    target_fixture="order",
)
def delivered_order(price, rate):
    order = _place([_item("prod-1", "vendor-a", price, rate)])
    _deliver(order)
    return order


@given("an open dispute on the order", target_fixture="dispute")
def open_dispute(order):
    dispute = Dispute.open(
        order_id=str(order.id),
        buyer_id=str(order.buyer_id),
        vendor_id=order.vendor_ids()[0],
        dispute_type="refund",
        description="The parcel arrived crushed and the item is broken.",
        opened_by=str(order.buyer_id),
        opened_by_role="buyer",
    )
    dispute._events.clear()
    return dispute


@given(parsers.cfparse("the dispute is resolved with a partial refund of {amount:f}"))
def resolved_with_partial_refund(order, dispute, amount):
    dispute.resolve("partial_refund", "Partial refund agreed", "admin-bdd", order.total, refund_amount=amount)
    dispute._events.clear()


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def order_status_is(order, status):
    assert order.status == status


@then(parsers.cfparse('the dispute status is "{status}"'))
def dispute_status_is(dispute, status):
    assert dispute.status == status


@then(parsers.cfparse('the dispute refund status is "{status}"'))
def dispute_refund_status_is(dispute, status):
    assert dispute.refund_status == status


@then(parsers.cfparse('the action fails with "{code}"'))
def action_fails_with(error, code):
    assert error["exc"] is not None, "Expected an error but none was raised"
    assert isinstance(error["exc"], MarketplaceError)
    assert error["exc"].code == code


@then(parsers.cfparse("an {event_type} event is raised on the order"))
def order_event_raised(order, event_type):
    event_cls = _EVENT_CLASSES[event_type]
    assert any(
        isinstance(e, event_cls) for e in order._events
    ), f"No {event_type} event found. Events: {[type(e).__name__ for e in order._events]}"


@then(parsers.cfparse("a {event_type} event is raised on the dispute"))
def dispute_event_raised(dispute, event_type):
    event_cls = _EVENT_CLASSES[event_type]
    assert any(
        isinstance(e, event_cls) for e in dispute._events
    ), f"No {event_type} event found. Events: {[type(e).__name__ for e in dispute._events]}"
