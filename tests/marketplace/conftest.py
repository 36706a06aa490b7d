import json

import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture

from marketplace.audit import get_audit_log, reset_audit_log
from marketplace.gateway import reset_gateway, set_gateway
from marketplace.gateway.fake_adapter import FakeGateway
from marketplace.notifier import get_notifier, reset_notifier

DEFAULT_ITEMS = [
    {
        "product_id": "prod-1",
        "vendor_id": "vendor-a",
        "category_id": "cat-1",
        "quantity": 1,
        "unit_price": 200.0,
    }
]


@pytest.fixture(scope="session")
def marketplace_bed():
    from marketplace.domain import marketplace

    bed = DomainFixture(marketplace)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(marketplace_bed):
    with marketplace_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def _reset_adapters(monkeypatch):
    monkeypatch.delenv("PAYSTACK_SECRET_KEY", raising=False)
    monkeypatch.delenv("MARKETPLACE_CURRENCY", raising=False)
    reset_gateway()
    reset_audit_log()
    reset_notifier()
    yield
    reset_gateway()
    reset_audit_log()
    reset_notifier()


@pytest.fixture()
def gateway():
    fake = FakeGateway()
    set_gateway(fake)
    return fake


@pytest.fixture()
def audit_log():
    return get_audit_log()


@pytest.fixture()
def notifier():
    return get_notifier()


def _process(command):
    return current_domain.process(command, asynchronous=False)


@pytest.fixture()
def place_order():
    """Place (and by default pay for) an order through the command path."""
    from marketplace.order.payment import RecordPayment
    from marketplace.order.placement import PlaceOrder

    def _place(items=None, buyer_id="buyer-1", paid=True):
        items = items or DEFAULT_ITEMS
        subtotal = sum(i["quantity"] * i["unit_price"] - i.get("applied_discount", 0.0) for i in items)
        order_id = _process(
            PlaceOrder(
                actor_id=buyer_id,
                actor_role="buyer",
                items=json.dumps(items),
                subtotal=subtotal,
                total=subtotal,
            )
        )
        if paid:
            _process(
                RecordPayment(
                    order_id=order_id,
                    payment_reference=f"pay_{order_id}",
                    actor_id="system",
                    actor_role="system",
                )
            )
        return order_id

    return _place


@pytest.fixture()
def deliver_order():
    """Walk every item of a paid order through to delivery, vendor by vendor."""
    from marketplace.order.fulfillment import HandItemToCourier, MarkItemDelivered, PackItem
    from marketplace.order.lookup import get_order

    def _deliver(order_id):
        for item in get_order(order_id).items:
            for command_cls in (PackItem, HandItemToCourier, MarkItemDelivered):
                _process(
                    command_cls(
                        order_id=order_id,
                        item_id=str(item.id),
                        actor_id=str(item.vendor_id),
                        actor_role="vendor",
                    )
                )
        return order_id

    return _deliver


@pytest.fixture()
def resolved_dispute():
    """Open a dispute as the buyer and resolve it as an admin."""
    from marketplace.dispute.opening import OpenDispute
    from marketplace.dispute.resolution import ResolveDispute

    def _resolve(order_id, resolution_type="partial_refund", refund_amount=80.0, product_id=None):
        dispute_id = _process(
            OpenDispute(
                order_id=order_id,
                dispute_type="refund",
                description="The item arrived damaged and unusable.",
                product_id=product_id,
                actor_id="buyer-1",
                actor_role="buyer",
            )
        )
        _process(
            ResolveDispute(
                dispute_id=dispute_id,
                resolution_type=resolution_type,
                resolution="Refund agreed with the vendor",
                refund_amount=refund_amount,
                actor_id="admin-1",
                actor_role="admin",
            )
        )
        return dispute_id

    return _resolve
