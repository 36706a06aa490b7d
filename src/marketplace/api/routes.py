"""FastAPI routes for the marketplace — orders, disputes and commission rates.

The identity layer authenticates callers and forwards the actor as the
``X-Actor-Id`` and ``X-Actor-Role`` headers.
"""

import json
from dataclasses import dataclass

from fastapi import APIRouter, Depends, Header
from protean.utils.globals import current_domain

from marketplace.actor import ActorRole, require_role
from marketplace.api.schemas import (
    CancelOrderRequest,
    CommissionBreakdownResponse,
    CommissionRateRequest,
    CommissionRateResponse,
    CompletionSweepResponse,
    ConfirmRefundRequest,
    CourierRequest,
    DisputeIdResponse,
    DisputeStatsResponse,
    DisputeSummary,
    ItemActionRequest,
    MessageIdResponse,
    OpenDisputeRequest,
    OrderIdResponse,
    OrderItemView,
    OrderView,
    PlaceOrderRequest,
    PostMessageRequest,
    ProcessRefundRequest,
    ReasonRequest,
    RecordPaymentFailureRequest,
    RecordPaymentRequest,
    RefundResponse,
    ResolveDisputeRequest,
    StatusResponse,
    StockLevelRequest,
    UpdateDisputePriorityRequest,
    UpdateDisputeStatusRequest,
    VendorActionResponse,
)
from marketplace.commission.management import (
    SetCategoryCommissionRate,
    SetDefaultCommissionRate,
    SetVendorCommissionRate,
)
from marketplace.commission.rate import CommissionScope
from marketplace.commission.resolver import rates_for
from marketplace.dispute.dispute import Dispute
from marketplace.dispute.lookup import get_dispute
from marketplace.dispute.management import (
    CloseDispute,
    EscalateDispute,
    UpdateDisputePriority,
    UpdateDisputeStatus,
)
from marketplace.dispute.messaging import PostDisputeMessage
from marketplace.dispute.opening import OpenDispute
from marketplace.dispute.queries import dispute_stats, list_disputes
from marketplace.dispute.reconciliation import process_dispute_refund
from marketplace.dispute.refund import ConfirmDisputeRefund
from marketplace.dispute.resolution import ResolveDispute
from marketplace.errors import AuthorizationError
from marketplace.inventory.stock import SetStockLevel
from marketplace.order.cancellation import CancelOrder
from marketplace.order.completion import CompleteDeliveredOrders, CompleteOrder
from marketplace.order.delivery import (
    BookCourier,
    MarkOrderDelivered,
    MarkReadyForPickup,
    VendorBookCourier,
    VendorMarkDelivered,
    VendorReadyForPickup,
)
from marketplace.order.fulfillment import HandItemToCourier, MarkItemDelivered, PackItem
from marketplace.order.lookup import get_order
from marketplace.order.order import Order
from marketplace.order.payment import RecordPayment, RecordPaymentFailure, verify_and_record_payment
from marketplace.order.placement import PlaceOrder
from marketplace.order.vocabulary import HAND_TO_COURIER, PACK, canonical_item_action, canonical_order_status


@dataclass
class Actor:
    id: str
    role: str


def current_actor(
    x_actor_id: str = Header(...),
    x_actor_role: str = Header(...),
) -> Actor:
    return Actor(id=x_actor_id, role=x_actor_role)


def _order_view(order: Order) -> OrderView:
    return OrderView(
        order_id=str(order.id),
        buyer_id=str(order.buyer_id),
        status=order.status,
        payment_status=order.payment_status,
        subtotal=order.subtotal,
        discount=order.discount,
        shipping=order.shipping,
        tax=order.tax,
        total=order.total,
        platform_commission=order.platform_commission,
        vendor_earnings=order.vendor_earnings,
        items=[
            OrderItemView(
                item_id=str(item.id),
                product_id=str(item.product_id),
                vendor_id=str(item.vendor_id),
                category_id=str(item.category_id) if item.category_id else None,
                quantity=item.quantity,
                unit_price=item.unit_price,
                final_price=item.final_price,
                fulfillment_status=item.fulfillment_status,
                commission_rate=item.commission_rate,
                commission_rate_source=item.commission_rate_source,
                commission_amount=item.commission_amount,
                vendor_earnings=item.vendor_earnings,
            )
            for item in order.items
        ],
    )


def _dispute_summary(dispute: Dispute) -> DisputeSummary:
    return DisputeSummary(
        dispute_id=str(dispute.id),
        order_id=str(dispute.order_id),
        buyer_id=str(dispute.buyer_id),
        vendor_id=str(dispute.vendor_id),
        product_id=str(dispute.product_id) if dispute.product_id else None,
        dispute_type=dispute.dispute_type,
        status=dispute.status,
        priority=dispute.priority,
        amount=dispute.amount,
        refund_status=dispute.refund_status,
        created_at=dispute.created_at.isoformat() if dispute.created_at else None,
    )


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderIdResponse)
async def place_order(body: PlaceOrderRequest, actor: Actor = Depends(current_actor)) -> OrderIdResponse:
    command = PlaceOrder(
        actor_id=actor.id,
        actor_role=actor.role,
        items=json.dumps([item.model_dump() for item in body.items]),
        subtotal=body.subtotal,
        discount=body.discount,
        shipping=body.shipping,
        tax=body.tax,
        total=body.total,
        shipping_address=json.dumps(body.shipping_address.model_dump()) if body.shipping_address else None,
    )
    order_id = current_domain.process(command, asynchronous=False)
    return OrderIdResponse(order_id=order_id)


@order_router.get("", response_model=list[OrderView])
async def list_orders(status: str | None = None, actor: Actor = Depends(current_actor)) -> list[OrderView]:
    """Admin order listing. Accepts legacy status spellings."""
    require_role(actor.role, ActorRole.ADMIN)
    query = current_domain.repository_for(Order)._dao.query
    if status:
        query = query.filter(status=canonical_order_status(status))
    return [_order_view(order) for order in query.limit(None).all().items]


@order_router.post("/complete-delivered", response_model=CompletionSweepResponse)
async def complete_delivered_orders(actor: Actor = Depends(current_actor)) -> CompletionSweepResponse:
    command = CompleteDeliveredOrders(actor_id=actor.id, actor_role=actor.role)
    completed = current_domain.process(command, asynchronous=False)
    return CompletionSweepResponse(completed=completed)


@order_router.get("/{order_id}", response_model=OrderView)
async def get_order_details(order_id: str, actor: Actor = Depends(current_actor)) -> OrderView:
    order = get_order(order_id)
    allowed = (
        actor.role in (ActorRole.ADMIN.value, ActorRole.SYSTEM.value)
        or (actor.role == ActorRole.BUYER.value and str(order.buyer_id) == actor.id)
        or (actor.role == ActorRole.VENDOR.value and actor.id in order.vendor_ids())
    )
    if not allowed:
        raise AuthorizationError({"order_id": ["You do not have access to this order"]})
    return _order_view(order)


@order_router.post("/{order_id}/payment", response_model=StatusResponse)
async def record_payment(
    order_id: str, body: RecordPaymentRequest, actor: Actor = Depends(current_actor)
) -> StatusResponse:
    command = RecordPayment(
        order_id=order_id,
        payment_reference=body.payment_reference,
        actor_id=actor.id,
        actor_role=actor.role,
    )
    recorded = current_domain.process(command, asynchronous=False)
    return StatusResponse(status="recorded" if recorded else "already_recorded")


@order_router.post("/{order_id}/payment/verify", response_model=StatusResponse)
async def verify_payment(
    order_id: str, body: RecordPaymentRequest, actor: Actor = Depends(current_actor)
) -> StatusResponse:
    require_role(actor.role, ActorRole.SYSTEM, ActorRole.ADMIN)
    paid = verify_and_record_payment(order_id, body.payment_reference, actor_id=actor.id)
    return StatusResponse(status="paid" if paid else "failed")


@order_router.post("/{order_id}/payment/failure", response_model=StatusResponse)
async def record_payment_failure(
    order_id: str, body: RecordPaymentFailureRequest, actor: Actor = Depends(current_actor)
) -> StatusResponse:
    command = RecordPaymentFailure(
        order_id=order_id,
        reason=body.reason,
        actor_id=actor.id,
        actor_role=actor.role,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="failed")


@order_router.post("/{order_id}/items/{item_id}/fulfillment", response_model=StatusResponse)
async def fulfill_item(
    order_id: str, item_id: str, body: ItemActionRequest, actor: Actor = Depends(current_actor)
) -> StatusResponse:
    """Advance one item. ``action`` accepts legacy names such as ``ship`` and ``fulfill``."""
    action = canonical_item_action(body.action)
    if action == PACK:
        command = PackItem(order_id=order_id, item_id=item_id, actor_id=actor.id, actor_role=actor.role)
    elif action == HAND_TO_COURIER:
        command = HandItemToCourier(
            order_id=order_id,
            item_id=item_id,
            courier_provider=body.courier_provider,
            courier_reference=body.courier_reference,
            actor_id=actor.id,
            actor_role=actor.role,
        )
    else:
        command = MarkItemDelivered(order_id=order_id, item_id=item_id, actor_id=actor.id, actor_role=actor.role)
    order_status = current_domain.process(command, asynchronous=False)
    return StatusResponse(status=order_status)


@order_router.post("/{order_id}/ready-for-pickup", response_model=StatusResponse)
async def mark_ready_for_pickup(order_id: str, actor: Actor = Depends(current_actor)) -> StatusResponse:
    command = MarkReadyForPickup(order_id=order_id, actor_id=actor.id, actor_role=actor.role)
    return StatusResponse(status=current_domain.process(command, asynchronous=False))


@order_router.post("/{order_id}/courier", response_model=StatusResponse)
async def book_courier(order_id: str, body: CourierRequest, actor: Actor = Depends(current_actor)) -> StatusResponse:
    command = BookCourier(
        order_id=order_id,
        courier_provider=body.courier_provider,
        courier_reference=body.courier_reference,
        actor_id=actor.id,
        actor_role=actor.role,
    )
    return StatusResponse(status=current_domain.process(command, asynchronous=False))


@order_router.post("/{order_id}/delivered", response_model=StatusResponse)
async def mark_order_delivered(order_id: str, actor: Actor = Depends(current_actor)) -> StatusResponse:
    command = MarkOrderDelivered(order_id=order_id, actor_id=actor.id, actor_role=actor.role)
    return StatusResponse(status=current_domain.process(command, asynchronous=False))


@order_router.post("/{order_id}/vendor/ready-for-pickup", response_model=VendorActionResponse)
async def vendor_ready_for_pickup(order_id: str, actor: Actor = Depends(current_actor)) -> VendorActionResponse:
    command = VendorReadyForPickup(order_id=order_id, actor_id=actor.id, actor_role=actor.role)
    return VendorActionResponse(items_updated=current_domain.process(command, asynchronous=False))


@order_router.post("/{order_id}/vendor/courier", response_model=VendorActionResponse)
async def vendor_book_courier(
    order_id: str, body: CourierRequest, actor: Actor = Depends(current_actor)
) -> VendorActionResponse:
    command = VendorBookCourier(
        order_id=order_id,
        courier_provider=body.courier_provider,
        courier_reference=body.courier_reference,
        actor_id=actor.id,
        actor_role=actor.role,
    )
    return VendorActionResponse(items_updated=current_domain.process(command, asynchronous=False))


@order_router.post("/{order_id}/vendor/delivered", response_model=VendorActionResponse)
async def vendor_mark_delivered(order_id: str, actor: Actor = Depends(current_actor)) -> VendorActionResponse:
    command = VendorMarkDelivered(order_id=order_id, actor_id=actor.id, actor_role=actor.role)
    return VendorActionResponse(items_updated=current_domain.process(command, asynchronous=False))


@order_router.post("/{order_id}/cancel", response_model=StatusResponse)
async def cancel_order(
    order_id: str, body: CancelOrderRequest, actor: Actor = Depends(current_actor)
) -> StatusResponse:
    command = CancelOrder(order_id=order_id, reason=body.reason, actor_id=actor.id, actor_role=actor.role)
    cancelled = current_domain.process(command, asynchronous=False)
    return StatusResponse(status="cancelled" if cancelled else "already_cancelled")


@order_router.post("/{order_id}/complete", response_model=StatusResponse)
async def complete_order(order_id: str, actor: Actor = Depends(current_actor)) -> StatusResponse:
    command = CompleteOrder(order_id=order_id, actor_id=actor.id, actor_role=actor.role)
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="completed")


# ---------------------------------------------------------------------------
# Dispute Router
# ---------------------------------------------------------------------------
dispute_router = APIRouter(prefix="/disputes", tags=["disputes"])


@dispute_router.post("", status_code=201, response_model=DisputeIdResponse)
async def open_dispute(body: OpenDisputeRequest, actor: Actor = Depends(current_actor)) -> DisputeIdResponse:
    command = OpenDispute(
        order_id=body.order_id,
        dispute_type=body.dispute_type,
        description=body.description,
        product_id=body.product_id,
        amount=body.amount,
        evidence=json.dumps(body.evidence),
        actor_id=actor.id,
        actor_role=actor.role,
    )
    dispute_id = current_domain.process(command, asynchronous=False)
    return DisputeIdResponse(dispute_id=dispute_id)


@dispute_router.get("", response_model=list[DisputeSummary])
async def get_disputes(
    status: str | None = None,
    priority: str | None = None,
    actor: Actor = Depends(current_actor),
) -> list[DisputeSummary]:
    require_role(actor.role, ActorRole.ADMIN)
    return [_dispute_summary(d) for d in list_disputes(status=status, priority=priority)]


@dispute_router.get("/stats", response_model=DisputeStatsResponse)
async def get_dispute_stats(actor: Actor = Depends(current_actor)) -> DisputeStatsResponse:
    require_role(actor.role, ActorRole.ADMIN)
    return DisputeStatsResponse(**dispute_stats())


@dispute_router.get("/{dispute_id}", response_model=DisputeSummary)
async def get_dispute_details(dispute_id: str, actor: Actor = Depends(current_actor)) -> DisputeSummary:
    dispute = get_dispute(dispute_id)
    if not dispute.is_participant(actor.id, actor.role):
        require_role(actor.role, ActorRole.ADMIN)
    return _dispute_summary(dispute)


@dispute_router.put("/{dispute_id}/status", response_model=StatusResponse)
async def update_dispute_status(
    dispute_id: str, body: UpdateDisputeStatusRequest, actor: Actor = Depends(current_actor)
) -> StatusResponse:
    command = UpdateDisputeStatus(dispute_id=dispute_id, status=body.status, actor_id=actor.id, actor_role=actor.role)
    return StatusResponse(status=current_domain.process(command, asynchronous=False))


@dispute_router.put("/{dispute_id}/priority", response_model=StatusResponse)
async def update_dispute_priority(
    dispute_id: str, body: UpdateDisputePriorityRequest, actor: Actor = Depends(current_actor)
) -> StatusResponse:
    command = UpdateDisputePriority(
        dispute_id=dispute_id, priority=body.priority, actor_id=actor.id, actor_role=actor.role
    )
    return StatusResponse(status=current_domain.process(command, asynchronous=False))


@dispute_router.post("/{dispute_id}/escalate", response_model=StatusResponse)
async def escalate_dispute(
    dispute_id: str, body: ReasonRequest, actor: Actor = Depends(current_actor)
) -> StatusResponse:
    command = EscalateDispute(dispute_id=dispute_id, reason=body.reason, actor_id=actor.id, actor_role=actor.role)
    return StatusResponse(status=current_domain.process(command, asynchronous=False))


@dispute_router.post("/{dispute_id}/close", response_model=StatusResponse)
async def close_dispute(dispute_id: str, body: ReasonRequest, actor: Actor = Depends(current_actor)) -> StatusResponse:
    command = CloseDispute(dispute_id=dispute_id, reason=body.reason, actor_id=actor.id, actor_role=actor.role)
    return StatusResponse(status=current_domain.process(command, asynchronous=False))


@dispute_router.post("/{dispute_id}/resolve", response_model=StatusResponse)
async def resolve_dispute(
    dispute_id: str, body: ResolveDisputeRequest, actor: Actor = Depends(current_actor)
) -> StatusResponse:
    command = ResolveDispute(
        dispute_id=dispute_id,
        resolution_type=body.resolution_type,
        resolution=body.resolution,
        refund_amount=body.refund_amount,
        actor_id=actor.id,
        actor_role=actor.role,
    )
    return StatusResponse(status=current_domain.process(command, asynchronous=False))


@dispute_router.post("/{dispute_id}/messages", status_code=201, response_model=MessageIdResponse)
async def post_dispute_message(
    dispute_id: str, body: PostMessageRequest, actor: Actor = Depends(current_actor)
) -> MessageIdResponse:
    command = PostDisputeMessage(
        dispute_id=dispute_id,
        message=body.message,
        sender_name=body.sender_name,
        actor_id=actor.id,
        actor_role=actor.role,
    )
    return MessageIdResponse(message_id=current_domain.process(command, asynchronous=False))


@dispute_router.post("/{dispute_id}/refund", response_model=RefundResponse)
async def process_refund(
    dispute_id: str, body: ProcessRefundRequest, actor: Actor = Depends(current_actor)
) -> RefundResponse:
    outcome = process_dispute_refund(
        dispute_id,
        actor_id=actor.id,
        actor_role=actor.role,
        refund_amount=body.refund_amount,
        customer_note=body.customer_note,
    )
    return RefundResponse(
        dispute_id=outcome.dispute_id,
        refund_status=outcome.refund_status,
        amount=outcome.amount,
        refund_reference=outcome.refund_reference,
        commission_reversed=outcome.commission_reversed,
    )


@dispute_router.post("/{dispute_id}/refund/confirm", response_model=StatusResponse)
async def confirm_refund(
    dispute_id: str, body: ConfirmRefundRequest, actor: Actor = Depends(current_actor)
) -> StatusResponse:
    command = ConfirmDisputeRefund(
        dispute_id=dispute_id,
        successful=body.successful,
        refund_reference=body.refund_reference,
        reason=body.reason,
        actor_id=actor.id,
        actor_role=actor.role,
    )
    return StatusResponse(status=current_domain.process(command, asynchronous=False))


# ---------------------------------------------------------------------------
# Commission Router
# ---------------------------------------------------------------------------
commission_router = APIRouter(prefix="/commission-rates", tags=["commission"])


@commission_router.get("/effective", response_model=CommissionBreakdownResponse)
async def get_effective_rate(
    vendor_id: str | None = None,
    category_id: str | None = None,
) -> CommissionBreakdownResponse:
    rates = rates_for(vendor_id, category_id)
    return CommissionBreakdownResponse(
        default_rate=rates.default_rate,
        category_rate=rates.category_rate,
        vendor_rate=rates.vendor_rate,
        effective_rate=rates.effective_rate,
        source=rates.source,
    )


@commission_router.put("/default", response_model=CommissionRateResponse)
async def set_default_rate(body: CommissionRateRequest, actor: Actor = Depends(current_actor)) -> CommissionRateResponse:
    command = SetDefaultCommissionRate(rate=body.rate, actor_id=actor.id, actor_role=actor.role)
    rate = current_domain.process(command, asynchronous=False)
    return CommissionRateResponse(scope=CommissionScope.DEFAULT.value, rate=rate)


@commission_router.put("/categories/{category_id}", response_model=CommissionRateResponse)
async def set_category_rate(
    category_id: str, body: CommissionRateRequest, actor: Actor = Depends(current_actor)
) -> CommissionRateResponse:
    command = SetCategoryCommissionRate(
        category_id=category_id, rate=body.rate, actor_id=actor.id, actor_role=actor.role
    )
    rate = current_domain.process(command, asynchronous=False)
    return CommissionRateResponse(scope=CommissionScope.CATEGORY.value, scope_key=category_id, rate=rate)


@commission_router.put("/vendors/{vendor_id}", response_model=CommissionRateResponse)
async def set_vendor_rate(
    vendor_id: str, body: CommissionRateRequest, actor: Actor = Depends(current_actor)
) -> CommissionRateResponse:
    command = SetVendorCommissionRate(vendor_id=vendor_id, rate=body.rate, actor_id=actor.id, actor_role=actor.role)
    rate = current_domain.process(command, asynchronous=False)
    return CommissionRateResponse(scope=CommissionScope.VENDOR.value, scope_key=vendor_id, rate=rate)


# ---------------------------------------------------------------------------
# Stock Router
# ---------------------------------------------------------------------------
stock_router = APIRouter(prefix="/stock", tags=["inventory"])


@stock_router.put("/{product_id}", response_model=StatusResponse)
async def set_stock_level(
    product_id: str, body: StockLevelRequest, actor: Actor = Depends(current_actor)
) -> StatusResponse:
    command = SetStockLevel(product_id=product_id, available=body.available, actor_id=actor.id, actor_role=actor.role)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()
