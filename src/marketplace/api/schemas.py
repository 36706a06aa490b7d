"""Pydantic request/response schemas for the marketplace API.

These are external contracts (anti-corruption layer), separate from the
internal Protean commands.
"""

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class ShippingAddressSchema(BaseModel):
    recipient_name: str | None = None
    phone: str | None = None
    street: str | None = None
    city: str | None = None
    region: str | None = None
    country: str | None = None


class OrderItemSchema(BaseModel):
    product_id: str
    vendor_id: str
    category_id: str | None = None
    product_name: str | None = None
    quantity: int = Field(ge=1)
    unit_price: float = Field(ge=0)
    applied_discount: float = Field(ge=0, default=0.0)


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    items: list[OrderItemSchema]
    subtotal: float = Field(ge=0)
    discount: float = Field(ge=0, default=0.0)
    shipping: float = Field(ge=0, default=0.0)
    tax: float = Field(ge=0, default=0.0)
    total: float = Field(ge=0)
    shipping_address: ShippingAddressSchema | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [
                        {
                            "product_id": "prod-001",
                            "vendor_id": "vendor-001",
                            "category_id": "cat-electronics",
                            "quantity": 2,
                            "unit_price": 100.0,
                        }
                    ],
                    "subtotal": 200.0,
                    "total": 200.0,
                }
            ]
        }
    }


class RecordPaymentRequest(BaseModel):
    payment_reference: str


class RecordPaymentFailureRequest(BaseModel):
    reason: str | None = None


class ItemActionRequest(BaseModel):
    action: str
    courier_provider: str | None = None
    courier_reference: str | None = None


class CourierRequest(BaseModel):
    courier_provider: str | None = None
    courier_reference: str | None = None


class CancelOrderRequest(BaseModel):
    reason: str | None = None


# ---------------------------------------------------------------------------
# Dispute Request Schemas
# ---------------------------------------------------------------------------
class OpenDisputeRequest(BaseModel):
    order_id: str
    dispute_type: str
    description: str
    product_id: str | None = None
    amount: float | None = Field(ge=0, default=None)
    evidence: list[str] = Field(default_factory=list)


class UpdateDisputeStatusRequest(BaseModel):
    status: str


class UpdateDisputePriorityRequest(BaseModel):
    priority: str


class ReasonRequest(BaseModel):
    reason: str


class ResolveDisputeRequest(BaseModel):
    resolution_type: str
    resolution: str
    refund_amount: float | None = None


class PostMessageRequest(BaseModel):
    message: str
    sender_name: str | None = None


class ProcessRefundRequest(BaseModel):
    refund_amount: float | None = None
    customer_note: str | None = None


class ConfirmRefundRequest(BaseModel):
    successful: bool
    refund_reference: str | None = None
    reason: str | None = None


# ---------------------------------------------------------------------------
# Commission Request Schemas
# ---------------------------------------------------------------------------
class CommissionRateRequest(BaseModel):
    rate: float | None = None


class StockLevelRequest(BaseModel):
    available: int = Field(ge=0)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class StatusResponse(BaseModel):
    status: str = "ok"


class OrderIdResponse(BaseModel):
    order_id: str


class DisputeIdResponse(BaseModel):
    dispute_id: str


class MessageIdResponse(BaseModel):
    message_id: str


class VendorActionResponse(BaseModel):
    status: str = "ok"
    items_updated: int


class CompletionSweepResponse(BaseModel):
    completed: int


class RefundResponse(BaseModel):
    dispute_id: str
    refund_status: str
    amount: float
    refund_reference: str | None = None
    commission_reversed: float = 0.0


class CommissionRateResponse(BaseModel):
    scope: str
    scope_key: str | None = None
    rate: float | None = None


class CommissionBreakdownResponse(BaseModel):
    default_rate: float
    category_rate: float | None = None
    vendor_rate: float | None = None
    effective_rate: float
    source: str


class DisputeSummary(BaseModel):
    dispute_id: str
    order_id: str
    buyer_id: str
    vendor_id: str
    product_id: str | None = None
    dispute_type: str
    status: str
    priority: str
    amount: float | None = None
    refund_status: str
    created_at: str | None = None


class DisputeStatsResponse(BaseModel):
    total: int
    by_status: dict[str, int]
    open_by_priority: dict[str, int]
    average_resolution_hours: float | None = None


class OrderItemView(BaseModel):
    item_id: str
    product_id: str
    vendor_id: str
    category_id: str | None = None
    quantity: int
    unit_price: float
    final_price: float
    fulfillment_status: str
    commission_rate: float
    commission_rate_source: str | None = None
    commission_amount: float
    vendor_earnings: float


class OrderView(BaseModel):
    order_id: str
    buyer_id: str
    status: str
    payment_status: str
    subtotal: float
    discount: float
    shipping: float
    tax: float
    total: float
    platform_commission: float
    vendor_earnings: float
    items: list[OrderItemView]
