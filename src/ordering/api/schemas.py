"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer), kept separate from
internal Protean commands. Line items are accepted loosely and validated by
the inventory ledger, so malformed lines come back as 400 validation errors
with per-line messages.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    full_name: str
    street: str
    city: str
    state: str | None = None
    postal_code: str | None = None
    country: str
    phone: str | None = None
    email: str | None = None


class LineItemSchema(BaseModel):
    product_id: str | None = None
    name: str | None = None
    size: str | None = None
    quantity: Any = None
    price: Any = None


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    items: list[LineItemSchema]
    address: AddressSchema

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [
                        {
                            "product_id": "prod-001",
                            "name": "Linen Shirt",
                            "size": "M",
                            "quantity": 2,
                            "price": 25.0,
                        }
                    ],
                    "address": {
                        "full_name": "Sam Lee",
                        "street": "12 Harbour Road",
                        "city": "Springfield",
                        "postal_code": "12345",
                        "country": "US",
                    },
                }
            ]
        }
    }


class CancelOrderRequest(BaseModel):
    reason: str | None = None


class VerifyPaymentRequest(BaseModel):
    order_id: str
    success: bool


class UpdateStatusRequest(BaseModel):
    status: str


class ResolveReconciliationRequest(BaseModel):
    note: str | None = Field(default=None, max_length=255)


class AssignTrackingRequest(BaseModel):
    tracking_number: str = Field(min_length=1, max_length=100)
    courier: str = Field(min_length=1, max_length=50)


# ---------------------------------------------------------------------------
# Cart Request Schemas
# ---------------------------------------------------------------------------
class AddToCartRequest(BaseModel):
    product_id: str
    name: str
    size: str | None = None
    quantity: int = Field(ge=1, le=99, default=1)
    price: float | None = Field(ge=0, default=None)


class UpdateCartQuantityRequest(BaseModel):
    new_quantity: int = Field(ge=1, le=99)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class StatusResponse(BaseModel):
    status: str = "ok"


class OrderLineResponse(BaseModel):
    product_id: str
    name: str
    size: str | None = None
    quantity: int
    price: float


class OrderResponse(BaseModel):
    order_id: str
    buyer_id: str
    items: list[OrderLineResponse]
    address: dict
    amount: float
    delivery_fee: float
    payment_method: str
    paid: bool
    status: str
    tracking_number: str | None = None
    courier: str | None = None
    tracking_url: str | None = None
    estimated_delivery: datetime | None = None
    last_checkpoint: dict | None = None
    external_session_id: str | None = None
    reconciliation_required: bool = False
    refunded: bool = False
    created_at: datetime | None = None


class OnlineOrderResponse(BaseModel):
    order_id: str
    session_id: str
    session_url: str


class VerifyPaymentResponse(BaseModel):
    order_id: str | None = None
    outcome: str
    paid: bool


class OrderPageResponse(BaseModel):
    orders: list[OrderResponse]
    page: int
    limit: int
    total: int
    pages: int


class MonthlyRevenue(BaseModel):
    month: str
    revenue: float


class DashboardStatsResponse(BaseModel):
    total_orders: int
    total_revenue: float
    pending_orders: int
    delivered_orders: int
    orders_by_status: dict[str, int]
    revenue_by_month: list[MonthlyRevenue]
    recent_orders: list[OrderResponse]


class TrackingResponse(BaseModel):
    order_id: str
    tracking_number: str | None = None
    courier: str | None = None
    tracking_url: str | None = None
    estimated_delivery: str | None = None
    last_checkpoint: dict | None = None
    status: str
    message: str | None = None


class CartItemResponse(BaseModel):
    item_id: str
    product_id: str
    name: str
    size: str | None = None
    quantity: int
    price: float | None = None


class CartResponse(BaseModel):
    cart_id: str | None = None
    buyer_id: str
    status: str
    items: list[CartItemResponse]


class SweepResponse(BaseModel):
    status: str = "ok"
    processed: int


class TrackingSyncResponse(BaseModel):
    checked: int
    advanced: int
    failed: int
