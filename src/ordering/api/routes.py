"""FastAPI routes for the Ordering domain: buyer orders, admin operations,
carts and maintenance sweeps.

Authentication happens upstream; the authenticated buyer arrives in the
``X-Buyer-Id`` header.
"""

from fastapi import APIRouter, Header, Query
from protean.utils.globals import current_domain

from fulfillment.tracking import TrackingSynchronizer, tracking_view
from ordering.api.schemas import (
    AddToCartRequest,
    AssignTrackingRequest,
    CancelOrderRequest,
    CartItemResponse,
    CartResponse,
    DashboardStatsResponse,
    OnlineOrderResponse,
    OrderLineResponse,
    OrderPageResponse,
    OrderResponse,
    PlaceOrderRequest,
    ResolveReconciliationRequest,
    StatusResponse,
    SweepResponse,
    TrackingResponse,
    TrackingSyncResponse,
    UpdateCartQuantityRequest,
    UpdateStatusRequest,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from ordering.cart.abandonment import DetectAbandonedCarts
from ordering.cart.items import AddToCart, RemoveFromCart, UpdateCartQuantity, find_cart
from ordering.order.cancellation import OrderCancellation
from ordering.order.expiry import cancel_unpaid_orders
from ordering.order.order import Order
from ordering.order.placement import OrderPlacement
from ordering.order.queries import admin_orders, buyer_orders, dashboard_stats, invoice_for
from ordering.order.returns import restock_returned_order
from ordering.order.status import UpdateOrderStatus
from payments.confirmation import PaymentConfirmation


def _order_response(order: Order) -> OrderResponse:
    return OrderResponse(
        order_id=str(order.id),
        buyer_id=str(order.buyer_id),
        items=[OrderLineResponse(**line) for line in order.line_snapshot()],
        address=order.address.to_dict() if order.address else {},
        amount=order.amount,
        delivery_fee=order.delivery_fee or 0.0,
        payment_method=order.payment_method,
        paid=order.paid,
        status=order.status,
        tracking_number=order.tracking_number,
        courier=order.courier,
        tracking_url=order.tracking_url,
        estimated_delivery=order.estimated_delivery,
        last_checkpoint=order.checkpoint,
        external_session_id=order.external_session_id,
        reconciliation_required=bool(order.reconciliation_required),
        refunded=bool(order.refunded),
        created_at=order.created_at,
    )


def _owned_order(order_id: str, buyer_id: str) -> Order:
    order = current_domain.repository_for(Order).get(order_id)
    order.assert_owned_by(buyer_id)
    return order


# ---------------------------------------------------------------------------
# Order Router (buyer)
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("/cod", status_code=201, response_model=OrderResponse)
async def place_cod_order(body: PlaceOrderRequest, buyer_id: str = Header(alias="X-Buyer-Id")) -> OrderResponse:
    """Place a cash-on-delivery order; stock is taken immediately."""
    order = OrderPlacement().place_cod(
        buyer_id=buyer_id,
        items=[item.model_dump() for item in body.items],
        address=body.address.model_dump(),
    )
    return _order_response(order)


@order_router.post("/online", status_code=201, response_model=OnlineOrderResponse)
async def place_online_order(
    body: PlaceOrderRequest, buyer_id: str = Header(alias="X-Buyer-Id")
) -> OnlineOrderResponse:
    """Place an online-payment order and return the checkout redirect."""
    order, session = OrderPlacement().place_online(
        buyer_id=buyer_id,
        items=[item.model_dump() for item in body.items],
        address=body.address.model_dump(),
    )
    return OnlineOrderResponse(order_id=str(order.id), session_id=session.session_id, session_url=session.url)


@order_router.post("/verify-payment", response_model=VerifyPaymentResponse)
async def verify_payment(
    body: VerifyPaymentRequest, buyer_id: str = Header(alias="X-Buyer-Id")
) -> VerifyPaymentResponse:
    """Buyer returned from the hosted checkout page."""
    result = PaymentConfirmation().verify(body.order_id, buyer_id=buyer_id, success=body.success)
    return VerifyPaymentResponse(order_id=result.order_id, outcome=result.outcome, paid=result.paid)


@order_router.get("", response_model=list[OrderResponse])
async def list_my_orders(buyer_id: str = Header(alias="X-Buyer-Id")) -> list[OrderResponse]:
    return [_order_response(order) for order in buyer_orders(buyer_id)]


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_my_order(order_id: str, buyer_id: str = Header(alias="X-Buyer-Id")) -> OrderResponse:
    return _order_response(_owned_order(order_id, buyer_id))


@order_router.post("/{order_id}/cancel", response_model=StatusResponse)
async def cancel_my_order(
    order_id: str, body: CancelOrderRequest | None = None, buyer_id: str = Header(alias="X-Buyer-Id")
) -> StatusResponse:
    OrderCancellation().cancel(order_id, buyer_id=buyer_id, reason=body.reason if body else None)
    return StatusResponse(status="cancelled")


@order_router.get("/{order_id}/tracking", response_model=TrackingResponse)
async def get_tracking(order_id: str, buyer_id: str = Header(alias="X-Buyer-Id")) -> TrackingResponse:
    return TrackingResponse(**TrackingSynchronizer().live_tracking(order_id, buyer_id=buyer_id))


@order_router.get("/{order_id}/invoice")
async def get_invoice(order_id: str, buyer_id: str = Header(alias="X-Buyer-Id")) -> dict:
    return invoice_for(_owned_order(order_id, buyer_id))


# ---------------------------------------------------------------------------
# Admin Router
# ---------------------------------------------------------------------------
admin_router = APIRouter(prefix="/admin/orders", tags=["admin"])


@admin_router.get("", response_model=OrderPageResponse)
async def list_orders(
    page: int = Query(default=1),
    limit: int = Query(default=10),
    status: str | None = Query(default=None),
    payment: str | None = Query(default=None),
    reconciliation: bool | None = Query(default=None),
) -> OrderPageResponse:
    result = admin_orders(page=page, limit=limit, status=status, payment=payment, reconciliation=reconciliation)
    return OrderPageResponse(**{**result, "orders": [_order_response(order) for order in result["orders"]]})


@admin_router.get("/stats", response_model=DashboardStatsResponse)
async def get_dashboard_stats() -> DashboardStatsResponse:
    stats = dashboard_stats()
    return DashboardStatsResponse(
        **{**stats, "recent_orders": [_order_response(order) for order in stats["recent_orders"]]}
    )


@admin_router.put("/{order_id}/status", response_model=StatusResponse)
async def update_order_status(order_id: str, body: UpdateStatusRequest) -> StatusResponse:
    changed = current_domain.process(UpdateOrderStatus(order_id=order_id, status=body.status), asynchronous=False)
    return StatusResponse(status="updated" if changed else "unchanged")


@admin_router.put("/{order_id}/tracking", response_model=OrderResponse)
async def assign_tracking(order_id: str, body: AssignTrackingRequest) -> OrderResponse:
    order = TrackingSynchronizer().assign(order_id, body.tracking_number, body.courier)
    return _order_response(order)


@admin_router.post("/{order_id}/tracking/sync", response_model=TrackingResponse)
async def resync_tracking(order_id: str) -> TrackingResponse:
    """Manual resync; carrier failures surface as 502."""
    synchronizer = TrackingSynchronizer()
    synchronizer.sync_order(order_id)
    return TrackingResponse(**tracking_view(current_domain.repository_for(Order).get(order_id)))


@admin_router.post("/{order_id}/cancel", response_model=StatusResponse)
async def cancel_order(order_id: str, body: CancelOrderRequest | None = None) -> StatusResponse:
    OrderCancellation().cancel(order_id, reason=(body.reason if body else None) or "Cancelled by admin")
    return StatusResponse(status="cancelled")


@admin_router.post("/{order_id}/restock", response_model=OrderResponse)
async def restock_order(order_id: str) -> OrderResponse:
    return _order_response(restock_returned_order(order_id))


@admin_router.post("/{order_id}/reconciliation/fulfil", response_model=OrderResponse)
async def fulfil_flagged_order(order_id: str, body: ResolveReconciliationRequest | None = None) -> OrderResponse:
    """Take stock for a paid order flagged for reconciliation and send it to Packing."""
    return _order_response(PaymentConfirmation().fulfil_flagged(order_id, note=body.note if body else None))


@admin_router.post("/{order_id}/reconciliation/refund", response_model=OrderResponse)
async def refund_flagged_order(order_id: str, body: ResolveReconciliationRequest | None = None) -> OrderResponse:
    """Record a provider-side refund for a flagged order."""
    return _order_response(PaymentConfirmation().refund_flagged(order_id, note=body.note if body else None))


@admin_router.get("/{order_id}/invoice")
async def get_order_invoice(order_id: str) -> dict:
    return invoice_for(current_domain.repository_for(Order).get(order_id))


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


@cart_router.get("", response_model=CartResponse)
async def get_cart(buyer_id: str = Header(alias="X-Buyer-Id")) -> CartResponse:
    cart = find_cart(buyer_id)
    if cart is None:
        return CartResponse(buyer_id=buyer_id, status="Active", items=[])
    return CartResponse(
        cart_id=str(cart.id),
        buyer_id=str(cart.buyer_id),
        status=cart.status,
        items=[
            CartItemResponse(
                item_id=str(item.id),
                product_id=str(item.product_id),
                name=item.name,
                size=item.size,
                quantity=item.quantity,
                price=item.price,
            )
            for item in cart.items
        ],
    )


@cart_router.post("/items", status_code=201, response_model=StatusResponse)
async def add_to_cart(body: AddToCartRequest, buyer_id: str = Header(alias="X-Buyer-Id")) -> StatusResponse:
    command = AddToCart(
        buyer_id=buyer_id,
        product_id=body.product_id,
        name=body.name,
        size=body.size,
        quantity=body.quantity,
        price=body.price,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="added")


@cart_router.put("/items/{item_id}", response_model=StatusResponse)
async def update_cart_quantity(
    item_id: str, body: UpdateCartQuantityRequest, buyer_id: str = Header(alias="X-Buyer-Id")
) -> StatusResponse:
    command = UpdateCartQuantity(buyer_id=buyer_id, item_id=item_id, new_quantity=body.new_quantity)
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="updated")


@cart_router.delete("/items/{item_id}", response_model=StatusResponse)
async def remove_from_cart(item_id: str, buyer_id: str = Header(alias="X-Buyer-Id")) -> StatusResponse:
    current_domain.process(RemoveFromCart(buyer_id=buyer_id, item_id=item_id), asynchronous=False)
    return StatusResponse(status="removed")


# ---------------------------------------------------------------------------
# Maintenance Router
# ---------------------------------------------------------------------------
maintenance_router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@maintenance_router.post("/tracking-sync", response_model=TrackingSyncResponse)
async def run_tracking_sync() -> TrackingSyncResponse:
    return TrackingSyncResponse(**TrackingSynchronizer().sync_all())


@maintenance_router.post("/unpaid-orders", response_model=SweepResponse)
async def run_unpaid_order_sweep(threshold_minutes: int = Query(default=30, ge=1)) -> SweepResponse:
    return SweepResponse(processed=cancel_unpaid_orders(threshold_minutes=threshold_minutes))


@maintenance_router.post("/abandoned-carts", response_model=SweepResponse)
async def run_abandoned_cart_sweep(threshold_minutes: int = Query(default=30, ge=1)) -> SweepResponse:
    count = current_domain.process(DetectAbandonedCarts(idle_threshold_minutes=threshold_minutes), asynchronous=False)
    return SweepResponse(processed=count or 0)
