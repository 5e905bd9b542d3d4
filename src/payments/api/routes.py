"""FastAPI routes for the Payments domain: the provider webhook and fake
gateway controls for manual testing.
"""

import os

from fastapi import APIRouter, Header, HTTPException, Request
from fastapi.responses import JSONResponse

from ordering.exceptions import ReconciliationError
from payments.api.schemas import (
    ConfigureGatewayRequest,
    GatewayConfigResponse,
    MarkSessionPaidRequest,
    WebhookReceivedResponse,
)
from payments.confirmation import PaymentConfirmation
from payments.gateway import get_gateway
from payments.gateway.fake_adapter import FakeGateway

payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/webhook", response_model=WebhookReceivedResponse)
async def process_webhook(
    request: Request,
    stripe_signature: str = Header(default="", alias="Stripe-Signature"),
):
    """Apply a signed payment-provider event.

    The body is read raw; re-serialized JSON would not match the signature.
    Any non-2xx response makes the provider redeliver the event.
    """
    payload = await request.body()
    try:
        result = PaymentConfirmation().handle_webhook(payload, stripe_signature)
    except ReconciliationError as exc:
        # Redelivery is acknowledged once the order has been flagged.
        return JSONResponse(status_code=500, content={"error": exc.message, **exc.context})
    return WebhookReceivedResponse(outcome=result.outcome, order_id=result.order_id)


def _fake_gateway() -> FakeGateway:
    if os.environ.get("PROTEAN_ENV") == "production":
        raise HTTPException(status_code=403, detail="Gateway configuration not available in production")

    gateway = get_gateway()
    if not isinstance(gateway, FakeGateway):
        raise HTTPException(status_code=400, detail="Gateway configuration only available for FakeGateway")
    return gateway


@payment_router.post("/gateway/configure", response_model=GatewayConfigResponse)
async def configure_gateway(body: ConfigureGatewayRequest) -> GatewayConfigResponse:
    """Configure the FakeGateway behavior (non-production only).

    Toggles whether checkout session calls succeed, for manual API testing.
    """
    gateway = _fake_gateway()
    gateway.configure(should_succeed=body.should_succeed, failure_reason=body.failure_reason)
    return GatewayConfigResponse(
        gateway=type(gateway).__name__,
        should_succeed=gateway.should_succeed,
        failure_reason=gateway.failure_reason,
    )


@payment_router.post("/gateway/sessions/paid", response_model=GatewayConfigResponse)
async def mark_session_paid(body: MarkSessionPaidRequest) -> GatewayConfigResponse:
    """Simulate the buyer completing a fake checkout session."""
    gateway = _fake_gateway()
    if body.session_id not in gateway.sessions:
        raise HTTPException(status_code=404, detail=f"Unknown checkout session {body.session_id}")
    gateway.mark_session_paid(body.session_id)
    return GatewayConfigResponse(
        gateway=type(gateway).__name__,
        should_succeed=gateway.should_succeed,
        failure_reason=gateway.failure_reason,
    )
