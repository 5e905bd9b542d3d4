"""Configurable fake payment gateway for development and testing.

This adapter simulates a hosted-checkout gateway without any external calls.
Webhooks are still verified with the real signature scheme, against a test
secret, so the webhook endpoint can be exercised end to end:
- Manual API testing via /payments/gateway/configure
- Automated tests with predictable outcomes
- Development without real gateway credentials
"""

from uuid import uuid4

from ordering.exceptions import ExternalServiceError
from payments.gateway.port import CheckoutSession, PaymentGateway, SessionStatus, WebhookEvent
from payments.gateway.signature import parse_event, verify_signature

TEST_WEBHOOK_SECRET = "whsec_test"


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self, webhook_secret: str = TEST_WEBHOOK_SECRET) -> None:
        self.webhook_secret = webhook_secret
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway unavailable"
        self.calls: list[dict] = []
        self.sessions: dict[str, dict] = {}

    def configure(self, should_succeed: bool, failure_reason: str = "Gateway unavailable") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def create_checkout_session(
        self,
        order_id: str,
        buyer_id: str,
        line_items: list[dict],
        currency: str,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        self.calls.append(
            {
                "method": "create_checkout_session",
                "order_id": order_id,
                "buyer_id": buyer_id,
                "line_items": line_items,
                "currency": currency,
                "success_url": success_url,
                "cancel_url": cancel_url,
            }
        )
        if not self.should_succeed:
            raise ExternalServiceError(self.failure_reason, order_id=order_id)

        session_id = f"cs_test_{uuid4().hex[:16]}"
        self.sessions[session_id] = {
            "payment_status": "unpaid",
            "metadata": {"orderId": order_id, "buyerId": buyer_id},
        }
        return CheckoutSession(session_id=session_id, url=f"https://checkout.fake/pay/{session_id}")

    def mark_session_paid(self, session_id: str) -> None:
        self.sessions[session_id]["payment_status"] = "paid"

    def retrieve_session(self, session_id: str) -> SessionStatus:
        self.calls.append({"method": "retrieve_session", "session_id": session_id})
        if not self.should_succeed:
            raise ExternalServiceError(self.failure_reason, session_id=session_id)

        session = self.sessions.get(session_id, {"payment_status": "unpaid", "metadata": {}})
        return SessionStatus(
            session_id=session_id,
            payment_status=session["payment_status"],
            metadata=dict(session["metadata"]),
        )

    def construct_event(self, payload: bytes, signature: str) -> WebhookEvent:
        verify_signature(payload, signature, self.webhook_secret)
        return parse_event(payload)
