"""Stripe payment gateway adapter.

Talks to the Stripe REST API with ``requests``: Checkout Sessions are
created form-encoded with the order and buyer ids as metadata, and webhooks
are verified with the endpoint's signing secret before they are parsed.
"""

import requests
import structlog

from ordering.exceptions import ExternalServiceError
from payments.gateway.port import CheckoutSession, PaymentGateway, SessionStatus, WebhookEvent
from payments.gateway.signature import parse_event, verify_signature

logger = structlog.get_logger(__name__)

STRIPE_API_BASE = "https://api.stripe.com/v1"


class StripeGateway(PaymentGateway):
    """Production Stripe gateway adapter."""

    def __init__(self, api_key: str, webhook_secret: str, timeout: float = 10.0) -> None:
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.timeout = timeout
        self.session = requests.Session()
        self.session.auth = (api_key, "")

    def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            response = self.session.request(method, f"{STRIPE_API_BASE}{path}", timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise ExternalServiceError(f"Stripe request failed: {exc}") from exc

        if response.status_code >= 400:
            logger.error("Stripe API error", path=path, status_code=response.status_code, body=response.text[:500])
            raise ExternalServiceError(f"Stripe returned {response.status_code}", status_code=response.status_code)
        return response.json()

    def create_checkout_session(
        self,
        order_id: str,
        buyer_id: str,
        line_items: list[dict],
        currency: str,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        form = {
            "mode": "payment",
            "success_url": success_url,
            "cancel_url": cancel_url,
            "client_reference_id": order_id,
            "metadata[orderId]": order_id,
            "metadata[buyerId]": buyer_id,
        }
        for index, item in enumerate(line_items):
            prefix = f"line_items[{index}]"
            form[f"{prefix}[price_data][currency]"] = currency
            form[f"{prefix}[price_data][product_data][name]"] = item["name"]
            form[f"{prefix}[price_data][unit_amount]"] = item["unit_amount"]
            form[f"{prefix}[quantity]"] = item["quantity"]

        body = self._request(
            "POST",
            "/checkout/sessions",
            data=form,
            headers={"Idempotency-Key": f"checkout-{order_id}"},
        )
        return CheckoutSession(session_id=body["id"], url=body["url"])

    def retrieve_session(self, session_id: str) -> SessionStatus:
        body = self._request("GET", f"/checkout/sessions/{session_id}")
        return SessionStatus(
            session_id=body["id"],
            payment_status=body.get("payment_status") or "unpaid",
            metadata=body.get("metadata") or {},
        )

    def construct_event(self, payload: bytes, signature: str) -> WebhookEvent:
        verify_signature(payload, signature, self.webhook_secret)
        return parse_event(payload)
