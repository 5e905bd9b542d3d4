"""Payment gateway port (abstract interface).

Defines the contract that all payment gateway adapters must implement.
This enables swapping between FakeGateway (dev/test) and StripeGateway
(production) without changing any domain or application code.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class CheckoutSession:
    """A hosted checkout page the buyer is redirected to."""

    session_id: str
    url: str


@dataclass(frozen=True)
class SessionStatus:
    """Payment state of a checkout session as reported by the gateway."""

    session_id: str
    payment_status: str
    metadata: dict = field(default_factory=dict)

    @property
    def paid(self) -> bool:
        return self.payment_status == "paid"


@dataclass(frozen=True)
class WebhookEvent:
    """A verified gateway callback."""

    event_id: str
    type: str
    data: dict = field(default_factory=dict)


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_checkout_session(
        self,
        order_id: str,
        buyer_id: str,
        line_items: list[dict],
        currency: str,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        """Create a hosted checkout session.

        ``line_items`` carry ``name``, ``unit_amount`` (minor units) and
        ``quantity``. The order and buyer ids travel as session metadata
        and come back on the completion webhook.
        """
        ...

    @abstractmethod
    def retrieve_session(self, session_id: str) -> SessionStatus:
        """Look up the current payment state of a checkout session."""
        ...

    @abstractmethod
    def construct_event(self, payload: bytes, signature: str) -> WebhookEvent:
        """Verify a webhook against the raw request body and parse it.

        Raises:
            SignatureError: the signature header does not match the payload.
        """
        ...
