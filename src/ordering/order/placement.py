"""Order placement: turns a buyer's cart lines into a durable order.

Cash-on-delivery orders hold stock at placement: the ledger decrement is
committed before the order is saved and compensated if saving fails.
Online orders only validate and price at placement; their stock is taken
when the payment provider confirms payment (see ``payments.confirmation``).
Either way a failed placement leaves no order behind.
"""

import os

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from inventory.ledger import InventoryLedger
from notifications.notifier import NotificationKind, notify
from ordering.cart.items import CheckOutCart
from ordering.exceptions import ExternalServiceError
from ordering.order.order import Order, PaymentMethod
from payments.gateway import get_gateway
from payments.gateway.port import CheckoutSession

logger = structlog.get_logger(__name__)

DEFAULT_DELIVERY_FEE = 10.0
DEFAULT_CURRENCY = "usd"
DEFAULT_FRONTEND_URL = "http://localhost:5173"


def delivery_fee() -> float:
    return float(os.environ.get("DELIVERY_FEE", DEFAULT_DELIVERY_FEE))


def currency() -> str:
    return os.environ.get("CURRENCY", DEFAULT_CURRENCY).lower()


def frontend_url() -> str:
    return os.environ.get("FRONTEND_URL", DEFAULT_FRONTEND_URL).rstrip("/")


def checkout_line_items(order: Order) -> list[dict]:
    """Gateway line items in minor units, delivery fee included."""
    line_items = [
        {
            "name": line.name if not line.size else f"{line.name} ({line.size})",
            "unit_amount": int(round(line.price * 100)),
            "quantity": line.quantity,
        }
        for line in order.items
    ]
    if order.delivery_fee:
        line_items.append(
            {
                "name": "Delivery Charges",
                "unit_amount": int(round(order.delivery_fee * 100)),
                "quantity": 1,
            }
        )
    return line_items


def clear_buyer_cart(buyer_id) -> None:
    """Empty the buyer's cart after an order was placed or paid.

    The order already stands at this point, so a cart that cannot be
    updated is logged rather than failing the caller.
    """
    try:
        recovered = current_domain.process(CheckOutCart(buyer_id=str(buyer_id)), asynchronous=False)
    except (ValidationError, ObjectNotFoundError) as exc:
        logger.warning("Failed to clear cart", buyer_id=str(buyer_id), error=str(exc))
        return
    if recovered:
        logger.info("Abandoned cart recovered", buyer_id=str(buyer_id))


class OrderPlacement:
    """Entry points for placing COD and online orders."""

    def __init__(self, ledger: InventoryLedger | None = None, gateway=None) -> None:
        self.ledger = ledger or InventoryLedger()
        self._gateway = gateway

    @property
    def gateway(self):
        return self._gateway or get_gateway()

    @staticmethod
    def _build_order(buyer_id, lines, address, payment_method: PaymentMethod) -> Order:
        if not buyer_id:
            raise ValidationError({"buyer_id": ["Buyer is required"]})
        if not address:
            raise ValidationError({"address": ["Delivery address is required"]})
        return Order.create(
            buyer_id=buyer_id,
            lines=lines,
            address=dict(address),
            payment_method=payment_method.value,
            delivery_fee=delivery_fee(),
        )

    def place_cod(self, buyer_id, items, address) -> Order:
        """Place a cash-on-delivery order, holding its stock immediately.

        Raises:
            ValidationError: malformed lines, empty cart or missing address.
            ObjectNotFoundError: a product does not exist.
            StockError: stock cannot cover the order; stock is unchanged.
        """
        lines = self.ledger.validate_and_price(items)
        order = self._build_order(buyer_id, lines, address, PaymentMethod.COD)

        self.ledger.commit_decrement(lines)
        try:
            current_domain.repository_for(Order).add(order)
        except Exception:
            logger.error("Order persistence failed, restoring stock", order_id=str(order.id), buyer_id=str(buyer_id))
            self.ledger.restore(lines)
            raise

        logger.info("COD order placed", order_id=str(order.id), buyer_id=str(buyer_id), amount=order.amount)

        clear_buyer_cart(buyer_id)
        notify(order.id, NotificationKind.ORDER_PLACED, {"amount": order.amount, "payment_method": "COD"})
        return order

    def place_online(self, buyer_id, items, address) -> tuple[Order, CheckoutSession]:
        """Place an online-payment order and open a checkout session for it.

        Stock is validated but not taken. If the gateway cannot create a
        session the order is removed again.

        Raises:
            ValidationError, ObjectNotFoundError, StockError: as for place_cod.
            ExternalServiceError: the gateway refused to create a session.
        """
        lines = self.ledger.validate_and_price(items)
        order = self._build_order(buyer_id, lines, address, PaymentMethod.ONLINE)

        repo = current_domain.repository_for(Order)
        repo.add(order)

        order_id = str(order.id)
        base_url = frontend_url()
        try:
            session = self.gateway.create_checkout_session(
                order_id=order_id,
                buyer_id=str(buyer_id),
                line_items=checkout_line_items(order),
                currency=currency(),
                success_url=f"{base_url}/verify?success=true&orderId={order_id}",
                cancel_url=f"{base_url}/verify?success=false&orderId={order_id}",
            )
        except ExternalServiceError as exc:
            logger.error("Checkout session creation failed", order_id=order_id, error=str(exc))
            repo._dao.delete(order)
            raise

        order = repo.get(order_id)
        order.external_session_id = session.session_id
        repo.add(order)

        logger.info(
            "Online order placed",
            order_id=order_id,
            buyer_id=str(buyer_id),
            amount=order.amount,
            session_id=session.session_id,
        )
        return order, session
