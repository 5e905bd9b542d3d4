"""Payment confirmation: applies verified payment-provider events to orders
exactly once.

Two paths report a completed payment: the provider's signed webhook and the
buyer's browser polling after the checkout redirect. Both end in
``PaymentConfirmation.confirm``, which takes the order's processing claim,
re-reads the order and does nothing if it is already paid, so whichever
path arrives second is a no-op. Completed webhook event ids are remembered
in the shared idempotency store to acknowledge replays early.

Stock for online orders is taken here. If it can no longer be taken, the
money has still been received: the order is flagged for reconciliation
instead of moving to Packing.
"""

from dataclasses import dataclass

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from inventory.ledger import InventoryLedger
from loyalty import get_loyalty_program
from notifications.notifier import NotificationKind, notify
from ordering.exceptions import ExternalServiceError, ReconciliationError, SignatureError, StockError
from ordering.order.automaton import OrderStatus
from ordering.order.cancellation import OrderCancellation
from ordering.order.order import Order
from ordering.order.placement import clear_buyer_cart
from payments.gateway import get_gateway
from payments.idempotency import get_idempotency_store
from payments.idempotency.claims import hold_order, payment_event_key

logger = structlog.get_logger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
CHECKOUT_EXPIRED = "checkout.session.expired"
CHECKOUT_ASYNC_FAILED = "checkout.session.async_payment_failed"


@dataclass(frozen=True)
class ConfirmationResult:
    """What a confirmation attempt did.

    ``outcome`` is one of ``confirmed``, ``already_paid``, ``duplicate_event``,
    ``not_paid``, ``rejected`` or ``ignored``.
    """

    outcome: str
    order_id: str | None = None

    @property
    def paid(self) -> bool:
        return self.outcome in ("confirmed", "already_paid", "duplicate_event")


class PaymentConfirmation:
    def __init__(
        self,
        ledger: InventoryLedger | None = None,
        gateway=None,
        store=None,
        loyalty=None,
        cancellation: OrderCancellation | None = None,
    ) -> None:
        self.ledger = ledger or InventoryLedger()
        self._gateway = gateway
        self._store = store
        self._loyalty = loyalty
        self.cancellation = cancellation or OrderCancellation(self.ledger)

    @property
    def gateway(self):
        return self._gateway or get_gateway()

    @property
    def store(self):
        return self._store or get_idempotency_store()

    @property
    def loyalty(self):
        return self._loyalty or get_loyalty_program()

    # -------------------------------------------------------------------
    # Core confirmation
    # -------------------------------------------------------------------
    def confirm(self, order_id, event_id: str | None = None, session_id: str | None = None) -> ConfirmationResult:
        """Mark an order paid, take its stock and move it to Packing.

        Raises:
            ObjectNotFoundError: no such order.
            PaymentInProgressError: another confirmation or cancellation
                holds the order; the provider should retry.
            ReconciliationError: payment arrived but stock could not be
                taken or the order was no longer Placed. The order is kept,
                marked paid and flagged.
        """
        order_id = str(order_id)
        if event_id and self.store.seen(payment_event_key(event_id)):
            logger.info("Payment event already processed", order_id=order_id, event_id=event_id)
            return ConfirmationResult("duplicate_event", order_id)

        with hold_order(order_id, store=self.store):
            repo = current_domain.repository_for(Order)
            order = repo.get(order_id)

            if order.paid:
                logger.info("Order already paid, acknowledging", order_id=order_id, event_id=event_id)
                self._remember(event_id)
                return ConfirmationResult("already_paid", order_id)

            if OrderStatus(order.status) != OrderStatus.PLACED:
                self._flag(order, f"Payment received for an order in {order.status}", event_id, session_id)

            try:
                self.ledger.validate_and_price(order.line_snapshot())
                self.ledger.commit_decrement(order.items)
            except (StockError, ObjectNotFoundError, ValidationError) as exc:
                self._flag(order, f"Stock could not be committed after payment: {exc}", event_id, session_id, exc)

            try:
                order.confirm_payment(payment_event_id=event_id, session_id=session_id)
                repo.add(order)
            except Exception:
                logger.error("Paid order could not be saved, restoring stock", order_id=order_id)
                self.ledger.restore(order.line_snapshot())
                raise

            self._remember(event_id)

        logger.info("Payment confirmed", order_id=order_id, event_id=event_id, amount=order.amount)
        self._after_payment(order)
        return ConfirmationResult("confirmed", order_id)

    def _remember(self, event_id: str | None) -> None:
        if event_id:
            self.store.remember(payment_event_key(event_id))

    def _flag(self, order: Order, reason: str, event_id, session_id, cause: Exception | None = None):
        order.flag_for_reconciliation(reason, payment_event_id=event_id, session_id=session_id)
        current_domain.repository_for(Order).add(order)
        self._remember(event_id)

        logger.error("Order requires reconciliation", order_id=str(order.id), reason=reason, event_id=event_id)
        notify(order.id, NotificationKind.RECONCILIATION_REQUIRED, {"reason": reason})
        raise ReconciliationError(reason, order_id=str(order.id)) from cause

    def _after_payment(self, order: Order, clear_cart: bool = True) -> None:
        if clear_cart:
            clear_buyer_cart(order.buyer_id)

        try:
            self.loyalty.award(str(order.id), str(order.buyer_id), order.amount)
        except ExternalServiceError as exc:
            logger.error("Loyalty award failed", order_id=str(order.id), buyer_id=str(order.buyer_id), error=str(exc))

        notify(order.id, NotificationKind.ORDER_PAID, {"amount": order.amount})

    # -------------------------------------------------------------------
    # Webhook
    # -------------------------------------------------------------------
    def handle_webhook(self, payload: bytes, signature: str) -> ConfirmationResult:
        """Verify and apply a payment-provider webhook.

        ``payload`` must be the raw request body.

        Raises:
            SignatureError: verification failed; nothing was processed.
            ValidationError: the event lacks order correlation metadata.
        """
        try:
            event = self.gateway.construct_event(payload, signature)
        except SignatureError as exc:
            logger.warning("Webhook signature verification failed", security_event=True, error=str(exc))
            raise

        if event.type not in (CHECKOUT_COMPLETED, CHECKOUT_EXPIRED, CHECKOUT_ASYNC_FAILED):
            logger.info("Ignoring webhook event", event_id=event.event_id, event_type=event.type)
            return ConfirmationResult("ignored")

        metadata = event.data.get("metadata") or {}
        order_id = metadata.get("orderId")
        if not order_id:
            raise ValidationError({"metadata": ["orderId is missing from the checkout session"]})

        if event.type != CHECKOUT_COMPLETED:
            rejected = self.cancellation.reject(order_id)
            return ConfirmationResult("rejected" if rejected else "ignored", order_id)

        if event.data.get("payment_status") != "paid":
            logger.info(
                "Checkout completed without payment",
                order_id=order_id,
                payment_status=event.data.get("payment_status"),
            )
            return ConfirmationResult("not_paid", order_id)

        return self.confirm(order_id, event_id=event.event_id, session_id=event.data.get("id"))

    # -------------------------------------------------------------------
    # Client-side verification
    # -------------------------------------------------------------------
    def verify(self, order_id, buyer_id, success: bool) -> ConfirmationResult:
        """Handle the buyer's return from the hosted checkout page.

        A cancelled checkout rejects the unpaid order. A successful one is
        checked with the gateway and confirmed through the same path as the
        webhook.
        """
        repo = current_domain.repository_for(Order)
        order = repo.get(str(order_id))
        order.assert_owned_by(buyer_id)

        if order.paid:
            return ConfirmationResult("already_paid", str(order.id))

        if not success:
            rejected = self.cancellation.reject(order.id)
            return ConfirmationResult("rejected" if rejected else "not_paid", str(order.id))

        if not order.external_session_id:
            raise ValidationError({"order_id": ["Order has no checkout session"]})

        session = self.gateway.retrieve_session(order.external_session_id)
        if not session.paid:
            return ConfirmationResult("not_paid", str(order.id))

        return self.confirm(order.id, session_id=session.session_id)

    # -------------------------------------------------------------------
    # Manual reconciliation
    # -------------------------------------------------------------------
    def fulfil_flagged(self, order_id, note: str | None = None) -> Order:
        """Operator resolution for a flagged order once stock is available again.

        Takes the stock now, clears the flag and moves the order to Packing.

        Raises:
            ValidationError: the order is not flagged or is no longer Placed.
            StockError: stock still cannot cover the order; nothing changes.
        """
        order_id = str(order_id)
        with hold_order(order_id, store=self.store):
            repo = current_domain.repository_for(Order)
            order = repo.get(order_id)
            order.assert_resolvable(fulfil=True)

            self.ledger.validate_and_price(order.line_snapshot())
            self.ledger.commit_decrement(order.items)
            try:
                order.resolve_by_fulfilment(note)
                repo.add(order)
            except Exception:
                logger.error("Resolved order could not be saved, restoring stock", order_id=order_id)
                self.ledger.restore(order.line_snapshot())
                raise

        logger.info("Reconciliation resolved by fulfilment", order_id=order_id, note=note)
        self._after_payment(order, clear_cart=False)
        return order

    def refund_flagged(self, order_id, note: str | None = None) -> Order:
        """Record that a flagged order's payment was refunded at the provider.

        The order is kept, marked refunded and cancelled if still Placed.
        No stock was taken for it, so none is restored.
        """
        order_id = str(order_id)
        with hold_order(order_id, store=self.store):
            repo = current_domain.repository_for(Order)
            order = repo.get(order_id)
            order.resolve_by_refund(note)
            repo.add(order)

        logger.info("Reconciliation resolved by refund", order_id=order_id, note=note, status=order.status)
        notify(order.id, NotificationKind.ORDER_CANCELLED, {"reason": order.cancellation_reason, "refunded": True})
        return order
