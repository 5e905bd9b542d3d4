"""Order cancellation and rejection.

Three ways an unpaid order ends early:

- the buyer (or an admin) cancels it: the record is deleted and, for COD
  orders, the stock taken at placement is restored;
- the online checkout fails or expires: the record is deleted, no stock was
  ever taken;
- the unpaid-order sweep times it out (``ordering.order.expiry``): the
  record is kept with status Cancelled.

Every path takes the order's processing claim and re-reads the order under
it, so a payment confirmed in the meantime wins and the cancellation is
rejected.

Deleted orders are saved once more before deletion so their
``OrderCancelled`` event reaches the event store.
"""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from inventory.ledger import InventoryLedger
from notifications.notifier import NotificationKind, notify
from ordering.order.automaton import OrderStatus
from ordering.order.order import Order, PaymentMethod
from payments.idempotency.claims import hold_order

logger = structlog.get_logger(__name__)

CHECKOUT_REJECTED = "Checkout rejected"


class OrderCancellation:
    def __init__(self, ledger: InventoryLedger | None = None) -> None:
        self.ledger = ledger or InventoryLedger()

    def cancel(self, order_id, buyer_id=None, reason: str | None = None) -> None:
        """Cancel an unpaid, still-Placed order and delete it.

        ``buyer_id`` is checked against the order's owner when given;
        admin callers pass None.

        Raises:
            ObjectNotFoundError: no such order.
            AuthorizationError: the order belongs to someone else.
            ValidationError: the order is paid or already past Placed.
            PaymentInProgressError: a payment confirmation holds the order.
        """
        with hold_order(order_id):
            repo = current_domain.repository_for(Order)
            order = repo.get(order_id)
            if buyer_id is not None:
                order.assert_owned_by(buyer_id)

            order.cancel(reason or "Cancelled by buyer")
            lines = order.line_snapshot()
            restore_stock = order.is_cod()

            repo.add(order)
            repo._dao.delete(order)

        logger.info(
            "Order cancelled",
            order_id=str(order_id),
            buyer_id=str(order.buyer_id),
            restore_stock=restore_stock,
        )

        if restore_stock:
            try:
                self.ledger.restore(lines)
            except Exception:
                logger.error("Stock restore failed for cancelled order", order_id=str(order_id), lines=lines)
                raise

        notify(order_id, NotificationKind.ORDER_CANCELLED, {"reason": order.cancellation_reason})

    def reject(self, order_id) -> bool:
        """Delete an online order whose checkout failed or expired.

        Paid orders and orders that moved on are left alone. Returns
        whether the order was deleted.
        """
        with hold_order(order_id):
            repo = current_domain.repository_for(Order)
            try:
                order = repo.get(order_id)
            except ObjectNotFoundError:
                logger.info("Rejected order already gone", order_id=str(order_id))
                return False

            if (
                order.paid
                or order.payment_method != PaymentMethod.ONLINE.value
                or OrderStatus(order.status) != OrderStatus.PLACED
            ):
                logger.warning(
                    "Refusing to reject order",
                    order_id=str(order_id),
                    paid=order.paid,
                    status=order.status,
                )
                return False

            order.cancel(CHECKOUT_REJECTED)
            repo.add(order)
            repo._dao.delete(order)

        logger.info("Unpaid online order rejected", order_id=str(order_id))
        return True

    def expire(self, order_id, reason: str = "Payment not completed in time") -> bool:
        """Time out an unpaid online order, keeping the record as Cancelled.

        Returns whether the order was cancelled.
        """
        with hold_order(order_id):
            repo = current_domain.repository_for(Order)
            order = repo.get(order_id)
            if order.paid or OrderStatus(order.status) != OrderStatus.PLACED:
                return False

            order.cancel(reason)
            repo.add(order)

        logger.info("Unpaid order expired", order_id=str(order_id))
        notify(order_id, NotificationKind.ORDER_CANCELLED, {"reason": reason})
        return True
