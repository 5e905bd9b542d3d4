"""Unpaid-order sweep.

Run periodically by the scheduler (``src/scheduler.py``) or the maintenance
API endpoint. Online orders still Placed and unpaid after the threshold are
moved to Cancelled and kept; no stock restore is needed since online orders
take stock only when paid. Each order is handled on its own so one failure
never stops the sweep.
"""

from datetime import UTC, datetime, timedelta

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError

from ordering.exceptions import PaymentInProgressError
from ordering.order.automaton import OrderStatus
from ordering.order.cancellation import OrderCancellation
from ordering.order.order import PaymentMethod
from ordering.order.queries import iter_orders
from ordering.utils.time import as_utc

logger = structlog.get_logger(__name__)

UNPAID_TIMEOUT_MINUTES = 30


def cancel_unpaid_orders(
    threshold_minutes: int = UNPAID_TIMEOUT_MINUTES,
    as_of: datetime | None = None,
    cancellation: OrderCancellation | None = None,
) -> int:
    """Cancel stale unpaid online orders. Returns how many were cancelled."""
    cancellation = cancellation or OrderCancellation()
    cutoff = (as_utc(as_of) or datetime.now(UTC)) - timedelta(minutes=threshold_minutes)

    logger.info("Checking for unpaid orders", cutoff=cutoff.isoformat(), threshold_minutes=threshold_minutes)

    stale = [
        str(order.id)
        for order in iter_orders(
            status=OrderStatus.PLACED.value,
            payment_method=PaymentMethod.ONLINE.value,
            paid=False,
        )
        if as_utc(order.created_at) <= cutoff
    ]

    if not stale:
        logger.info("No unpaid orders to cancel")
        return 0

    cancelled = 0
    for order_id in stale:
        try:
            if cancellation.expire(order_id):
                cancelled += 1
        except (PaymentInProgressError, ObjectNotFoundError, ValidationError) as exc:
            logger.warning("Skipped unpaid order", order_id=order_id, error=str(exc))
        except Exception:
            logger.exception("Failed to cancel unpaid order", order_id=order_id)

    logger.info("Unpaid order sweep complete", cancelled_count=cancelled)
    return cancelled
