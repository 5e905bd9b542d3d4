"""Per-order processing claims.

Payment confirmation and cancellation both take the order's claim before
reading it, re-check their preconditions under the claim, and release it
when done. The claim lives in the shared idempotency store, so the
serialization holds across server processes.
"""

from contextlib import contextmanager

import structlog

from ordering.exceptions import PaymentInProgressError
from payments.idempotency import get_idempotency_store

logger = structlog.get_logger(__name__)

CLAIM_TTL_SECONDS = 60


def order_claim_key(order_id) -> str:
    return f"order:{order_id}"


def payment_event_key(event_id) -> str:
    return f"payment-event:{event_id}"


@contextmanager
def hold_order(order_id, ttl_seconds: int = CLAIM_TTL_SECONDS, store=None):
    """Hold the order's processing claim for the duration of the block.

    Raises:
        PaymentInProgressError: another process holds the claim.
    """
    store = store or get_idempotency_store()
    key = order_claim_key(order_id)
    if not store.claim(key, ttl_seconds):
        logger.info("Order is being processed elsewhere", order_id=str(order_id))
        raise PaymentInProgressError("Order is being processed, retry shortly", order_id=str(order_id))
    try:
        yield
    finally:
        store.release(key)
