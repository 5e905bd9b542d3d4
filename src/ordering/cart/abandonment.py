"""Cart abandonment detection: command and handler for flagging idle carts.

Triggered periodically by the scheduler (``src/scheduler.py``) or the
maintenance API endpoint. Active carts that still hold items and have not
been touched within the threshold are marked abandoned, one at a time; a
failure on one cart is logged and does not stop the sweep.
"""

from datetime import UTC, datetime, timedelta

import structlog
from protean import handle
from protean.exceptions import InvalidOperationError, ValidationError
from protean.fields import DateTime, Identifier, Integer
from protean.utils.globals import current_domain

from ordering.cart.cart import CartStatus, ShoppingCart
from ordering.domain import ordering
from ordering.utils.time import as_utc

logger = structlog.get_logger(__name__)

SWEEP_BATCH_SIZE = 500


@ordering.command(part_of="ShoppingCart")
class AbandonCart:
    """Mark a cart as abandoned due to inactivity."""

    cart_id = Identifier(required=True)


@ordering.command(part_of="ShoppingCart")
class DetectAbandonedCarts:
    """Flag active carts idle beyond the specified threshold."""

    idle_threshold_minutes = Integer(default=30)
    as_of = DateTime()  # Optional: defaults to now


@ordering.command_handler(part_of=ShoppingCart)
class AbandonedCartsHandler:
    @handle(AbandonCart)
    def abandon_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.get(command.cart_id)
        cart.abandon()
        repo.add(cart)

    @handle(DetectAbandonedCarts)
    def detect_abandoned_carts(self, command):
        as_of = as_utc(command.as_of) or datetime.now(UTC)
        threshold_minutes = command.idle_threshold_minutes or 30
        cutoff = as_of - timedelta(minutes=threshold_minutes)

        logger.info(
            "Checking for abandoned carts",
            cutoff=cutoff.isoformat(),
            threshold_minutes=threshold_minutes,
        )

        active_carts = (
            current_domain.repository_for(ShoppingCart)
            ._dao.query.filter(status=CartStatus.ACTIVE.value)
            .limit(SWEEP_BATCH_SIZE)
            .all()
            .items
        )

        idle = [cart for cart in active_carts if cart.items and as_utc(cart.updated_at) <= cutoff]

        if not idle:
            logger.info("No abandoned carts found")
            return 0

        abandoned_count = 0
        for cart in idle:
            try:
                current_domain.process(AbandonCart(cart_id=str(cart.id)), asynchronous=False)
                abandoned_count += 1
                logger.info(
                    "Marked cart as abandoned",
                    cart_id=str(cart.id),
                    buyer_id=str(cart.buyer_id),
                    item_count=len(cart.items),
                )
            except (ValidationError, InvalidOperationError) as exc:
                logger.warning("Failed to abandon cart", cart_id=str(cart.id), error=str(exc))

        logger.info("Cart abandonment detection complete", abandoned_count=abandoned_count)
        return abandoned_count
