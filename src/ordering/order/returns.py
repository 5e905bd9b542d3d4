"""Returns: putting a delivered order's stock back.

The order is marked restocked before the ledger is touched, so a repeated
request can never restore the same quantities twice.
"""

import structlog
from protean.utils.globals import current_domain

from inventory.ledger import InventoryLedger
from ordering.order.order import Order

logger = structlog.get_logger(__name__)


def restock_returned_order(order_id, ledger: InventoryLedger | None = None) -> Order:
    """Restore stock for every line of a delivered, returned order.

    Raises:
        ObjectNotFoundError: no such order.
        ValidationError: the order is not Delivered or was already restocked.
    """
    ledger = ledger or InventoryLedger()
    repo = current_domain.repository_for(Order)

    order = repo.get(order_id)
    order.restock()
    repo.add(order)

    ledger.restore(order.line_snapshot())
    logger.info("Returned order restocked", order_id=str(order_id), lines=len(order.items))
    return order
