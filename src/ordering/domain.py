"""Ordering bounded context: order lifecycle and shopping carts.

Owns the Order aggregate (placement, payment, cancellation, fulfillment
status) and the ShoppingCart aggregate the orders are placed from. Stock,
payment, carrier, notification and loyalty collaborators live in their own
packages and act on these aggregates through the repositories.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
