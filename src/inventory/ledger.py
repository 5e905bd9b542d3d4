"""Inventory ledger: validates cart lines against live stock and applies
all-or-nothing stock adjustments.

There is no multi-row transaction behind an order's stock effect. Instead
every line is a guarded decrement, and when some lines of a batch fail the
lines that did succeed are re-incremented before the failure is reported.
A product is therefore never left reflecting only part of an order.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError

from inventory.store import StockStore, get_stock_store
from ordering.exceptions import StockError

logger = structlog.get_logger(__name__)

MAX_LINE_QUANTITY = 99


@dataclass(frozen=True)
class PricedItem:
    """A validated order line with its price snapshot."""

    product_id: str
    name: str
    quantity: int
    price: float
    size: str | None = None

    @property
    def line_total(self) -> float:
        return round(self.price * self.quantity, 2)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "size": self.size,
            "quantity": self.quantity,
            "price": self.price,
        }


def _field(item, name):
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def _coerce_quantity(value) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        quantity = value
    elif isinstance(value, float) and value.is_integer():
        quantity = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        quantity = int(value.strip())
    else:
        return None
    if not 1 <= quantity <= MAX_LINE_QUANTITY:
        return None
    return quantity


def _coerce_price(value) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    return price if price >= 0 else None


def _adjustments(items: Iterable) -> list[tuple[str, int]]:
    return [(str(_field(item, "product_id")), int(_field(item, "quantity"))) for item in items]


class InventoryLedger:
    """Guarded stock bookkeeping over a StockStore."""

    def __init__(self, store: StockStore | None = None) -> None:
        self._store = store

    @property
    def store(self) -> StockStore:
        return self._store or get_stock_store()

    def validate_and_price(self, items) -> list[PricedItem]:
        """Validate raw cart lines and price them against live stock.

        Each line needs a product id, a name, an integer quantity in
        [1, 99] and a non-negative price. Unit price and name are taken
        from the live product record. Quantities of the same product across
        size variants are summed before the stock check.

        Raises:
            ValidationError: a line is malformed or the cart is empty.
            ObjectNotFoundError: a product does not exist.
            StockError: live stock is below the requested quantity.
        """
        items = list(items or [])
        if not items:
            raise ValidationError({"items": ["Cart is empty"]})

        parsed = []
        errors = []
        for position, item in enumerate(items, start=1):
            product_id = _field(item, "product_id")
            name = _field(item, "name")
            quantity = _coerce_quantity(_field(item, "quantity"))
            price = _coerce_price(_field(item, "price"))

            if not product_id or not name:
                errors.append(f"Item {position}: product id and name are required")
            elif quantity is None:
                errors.append(f"Item {position}: quantity must be an integer between 1 and {MAX_LINE_QUANTITY}")
            elif price is None:
                errors.append(f"Item {position}: price is required and cannot be negative")
            else:
                parsed.append((str(product_id), quantity, _field(item, "size") or None))

        if errors:
            raise ValidationError({"items": errors})

        products = self.store.get_many(list({product_id for product_id, _, _ in parsed}))

        requested: dict[str, int] = {}
        for product_id, quantity, _ in parsed:
            if product_id not in products:
                raise ObjectNotFoundError(f"Product {product_id} not found")
            requested[product_id] = requested.get(product_id, 0) + quantity

        for product_id, quantity in requested.items():
            product = products[product_id]
            if product.stock < quantity:
                raise StockError(
                    f"Insufficient stock for {product.name}. Only {product.stock} available.",
                    product_id=product_id,
                    requested=quantity,
                    available=product.stock,
                )

        return [
            PricedItem(
                product_id=product_id,
                name=products[product_id].name,
                quantity=quantity,
                price=products[product_id].price,
                size=size,
            )
            for product_id, quantity, size in parsed
        ]

    def commit_decrement(self, items) -> None:
        """Decrement stock for every line, or for none of them.

        Raises:
            StockError: at least one guarded decrement did not apply. The
                lines that did apply have been restored by then.
        """
        adjustments = _adjustments(items)
        applied = self.store.decrement_many(adjustments)

        if all(applied):
            logger.info("Stock decremented", lines=len(adjustments))
            return

        succeeded = [adjustment for adjustment, ok in zip(adjustments, applied, strict=True) if ok]
        failed = [product_id for (product_id, _), ok in zip(adjustments, applied, strict=True) if not ok]

        if succeeded:
            logger.warning(
                "Compensating partial stock decrement",
                restored=[product_id for product_id, _ in succeeded],
                failed=failed,
            )
            self.store.increment_many(succeeded)

        raise StockError(
            f"Insufficient stock for {', '.join(failed)}",
            product_ids=failed,
        )

    def restore(self, items) -> None:
        """Put stock back for every line (cancellations and returns)."""
        adjustments = _adjustments(items)
        if not adjustments:
            return
        self.store.increment_many(adjustments)
        logger.info("Stock restored", lines=len(adjustments))
