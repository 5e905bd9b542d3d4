"""Stock store port (abstract interface).

Product stock is a non-negative integer that is only ever changed through
guarded updates: a decrement applies only while the stored stock covers the
requested quantity. Adapters must make each per-item decrement atomic with
respect to other processes touching the same product.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ProductStock:
    """Live stock and pricing for a single product."""

    product_id: str
    name: str
    price: float
    stock: int


class StockStore(ABC):
    """Abstract stock store interface."""

    @abstractmethod
    def get_many(self, product_ids: list[str]) -> dict[str, ProductStock]:
        """Return the known products keyed by id. Unknown ids are omitted."""
        ...

    @abstractmethod
    def decrement_many(self, adjustments: list[tuple[str, int]]) -> list[bool]:
        """Apply "decrement by qty only if stock >= qty" for every adjustment.

        Returns one flag per adjustment, in order, telling whether that
        decrement was applied.
        """
        ...

    @abstractmethod
    def increment_many(self, adjustments: list[tuple[str, int]]) -> None:
        """Unconditionally add stock back for every adjustment."""
        ...

    @abstractmethod
    def upsert(self, product: ProductStock) -> None:
        """Create or replace a product record (catalogue sync and seeding)."""
        ...

    def get(self, product_id: str) -> ProductStock | None:
        return self.get_many([product_id]).get(product_id)
