"""In-process stock store for development and testing.

A single lock stands in for the row-level atomicity a database gives each
conditional update, so concurrent checkouts inside one process behave the
way they would against the SQL adapter.
"""

import threading

from inventory.store.port import ProductStock, StockStore


class MemoryStockStore(StockStore):
    """Dictionary-backed stock store."""

    def __init__(self) -> None:
        self._products: dict[str, ProductStock] = {}
        self._lock = threading.Lock()
        self.calls: list[dict] = []

    def get_many(self, product_ids: list[str]) -> dict[str, ProductStock]:
        with self._lock:
            return {pid: self._products[pid] for pid in product_ids if pid in self._products}

    def decrement_many(self, adjustments: list[tuple[str, int]]) -> list[bool]:
        self.calls.append({"method": "decrement_many", "adjustments": list(adjustments)})
        results = []
        with self._lock:
            for product_id, quantity in adjustments:
                product = self._products.get(product_id)
                if product is None or product.stock < quantity:
                    results.append(False)
                    continue
                self._products[product_id] = ProductStock(
                    product_id=product.product_id,
                    name=product.name,
                    price=product.price,
                    stock=product.stock - quantity,
                )
                results.append(True)
        return results

    def increment_many(self, adjustments: list[tuple[str, int]]) -> None:
        self.calls.append({"method": "increment_many", "adjustments": list(adjustments)})
        with self._lock:
            for product_id, quantity in adjustments:
                product = self._products.get(product_id)
                if product is None:
                    continue
                self._products[product_id] = ProductStock(
                    product_id=product.product_id,
                    name=product.name,
                    price=product.price,
                    stock=product.stock + quantity,
                )

    def upsert(self, product: ProductStock) -> None:
        with self._lock:
            self._products[product.product_id] = product

    def clear(self) -> None:
        with self._lock:
            self._products.clear()
        self.calls.clear()
