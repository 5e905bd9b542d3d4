"""Stock store factory.

Provides get_stock_store() / set_stock_store() to swap implementations:
- MemoryStockStore for development and testing
- SQLStockStore for deployments where several processes share stock
"""

import os

from inventory.store.port import ProductStock, StockStore

_current_store: StockStore | None = None


def get_stock_store() -> StockStore:
    """Return the current stock store. Defaults to MemoryStockStore."""
    global _current_store
    if _current_store is None:
        adapter = os.environ.get("STOCK_STORE", "memory")
        if adapter == "memory":
            from inventory.store.memory_adapter import MemoryStockStore

            _current_store = MemoryStockStore()
        elif adapter == "sql":
            from inventory.store.sql_adapter import SQLStockStore

            _current_store = SQLStockStore(os.environ.get("DATABASE_URL", "sqlite:///orders.db"))
        else:
            raise ValueError(f"Unknown stock store: {adapter}")
    return _current_store


def set_stock_store(store: StockStore) -> None:
    """Override the active stock store (useful for tests)."""
    global _current_store
    _current_store = store


def reset_stock_store() -> None:
    """Reset to default stock store."""
    global _current_store
    _current_store = None


__all__ = ["ProductStock", "StockStore", "get_stock_store", "set_stock_store", "reset_stock_store"]
