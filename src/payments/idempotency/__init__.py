"""Idempotency store factory.

Provides get_idempotency_store() / set_idempotency_store(), configured by
the IDEMPOTENCY_STORE environment variable (``memory`` or ``sql``). Use the
SQL adapter whenever more than one server process handles webhooks.
"""

import os

from payments.idempotency.port import IdempotencyStore

_current_store: IdempotencyStore | None = None


def get_idempotency_store() -> IdempotencyStore:
    """Return the current idempotency store. Defaults to MemoryIdempotencyStore."""
    global _current_store
    if _current_store is None:
        adapter = os.environ.get("IDEMPOTENCY_STORE", "memory")
        if adapter == "memory":
            from payments.idempotency.memory_adapter import MemoryIdempotencyStore

            _current_store = MemoryIdempotencyStore()
        elif adapter == "sql":
            from payments.idempotency.sql_adapter import SQLIdempotencyStore

            _current_store = SQLIdempotencyStore(os.environ.get("DATABASE_URL", "sqlite:///orders.db"))
        else:
            raise ValueError(f"Unknown idempotency store: {adapter}")
    return _current_store


def set_idempotency_store(store: IdempotencyStore) -> None:
    """Override the active idempotency store (useful for tests)."""
    global _current_store
    _current_store = store


def reset_idempotency_store() -> None:
    """Reset to default idempotency store."""
    global _current_store
    _current_store = None
