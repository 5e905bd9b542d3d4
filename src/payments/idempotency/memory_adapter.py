"""Process-local idempotency store for development and testing."""

import threading
import time

from payments.idempotency.port import IdempotencyStore


class MemoryIdempotencyStore(IdempotencyStore):
    def __init__(self, clock=time.monotonic) -> None:
        self._clock = clock
        self._keys: dict[str, float | None] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> bool:
        if key not in self._keys:
            return False
        expires_at = self._keys[key]
        return expires_at is None or expires_at > self._clock()

    def claim(self, key: str, ttl_seconds: int) -> bool:
        with self._lock:
            if self._live(key):
                return False
            self._keys[key] = self._clock() + ttl_seconds
            return True

    def release(self, key: str) -> None:
        with self._lock:
            if self._keys.get(key) is not None:
                del self._keys[key]

    def remember(self, key: str) -> None:
        with self._lock:
            self._keys[key] = None

    def seen(self, key: str) -> bool:
        with self._lock:
            return self._live(key)
