"""Idempotency store port.

Holds two kinds of keys shared by every server process:

- claims: short-lived, TTL-bounded locks taken before an order is mutated by
  payment confirmation or cancellation, so those paths never interleave;
- markers: permanent records of external event ids that were fully
  processed, used to acknowledge replays without reprocessing.

A claim whose TTL has passed counts as free, so a crashed process cannot
hold an order forever.
"""

from abc import ABC, abstractmethod


class IdempotencyStore(ABC):
    """Abstract shared key store."""

    @abstractmethod
    def claim(self, key: str, ttl_seconds: int) -> bool:
        """Take ``key`` for ``ttl_seconds``. Returns False if someone holds it."""
        ...

    @abstractmethod
    def release(self, key: str) -> None:
        """Give up a claim early."""
        ...

    @abstractmethod
    def remember(self, key: str) -> None:
        """Record ``key`` permanently."""
        ...

    @abstractmethod
    def seen(self, key: str) -> bool:
        """Return whether ``key`` is currently recorded (claimed or remembered)."""
        ...
