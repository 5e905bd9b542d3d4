"""Notifier factory and fire-and-forget dispatch.

Provides get_notifier() / set_notifier() / reset_notifier(), configured by
the NOTIFIER_ADAPTER environment variable (``log`` or ``fake``).
"""

import os

import structlog

from notifications.notifier.port import NotificationKind, Notifier

logger = structlog.get_logger(__name__)

_current_notifier: Notifier | None = None


def get_notifier() -> Notifier:
    """Return the current notifier. Defaults to LogNotifier."""
    global _current_notifier
    if _current_notifier is None:
        adapter = os.environ.get("NOTIFIER_ADAPTER", "log")
        if adapter == "log":
            from notifications.notifier.log_adapter import LogNotifier

            _current_notifier = LogNotifier()
        elif adapter == "fake":
            from notifications.notifier.fake_adapter import FakeNotifier

            _current_notifier = FakeNotifier()
        else:
            raise ValueError(f"Unknown notifier adapter: {adapter}")
    return _current_notifier


def set_notifier(notifier: Notifier) -> None:
    """Override the active notifier (useful for tests)."""
    global _current_notifier
    _current_notifier = notifier


def reset_notifier() -> None:
    """Reset the notifier singleton (useful for testing)."""
    global _current_notifier
    _current_notifier = None


def notify(order_id, kind: NotificationKind, payload: dict | None = None) -> bool:
    """Send a notification without ever failing the caller.

    Returns whether the notifier accepted it; failures are logged.
    """
    try:
        get_notifier().notify(str(order_id), kind.value, payload or {})
    except Exception as exc:
        logger.warning(
            "Notification failed",
            order_id=str(order_id),
            kind=kind.value,
            error=str(exc),
        )
        return False
    return True


__all__ = ["NotificationKind", "Notifier", "get_notifier", "set_notifier", "reset_notifier", "notify"]
