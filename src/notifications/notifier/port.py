"""Notifier port: abstract interface for order notifications.

Rendering and delivery (email, SMS, push) happen behind the adapter; the
order engine only states that something happened to an order.
"""

from abc import ABC, abstractmethod
from enum import Enum


class NotificationKind(Enum):
    ORDER_PLACED = "order_placed"
    ORDER_PAID = "order_paid"
    ORDER_SHIPPED = "order_shipped"
    ORDER_STATUS_CHANGED = "order_status_changed"
    ORDER_CANCELLED = "order_cancelled"
    RECONCILIATION_REQUIRED = "reconciliation_required"


class Notifier(ABC):
    """Abstract notifier interface."""

    @abstractmethod
    def notify(self, order_id: str, kind: str, payload: dict) -> None:
        """Send a notification about an order.

        Raises:
            ExternalServiceError: the notification could not be delivered.
        """
        ...
