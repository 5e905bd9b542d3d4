"""Notifier that only writes structured log lines.

Default adapter until a delivery channel is configured.
"""

import structlog

from notifications.notifier.port import Notifier

logger = structlog.get_logger(__name__)


class LogNotifier(Notifier):
    def notify(self, order_id: str, kind: str, payload: dict) -> None:
        logger.info("Notification", order_id=order_id, kind=kind, **payload)
