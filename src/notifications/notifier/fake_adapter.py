"""Configurable fake notifier for testing.

Records every request in ``calls`` and can be told to fail, the way the
fake payment gateway and carrier are.
"""

from notifications.notifier.port import Notifier
from ordering.exceptions import ExternalServiceError


class FakeNotifier(Notifier):
    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Notification channel unavailable"
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Notification channel unavailable") -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def notify(self, order_id: str, kind: str, payload: dict) -> None:
        self.calls.append({"order_id": order_id, "kind": kind, "payload": payload})
        if not self.should_succeed:
            raise ExternalServiceError(self.failure_reason, order_id=order_id, kind=kind)

    def kinds_for(self, order_id: str) -> list[str]:
        return [call["kind"] for call in self.calls if call["order_id"] == order_id]
