"""Fake carrier adapter: deterministic carrier for testing and development.

Serves tracking records set up with ``set_tracking`` and can be told to
fail outright or only for the next few calls, to exercise retry.
"""

from datetime import UTC, datetime, timedelta

from fulfillment.carrier.port import CarrierPort, TrackingRecord, parse_tracking
from ordering.exceptions import ExternalServiceError


class FakeCarrier(CarrierPort):
    """Fake carrier that always succeeds by default."""

    def __init__(self):
        self.should_succeed = True
        self.failure_reason = "Carrier unavailable"
        self.failures_remaining = 0
        self.trackings: dict[str, dict] = {}
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool = True, failure_reason: str = "Carrier unavailable"):
        """Configure the fake carrier behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def fail_next(self, times: int) -> None:
        """Fail the next ``times`` calls, then behave normally."""
        self.failures_remaining = times

    def set_tracking(self, tracking_number: str, tag: str, expected_delivery=None, checkpoints=None) -> None:
        self.trackings[tracking_number] = {
            "tag": tag,
            "expected_delivery": expected_delivery,
            "checkpoints": checkpoints or [],
        }

    def _check(self):
        if self.failures_remaining > 0:
            self.failures_remaining -= 1
            raise ExternalServiceError(self.failure_reason)
        if not self.should_succeed:
            raise ExternalServiceError(self.failure_reason)

    def register(self, tracking_number: str, courier: str, order_id: str) -> None:
        self.calls.append({"method": "register", "tracking_number": tracking_number, "courier": courier})
        self._check()
        self.trackings.setdefault(
            tracking_number,
            {
                "tag": "InfoReceived",
                "expected_delivery": (datetime.now(UTC) + timedelta(days=5)).isoformat(),
                "checkpoints": [],
            },
        )

    def fetch(self, tracking_number: str, courier: str) -> TrackingRecord:
        self.calls.append({"method": "fetch", "tracking_number": tracking_number, "courier": courier})
        self._check()
        return parse_tracking(self.trackings.get(tracking_number))

    def fetch_count(self, tracking_number: str) -> int:
        return sum(1 for c in self.calls if c["method"] == "fetch" and c["tracking_number"] == tracking_number)
