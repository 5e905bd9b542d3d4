"""Carrier port: abstract interface for parcel tracking services.

All carrier adapters must implement this interface. The order engine
programs against the port; adapters are swapped via configuration.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime

from ordering.utils.time import parse_timestamp


@dataclass(frozen=True)
class TrackingRecord:
    """A carrier's current view of a shipment."""

    tag: str | None = None
    expected_delivery: datetime | None = None
    checkpoints: list[dict] = field(default_factory=list)

    @property
    def latest_checkpoint(self) -> dict | None:
        dated = [c for c in self.checkpoints if c.get("checkpoint_time")]
        if dated:
            return max(dated, key=lambda c: c["checkpoint_time"])
        return self.checkpoints[-1] if self.checkpoints else None


def parse_tracking(payload: dict | None) -> TrackingRecord:
    """Build a TrackingRecord from a carrier payload, tolerating missing fields."""
    if not isinstance(payload, dict):
        payload = {}
    checkpoints = []
    for raw in payload.get("checkpoints") or []:
        if not isinstance(raw, dict):
            continue
        checkpoints.append(
            {
                "tag": raw.get("tag"),
                "message": raw.get("message") or "",
                "location": raw.get("location") or raw.get("city") or "",
                "checkpoint_time": parse_timestamp(raw.get("checkpoint_time")),
            }
        )

    return TrackingRecord(
        tag=payload.get("tag") or None,
        expected_delivery=parse_timestamp(payload.get("expected_delivery")),
        checkpoints=checkpoints,
    )


class CarrierPort(ABC):
    """Abstract interface for carrier adapters."""

    @abstractmethod
    def register(self, tracking_number: str, courier: str, order_id: str) -> None:
        """Start tracking a shipment with the carrier service.

        Raises:
            ExternalServiceError: the carrier service could not be reached.
        """
        ...

    @abstractmethod
    def fetch(self, tracking_number: str, courier: str) -> TrackingRecord:
        """Fetch the current tracking record for a shipment.

        Raises:
            ExternalServiceError: the carrier service could not be reached.
        """
        ...
