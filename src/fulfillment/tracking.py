"""Tracking synchronizer: feeds carrier checkpoints into the order automaton.

The carrier's status vocabulary is translated through ``TAG_EVENTS``; tags
that are not listed (Pending, InfoReceived, InTransit, Expired, ...) carry
no automaton event and only refresh the stored checkpoint and ETA.

Carrier calls are made before the order is read for writing, and the order
is re-read afterwards, so nothing is held across the network call. The
periodic sync and a manual resync may overlap; both apply the same table
and the stored checkpoint only ever moves forward in time.
"""

from dataclasses import dataclass

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from fulfillment.carrier import get_carrier
from fulfillment.carrier.port import TrackingRecord
from fulfillment.carrier.retry import DEFAULT_ATTEMPTS, DEFAULT_BACKOFF_SECONDS, retry
from notifications.notifier import NotificationKind, notify
from ordering.exceptions import ExternalServiceError
from ordering.order.automaton import TERMINAL_STATUSES, OrderEvent, OrderStatus
from ordering.order.order import Order
from ordering.order.queries import iter_orders
from ordering.order.status import AssignTrackingNumber

logger = structlog.get_logger(__name__)

TAG_EVENTS = {
    "OutForDelivery": OrderEvent.OUT_FOR_DELIVERY,
    "Delivered": OrderEvent.DELIVERED,
    "AttemptFail": OrderEvent.DELIVERY_EXCEPTION,
    "Exception": OrderEvent.DELIVERY_EXCEPTION,
}

ACTIVE_STATUSES = [status for status in OrderStatus if status not in TERMINAL_STATUSES]


def event_for_tag(tag: str | None) -> OrderEvent | None:
    return TAG_EVENTS.get(tag) if tag else None


@dataclass(frozen=True)
class SyncResult:
    order_id: str
    tag: str | None
    previous_status: str
    status: str

    @property
    def advanced(self) -> bool:
        return self.previous_status != self.status


def _serializable(checkpoint: dict | None) -> dict | None:
    if checkpoint is None:
        return None
    moment = checkpoint.get("checkpoint_time")
    return {**checkpoint, "checkpoint_time": moment.isoformat() if moment else None}


def tracking_view(order: Order, message: str | None = None) -> dict:
    view = {
        "order_id": str(order.id),
        "tracking_number": order.tracking_number,
        "courier": order.courier,
        "tracking_url": order.tracking_url,
        "estimated_delivery": order.estimated_delivery.isoformat() if order.estimated_delivery else None,
        "last_checkpoint": order.checkpoint,
        "status": order.status,
    }
    if message:
        view["message"] = message
    return view


class TrackingSynchronizer:
    def __init__(self, carrier=None, attempts: int = DEFAULT_ATTEMPTS, backoff: float = DEFAULT_BACKOFF_SECONDS, sleep=None):
        self._carrier = carrier
        self.attempts = attempts
        self.backoff = backoff
        self.sleep = sleep

    @property
    def carrier(self):
        return self._carrier or get_carrier()

    def fetch(self, tracking_number: str, courier: str) -> TrackingRecord:
        """Fetch a tracking record, retrying with exponential backoff."""
        fetch = retry(times=self.attempts, backoff=self.backoff, sleep=self.sleep)(self.carrier.fetch)
        return fetch(tracking_number, courier)

    def sync_order(self, order_id) -> SyncResult:
        """Refresh one order from its carrier and apply any mapped event.

        Raises:
            ValidationError: the order has no tracking number.
            ExternalServiceError: the carrier failed on every attempt.
        """
        repo = current_domain.repository_for(Order)
        order = repo.get(str(order_id))
        if not order.tracking_number:
            raise ValidationError({"tracking_number": ["Tracking information not available yet"]})

        tracking_number = order.tracking_number
        record = self.fetch(tracking_number, order.courier)

        order = repo.get(str(order_id))
        previous_status = order.status
        if order.tracking_number != tracking_number:
            logger.info("Tracking number changed during sync, skipping", order_id=str(order_id))
            return SyncResult(str(order_id), record.tag, previous_status, previous_status)

        latest = record.latest_checkpoint
        checkpoint_at = latest.get("checkpoint_time") if latest else None
        recorded = order.record_tracking(
            estimated_delivery=record.expected_delivery,
            checkpoint=_serializable(latest),
            checkpoint_at=checkpoint_at,
        )
        if checkpoint_at is not None and not recorded:
            logger.info(
                "Stale tracking record ignored",
                order_id=str(order_id),
                tag=record.tag,
                checkpoint_at=checkpoint_at.isoformat(),
            )
            return SyncResult(str(order_id), record.tag, previous_status, previous_status)

        event = event_for_tag(record.tag)
        advanced = order.apply_event(event) if event else False
        repo.add(order)

        if advanced:
            logger.info(
                "Order advanced from carrier update",
                order_id=str(order_id),
                tag=record.tag,
                from_status=previous_status,
                to_status=order.status,
            )
            notify(order.id, NotificationKind.ORDER_STATUS_CHANGED, {"status": order.status, "tag": record.tag})

        return SyncResult(str(order_id), record.tag, previous_status, order.status)

    def candidate_order_ids(self) -> list[str]:
        ids = []
        for status in ACTIVE_STATUSES:
            ids.extend(str(order.id) for order in iter_orders(status=status.value) if order.tracking_number)
        return ids

    def sync_all(self) -> dict:
        """Sync every tracked, non-terminal order; failures are per order."""
        summary = {"checked": 0, "advanced": 0, "failed": 0}
        for order_id in self.candidate_order_ids():
            summary["checked"] += 1
            try:
                if self.sync_order(order_id).advanced:
                    summary["advanced"] += 1
            except ExternalServiceError as exc:
                summary["failed"] += 1
                logger.warning("Tracking fetch failed", order_id=order_id, error=str(exc))
            except Exception:
                summary["failed"] += 1
                logger.exception("Tracking sync failed", order_id=order_id)

        logger.info("Tracking sync complete", **summary)
        return summary

    def live_tracking(self, order_id, buyer_id=None) -> dict:
        """Current tracking for one order, refreshed from the carrier.

        Falls back to the stored data when the carrier is unavailable.
        """
        order = current_domain.repository_for(Order).get(str(order_id))
        if buyer_id is not None:
            order.assert_owned_by(buyer_id)
        if not order.tracking_number:
            raise ValidationError({"tracking_number": ["Tracking information not available yet"]})

        try:
            self.sync_order(order_id)
        except ExternalServiceError as exc:
            logger.warning("Live tracking unavailable", order_id=str(order_id), error=str(exc))
            return tracking_view(order, message="Live tracking is temporarily unavailable")

        return tracking_view(current_domain.repository_for(Order).get(str(order_id)))

    def assign(self, order_id, tracking_number: str, courier: str) -> Order:
        """Attach a tracking number, register it with the carrier, notify.

        Carrier registration is best effort; the periodic sync picks the
        shipment up either way.
        """
        shipped = current_domain.process(
            AssignTrackingNumber(order_id=str(order_id), tracking_number=tracking_number, courier=courier),
            asynchronous=False,
        )
        order = current_domain.repository_for(Order).get(str(order_id))

        try:
            self.carrier.register(order.tracking_number, order.courier, str(order.id))
        except ExternalServiceError as exc:
            logger.warning("Carrier registration failed", order_id=str(order_id), error=str(exc))

        if shipped:
            notify(
                order.id,
                NotificationKind.ORDER_SHIPPED,
                {"tracking_number": order.tracking_number, "tracking_url": order.tracking_url},
            )
        return order
