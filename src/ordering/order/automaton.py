"""Order status automaton.

Order status only moves along the edges in ``TRANSITIONS``, keyed by
(current status, event). Any pair missing from the table is a no-op, so
callers can feed every event they observe without pre-checking state.

    Placed         --payment confirmed-->        Packing
    Placed         --cancel requested-->         Cancelled
    Packing        --tracking assigned-->        Shipped
    Shipped        --out for delivery-->         OutForDelivery
    Shipped        --delivered-->                Delivered
    OutForDelivery --delivered-->                Delivered
    OutForDelivery --delivery exception-->       Shipped
"""

from enum import Enum


class OrderStatus(Enum):
    PLACED = "Placed"
    PACKING = "Packing"
    SHIPPED = "Shipped"
    OUT_FOR_DELIVERY = "OutForDelivery"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class OrderEvent(Enum):
    PAYMENT_CONFIRMED = "payment_confirmed"
    CANCEL_REQUESTED = "cancel_requested"
    TRACKING_ASSIGNED = "tracking_assigned"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    DELIVERY_EXCEPTION = "delivery_exception"


TRANSITIONS: dict[tuple[OrderStatus, OrderEvent], OrderStatus] = {
    (OrderStatus.PLACED, OrderEvent.PAYMENT_CONFIRMED): OrderStatus.PACKING,
    (OrderStatus.PLACED, OrderEvent.CANCEL_REQUESTED): OrderStatus.CANCELLED,
    (OrderStatus.PACKING, OrderEvent.TRACKING_ASSIGNED): OrderStatus.SHIPPED,
    (OrderStatus.SHIPPED, OrderEvent.OUT_FOR_DELIVERY): OrderStatus.OUT_FOR_DELIVERY,
    (OrderStatus.SHIPPED, OrderEvent.DELIVERED): OrderStatus.DELIVERED,
    (OrderStatus.OUT_FOR_DELIVERY, OrderEvent.DELIVERED): OrderStatus.DELIVERED,
    (OrderStatus.OUT_FOR_DELIVERY, OrderEvent.DELIVERY_EXCEPTION): OrderStatus.SHIPPED,
}

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})


def next_status(current: OrderStatus, event: OrderEvent) -> OrderStatus | None:
    """Return the status ``event`` leads to from ``current``, or None for a no-op."""
    return TRANSITIONS.get((current, event))


def event_leading_to(current: OrderStatus, target: OrderStatus) -> OrderEvent | None:
    """Find the event whose edge goes from ``current`` to ``target``."""
    for (source, event), destination in TRANSITIONS.items():
        if source == current and destination == target:
            return event
    return None
