"""Domain events for the Order aggregate.

Versioned, immutable facts about order state changes. They are written to
the event store alongside the order and form its audit trail.
"""

from protean.fields import DateTime, Float, Identifier, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """A buyer placed an order."""

    __version__ = 1

    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    payment_method = String(required=True)
    items = Text(required=True)  # JSON: list of line dicts
    amount = Float(required=True)
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderPaid:
    """Payment for an order was confirmed by the payment provider."""

    __version__ = 1

    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    amount = Float(required=True)
    payment_event_id = String()
    session_id = String()
    paid_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusChanged:
    """The order moved along an edge of the status automaton."""

    __version__ = 1

    order_id = Identifier(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    trigger = String(required=True)
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class TrackingAssigned:
    """A carrier tracking number was attached to the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    tracking_number = String(required=True)
    courier = String(required=True)
    tracking_url = String()
    assigned_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled before it advanced past Placed."""

    __version__ = 1

    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    reason = String()
    cancelled_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderReconciliationRequired:
    """Payment arrived but the order cannot be fulfilled automatically."""

    __version__ = 1

    order_id = Identifier(required=True)
    reason = String(required=True)
    payment_event_id = String()
    flagged_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderRestocked:
    """Stock for a returned order was put back."""

    __version__ = 1

    order_id = Identifier(required=True)
    restocked_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderReconciliationResolved:
    """An operator settled a flagged order by fulfilling or refunding it."""

    __version__ = 1

    order_id = Identifier(required=True)
    resolution = String(required=True)
    note = String()
    resolved_at = DateTime(required=True)
