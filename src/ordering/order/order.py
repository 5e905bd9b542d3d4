"""Order aggregate (CQRS): the authoritative order record.

An order is created at checkout with its lines and amount snapshotted, then
moved through the status automaton by payment confirmation, tracking
assignment and carrier checkpoints. Unpaid orders that are rejected or
cancelled by the buyer are deleted by the application services; every
other order is retained.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from ordering.domain import ordering
from ordering.exceptions import AuthorizationError
from ordering.order.automaton import OrderEvent, OrderStatus, next_status
from ordering.order.events import (
    OrderCancelled,
    OrderPaid,
    OrderPlaced,
    OrderReconciliationRequired,
    OrderReconciliationResolved,
    OrderRestocked,
    OrderStatusChanged,
    TrackingAssigned,
)
from ordering.utils.time import as_utc

TRACKING_URL_TEMPLATE = "https://track.aftership.com/{courier}/{tracking_number}"


class PaymentMethod(Enum):
    COD = "COD"
    ONLINE = "Online"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class Address:
    """Delivery address snapshot taken at checkout."""

    full_name = String(required=True, max_length=200)
    street = String(required=True, max_length=300)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(max_length=20)
    country = String(required=True, max_length=100)
    phone = String(max_length=30)
    email = String(max_length=254)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderLine:
    """A single line of an order with its price snapshot."""

    product_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    size = String(max_length=20)
    quantity = Integer(required=True, min_value=1, max_value=99)
    price = Float(required=True, min_value=0.0)


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    buyer_id = Identifier(required=True)
    items = HasMany(OrderLine)
    address = ValueObject(Address)
    amount = Float(required=True, min_value=0.0)
    delivery_fee = Float(default=0.0)
    payment_method = String(choices=PaymentMethod, required=True)
    paid = Boolean(default=False)
    paid_at = DateTime()
    status = String(choices=OrderStatus, default=OrderStatus.PLACED.value)
    cancellation_reason = String(max_length=255)

    # Tracking
    tracking_number = String(max_length=100)
    courier = String(max_length=50)
    tracking_url = String(max_length=500)
    estimated_delivery = DateTime()
    last_checkpoint = Text()  # JSON: latest carrier checkpoint
    last_checkpoint_at = DateTime()

    # Payment correlation
    external_session_id = String(max_length=255)
    payment_event_id = String(max_length=255)
    reconciliation_required = Boolean(default=False)
    reconciliation_reason = String(max_length=500)
    refunded = Boolean(default=False)

    restocked = Boolean(default=False)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, buyer_id, lines, address, payment_method, delivery_fee=0.0):
        """Create a Placed, unpaid order from priced lines.

        ``lines`` are validated and priced by the inventory ledger; the
        amount is their total plus the flat delivery fee and is never
        recomputed afterwards.
        """
        now = datetime.now(UTC)
        subtotal = sum(round(line.price * line.quantity, 2) for line in lines)
        order = cls(
            buyer_id=buyer_id,
            address=Address(**address),
            amount=round(subtotal + delivery_fee, 2),
            delivery_fee=delivery_fee,
            payment_method=PaymentMethod(payment_method).value,
            paid=False,
            status=OrderStatus.PLACED.value,
            created_at=now,
            updated_at=now,
        )
        for line in lines:
            order.add_items(
                OrderLine(
                    product_id=line.product_id,
                    name=line.name,
                    size=line.size,
                    quantity=line.quantity,
                    price=line.price,
                )
            )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                buyer_id=str(buyer_id),
                payment_method=order.payment_method,
                items=json.dumps(order.line_snapshot()),
                amount=order.amount,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def line_snapshot(self) -> list[dict]:
        return [
            {
                "product_id": str(line.product_id),
                "name": line.name,
                "size": line.size,
                "quantity": line.quantity,
                "price": line.price,
            }
            for line in (self.items or [])
        ]

    @property
    def subtotal(self) -> float:
        return round(sum(line.price * line.quantity for line in (self.items or [])), 2)

    @property
    def checkpoint(self) -> dict | None:
        return json.loads(self.last_checkpoint) if self.last_checkpoint else None

    def is_cod(self) -> bool:
        return self.payment_method == PaymentMethod.COD.value

    def assert_owned_by(self, buyer_id) -> None:
        if str(self.buyer_id) != str(buyer_id):
            raise AuthorizationError("Order does not belong to this buyer", order_id=str(self.id))

    def can_apply(self, event: OrderEvent) -> bool:
        return next_status(OrderStatus(self.status), event) is not None

    # -------------------------------------------------------------------
    # Automaton
    # -------------------------------------------------------------------
    def apply_event(self, event: OrderEvent) -> bool:
        """Move along the automaton edge for ``event``.

        Returns False, leaving the order untouched, when no edge exists for
        the current status.
        """
        current = OrderStatus(self.status)
        target = next_status(current, event)
        if target is None:
            return False

        now = datetime.now(UTC)
        self.status = target.value
        self.updated_at = now
        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                from_status=current.value,
                to_status=target.value,
                trigger=event.value,
                changed_at=now,
            )
        )
        return True

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def confirm_payment(self, payment_event_id: str | None = None, session_id: str | None = None) -> None:
        if self.paid:
            raise ValidationError({"paid": ["Order is already paid"]})
        if not self.can_apply(OrderEvent.PAYMENT_CONFIRMED):
            raise ValidationError({"status": [f"Cannot confirm payment for an order in {self.status}"]})

        now = datetime.now(UTC)
        self.paid = True
        self.paid_at = now
        self.payment_event_id = payment_event_id
        if session_id:
            self.external_session_id = session_id

        self.raise_(
            OrderPaid(
                order_id=str(self.id),
                buyer_id=str(self.buyer_id),
                amount=self.amount,
                payment_event_id=payment_event_id,
                session_id=session_id,
                paid_at=now,
            )
        )
        self.apply_event(OrderEvent.PAYMENT_CONFIRMED)

    def flag_for_reconciliation(
        self,
        reason: str,
        payment_event_id: str | None = None,
        session_id: str | None = None,
    ) -> None:
        """Record that money was received but fulfillment cannot proceed.

        The order is marked paid so that redelivered confirmations are
        acknowledged without touching stock again; its status is left
        where it is for an operator to resolve.
        """
        now = datetime.now(UTC)
        self.paid = True
        self.paid_at = now
        self.payment_event_id = payment_event_id
        if session_id:
            self.external_session_id = session_id
        self.reconciliation_required = True
        self.reconciliation_reason = reason
        self.updated_at = now

        self.raise_(
            OrderReconciliationRequired(
                order_id=str(self.id),
                reason=reason,
                payment_event_id=payment_event_id,
                flagged_at=now,
            )
        )

    def assert_resolvable(self, fulfil: bool = False) -> None:
        if not self.reconciliation_required:
            raise ValidationError({"reconciliation_required": ["Order is not awaiting reconciliation"]})
        if fulfil and not self.can_apply(OrderEvent.PAYMENT_CONFIRMED):
            raise ValidationError({"status": [f"An order in {self.status} cannot be fulfilled, refund it instead"]})

    def resolve_by_fulfilment(self, note: str | None = None) -> None:
        """Clear the flag once stock has been taken and move on to Packing."""
        self.assert_resolvable(fulfil=True)
        self._resolve("fulfilled", note)
        self.apply_event(OrderEvent.PAYMENT_CONFIRMED)

    def resolve_by_refund(self, note: str | None = None) -> None:
        """Clear the flag for a payment returned to the buyer.

        The record is kept; a still-Placed order is cancelled.
        """
        self.assert_resolvable()
        self.refunded = True
        self._resolve("refunded", note)
        if self.can_apply(OrderEvent.CANCEL_REQUESTED):
            self.cancellation_reason = note or "Refunded after reconciliation"
            self.apply_event(OrderEvent.CANCEL_REQUESTED)

    def _resolve(self, resolution: str, note: str | None) -> None:
        now = datetime.now(UTC)
        self.reconciliation_required = False
        self.updated_at = now
        self.raise_(
            OrderReconciliationResolved(
                order_id=str(self.id),
                resolution=resolution,
                note=note,
                resolved_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------
    def assert_cancellable(self) -> None:
        if self.paid:
            raise ValidationError({"paid": ["Paid orders cannot be cancelled"]})
        if not self.can_apply(OrderEvent.CANCEL_REQUESTED):
            raise ValidationError({"status": [f"Cannot cancel an order in {self.status}"]})

    def cancel(self, reason: str | None = None) -> None:
        self.assert_cancellable()
        self.cancellation_reason = reason
        self.apply_event(OrderEvent.CANCEL_REQUESTED)
        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                buyer_id=str(self.buyer_id),
                reason=reason,
                cancelled_at=self.updated_at,
            )
        )

    # -------------------------------------------------------------------
    # Tracking
    # -------------------------------------------------------------------
    def assign_tracking(self, tracking_number: str, courier: str) -> bool:
        """Attach a tracking number; ships the order when it is Packing.

        Returns whether the status changed.
        """
        if not tracking_number or not courier:
            raise ValidationError({"tracking_number": ["Tracking number and courier are required"]})
        if OrderStatus(self.status) in (OrderStatus.CANCELLED, OrderStatus.DELIVERED):
            raise ValidationError({"status": [f"Cannot assign tracking to an order in {self.status}"]})

        now = datetime.now(UTC)
        courier = courier.strip().lower()
        self.tracking_number = tracking_number.strip()
        self.courier = courier
        self.tracking_url = TRACKING_URL_TEMPLATE.format(courier=courier, tracking_number=self.tracking_number)
        self.updated_at = now

        self.raise_(
            TrackingAssigned(
                order_id=str(self.id),
                tracking_number=self.tracking_number,
                courier=courier,
                tracking_url=self.tracking_url,
                assigned_at=now,
            )
        )
        return self.apply_event(OrderEvent.TRACKING_ASSIGNED)

    def record_tracking(
        self,
        estimated_delivery: datetime | None = None,
        checkpoint: dict | None = None,
        checkpoint_at: datetime | None = None,
    ) -> bool:
        """Store carrier data; the latest checkpoint by timestamp wins.

        A record whose checkpoint is older than the stored one is ignored
        entirely, ETA included. Returns whether the stored checkpoint was
        replaced.
        """
        now = datetime.now(UTC)
        stored_at = as_utc(self.last_checkpoint_at)
        incoming_at = as_utc(checkpoint_at) or now
        if checkpoint is not None and stored_at is not None and incoming_at < stored_at:
            return False

        if estimated_delivery is not None:
            self.estimated_delivery = estimated_delivery
        self.updated_at = now

        if checkpoint is None:
            return False

        self.last_checkpoint = json.dumps(checkpoint, default=str)
        self.last_checkpoint_at = incoming_at
        return True

    # -------------------------------------------------------------------
    # Returns
    # -------------------------------------------------------------------
    def restock(self) -> None:
        if OrderStatus(self.status) != OrderStatus.DELIVERED:
            raise ValidationError({"status": ["Only delivered orders can be restocked"]})
        if self.restocked:
            raise ValidationError({"restocked": ["Order has already been restocked"]})

        now = datetime.now(UTC)
        self.restocked = True
        self.updated_at = now
        self.raise_(OrderRestocked(order_id=str(self.id), restocked_at=now))
