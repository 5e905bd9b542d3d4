"""Admin-driven status changes: commands and handler.

Admins move an order by naming the status they want; the handler finds the
automaton edge that leads there from the current status and applies it.
Cancellation is not reachable here, it has its own operation with stock and
ownership rules.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.automaton import OrderEvent, OrderStatus, event_leading_to
from ordering.order.order import Order

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=30)


@ordering.command(part_of="Order")
class AssignTrackingNumber:
    order_id = Identifier(required=True)
    tracking_number = String(required=True, max_length=100)
    courier = String(required=True, max_length=50)


@ordering.command_handler(part_of=Order)
class OrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        try:
            target = OrderStatus(command.status)
        except ValueError as exc:
            raise ValidationError({"status": [f"Unknown status {command.status}"]}) from exc

        if target == OrderStatus.CANCELLED:
            raise ValidationError({"status": ["Use the cancel operation to cancel an order"]})

        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        current = OrderStatus(order.status)
        if target == current:
            return False

        event = event_leading_to(current, target)
        if event is None:
            raise ValidationError({"status": [f"Cannot move an order from {current.value} to {target.value}"]})
        if event == OrderEvent.PAYMENT_CONFIRMED and not order.is_cod():
            raise ValidationError({"status": ["Online orders move to Packing when their payment is confirmed"]})
        if event == OrderEvent.TRACKING_ASSIGNED and not order.tracking_number:
            raise ValidationError({"status": ["Assign a tracking number to ship an order"]})

        order.apply_event(event)
        repo.add(order)

        logger.info("Order status updated", order_id=str(order.id), from_status=current.value, to_status=target.value)
        return True

    @handle(AssignTrackingNumber)
    def assign_tracking_number(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        shipped = order.assign_tracking(command.tracking_number, command.courier)
        repo.add(order)

        logger.info(
            "Tracking number assigned",
            order_id=str(order.id),
            tracking_number=order.tracking_number,
            courier=order.courier,
            status=order.status,
        )
        return shipped
