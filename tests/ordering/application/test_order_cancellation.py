"""Cancelling, rejecting and expiring unpaid orders."""

import pytest
from ordering.exceptions import AuthorizationError, PaymentInProgressError
from ordering.order.cancellation import OrderCancellation
from ordering.order.order import Order, OrderStatus
from ordering.order.placement import OrderPlacement
from payments.confirmation import PaymentConfirmation
from payments.idempotency.claims import hold_order
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError


def _items(quantity=3):
    return [
        {"product_id": "prod-shirt", "name": "Linen Shirt", "quantity": quantity, "price": 25.0},
        {"product_id": "prod-cap", "name": "Canvas Cap", "quantity": 2, "price": 12.5},
    ]


def _order_exists(order_id):
    try:
        current_domain.repository_for(Order).get(order_id)
    except ObjectNotFoundError:
        return False
    return True


class TestCancelCOD:
    def test_restores_exactly_the_decremented_quantities(self, products, stock_store, address):
        order = OrderPlacement().place_cod("buyer-001", _items(), address)
        assert stock_store.get("prod-shirt").stock == 7
        assert stock_store.get("prod-cap").stock == 3

        OrderCancellation().cancel(order.id, buyer_id="buyer-001")

        assert stock_store.get("prod-shirt").stock == 10
        assert stock_store.get("prod-cap").stock == 5
        assert not _order_exists(order.id)

    def test_other_buyer_cannot_cancel(self, products, stock_store, address):
        order = OrderPlacement().place_cod("buyer-001", _items(), address)

        with pytest.raises(AuthorizationError):
            OrderCancellation().cancel(order.id, buyer_id="buyer-002")

        assert _order_exists(order.id)
        assert stock_store.get("prod-shirt").stock == 7

    def test_order_past_placed_cannot_be_cancelled(self, products, stock_store, address):
        order = OrderPlacement().place_cod("buyer-001", _items(), address)
        stored = current_domain.repository_for(Order).get(order.id)
        stored.status = OrderStatus.PACKING.value
        current_domain.repository_for(Order).add(stored)

        with pytest.raises(ValidationError):
            OrderCancellation().cancel(order.id, buyer_id="buyer-001")
        assert stock_store.get("prod-shirt").stock == 7

    def test_cancellation_is_announced(self, products, address, notifier):
        order = OrderPlacement().place_cod("buyer-001", _items(), address)
        OrderCancellation().cancel(order.id, buyer_id="buyer-001", reason="Ordered twice")

        assert notifier.kinds_for(str(order.id))[-1] == "order_cancelled"
        assert notifier.calls[-1]["payload"] == {"reason": "Ordered twice"}

    def test_unknown_order(self, products):
        with pytest.raises(ObjectNotFoundError):
            OrderCancellation().cancel("missing", buyer_id="buyer-001")


class TestCancelOnline:
    def test_unpaid_online_order_needs_no_restore(self, products, stock_store, address):
        order, _ = OrderPlacement().place_online("buyer-001", _items(), address)
        calls_before = len(stock_store.calls)

        OrderCancellation().cancel(order.id, buyer_id="buyer-001")

        assert not _order_exists(order.id)
        assert len(stock_store.calls) == calls_before
        assert stock_store.get("prod-shirt").stock == 10

    def test_paid_order_cannot_be_cancelled(self, products, stock_store, address):
        order, _ = OrderPlacement().place_online("buyer-001", _items(), address)
        PaymentConfirmation().confirm(order.id, event_id="evt_paid")

        with pytest.raises(ValidationError):
            OrderCancellation().cancel(order.id, buyer_id="buyer-001")

        assert stock_store.get("prod-shirt").stock == 7
        assert current_domain.repository_for(Order).get(order.id).paid is True

    def test_cancellation_waits_for_a_confirmation_in_flight(self, products, address):
        order, _ = OrderPlacement().place_online("buyer-001", _items(), address)

        with hold_order(order.id), pytest.raises(PaymentInProgressError):
            OrderCancellation().cancel(order.id, buyer_id="buyer-001")

        assert _order_exists(order.id)


class TestReject:
    def test_rejects_unpaid_online_order(self, products, address):
        order, _ = OrderPlacement().place_online("buyer-001", _items(), address)
        assert OrderCancellation().reject(order.id) is True
        assert not _order_exists(order.id)

    def test_leaves_cod_orders_alone(self, products, address):
        order = OrderPlacement().place_cod("buyer-001", _items(), address)
        assert OrderCancellation().reject(order.id) is False
        assert _order_exists(order.id)

    def test_leaves_paid_orders_alone(self, products, address):
        order, _ = OrderPlacement().place_online("buyer-001", _items(), address)
        PaymentConfirmation().confirm(order.id)
        assert OrderCancellation().reject(order.id) is False

    def test_missing_order_is_not_an_error(self, products):
        assert OrderCancellation().reject("missing") is False


class TestExpire:
    def test_expired_order_is_kept_as_cancelled(self, products, address, notifier):
        order, _ = OrderPlacement().place_online("buyer-001", _items(), address)

        assert OrderCancellation().expire(order.id) is True

        stored = current_domain.repository_for(Order).get(order.id)
        assert stored.status == OrderStatus.CANCELLED.value
        assert stored.cancellation_reason == "Payment not completed in time"
        assert notifier.kinds_for(str(order.id))[-1] == "order_cancelled"

    def test_paid_order_does_not_expire(self, products, address):
        order, _ = OrderPlacement().place_online("buyer-001", _items(), address)
        PaymentConfirmation().confirm(order.id)
        assert OrderCancellation().expire(order.id) is False


def _event_types(order_id):
    messages = current_domain.event_store.store.read(f"ordering::order-{order_id}")
    return [m.metadata.headers.type for m in messages]


def _cancelled_events(order_id):
    messages = current_domain.event_store.store.read(f"ordering::order-{order_id}")
    return [m.data for m in messages if m.metadata.headers.type == "Ordering.OrderCancelled.v1"]


class TestAuditTrail:
    def test_cancelled_order_leaves_its_events_behind(self, products, address):
        order = OrderPlacement().place_cod("buyer-001", _items(), address)

        OrderCancellation().cancel(order.id, buyer_id="buyer-001", reason="Changed my mind")

        assert not _order_exists(order.id)
        types = _event_types(order.id)
        assert "Ordering.OrderPlaced.v1" in types
        assert "Ordering.OrderStatusChanged.v1" in types
        assert [event["reason"] for event in _cancelled_events(order.id)] == ["Changed my mind"]

    def test_rejected_checkout_is_recorded(self, products, address):
        order, _ = OrderPlacement().place_online("buyer-001", _items(1), address)

        assert OrderCancellation().reject(order.id) is True

        assert not _order_exists(order.id)
        assert [event["reason"] for event in _cancelled_events(order.id)] == ["Checkout rejected"]
