"""Signed webhook handling (Scenario B) through PaymentConfirmation."""

import json

import pytest
from ordering.exceptions import ReconciliationError, SignatureError
from ordering.order.order import Order, OrderStatus
from ordering.order.placement import OrderPlacement
from payments.confirmation import PaymentConfirmation
from payments.gateway.fake_adapter import TEST_WEBHOOK_SECRET
from payments.gateway.signature import sign_payload
from protean import current_domain
from protean.exceptions import ValidationError


def _event(order_id, event_id="evt_1", event_type="checkout.session.completed", payment_status="paid"):
    body = {
        "id": event_id,
        "type": event_type,
        "data": {
            "object": {
                "id": "cs_test_1",
                "payment_status": payment_status,
                "metadata": {"orderId": str(order_id), "buyerId": "buyer-001"},
            }
        },
    }
    payload = json.dumps(body).encode()
    return payload, sign_payload(payload, TEST_WEBHOOK_SECRET)


def _online_order(address, quantity=2):
    order, _ = OrderPlacement().place_online(
        "buyer-001",
        [{"product_id": "prod-shirt", "name": "Linen Shirt", "quantity": quantity, "price": 25.0}],
        address,
    )
    return order


class TestScenarioB:
    def test_completed_event_pays_and_packs_exactly_once(self, products, stock_store, address, loyalty):
        order = _online_order(address)
        stored = current_domain.repository_for(Order).get(order.id)
        assert (stored.status, stored.paid) == (OrderStatus.PLACED.value, False)

        payload, signature = _event(order.id)
        first = PaymentConfirmation().handle_webhook(payload, signature)
        second = PaymentConfirmation().handle_webhook(payload, signature)

        stored = current_domain.repository_for(Order).get(order.id)
        assert stored.paid is True
        assert stored.status == OrderStatus.PACKING.value
        assert stored.external_session_id == "cs_test_1"
        assert (first.outcome, second.outcome) == ("confirmed", "duplicate_event")
        assert stock_store.get("prod-shirt").stock == 8
        assert loyalty.awards_for(str(order.id)) == 1


class TestWebhookEvents:
    def test_bad_signature_changes_nothing(self, products, stock_store, address):
        order = _online_order(address)
        payload, _ = _event(order.id)

        with pytest.raises(SignatureError):
            PaymentConfirmation().handle_webhook(payload, sign_payload(payload, "whsec_wrong"))

        assert current_domain.repository_for(Order).get(order.id).paid is False
        assert stock_store.get("prod-shirt").stock == 10

    def test_unpaid_completion_is_not_confirmed(self, products, address):
        order = _online_order(address)
        payload, signature = _event(order.id, payment_status="unpaid")

        assert PaymentConfirmation().handle_webhook(payload, signature).outcome == "not_paid"
        assert current_domain.repository_for(Order).get(order.id).paid is False

    @pytest.mark.parametrize("event_type", ["checkout.session.expired", "checkout.session.async_payment_failed"])
    def test_failed_checkout_rejects_the_order(self, products, address, event_type):
        order = _online_order(address)
        payload, signature = _event(order.id, event_type=event_type)

        assert PaymentConfirmation().handle_webhook(payload, signature).outcome == "rejected"
        assert current_domain.repository_for(Order)._dao.query.all().total == 0

    def test_unrelated_events_are_ignored(self, products, address):
        order = _online_order(address)
        payload, signature = _event(order.id, event_type="customer.created")
        assert PaymentConfirmation().handle_webhook(payload, signature).outcome == "ignored"

    def test_missing_order_metadata(self, products):
        payload = json.dumps(
            {"id": "evt_1", "type": "checkout.session.completed", "data": {"object": {"payment_status": "paid"}}}
        ).encode()
        with pytest.raises(ValidationError):
            PaymentConfirmation().handle_webhook(payload, sign_payload(payload, TEST_WEBHOOK_SECRET))

    def test_out_of_stock_payment_raises_for_redelivery(self, products, address):
        order = _online_order(address, quantity=10)
        OrderPlacement().place_cod(
            "buyer-002",
            [{"product_id": "prod-shirt", "name": "Linen Shirt", "quantity": 1, "price": 25.0}],
            address,
        )
        payload, signature = _event(order.id)

        with pytest.raises(ReconciliationError):
            PaymentConfirmation().handle_webhook(payload, signature)
        assert PaymentConfirmation().handle_webhook(payload, signature).outcome == "duplicate_event"
