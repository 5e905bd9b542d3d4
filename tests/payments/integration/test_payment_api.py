"""Integration tests for the payment webhook and fake gateway endpoints."""

import json

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from ordering.api import register_error_handlers
from ordering.order.order import Order, OrderStatus
from ordering.order.placement import OrderPlacement
from payments.api import payment_router
from payments.gateway import set_gateway
from payments.gateway.fake_adapter import TEST_WEBHOOK_SECRET
from payments.gateway.signature import sign_payload
from protean import current_domain


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(payment_router)
    register_error_handlers(app)
    return TestClient(app)


def _online_order(address, quantity=1):
    order, session = OrderPlacement().place_online(
        "buyer-001",
        [{"product_id": "prod-scarf", "name": "Wool Scarf", "quantity": quantity, "price": 40.0}],
        address,
    )
    return order, session


def _completed(order_id, event_id="evt_api_1", session_id="cs_test_api"):
    body = {
        "id": event_id,
        "type": "checkout.session.completed",
        "data": {"object": {"id": session_id, "payment_status": "paid", "metadata": {"orderId": str(order_id)}}},
    }
    return json.dumps(body).encode()


def _post(client, payload, secret=TEST_WEBHOOK_SECRET):
    return client.post(
        "/payments/webhook",
        content=payload,
        headers={"Stripe-Signature": sign_payload(payload, secret), "Content-Type": "application/json"},
    )


class TestWebhookEndpoint:
    def test_signed_event_confirms_payment(self, client, products, stock_store, address):
        order, _ = _online_order(address)

        response = _post(client, _completed(order.id))

        assert response.status_code == 200
        assert response.json() == {"received": True, "outcome": "confirmed", "order_id": str(order.id)}
        stored = current_domain.repository_for(Order).get(order.id)
        assert stored.paid is True
        assert stored.status == OrderStatus.PACKING.value
        assert stock_store.get("prod-scarf").stock == 0

    def test_redelivery_is_acknowledged(self, client, products, address):
        order, _ = _online_order(address)
        payload = _completed(order.id)

        _post(client, payload)
        response = _post(client, payload)

        assert response.status_code == 200
        assert response.json()["outcome"] == "duplicate_event"

    def test_bad_signature_is_rejected(self, client, products, address):
        order, _ = _online_order(address)

        response = _post(client, _completed(order.id), secret="whsec_wrong")

        assert response.status_code == 400
        assert current_domain.repository_for(Order).get(order.id).paid is False

    def test_missing_signature_is_rejected(self, client):
        response = client.post("/payments/webhook", content=b"{}")
        assert response.status_code == 400

    def test_unhandled_event_type_is_ignored(self, client):
        payload = json.dumps({"id": "evt_x", "type": "customer.created", "data": {"object": {}}}).encode()
        response = _post(client, payload)
        assert response.json() == {"received": True, "outcome": "ignored", "order_id": None}

    def test_oversold_payment_needs_reconciliation(self, client, products, stock_store, address):
        first, _ = _online_order(address)
        second, _ = _online_order(address)
        _post(client, _completed(first.id, event_id="evt_first"))

        response = _post(client, _completed(second.id, event_id="evt_second"))

        assert response.status_code == 500
        assert response.json()["order_id"] == str(second.id)
        stored = current_domain.repository_for(Order).get(second.id)
        assert stored.paid is True
        assert stored.reconciliation_required is True
        assert stored.status == OrderStatus.PLACED.value
        assert stock_store.get("prod-scarf").stock == 0

        redelivered = _post(client, _completed(second.id, event_id="evt_second"))
        assert redelivered.status_code == 200
        assert redelivered.json()["outcome"] == "duplicate_event"


class TestGatewayControls:
    def test_configure_fake_gateway(self, client, gateway):
        response = client.post("/payments/gateway/configure", json={"should_succeed": False})

        assert response.status_code == 200
        assert response.json()["should_succeed"] is False
        assert gateway.should_succeed is False

    def test_mark_session_paid(self, client, products, gateway, address):
        _, session = _online_order(address)

        response = client.post("/payments/gateway/sessions/paid", json={"session_id": session.session_id})

        assert response.status_code == 200
        assert gateway.retrieve_session(session.session_id).paid is True

    def test_unknown_session(self, client):
        response = client.post("/payments/gateway/sessions/paid", json={"session_id": "cs_unknown"})
        assert response.status_code == 404

    def test_controls_need_the_fake_gateway(self, client):
        from payments.gateway.stripe_adapter import StripeGateway

        set_gateway(StripeGateway(api_key="sk_test", webhook_secret="whsec_live"))
        response = client.post("/payments/gateway/configure", json={"should_succeed": True})
        assert response.status_code == 400

    def test_controls_are_disabled_in_production(self, client, monkeypatch):
        monkeypatch.setenv("PROTEAN_ENV", "production")
        response = client.post("/payments/gateway/configure", json={"should_succeed": True})
        assert response.status_code == 403
