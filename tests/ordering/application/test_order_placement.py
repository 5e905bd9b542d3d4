"""Placing COD and online orders through OrderPlacement."""

import pytest
from inventory.store.port import ProductStock
from ordering.cart.items import AddToCart, find_cart
from ordering.exceptions import ExternalServiceError, StockError
from ordering.order.order import Order, OrderStatus
from ordering.order.placement import OrderPlacement
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError


def _items(product_id="prod-shirt", quantity=2, price=25.0, name="Linen Shirt"):
    return [{"product_id": product_id, "name": name, "quantity": quantity, "price": price, "size": "M"}]


class TestScenarioA:
    def test_cod_order_takes_the_last_units_and_blocks_the_next_buyer(self, stock_store, address):
        stock_store.upsert(ProductStock(product_id="prod-a", name="Product A", price=20.0, stock=2))

        order = OrderPlacement().place_cod("buyer-001", _items("prod-a", 2, 20.0, "Product A"), address)

        assert stock_store.get("prod-a").stock == 0
        assert order.status == OrderStatus.PLACED.value
        assert order.paid is False

        with pytest.raises(StockError):
            OrderPlacement().place_cod("buyer-002", _items("prod-a", 1, 20.0, "Product A"), address)
        assert stock_store.get("prod-a").stock == 0


class TestPlaceCOD:
    def test_order_is_persisted_with_snapshot(self, products, address):
        order = OrderPlacement().place_cod("buyer-001", _items(), address)

        stored = current_domain.repository_for(Order).get(order.id)
        assert stored.payment_method == "COD"
        assert stored.amount == 60.0
        assert stored.delivery_fee == 10.0
        assert stored.address.full_name == "Sam Lee"
        assert stored.line_snapshot()[0]["price"] == 25.0

    def test_delivery_fee_comes_from_configuration(self, products, address, monkeypatch):
        monkeypatch.setenv("DELIVERY_FEE", "4.5")
        order = OrderPlacement().place_cod("buyer-001", _items(quantity=1), address)
        assert order.amount == 29.5

    def test_insufficient_stock_leaves_stock_and_orders_unchanged(self, products, stock_store, address):
        with pytest.raises(StockError):
            OrderPlacement().place_cod("buyer-001", _items(quantity=11), address)

        assert stock_store.get("prod-shirt").stock == 10
        assert current_domain.repository_for(Order)._dao.query.all().total == 0

    def test_unknown_product(self, products, address):
        with pytest.raises(ObjectNotFoundError):
            OrderPlacement().place_cod("buyer-001", _items("prod-ghost"), address)

    def test_missing_address_is_rejected_before_stock_moves(self, products, stock_store):
        with pytest.raises(ValidationError):
            OrderPlacement().place_cod("buyer-001", _items(), None)
        assert stock_store.get("prod-shirt").stock == 10

    def test_cart_is_emptied(self, products, address):
        current_domain.process(
            AddToCart(buyer_id="buyer-001", product_id="prod-shirt", name="Linen Shirt", quantity=2, price=25.0),
            asynchronous=False,
        )

        OrderPlacement().place_cod("buyer-001", _items(), address)

        assert len(find_cart("buyer-001").items) == 0

    def test_buyer_is_notified(self, products, address, notifier):
        order = OrderPlacement().place_cod("buyer-001", _items(), address)
        assert notifier.kinds_for(str(order.id)) == ["order_placed"]

    def test_notifier_failure_does_not_fail_placement(self, products, address, notifier):
        notifier.configure(should_succeed=False)

        order = OrderPlacement().place_cod("buyer-001", _items(), address)

        assert current_domain.repository_for(Order).get(order.id).status == OrderStatus.PLACED.value


class TestPlaceOnline:
    def test_stock_is_validated_but_not_taken(self, products, stock_store, address):
        order, session = OrderPlacement().place_online("buyer-001", _items(), address)

        assert stock_store.get("prod-shirt").stock == 10
        assert order.payment_method == "Online"
        assert order.paid is False
        assert order.external_session_id == session.session_id

    def test_checkout_session_carries_order_and_urls(self, products, address, gateway):
        order, _ = OrderPlacement().place_online("buyer-001", _items(), address)

        call = gateway.calls[0]
        assert call["order_id"] == str(order.id)
        assert call["buyer_id"] == "buyer-001"
        assert call["currency"] == "usd"
        assert call["success_url"] == f"http://localhost:5173/verify?success=true&orderId={order.id}"
        assert call["cancel_url"] == f"http://localhost:5173/verify?success=false&orderId={order.id}"
        assert call["line_items"] == [
            {"name": "Linen Shirt (M)", "unit_amount": 2500, "quantity": 2},
            {"name": "Delivery Charges", "unit_amount": 1000, "quantity": 1},
        ]

    def test_session_metadata_links_back_to_order(self, products, address, gateway):
        order, session = OrderPlacement().place_online("buyer-001", _items(), address)
        assert gateway.sessions[session.session_id]["metadata"]["orderId"] == str(order.id)

    def test_gateway_failure_removes_the_order(self, products, address, gateway):
        gateway.configure(should_succeed=False)

        with pytest.raises(ExternalServiceError):
            OrderPlacement().place_online("buyer-001", _items(), address)

        assert current_domain.repository_for(Order)._dao.query.all().total == 0

    def test_insufficient_stock_is_reported_at_placement(self, products, address, gateway):
        with pytest.raises(StockError):
            OrderPlacement().place_online("buyer-001", _items("prod-scarf", 2, 40.0, "Wool Scarf"), address)
        assert gateway.calls == []
