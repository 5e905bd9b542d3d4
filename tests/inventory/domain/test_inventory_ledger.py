"""Tests for cart validation, pricing and all-or-nothing stock adjustment."""

import pytest
from inventory.ledger import InventoryLedger, PricedItem
from ordering.exceptions import StockError
from protean.exceptions import ObjectNotFoundError, ValidationError


def _line(product_id="prod-shirt", name="Linen Shirt", quantity=1, price=25.0, size="M"):
    return {"product_id": product_id, "name": name, "quantity": quantity, "price": price, "size": size}


class TestValidateAndPrice:
    def test_prices_lines_from_live_store(self, products):
        lines = InventoryLedger().validate_and_price([_line(quantity=2, price=1.0, name="Stale name")])

        assert lines == [PricedItem(product_id="prod-shirt", name="Linen Shirt", quantity=2, price=25.0, size="M")]
        assert lines[0].line_total == 50.0

    def test_empty_cart_is_rejected(self, products):
        with pytest.raises(ValidationError) as exc:
            InventoryLedger().validate_and_price([])
        assert "Cart is empty" in exc.value.messages["items"]

    @pytest.mark.parametrize("quantity", [0, 100, -1, 1.5, "two", None, True])
    def test_quantity_out_of_range_is_rejected(self, products, quantity):
        with pytest.raises(ValidationError) as exc:
            InventoryLedger().validate_and_price([_line(quantity=quantity)])
        assert exc.value.messages["items"][0].startswith("Item 1: quantity")

    def test_numeric_string_quantity_is_accepted(self, products):
        lines = InventoryLedger().validate_and_price([_line(quantity="3")])
        assert lines[0].quantity == 3

    def test_negative_or_missing_price_is_rejected(self, products):
        with pytest.raises(ValidationError) as exc:
            InventoryLedger().validate_and_price([_line(price=-1), _line(product_id="prod-cap", price=None)])
        assert exc.value.messages["items"] == [
            "Item 1: price is required and cannot be negative",
            "Item 2: price is required and cannot be negative",
        ]

    def test_missing_product_id_is_rejected(self, products):
        with pytest.raises(ValidationError) as exc:
            InventoryLedger().validate_and_price([_line(product_id=None)])
        assert "product id and name are required" in exc.value.messages["items"][0]

    def test_unknown_product_is_not_found(self, products):
        with pytest.raises(ObjectNotFoundError):
            InventoryLedger().validate_and_price([_line(product_id="prod-ghost")])

    def test_insufficient_stock_names_the_product(self, products):
        with pytest.raises(StockError) as exc:
            InventoryLedger().validate_and_price([_line(product_id="prod-cap", name="Canvas Cap", quantity=6)])

        assert exc.value.message == "Insufficient stock for Canvas Cap. Only 5 available."
        assert exc.value.context["available"] == 5

    def test_size_variants_of_one_product_are_summed(self, products):
        items = [_line(quantity=6, size="M"), _line(quantity=5, size="L")]
        with pytest.raises(StockError):
            InventoryLedger().validate_and_price(items)

    def test_validation_never_changes_stock(self, products, stock_store):
        InventoryLedger().validate_and_price([_line(quantity=4)])
        assert stock_store.get("prod-shirt").stock == 10


class TestCommitDecrement:
    def test_decrements_every_line(self, products, stock_store):
        ledger = InventoryLedger()
        ledger.commit_decrement(ledger.validate_and_price([_line(quantity=3), _line(product_id="prod-cap", quantity=2)]))

        assert stock_store.get("prod-shirt").stock == 7
        assert stock_store.get("prod-cap").stock == 3

    def test_partial_failure_restores_successful_lines(self, products, stock_store):
        items = [
            {"product_id": "prod-shirt", "quantity": 2},
            {"product_id": "prod-scarf", "quantity": 2},
            {"product_id": "prod-cap", "quantity": 1},
        ]

        with pytest.raises(StockError) as exc:
            InventoryLedger().commit_decrement(items)

        assert exc.value.context["product_ids"] == ["prod-scarf"]
        assert stock_store.get("prod-shirt").stock == 10
        assert stock_store.get("prod-scarf").stock == 1
        assert stock_store.get("prod-cap").stock == 5
        assert stock_store.calls[-1] == {
            "method": "increment_many",
            "adjustments": [("prod-shirt", 2), ("prod-cap", 1)],
        }

    def test_stock_never_goes_negative(self, products, stock_store):
        ledger = InventoryLedger()
        ledger.commit_decrement([{"product_id": "prod-scarf", "quantity": 1}])

        with pytest.raises(StockError):
            ledger.commit_decrement([{"product_id": "prod-scarf", "quantity": 1}])
        assert stock_store.get("prod-scarf").stock == 0


class TestRestore:
    def test_restore_adds_quantities_back(self, products, stock_store):
        ledger = InventoryLedger()
        lines = ledger.validate_and_price([_line(quantity=4)])
        ledger.commit_decrement(lines)
        ledger.restore(lines)

        assert stock_store.get("prod-shirt").stock == 10

    def test_restore_of_nothing_is_a_no_op(self, products, stock_store):
        InventoryLedger().restore([])
        assert stock_store.calls == []
