"""SQL stock store against a file-backed SQLite database."""

import pytest
from inventory.ledger import InventoryLedger
from inventory.store.port import ProductStock
from inventory.store.sql_adapter import SQLStockStore
from ordering.exceptions import StockError


@pytest.fixture()
def sql_store(tmp_path):
    store = SQLStockStore(f"sqlite:///{tmp_path / 'stock.db'}")
    store.create_schema()
    store.upsert(ProductStock(product_id="prod-shirt", name="Linen Shirt", price=25.0, stock=3))
    store.upsert(ProductStock(product_id="prod-cap", name="Canvas Cap", price=12.5, stock=1))
    yield store
    store.drop_schema()


class TestSQLStockStore:
    def test_get_many_omits_unknown_products(self, sql_store):
        found = sql_store.get_many(["prod-shirt", "prod-ghost"])
        assert list(found) == ["prod-shirt"]
        assert found["prod-shirt"] == ProductStock(product_id="prod-shirt", name="Linen Shirt", price=25.0, stock=3)

    def test_guarded_decrement_reports_each_line(self, sql_store):
        applied = sql_store.decrement_many([("prod-shirt", 2), ("prod-cap", 2), ("prod-ghost", 1)])

        assert applied == [True, False, False]
        assert sql_store.get("prod-shirt").stock == 1
        assert sql_store.get("prod-cap").stock == 1

    def test_upsert_replaces_existing_record(self, sql_store):
        sql_store.upsert(ProductStock(product_id="prod-cap", name="Canvas Cap", price=14.0, stock=8))
        assert sql_store.get("prod-cap") == ProductStock(product_id="prod-cap", name="Canvas Cap", price=14.0, stock=8)

    def test_ledger_compensates_against_sql(self, sql_store):
        ledger = InventoryLedger(store=sql_store)

        with pytest.raises(StockError):
            ledger.commit_decrement([{"product_id": "prod-shirt", "quantity": 2}, {"product_id": "prod-cap", "quantity": 2}])

        assert sql_store.get("prod-shirt").stock == 3
        assert sql_store.get("prod-cap").stock == 1

    def test_increment_of_unknown_product_is_ignored(self, sql_store):
        sql_store.increment_many([("prod-ghost", 1)])
        assert sql_store.get("prod-ghost") is None
