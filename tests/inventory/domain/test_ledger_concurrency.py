"""Concurrent checkouts against the same product never oversell."""

import threading

import pytest
from inventory.ledger import InventoryLedger
from inventory.store.port import ProductStock
from ordering.exceptions import StockError


def _run_concurrently(count, fn):
    barrier = threading.Barrier(count)
    outcomes = []
    lock = threading.Lock()

    def worker():
        barrier.wait()
        try:
            fn()
            result = "ok"
        except StockError:
            result = "stock"
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return outcomes


class TestConcurrentDecrement:
    def test_last_unit_goes_to_exactly_one_buyer(self, stock_store):
        stock_store.upsert(ProductStock(product_id="prod-last", name="Last One", price=5.0, stock=1))
        ledger = InventoryLedger()

        outcomes = _run_concurrently(8, lambda: ledger.commit_decrement([{"product_id": "prod-last", "quantity": 1}]))

        assert outcomes.count("ok") == 1
        assert outcomes.count("stock") == 7
        assert stock_store.get("prod-last").stock == 0

    @pytest.mark.parametrize("initial", [5, 12])
    def test_multi_line_orders_keep_stock_consistent(self, stock_store, initial):
        stock_store.upsert(ProductStock(product_id="prod-a", name="A", price=1.0, stock=initial))
        stock_store.upsert(ProductStock(product_id="prod-b", name="B", price=1.0, stock=3))
        ledger = InventoryLedger()
        items = [{"product_id": "prod-a", "quantity": 1}, {"product_id": "prod-b", "quantity": 1}]

        outcomes = _run_concurrently(6, lambda: ledger.commit_decrement(items))

        succeeded = outcomes.count("ok")
        assert succeeded == min(initial, 3)
        assert stock_store.get("prod-a").stock == initial - succeeded
        assert stock_store.get("prod-b").stock == 3 - succeeded
