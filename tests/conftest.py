import os
from pathlib import Path

import pytest
from protean.integrations.pytest import DomainFixture


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield

        from protean import current_domain

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


# ---------------------------------------------------------------------------
# Adapters: a fresh in-memory or fake instance of every collaborator per test
# ---------------------------------------------------------------------------
@pytest.fixture(autouse=True)
def stock_store():
    from inventory.store import reset_stock_store, set_stock_store
    from inventory.store.memory_adapter import MemoryStockStore

    store = MemoryStockStore()
    set_stock_store(store)
    yield store
    reset_stock_store()


@pytest.fixture(autouse=True)
def idempotency_store():
    from payments.idempotency import reset_idempotency_store, set_idempotency_store
    from payments.idempotency.memory_adapter import MemoryIdempotencyStore

    store = MemoryIdempotencyStore()
    set_idempotency_store(store)
    yield store
    reset_idempotency_store()


@pytest.fixture(autouse=True)
def gateway():
    from payments.gateway import reset_gateway, set_gateway
    from payments.gateway.fake_adapter import FakeGateway

    fake = FakeGateway()
    set_gateway(fake)
    yield fake
    reset_gateway()


@pytest.fixture(autouse=True)
def carrier():
    from fulfillment.carrier import reset_carrier, set_carrier
    from fulfillment.carrier.fake_adapter import FakeCarrier

    fake = FakeCarrier()
    set_carrier(fake)
    yield fake
    reset_carrier()


@pytest.fixture(autouse=True)
def notifier():
    from notifications.notifier import reset_notifier, set_notifier
    from notifications.notifier.fake_adapter import FakeNotifier

    fake = FakeNotifier()
    set_notifier(fake)
    yield fake
    reset_notifier()


@pytest.fixture(autouse=True)
def loyalty():
    from loyalty import reset_loyalty_program, set_loyalty_program
    from loyalty.fake_adapter import FakeLoyaltyProgram

    fake = FakeLoyaltyProgram()
    set_loyalty_program(fake)
    yield fake
    reset_loyalty_program()


# ---------------------------------------------------------------------------
# Shared test data
# ---------------------------------------------------------------------------
@pytest.fixture()
def products(stock_store):
    """Seed the stock store with a small catalogue."""
    from inventory.store.port import ProductStock

    catalogue = [
        ProductStock(product_id="prod-shirt", name="Linen Shirt", price=25.0, stock=10),
        ProductStock(product_id="prod-cap", name="Canvas Cap", price=12.5, stock=5),
        ProductStock(product_id="prod-scarf", name="Wool Scarf", price=40.0, stock=1),
    ]
    for product in catalogue:
        stock_store.upsert(product)
    return {product.product_id: product for product in catalogue}


@pytest.fixture()
def address():
    return {
        "full_name": "Sam Lee",
        "street": "12 Harbour Road",
        "city": "Springfield",
        "state": "IL",
        "postal_code": "62701",
        "country": "US",
        "email": "sam@example.com",
    }
