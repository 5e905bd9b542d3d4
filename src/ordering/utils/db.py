from protean.domain import Domain
from sqlalchemy import create_engine

from inventory.store.sql_adapter import SQLStockStore
from payments.idempotency.sql_adapter import SQLIdempotencyStore

SQL_PROVIDERS = ("sqlite", "postgresql")


def _sql_providers(domain: Domain):
    return [provider for provider in domain.providers.values() if provider.conn_info["provider"] in SQL_PROVIDERS]


def setup_db(domain: Domain, database_url: str):
    """Create aggregate tables for SQL providers, plus the stock and idempotency tables."""
    with domain.domain_context():
        for provider in _sql_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])

            for _, record in {**domain.registry.aggregates, **domain.registry.entities}.items():
                if record.cls.meta_.provider == provider.name:
                    domain.repository_for(record.cls)._dao  # noqa: B018

            provider._metadata.create_all(engine)

    SQLStockStore(database_url).create_schema()
    SQLIdempotencyStore(database_url).create_schema()


def drop_db(domain: Domain, database_url: str):
    """Drop everything ``setup_db`` created."""
    with domain.domain_context():
        for provider in _sql_providers(domain):
            provider._metadata.drop_all(create_engine(provider.conn_info["database_uri"]))

    SQLStockStore(database_url).drop_schema()
    SQLIdempotencyStore(database_url).drop_schema()
