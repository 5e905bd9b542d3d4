"""SQLAlchemy-backed stock store.

Each decrement is a single ``UPDATE ... WHERE stock >= :qty`` statement, so
the guard and the write happen atomically inside the database and several
server processes can share the same table. A CHECK constraint keeps the
column non-negative even if a caller bypasses the store.
"""

import structlog
from sqlalchemy import (
    CheckConstraint,
    Column,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine

from inventory.store.port import ProductStock, StockStore

logger = structlog.get_logger(__name__)

metadata = MetaData()

product_stock = Table(
    "product_stock",
    metadata,
    Column("product_id", String(64), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("price", Float, nullable=False),
    Column("stock", Integer, nullable=False, default=0),
    CheckConstraint("stock >= 0", name="ck_product_stock_non_negative"),
)


class SQLStockStore(StockStore):
    """Stock store over a relational table."""

    def __init__(self, database_url: str | None = None, engine: Engine | None = None) -> None:
        if engine is None and database_url is None:
            raise ValueError("SQLStockStore needs a database_url or an engine")
        self.engine = engine or create_engine(database_url)

    def create_schema(self) -> None:
        metadata.create_all(self.engine)

    def drop_schema(self) -> None:
        metadata.drop_all(self.engine)

    def get_many(self, product_ids: list[str]) -> dict[str, ProductStock]:
        if not product_ids:
            return {}
        query = select(product_stock).where(product_stock.c.product_id.in_(list(product_ids)))
        with self.engine.connect() as conn:
            rows = conn.execute(query).mappings().all()
        return {row["product_id"]: ProductStock(**row) for row in rows}

    def decrement_many(self, adjustments: list[tuple[str, int]]) -> list[bool]:
        results = []
        with self.engine.begin() as conn:
            for product_id, quantity in adjustments:
                result = conn.execute(
                    update(product_stock)
                    .where(
                        product_stock.c.product_id == product_id,
                        product_stock.c.stock >= quantity,
                    )
                    .values(stock=product_stock.c.stock - quantity)
                )
                results.append(result.rowcount == 1)
        return results

    def increment_many(self, adjustments: list[tuple[str, int]]) -> None:
        with self.engine.begin() as conn:
            for product_id, quantity in adjustments:
                result = conn.execute(
                    update(product_stock)
                    .where(product_stock.c.product_id == product_id)
                    .values(stock=product_stock.c.stock + quantity)
                )
                if result.rowcount != 1:
                    logger.warning("Stock increment hit no product", product_id=product_id, quantity=quantity)

    def upsert(self, product: ProductStock) -> None:
        values = {"name": product.name, "price": product.price, "stock": product.stock}
        with self.engine.begin() as conn:
            result = conn.execute(
                update(product_stock).where(product_stock.c.product_id == product.product_id).values(**values)
            )
            if result.rowcount == 0:
                conn.execute(insert(product_stock).values(product_id=product.product_id, **values))
