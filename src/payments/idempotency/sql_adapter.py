"""SQLAlchemy-backed idempotency store.

The primary key on ``idempotency_keys.key`` makes a claim an atomic insert:
whichever process inserts first holds the key, every other insert fails
with an IntegrityError. Expired claims are deleted before inserting.
"""

from datetime import UTC, datetime, timedelta

from sqlalchemy import Column, DateTime, MetaData, String, Table, create_engine, delete, insert, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from payments.idempotency.port import IdempotencyStore

metadata = MetaData()

idempotency_keys = Table(
    "idempotency_keys",
    metadata,
    Column("key", String(255), primary_key=True),
    Column("expires_at", DateTime(timezone=True), nullable=True),
)


def _now() -> datetime:
    return datetime.now(UTC)


class SQLIdempotencyStore(IdempotencyStore):
    def __init__(self, database_url: str | None = None, engine: Engine | None = None, clock=_now) -> None:
        if engine is None and database_url is None:
            raise ValueError("SQLIdempotencyStore needs a database_url or an engine")
        self.engine = engine or create_engine(database_url)
        self._clock = clock

    def create_schema(self) -> None:
        metadata.create_all(self.engine)

    def drop_schema(self) -> None:
        metadata.drop_all(self.engine)

    def _delete_expired(self, conn, key: str) -> None:
        conn.execute(
            delete(idempotency_keys).where(
                idempotency_keys.c.key == key,
                idempotency_keys.c.expires_at.is_not(None),
                idempotency_keys.c.expires_at <= self._clock(),
            )
        )

    def claim(self, key: str, ttl_seconds: int) -> bool:
        with self.engine.begin() as conn:
            self._delete_expired(conn, key)
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    insert(idempotency_keys).values(key=key, expires_at=self._clock() + timedelta(seconds=ttl_seconds))
                )
        except IntegrityError:
            return False
        return True

    def release(self, key: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                delete(idempotency_keys).where(
                    idempotency_keys.c.key == key,
                    idempotency_keys.c.expires_at.is_not(None),
                )
            )

    def remember(self, key: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(delete(idempotency_keys).where(idempotency_keys.c.key == key))
            conn.execute(insert(idempotency_keys).values(key=key, expires_at=None))

    def seen(self, key: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(select(idempotency_keys.c.expires_at).where(idempotency_keys.c.key == key)).first()
        if row is None:
            return False
        expires_at = row.expires_at
        if expires_at is None:
            return True
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=UTC)
        return expires_at > self._clock()
