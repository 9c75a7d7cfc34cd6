"""Relational storage adapter built on SQLAlchemy's asyncio engine.

Records live in one table keyed by store key. Atomicity comes from the
database: lock() is a single conditional ``INSERT OR REPLACE ... SELECT ...
WHERE NOT EXISTS`` statement that only writes when no live row exists, so
there is no read-then-write window. Liveness is decided by comparing
``created_at`` with a threshold derived from the TTL; expired rows are
invisible to get() and are overwritten by the next lock().

The statements use the SQLite dialect (also spoken by Cloudflare D1 and
libSQL). The table is created on first use.

Examples:
    Using a file-backed SQLite database::

        from sqlalchemy.ext.asyncio import create_async_engine
        from idempotency_gate.storage.sql import SQLStorageAdapter

        engine = create_async_engine("sqlite+aiosqlite:///idempotency.db")
        adapter = SQLStorageAdapter(engine, table_name="idempotency_keys")

        # Or let the adapter create the engine
        adapter = SQLStorageAdapter.from_url("sqlite+aiosqlite:///idempotency.db")
"""

import asyncio
import re
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import ValidationError
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from idempotency_gate.models import IdempotencyRecord, RecordStatus, StoredResponse, now_ms
from idempotency_gate.observability.logging import get_logger
from idempotency_gate.storage.base import DEFAULT_TTL_SECONDS, StorageAdapter

logger = get_logger(__name__)

DEFAULT_TABLE_NAME = "idempotency_keys"

# Table names are interpolated into SQL, never bound
TABLE_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")


def validate_table_name(table_name: str) -> str:
    """Validate a table name before it is interpolated into SQL.

    Raises:
        ValueError: If the name is not a plain identifier.

    Examples:
        >>> validate_table_name("idempotency_keys")
        'idempotency_keys'
    """
    if not TABLE_NAME_PATTERN.fullmatch(table_name):
        raise ValueError(
            f"Invalid table name {table_name!r}: must match {TABLE_NAME_PATTERN.pattern}"
        )
    return table_name


class SQLStorageAdapter(StorageAdapter):
    """Storage adapter persisting records in a relational table.

    Attributes:
        engine: The SQLAlchemy async engine.
        table_name: Validated table name.
        ttl_ms: Record lifetime in milliseconds.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        table_name: str = DEFAULT_TABLE_NAME,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """Initialize the adapter.

        Args:
            engine: SQLAlchemy async engine bound to the database.
            table_name: Table holding the records (plain identifier only).
            ttl_seconds: Record lifetime in seconds (default 24 hours).
            clock: Returns the current time in epoch milliseconds.

        Raises:
            ValueError: If the table name is invalid or ttl_seconds is not positive.
        """
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")

        self.engine = engine
        self.table_name = validate_table_name(table_name)
        self.ttl_ms = int(ttl_seconds * 1000)
        self._clock = clock
        self._initialized = False
        self._init_lock = asyncio.Lock()

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> "SQLStorageAdapter":
        """Create an adapter with a new engine for ``url``.

        Args:
            url: SQLAlchemy database URL using an async driver.
            **kwargs: Forwarded to the constructor.
        """
        return cls(create_async_engine(url), **kwargs)

    async def get(self, key: str) -> IdempotencyRecord | None:
        """Return the live row for ``key`` as a record."""
        await self._ensure_table()
        async with self.engine.connect() as conn:
            result = await conn.execute(
                text(
                    f"SELECT store_key, idempotency_key, fingerprint, status, response, created_at "
                    f"FROM {self.table_name} WHERE store_key = :store_key AND created_at > :threshold"
                ),
                {"store_key": key, "threshold": self._threshold()},
            )
            row = result.mappings().first()

        if row is None:
            return None
        return self._to_record(row)

    async def lock(self, key: str, record: IdempotencyRecord) -> bool:
        """Insert the record unless a live row exists, in one statement.

        An expired row under the same key is replaced.
        """
        await self._ensure_table()
        async with self.engine.begin() as conn:
            result = await conn.execute(
                text(
                    f"INSERT OR REPLACE INTO {self.table_name} "
                    f"(store_key, idempotency_key, fingerprint, status, response, created_at) "
                    f"SELECT :store_key, :idempotency_key, :fingerprint, :status, NULL, :created_at "
                    f"WHERE NOT EXISTS (SELECT 1 FROM {self.table_name} "
                    f"WHERE store_key = :store_key AND created_at > :threshold)"
                ),
                {
                    "store_key": key,
                    "idempotency_key": record.key,
                    "fingerprint": record.fingerprint,
                    "status": record.status.value,
                    "created_at": record.created_at,
                    "threshold": self._threshold(),
                },
            )
            locked = result.rowcount > 0
        return locked

    async def complete(self, key: str, response: StoredResponse) -> None:
        """Mark the row completed and store the serialized response."""
        try:
            payload = response.model_dump_json()
        except ValueError as e:
            logger.error("store.serialize_failed", store_key=key, error=str(e))
            return

        await self._ensure_table()
        async with self.engine.begin() as conn:
            await conn.execute(
                text(
                    f"UPDATE {self.table_name} SET status = :status, response = :response "
                    f"WHERE store_key = :store_key"
                ),
                {
                    "status": RecordStatus.COMPLETED.value,
                    "response": payload,
                    "store_key": key,
                },
            )

    async def delete(self, key: str) -> None:
        """Delete the row for ``key``."""
        await self._ensure_table()
        async with self.engine.begin() as conn:
            await conn.execute(
                text(f"DELETE FROM {self.table_name} WHERE store_key = :store_key"),
                {"store_key": key},
            )

    async def purge(self) -> int:
        """Bulk-delete expired rows.

        Returns:
            The number of rows deleted.
        """
        await self._ensure_table()
        async with self.engine.begin() as conn:
            result = await conn.execute(
                text(f"DELETE FROM {self.table_name} WHERE created_at <= :threshold"),
                {"threshold": self._threshold()},
            )
            removed = result.rowcount
        return removed

    def _threshold(self) -> int:
        # Rows created at or before this instant are expired
        return self._clock() - self.ttl_ms

    async def _ensure_table(self) -> None:
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return
            async with self.engine.begin() as conn:
                await conn.execute(
                    text(
                        f"CREATE TABLE IF NOT EXISTS {self.table_name} ("
                        f"store_key TEXT PRIMARY KEY, "
                        f"idempotency_key TEXT NOT NULL, "
                        f"fingerprint TEXT NOT NULL, "
                        f"status TEXT NOT NULL, "
                        f"response TEXT, "
                        f"created_at INTEGER NOT NULL)"
                    )
                )
            self._initialized = True

    def _to_record(self, row: Mapping[str, Any]) -> IdempotencyRecord | None:
        response: StoredResponse | None = None
        if row["response"]:
            try:
                response = StoredResponse.model_validate_json(row["response"])
            except ValidationError as e:
                # Surfaces as completed-without-response; the controller recovers
                logger.warning("store.decode_failed", store_key=row["store_key"], error=str(e))

        try:
            return IdempotencyRecord(
                key=row["idempotency_key"],
                fingerprint=row["fingerprint"],
                status=RecordStatus(row["status"]),
                response=response,
                created_at=row["created_at"],
            )
        except ValueError as e:
            logger.warning("store.decode_failed", store_key=row["store_key"], error=str(e))
            return None
