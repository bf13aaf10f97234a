"""
Postgres-backed `RemoteStore` using psycopg 3 and the shared async pool.

Reads and upserts are scoped by `user_id`; upserts use
`INSERT ... ON CONFLICT (id) DO UPDATE ... RETURNING *` so the canonical row
(server-assigned id and timestamps included) comes back in the same round
trip. Driver errors are wrapped in `RemoteStoreError` so the session never
sees a psycopg type.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, List, Mapping, Optional

import psycopg
from psycopg import sql
from psycopg_pool import AsyncConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from securepay.errors import RemoteStoreError
from securepay.infrastructure.contracts import RawRow, RemoteStore
from securepay.infrastructure.db_factory import get_async_pool
from securepay.utils.logging import get_logger

log = get_logger(__name__)

PoolFactory = Callable[[], Awaitable[AsyncConnectionPool]]

# Columns the server owns; never written from a client row.
_SERVER_COLUMNS = frozenset({"created_at", "updated_at"})

_transient = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
    retry=retry_if_exception_type(psycopg.OperationalError),
    reraise=True,
)


class PostgresStore(RemoteStore):
    """
    One table of user-owned rows.

    Parameters
    ----------
    table : str
        Unqualified table name (quoted as an identifier).
    pool_factory : callable, optional
        Async callable returning the connection pool; defaults to the
        process-wide pool from `db_factory`.
    """

    def __init__(self, table: str, pool_factory: Optional[PoolFactory] = None) -> None:
        self.table = table
        self._pool_factory = pool_factory or get_async_pool
        self._ident = sql.Identifier(table)

    @_transient
    async def _fetch_owner_rows(self, owner_id: str) -> List[RawRow]:
        pool = await self._pool_factory()
        query = sql.SQL("SELECT * FROM {} WHERE user_id = %s").format(self._ident)
        async with pool.connection() as conn:
            cur = await conn.execute(query, (owner_id,))
            return [dict(row) for row in await cur.fetchall()]

    async def query(self, owner_id: str) -> List[RawRow]:
        try:
            return await self._fetch_owner_rows(owner_id)
        except psycopg.Error as exc:
            raise RemoteStoreError(f"Could not load {self.table}: {exc}") from exc

    def _upsert_statement(self, columns: List[str]) -> sql.Composed:
        insert = sql.SQL("INSERT INTO {table} ({cols}) VALUES ({vals})").format(
            table=self._ident,
            cols=sql.SQL(", ").join(sql.Identifier(c) for c in columns),
            vals=sql.SQL(", ").join(sql.Placeholder() * len(columns)),
        )
        if "id" not in columns:
            return insert + sql.SQL(" RETURNING *")

        updates = [
            sql.SQL("{col} = EXCLUDED.{col}").format(col=sql.Identifier(c))
            for c in columns
            if c not in ("id", "user_id")
        ]
        updates.append(sql.SQL("updated_at = now()"))
        return insert + sql.SQL(
            " ON CONFLICT (id) DO UPDATE SET {updates}"
            " WHERE {table}.user_id = EXCLUDED.user_id RETURNING *"
        ).format(updates=sql.SQL(", ").join(updates), table=self._ident)

    async def insert_or_update(self, row: Mapping[str, Any]) -> RawRow:
        if not row.get("user_id"):
            raise RemoteStoreError(f"{self.table}: user_id is required")

        payload = {k: v for k, v in row.items() if k not in _SERVER_COLUMNS}
        if not payload.get("id"):
            payload.pop("id", None)
        columns = list(payload)
        statement = self._upsert_statement(columns)

        try:
            pool = await self._pool_factory()
            async with pool.connection() as conn:
                cur = await conn.execute(statement, [payload[c] for c in columns])
                saved = await cur.fetchone()
        except psycopg.Error as exc:
            log.warning("[UPSERT FAILED] %s", self.table, extra={"table": self.table, "error": str(exc)})
            raise RemoteStoreError(f"Could not save to {self.table}: {exc}") from exc

        if saved is None:
            raise RemoteStoreError(f"{self.table}: row {row.get('id')} belongs to another user")
        return dict(saved)

    @_transient
    async def _delete_row(self, record_id: str) -> None:
        pool = await self._pool_factory()
        statement = sql.SQL("DELETE FROM {} WHERE id = %s").format(self._ident)
        async with pool.connection() as conn:
            await conn.execute(statement, (record_id,))

    async def delete(self, record_id: str) -> None:
        try:
            await self._delete_row(record_id)
        except psycopg.Error as exc:
            raise RemoteStoreError(f"Could not delete from {self.table}: {exc}") from exc


__all__ = ["PostgresStore"]
