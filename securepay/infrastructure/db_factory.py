"""
Database connection factory utilities for the SecurePay+ Postgres backend.

Provides centralized management of the async psycopg pool used by the
stores, plus retrying helpers for the dedicated connections the change feed
(asyncpg LISTEN) and the seed script (psycopg COPY) need.

Includes retry logic for transient connection failures using tenacity.
"""

from __future__ import annotations

import threading
from typing import Optional

import asyncpg
import psycopg
from psycopg import AsyncConnection, Connection
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from securepay.config import Settings, get_settings


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN string from settings."""
    return (settings or get_settings()).dsn


async def _configure_connection(conn: AsyncConnection) -> None:
    """Per-connection setup run by the pool before first use."""
    await conn.set_autocommit(True)
    timeout_ms = max(0, int(get_settings().db_statement_timeout_ms))
    if timeout_ms:
        await conn.execute(f"SET statement_timeout = {timeout_ms}")


class PoolManager:
    """
    Process-wide owner of the async connection pool.

    The pool is created lazily on first use and must be closed explicitly
    with `close_all()` (the CLI does this when a command finishes).
    """

    _instance: Optional["PoolManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "PoolManager":
        """Create or return the singleton instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._async_pool = None
            return cls._instance

    async def get_async_pool(
        self,
        min_size: int = 1,
        max_size: int = 5,
        dsn: Optional[str] = None,
    ) -> AsyncConnectionPool:
        """
        Get or create (and open) the asynchronous connection pool.

        Parameters
        ----------
        min_size : int
            Minimum number of idle connections to keep.
        max_size : int
            Maximum total connections in the pool.
        dsn : str, optional
            Override for the settings-derived DSN (tests).

        Returns
        -------
        AsyncConnectionPool
            The managed async pool instance, yielding dict rows.
        """
        if self._async_pool is None:
            pool = AsyncConnectionPool(
                conninfo=dsn or build_dsn(),
                min_size=min_size,
                max_size=max_size,
                kwargs={"row_factory": dict_row},
                configure=_configure_connection,
                timeout=10.0,
                open=False,
            )
            await pool.open()
            self._async_pool = pool
        return self._async_pool

    async def close_all(self) -> None:
        """Close the managed pool and release its connections."""
        pool, self._async_pool = self._async_pool, None
        if pool is not None:
            await pool.close()


async def get_async_pool(min_size: int = 1, max_size: int = 5) -> AsyncConnectionPool:
    """Get or create the shared async pool via PoolManager."""
    return await PoolManager().get_async_pool(min_size=min_size, max_size=max_size)


async def close_pools() -> None:
    await PoolManager().close_all()


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def get_sync_connection(dsn: Optional[str] = None) -> Connection:
    """
    Acquire a dedicated synchronous connection with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection
    errors. Used by the seed script for COPY loads.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    return psycopg.connect(dsn or build_dsn())


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((OSError, asyncpg.CannotConnectNowError)),
    reraise=True,
)
async def connect_listener(dsn: Optional[str] = None) -> asyncpg.Connection:
    """
    Open a dedicated asyncpg connection for LISTEN with automatic retry.

    LISTEN needs a connection of its own for the lifetime of the
    subscription, so it never comes from the shared pool.
    """
    return await asyncpg.connect(dsn or build_dsn())


__all__ = [
    "PoolManager",
    "build_dsn",
    "close_pools",
    "connect_listener",
    "get_async_pool",
    "get_sync_connection",
]
