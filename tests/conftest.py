"""
Pytest configuration for the SecurePay+ sync core.

Provides fixtures for:
- Settings with test-specific overrides
- An in-memory application context with a signed-in user
- Database connection management and schema setup for integration tests
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

import psycopg
import pytest

from securepay.config import Settings
from securepay.infrastructure.context import AppContext, memory_context
from securepay.infrastructure.contracts import User

OWNER_ID = "user-1"
OTHER_OWNER_ID = "user-2"
FIXED_NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "securepay"),
        backend="memory",
        user_id=OWNER_ID,
        log_level="DEBUG",
    )


@pytest.fixture
def owner() -> User:
    return User(id=OWNER_ID, email="owner@example.com")


@pytest.fixture
def memory_ctx(test_settings: Settings, owner: User) -> AppContext:
    """Fresh offline context per test, signed in as `owner`."""
    return memory_context(test_settings, user=owner)


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return test_settings.dsn


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped database connection for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn, autocommit=True)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="session")
def db_schema_initialized(db_connection: psycopg.Connection) -> bool:
    """
    Apply `db/init.sql`; every statement in it is idempotent.
    """
    init_sql_path = Path(__file__).parent.parent / "db" / "init.sql"
    db_connection.execute(init_sql_path.read_text(encoding="utf-8"))
    return True


@pytest.fixture
def clean_tables(db_connection: psycopg.Connection, db_schema_initialized: bool):
    """
    Empty both synced tables before and after each test function.
    """
    truncate = "TRUNCATE TABLE public.securepay_transactions, public.scheduled_payments;"
    db_connection.execute(truncate)
    yield
    db_connection.execute(truncate)
