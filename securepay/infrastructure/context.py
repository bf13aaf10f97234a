"""
Explicit wiring of the dashboard's collaborators.

`build_context(settings)` is called once at startup; everything below it
receives the `AppContext` instead of reaching for module-level clients.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from securepay.config import Settings, get_settings
from securepay.infrastructure.contracts import ChangeFeed, IdentityProvider, RemoteStore, User
from securepay.infrastructure.memory import InMemoryChangeFeed, InMemoryStore, StaticIdentityProvider


@dataclass
class AppContext:
    transactions: RemoteStore
    transactions_feed: ChangeFeed
    schedules: RemoteStore
    schedules_feed: ChangeFeed
    identity: IdentityProvider
    settings: Settings = field(default_factory=get_settings)


def _configured_user(settings: Settings) -> Optional[User]:
    if not settings.user_id:
        return None
    return User(id=settings.user_id, email=settings.user_email)


def memory_context(settings: Optional[Settings] = None, user: Optional[User] = None) -> AppContext:
    """Offline context; `user` overrides the configured one."""
    settings = settings or get_settings()
    tx_feed = InMemoryChangeFeed(settings.transactions_table)
    sched_feed = InMemoryChangeFeed(settings.schedules_table)
    return AppContext(
        transactions=InMemoryStore(settings.transactions_table, feed=tx_feed),
        transactions_feed=tx_feed,
        schedules=InMemoryStore(settings.schedules_table, feed=sched_feed),
        schedules_feed=sched_feed,
        identity=StaticIdentityProvider(user or _configured_user(settings)),
        settings=settings,
    )


def build_context(settings: Optional[Settings] = None) -> AppContext:
    """
    Construct the context for the configured backend.

    Parameters
    ----------
    settings : Settings, optional
        Defaults to the cached `get_settings()`.

    Returns
    -------
    AppContext
        Postgres adapters when `SECUREPAY_BACKEND=postgres`, in-memory ones
        otherwise. Identity comes from `SECUREPAY_USER_ID` either way.
    """
    settings = settings or get_settings()
    if settings.backend == "memory":
        return memory_context(settings)

    from securepay.infrastructure.postgres_feed import PostgresChangeFeed
    from securepay.infrastructure.postgres_store import PostgresStore

    dsn = settings.dsn
    return AppContext(
        transactions=PostgresStore(settings.transactions_table),
        transactions_feed=PostgresChangeFeed(settings.transactions_table, dsn=dsn),
        schedules=PostgresStore(settings.schedules_table),
        schedules_feed=PostgresChangeFeed(settings.schedules_table, dsn=dsn),
        identity=StaticIdentityProvider(_configured_user(settings)),
        settings=settings,
    )


__all__ = ["AppContext", "build_context", "memory_context"]
