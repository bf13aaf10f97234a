"""
Infrastructure package: store, change-feed and identity adapters.

The Postgres adapters are imported lazily by `build_context` so the offline
backend works without a database driver being configured.
"""

from securepay.infrastructure.context import AppContext, build_context, memory_context
from securepay.infrastructure.contracts import (
    ChangeFeed,
    IdentityProvider,
    RemoteStore,
    Subscription,
    User,
    WriteResult,
    scoped_subscription,
)
from securepay.infrastructure.memory import InMemoryChangeFeed, InMemoryStore, StaticIdentityProvider

__all__ = [
    "AppContext",
    "ChangeFeed",
    "IdentityProvider",
    "InMemoryChangeFeed",
    "InMemoryStore",
    "RemoteStore",
    "StaticIdentityProvider",
    "Subscription",
    "User",
    "WriteResult",
    "build_context",
    "memory_context",
    "scoped_subscription",
]
