"""
In-process backend: store, change feed and identity without a database.

Backs the `demo` command and the unit tests. Every operation yields to the
event loop once, and notifications are delivered with `call_soon`.
"""

from __future__ import annotations

import asyncio
import itertools
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from securepay.errors import RemoteStoreError
from securepay.infrastructure.contracts import (
    AuthHandler,
    ChangeFeed,
    ChangeHandler,
    IdentityProvider,
    RawRow,
    RemoteStore,
    Subscription,
    User,
)
from securepay.utils.logging import get_logger

log = get_logger(__name__)


class _MemorySubscription(Subscription):
    def __init__(self, feed: "InMemoryChangeFeed", key: int) -> None:
        self._feed = feed
        self._key = key

    async def unsubscribe(self) -> None:
        self._feed._handlers.pop(self._key, None)


class InMemoryChangeFeed(ChangeFeed):
    """Fan-out of owner-scoped change notifications."""

    def __init__(self, name: str = "memory") -> None:
        self.name = name
        self._handlers: Dict[int, Tuple[str, ChangeHandler]] = {}
        self._keys = itertools.count()

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    async def subscribe(self, owner_id: str, on_change: ChangeHandler) -> Subscription:
        key = next(self._keys)
        self._handlers[key] = (owner_id, on_change)
        log.debug("[SUBSCRIBED]", extra={"feed": self.name, "owner_id": owner_id})
        return _MemorySubscription(self, key)

    def publish(self, owner_id: str) -> None:
        """Notify every subscriber of `owner_id` on the next loop iteration."""
        loop = asyncio.get_running_loop()
        for subscribed_owner, handler in list(self._handlers.values()):
            if subscribed_owner == owner_id:
                loop.call_soon(handler)


class InMemoryStore(RemoteStore):
    """
    Dict-backed table keyed by `id`.

    Mirrors the Postgres adapter: ids are UUID strings, `created_at` and
    `updated_at` are server-assigned, and every write publishes a change for
    the row's owner.
    """

    def __init__(self, table: str, feed: Optional[InMemoryChangeFeed] = None) -> None:
        self.table = table
        self.feed = feed
        self._rows: Dict[str, RawRow] = {}

    def _publish(self, owner_id: str) -> None:
        if self.feed is not None:
            self.feed.publish(owner_id)

    async def query(self, owner_id: str) -> List[RawRow]:
        await asyncio.sleep(0)
        return [dict(row) for row in self._rows.values() if row.get("user_id") == owner_id]

    async def insert_or_update(self, row: Mapping[str, Any]) -> RawRow:
        await asyncio.sleep(0)
        owner_id = row.get("user_id")
        if not owner_id:
            raise RemoteStoreError(f"{self.table}: user_id is required")

        now = datetime.now(timezone.utc)
        record_id = str(row.get("id") or uuid.uuid4())
        existing = self._rows.get(record_id)
        if existing is not None and existing.get("user_id") != owner_id:
            raise RemoteStoreError(f"{self.table}: row {record_id} belongs to another user")

        stored: RawRow = {**(existing or {}), **dict(row), "id": record_id, "updated_at": now}
        stored.setdefault("created_at", now)
        self._rows[record_id] = stored
        self._publish(owner_id)
        return dict(stored)

    async def delete(self, record_id: str) -> None:
        await asyncio.sleep(0)
        removed = self._rows.pop(record_id, None)
        if removed is not None:
            self._publish(removed["user_id"])

    def seed(self, rows: List[Mapping[str, Any]]) -> None:
        """Load rows without publishing; used by the demo command and tests."""
        now = datetime.now(timezone.utc)
        for row in rows:
            record_id = str(row.get("id") or uuid.uuid4())
            self._rows[record_id] = {"created_at": now, **dict(row), "id": record_id}


class StaticIdentityProvider(IdentityProvider):
    """Identity fixed by configuration, switchable with `sign_in`/`sign_out`."""

    def __init__(self, user: Optional[User] = None) -> None:
        self._user = user
        self._handlers: List[AuthHandler] = []

    async def get_current_user(self) -> Optional[User]:
        return self._user

    def on_auth_state_change(self, handler: AuthHandler) -> Callable[[], None]:
        self._handlers.append(handler)

        def remove() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return remove

    def sign_in(self, user: User) -> None:
        self._user = user
        self._emit()

    def sign_out(self) -> None:
        self._user = None
        self._emit()

    def _emit(self) -> None:
        for handler in list(self._handlers):
            handler(self._user)


__all__ = ["InMemoryChangeFeed", "InMemoryStore", "StaticIdentityProvider"]
