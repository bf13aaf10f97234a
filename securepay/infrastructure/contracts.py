"""
Collaborator contracts for the SecurePay+ sync core.

The reconciler never talks to a vendor SDK directly. Concrete adapters
(Postgres, in-memory) implement these protocols, and the session receives
them through an explicitly constructed `AppContext`.
"""

from __future__ import annotations

import contextlib
from typing import (
    Any,
    AsyncIterator,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    TypedDict,
    runtime_checkable,
)

from pydantic import BaseModel

RawRow = Dict[str, Any]
ChangeHandler = Callable[[], None]


class User(BaseModel):
    """Signed-in user as reported by the identity provider."""

    id: str
    email: Optional[str] = None

    model_config = {"frozen": True}


AuthHandler = Callable[[Optional[User]], None]


class WriteResult(TypedDict, total=False):
    """
    Outcome of a user write, as shown to the user.

    `ok` is always present; `record_id` is the canonical id on success and
    `error` the user-facing message on failure.
    """

    ok: bool
    record_id: Optional[str]
    error: Optional[str]


@runtime_checkable
class RemoteStore(Protocol):
    """
    Authoritative table of rows owned by users.

    Attributes
    ----------
    table : str
        Name of the backing table, used in logs.
    """

    table: str

    async def query(self, owner_id: str) -> List[RawRow]:
        """Return every row belonging to `owner_id`, in any order."""
        ...

    async def insert_or_update(self, row: Mapping[str, Any]) -> RawRow:
        """
        Upsert by primary key and return the canonical row.

        Rows without an `id` are inserted and receive server-assigned fields
        (`id`, `created_at`, `updated_at`).

        Raises
        ------
        RemoteStoreError
            If the write is rejected or the store is unreachable.
        """
        ...

    async def delete(self, record_id: str) -> None:
        """Delete by primary key. Raises `RemoteStoreError` on failure."""
        ...


@runtime_checkable
class Subscription(Protocol):
    async def unsubscribe(self) -> None:
        """Stop delivering notifications. Safe to call more than once."""
        ...


@runtime_checkable
class ChangeFeed(Protocol):
    """
    Push channel saying "rows of this owner changed".

    No payload is promised; subscribers are expected to re-query.
    """

    async def subscribe(self, owner_id: str, on_change: ChangeHandler) -> Subscription:
        """
        Start calling `on_change()` on the event loop for changes of `owner_id`.

        Raises
        ------
        SubscriptionError
            If the channel cannot be established.
        """
        ...


@runtime_checkable
class IdentityProvider(Protocol):
    async def get_current_user(self) -> Optional[User]:
        ...

    def on_auth_state_change(self, handler: AuthHandler) -> Callable[[], None]:
        """Register `handler(user_or_none)`; returns a function that unregisters it."""
        ...


@contextlib.asynccontextmanager
async def scoped_subscription(
    feed: ChangeFeed, owner_id: str, on_change: ChangeHandler
) -> AsyncIterator[Subscription]:
    """
    Subscribe for the duration of an `async with` block.

    Example
    -------
        async with scoped_subscription(feed, user.id, coordinator.request):
            await stop_event.wait()
    """
    subscription = await feed.subscribe(owner_id, on_change)
    try:
        yield subscription
    finally:
        await subscription.unsubscribe()


__all__ = [
    "RawRow",
    "ChangeHandler",
    "AuthHandler",
    "User",
    "WriteResult",
    "RemoteStore",
    "Subscription",
    "ChangeFeed",
    "IdentityProvider",
    "scoped_subscription",
]
