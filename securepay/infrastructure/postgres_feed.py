"""
Postgres `ChangeFeed` built on asyncpg LISTEN/NOTIFY.

The reference schema (`db/init.sql`) fires `pg_notify('<table>_changes',
'{"user_id": ..., "op": ...}')` from a row trigger. Each subscription holds a
dedicated asyncpg connection and forwards only the notifications for its
owner. A payload that cannot be parsed still triggers a refresh.
"""

from __future__ import annotations

import json
from typing import Any, Optional

import asyncpg

from securepay.errors import SubscriptionError
from securepay.infrastructure.contracts import ChangeFeed, ChangeHandler, Subscription
from securepay.infrastructure.db_factory import connect_listener
from securepay.utils.logging import get_logger

log = get_logger(__name__)


def channel_for(table: str) -> str:
    """NOTIFY channel used by the trigger on `table`."""
    return f"{table}_changes"


def _payload_owner(payload: str) -> Optional[str]:
    try:
        data = json.loads(payload)
    except (TypeError, ValueError):
        return None
    if isinstance(data, dict) and data.get("user_id") is not None:
        return str(data["user_id"])
    return None


class _ListenerSubscription(Subscription):
    def __init__(self, conn: asyncpg.Connection, channel: str, callback: Any) -> None:
        self._conn = conn
        self._channel = channel
        self._callback = callback
        self._closed = False

    async def unsubscribe(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            if not self._conn.is_closed():
                await self._conn.remove_listener(self._channel, self._callback)
        finally:
            await self._conn.close()
        log.debug("[UNSUBSCRIBED]", extra={"channel": self._channel})


class PostgresChangeFeed(ChangeFeed):
    """
    Change notifications for one table.

    Parameters
    ----------
    table : str
        Table whose trigger publishes the notifications.
    dsn : str, optional
        Override for the settings-derived DSN.
    """

    def __init__(self, table: str, dsn: Optional[str] = None) -> None:
        self.table = table
        self.channel = channel_for(table)
        self._dsn = dsn

    async def subscribe(self, owner_id: str, on_change: ChangeHandler) -> Subscription:
        def _on_notify(_conn: Any, _pid: int, _channel: str, payload: str) -> None:
            owner = _payload_owner(payload)
            if owner is None:
                log.debug("[NOTIFY] unparsed payload", extra={"channel": self.channel})
            elif owner != owner_id:
                return
            on_change()

        try:
            conn = await connect_listener(self._dsn)
        except (OSError, asyncpg.PostgresError) as exc:
            raise SubscriptionError(f"Could not connect change feed for {self.table}: {exc}") from exc

        try:
            await conn.add_listener(self.channel, _on_notify)
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
            await conn.close()
            raise SubscriptionError(f"Could not listen on {self.channel}: {exc}") from exc

        log.info("[SUBSCRIBED] %s", self.channel, extra={"channel": self.channel, "owner_id": owner_id})
        return _ListenerSubscription(conn, self.channel, _on_notify)


__all__ = ["PostgresChangeFeed", "channel_for"]
