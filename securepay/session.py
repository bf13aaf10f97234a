"""
Dashboard session: the signed-in user's synced transactions and schedules.

Usage (from async code):
    from securepay.infrastructure import build_context
    from securepay.session import DashboardSession

    async with DashboardSession(build_context()) as session:
        result = await session.add_transaction({"merchant": "Cafe", "amount": "120"})
        print(result, session.transactions.items)

Lifecycle:
- `start()` resolves the current user, binds both lists to that owner, runs
  the initial loads and subscribes both change feeds.
- Auth state changes rebind, reload and resubscribe, one at a time; an
  activation overtaken by a newer auth change does not subscribe.
- `close()` unsubscribes and cancels background refreshes.
"""

from __future__ import annotations

import asyncio
import contextlib
from datetime import datetime, timezone
from typing import Any, Callable, List, Mapping, Optional, Set, Tuple

from securepay.domain.drafts import ScheduleDraft, TransactionDraft, parse_draft
from securepay.domain.insights import Insights, compute_insights, monthly_spending
from securepay.domain.models import ScheduledPayment, Transaction
from securepay.domain.normalize import normalize_schedule, normalize_transaction
from securepay.errors import DraftValidationError, SubscriptionError
from securepay.infrastructure.context import AppContext
from securepay.infrastructure.contracts import ChangeFeed, User, WriteResult, scoped_subscription
from securepay.sync.reconciler import SCHEDULE_ORDER, TRANSACTION_ORDER
from securepay.sync.synced_list import STILL_SAVING, SyncedList
from securepay.sync.temp_ids import new_temp_id
from securepay.utils.logging import get_logger

log = get_logger(__name__)

LOGIN_REQUIRED_TRANSACTION = "You must be logged in to add a transaction."
LOGIN_REQUIRED = "Not signed in."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _rejected(message: str, record_id: Optional[str] = None) -> WriteResult:
    return WriteResult(ok=False, record_id=record_id, error=message)


class DashboardSession:
    """
    Owns one `SyncedList` per table for the current user.

    Parameters
    ----------
    ctx : AppContext
        Stores, feeds and identity provider to use.
    clock : callable, optional
        Returns the current aware datetime; injectable for tests.
    """

    def __init__(self, ctx: AppContext, clock: Optional[Callable[[], datetime]] = None) -> None:
        self.ctx = ctx
        self.settings = ctx.settings
        self._clock = clock or _utcnow
        self.transactions: SyncedList[Transaction] = SyncedList(
            ctx.transactions, normalize_transaction, TRANSACTION_ORDER, name="transactions"
        )
        self.schedules: SyncedList[ScheduledPayment] = SyncedList(
            ctx.schedules, normalize_schedule, SCHEDULE_ORDER, name="schedules"
        )
        self.user: Optional[User] = None
        self.subscribed: List[str] = []
        self._subscriptions: Optional[contextlib.AsyncExitStack] = None
        self._remove_auth_listener: Optional[Callable[[], None]] = None
        self._auth_tasks: Set[asyncio.Task] = set()
        # Activations run one at a time; only the latest auth change subscribes.
        self._activation_lock = asyncio.Lock()
        self._auth_generation = 0

    @property
    def lists(self) -> Tuple[SyncedList[Any], ...]:
        return (self.transactions, self.schedules)

    async def __aenter__(self) -> "DashboardSession":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ------------------------------------------------------------- lifecycle

    async def start(self) -> None:
        self._remove_auth_listener = self.ctx.identity.on_auth_state_change(self._on_auth_change)
        generation = self._auth_generation
        await self._activate(await self.ctx.identity.get_current_user(), generation)

    async def close(self) -> None:
        if self._remove_auth_listener is not None:
            self._remove_auth_listener()
            self._remove_auth_listener = None
        for task in list(self._auth_tasks):
            task.cancel()
        if self._auth_tasks:
            await asyncio.gather(*self._auth_tasks, return_exceptions=True)
        await self._unsubscribe()
        for synced in self.lists:
            await synced.aclose()

    async def wait_idle(self) -> None:
        """Wait for pending auth switches and background refreshes to settle."""
        while self._auth_tasks:
            await asyncio.gather(*list(self._auth_tasks), return_exceptions=True)
        for synced in self.lists:
            await synced.wait_idle()

    def _on_auth_change(self, user: Optional[User]) -> None:
        self._auth_generation += 1
        task = asyncio.get_running_loop().create_task(
            self._activate(user, self._auth_generation), name="auth-change"
        )
        self._auth_tasks.add(task)
        task.add_done_callback(self._auth_tasks.discard)

    def _superseded(self, generation: int) -> bool:
        return generation != self._auth_generation

    async def _activate(self, user: Optional[User], generation: int) -> None:
        async with self._activation_lock:
            if self._superseded(generation):
                return
            await self._unsubscribe()
            self.user = user
            owner_id = user.id if user else None
            for synced in self.lists:
                synced.bind(owner_id)

            if owner_id is None:
                log.info("[SESSION] no signed-in user")
                return

            log.info("[SESSION] user active", extra={"owner_id": owner_id})
            await asyncio.gather(self.transactions.load(), self.schedules.load())
            if self._superseded(generation):
                log.debug("[SESSION] activation superseded", extra={"owner_id": owner_id})
                return
            await self._subscribe(owner_id)

    async def _subscribe(self, owner_id: str) -> None:
        stack = contextlib.AsyncExitStack()
        feeds: Tuple[Tuple[ChangeFeed, SyncedList[Any]], ...] = (
            (self.ctx.transactions_feed, self.transactions),
            (self.ctx.schedules_feed, self.schedules),
        )
        for feed, synced in feeds:
            try:
                await stack.enter_async_context(
                    scoped_subscription(feed, owner_id, synced.request_refresh)
                )
            except SubscriptionError as exc:
                log.warning(
                    "[SUBSCRIBE FAILED] %s, live updates disabled",
                    synced.name,
                    extra={"list": synced.name, "error": str(exc)},
                )
                continue
            self.subscribed.append(synced.name)
        self._subscriptions = stack

    async def _unsubscribe(self) -> None:
        stack, self._subscriptions = self._subscriptions, None
        self.subscribed = []
        if stack is not None:
            await stack.aclose()

    # ---------------------------------------------------------------- writes

    async def add_transaction(self, data: Mapping[str, Any] | TransactionDraft) -> WriteResult:
        """Validate, show optimistically, insert, then confirm or revert."""
        try:
            draft = parse_draft(TransactionDraft, data)
        except DraftValidationError as exc:
            return _rejected(str(exc))
        if self.user is None:
            return _rejected(LOGIN_REQUIRED_TRANSACTION)

        row = draft.to_row(self.user.id, currency=self.settings.default_currency)
        optimistic = normalize_transaction(
            {**row, "id": new_temp_id(self.settings.temp_id_prefix), "created_at": self._clock()},
            is_optimistic=True,
        )
        return await self.transactions.submit(optimistic, row)

    async def save_schedule(self, data: Mapping[str, Any] | ScheduleDraft) -> WriteResult:
        """
        Create a schedule, or edit one when the draft carries an `id`.

        While an edit is pending the confirmed schedule is hidden behind its
        optimistic replacement; a failed save restores it.
        """
        try:
            draft = parse_draft(ScheduleDraft, data)
        except DraftValidationError as exc:
            return _rejected(str(exc))
        if self.user is None:
            return _rejected(LOGIN_REQUIRED)

        if draft.id and draft.id in self.schedules.reconciler.pending_ids:
            return _rejected(STILL_SAVING, draft.id)

        now = self._clock()
        row = draft.to_row(self.user.id, now)
        previous = self.schedules.reconciler.get(draft.id) if draft.id else None
        optimistic = normalize_schedule(
            {
                **row,
                "id": new_temp_id(self.settings.temp_id_prefix),
                "created_at": previous.created_at if previous else now,
            },
            is_optimistic=True,
        )
        return await self.schedules.submit(
            optimistic, row, replaces=draft.id if previous else None
        )

    async def delete_schedule(self, record_id: str) -> WriteResult:
        if self.user is None:
            return _rejected(LOGIN_REQUIRED, record_id)
        return await self.schedules.remove(record_id)

    # --------------------------------------------------------- derived views

    def insights(self) -> Insights:
        return compute_insights(self.transactions.items, now=self._clock())

    def spending(self, months: int = 6) -> List[Tuple[str, Any]]:
        return monthly_spending(self.transactions.items, months=months, now=self._clock())


__all__ = ["DashboardSession", "LOGIN_REQUIRED", "LOGIN_REQUIRED_TRANSACTION"]
