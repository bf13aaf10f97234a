"""
One remote table mirrored as a reconciled, locally visible list.

`SyncedList` binds a `RemoteStore`, a row normalizer and a `Reconciler`, and
is the boundary where store errors stop: failed writes revert their
optimistic rows and come back as a `WriteResult`, failed queries set
`error` while the previously visible rows stay on screen.
"""

from __future__ import annotations

from typing import Any, Callable, Generic, Mapping, Optional, Tuple

from securepay.infrastructure.contracts import RemoteStore, WriteResult
from securepay.sync.reconciler import Reconciler, RecordOrder, R
from securepay.sync.refresh import RefreshCoordinator
from securepay.utils.logging import get_logger

log = get_logger(__name__)

Normalizer = Callable[[Mapping[str, Any]], R]

STILL_SAVING = "This entry is still being saved."


def _message(exc: BaseException, fallback: str) -> str:
    text = str(exc).strip()
    return text or fallback


class SyncedList(Generic[R]):
    def __init__(
        self,
        store: RemoteStore,
        normalize: Normalizer,
        order: RecordOrder,
        name: Optional[str] = None,
    ) -> None:
        self.name = name or store.table
        self.reconciler: Reconciler[R] = Reconciler(order, name=self.name)
        self._store = store
        self._normalize = normalize
        self._owner_id: Optional[str] = None
        self._coordinator = RefreshCoordinator(self.load, name=self.name)
        self.loading = False
        self.error: Optional[str] = None

    @property
    def items(self) -> Tuple[R, ...]:
        return self.reconciler.items

    @property
    def owner_id(self) -> Optional[str]:
        return self._owner_id

    def bind(self, owner_id: Optional[str]) -> None:
        """Switch the list to another owner (None after sign-out)."""
        if owner_id != self._owner_id:
            self._owner_id = owner_id
            self.reconciler.clear()
            self.error = None

    # ---------------------------------------------------------------- reading

    async def load(self) -> bool:
        """
        Re-query the owner's rows and apply them as the confirmed set.

        Returns True when the rows were applied, False when the query failed
        or a newer load was issued while this one was in flight.
        """
        owner_id = self._owner_id
        if not owner_id:
            return False

        ticket = self.reconciler.begin_refresh()
        self.loading = True
        try:
            rows = await self._store.query(owner_id)
        except Exception as exc:  # noqa: BLE001 - surfaced as list error state
            log.warning(
                "[QUERY FAILED] %s",
                self.name,
                extra={"list": self.name, "error": str(exc)},
            )
            if self.reconciler.is_current(ticket):
                self.error = _message(exc, f"Failed to load {self.name}.")
                self.loading = False
            return False

        if owner_id != self._owner_id:
            return False
        applied = self.reconciler.refresh([self._normalize(row) for row in rows], ticket=ticket)
        if applied:
            self.error = None
            self.loading = False
            log.debug("[REFRESH] applied", extra={"list": self.name, "rows": len(rows)})
        return applied

    def request_refresh(self) -> None:
        """Change-feed entry point: coalesced background `load()`."""
        self._coordinator.request()

    async def wait_idle(self) -> None:
        await self._coordinator.wait_idle()

    async def aclose(self) -> None:
        await self._coordinator.aclose()

    # ---------------------------------------------------------------- writing

    async def submit(
        self,
        optimistic: R,
        row: Mapping[str, Any],
        replaces: Optional[str] = None,
    ) -> WriteResult:
        """
        Show `optimistic` at once, upsert `row`, then confirm or revert.

        `replaces` is the id of the confirmed record being edited, hidden
        while the edit is pending. If the list is rebound to another owner
        while the write is in flight, the outcome is reported but the list is
        left alone; `bind()` already dropped the optimistic entry.
        """
        owner_id = self._owner_id
        self.reconciler.insert_optimistic(optimistic, replaces=replaces)
        try:
            saved = await self._store.insert_or_update(row)
        except Exception as exc:  # noqa: BLE001 - surfaced as WriteResult
            log.warning(
                "[WRITE FAILED] %s",
                self.name,
                extra={"list": self.name, "temp_id": optimistic.id, "error": str(exc)},
            )
            if owner_id == self._owner_id:
                self.reconciler.revert(optimistic.id)
            return WriteResult(ok=False, record_id=None, error=_message(exc, "An unexpected error occurred."))

        canonical = self._normalize(saved)
        if not canonical.id:
            if owner_id == self._owner_id:
                self.reconciler.revert(optimistic.id)
            return WriteResult(ok=False, record_id=None, error="No row returned from the store.")

        if owner_id != self._owner_id:
            log.info(
                "[WRITE SETTLED] %s after owner change",
                self.name,
                extra={"list": self.name, "temp_id": optimistic.id, "record_id": canonical.id},
            )
            return WriteResult(ok=True, record_id=canonical.id, error=None)

        if self.reconciler.confirm(optimistic.id, canonical):
            self.request_refresh()
        log.info(
            "[WRITE CONFIRMED] %s",
            self.name,
            extra={"list": self.name, "temp_id": optimistic.id, "record_id": canonical.id},
        )
        return WriteResult(ok=True, record_id=canonical.id, error=None)

    async def remove(self, record_id: str) -> WriteResult:
        """Hide the record, delete it remotely, restore it if the delete fails."""
        if record_id in self.reconciler.pending_ids:
            return WriteResult(ok=False, record_id=record_id, error=STILL_SAVING)
        if not self.reconciler.stage_delete(record_id):
            return WriteResult(ok=False, record_id=record_id, error="Entry not found.")

        try:
            await self._store.delete(record_id)
        except Exception as exc:  # noqa: BLE001 - surfaced as WriteResult
            log.warning(
                "[DELETE FAILED] %s",
                self.name,
                extra={"list": self.name, "record_id": record_id, "error": str(exc)},
            )
            self.reconciler.rollback_delete(record_id)
            return WriteResult(ok=False, record_id=record_id, error=_message(exc, "Delete failed."))

        self.reconciler.commit_delete(record_id)
        log.info("[DELETED] %s", self.name, extra={"list": self.name, "record_id": record_id})
        return WriteResult(ok=True, record_id=record_id, error=None)


__all__ = ["SyncedList", "Normalizer", "STILL_SAVING"]
