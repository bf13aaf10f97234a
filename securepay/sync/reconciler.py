"""
Optimistic-update reconciler.

Keeps one ordered, locally visible collection consistent with an
eventually-consistent remote store while the user's own writes are shown
before the store confirms them.

The visible collection is the union of two subsets:

- *pending* entries: optimistic records keyed by their temporary id;
- *confirmed* entries: canonical records keyed by their store id, replaced
  wholesale by every `refresh`.

Confirmed entries can be *masked* while an optimistic edit or delete of the
same record is in flight, so a logical record is never visible twice.

Every public mutator is a plain synchronous method. Under asyncio nothing
can interleave with it, so readers only ever observe the state before or
after a mutation, never a partial one. Listeners run after each mutation
with the new snapshot so derived figures can be recomputed immediately.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Iterable, Iterator, List, Optional, Set, Tuple, TypeVar

from securepay.domain.models import SyncedRecord
from securepay.utils.logging import get_logger

log = get_logger(__name__)

R = TypeVar("R", bound=SyncedRecord)

Listener = Callable[[Tuple[Any, ...]], None]


@dataclass(frozen=True)
class RecordOrder:
    """
    Sort order for a visible collection.

    Records are ordered by the attribute `field`; records where it is None go
    last. Equal values keep insertion order in either direction.
    """

    field: str
    descending: bool = False

    def value(self, record: SyncedRecord) -> Any:
        return getattr(record, self.field)


TRANSACTION_ORDER = RecordOrder("created_at", descending=True)
SCHEDULE_ORDER = RecordOrder("next_run", descending=False)


@dataclass(frozen=True)
class _Entry(Generic[R]):
    record: R
    seq: int


def _delete_mask(record_id: str) -> str:
    return f"delete:{record_id}"


def _as_optimistic(record: R, flag: bool) -> R:
    if record.is_optimistic is flag:
        return record
    return record.model_copy(update={"is_optimistic": flag})


def _is_newer(current: SyncedRecord, candidate: SyncedRecord) -> bool:
    if current.updated_at is None or candidate.updated_at is None:
        return False
    return current.updated_at > candidate.updated_at


class Reconciler(Generic[R]):
    """Visible collection of `R` records with optimistic insert/confirm/revert."""

    def __init__(self, order: RecordOrder, name: str = "records") -> None:
        self.name = name
        self._order = order
        self._pending: Dict[str, _Entry[R]] = {}
        self._confirmed: Dict[str, _Entry[R]] = {}
        self._masks: Dict[str, str] = {}
        self._retired: Set[str] = set()
        self._seq = itertools.count()
        self._issued_ticket = 0
        self._applied_ticket = 0
        self._listeners: List[Listener] = []
        self._visible: Tuple[R, ...] = ()

    # ------------------------------------------------------------------ reads

    @property
    def items(self) -> Tuple[R, ...]:
        """Current visible snapshot, already sorted."""
        return self._visible

    @property
    def pending_ids(self) -> Tuple[str, ...]:
        return tuple(self._pending)

    def get(self, record_id: str) -> Optional[R]:
        for record in self._visible:
            if record.id == record_id:
                return record
        return None

    def __len__(self) -> int:
        return len(self._visible)

    def __iter__(self) -> Iterator[R]:
        return iter(self._visible)

    # -------------------------------------------------------------- listeners

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Call `listener(snapshot)` after every mutation. Returns a remover."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    # -------------------------------------------------------------- mutations

    def insert_optimistic(self, record: R, replaces: Optional[str] = None) -> None:
        """
        Show `record` immediately, flagged optimistic.

        With `replaces`, the confirmed record of that id is masked until the
        optimistic edit is confirmed (superseded) or reverted (shown again).

        Raises
        ------
        ValueError
            If the id is already visible or was used by an earlier optimistic
            record; temporary ids are single-use.
        """
        if record.id in self._pending or record.id in self._confirmed:
            raise ValueError(f"{self.name}: id {record.id!r} is already present")
        if record.id in self._retired:
            raise ValueError(f"{self.name}: temporary id {record.id!r} was already used")

        self._pending[record.id] = _Entry(_as_optimistic(record, True), next(self._seq))
        if replaces:
            self._masks[record.id] = replaces
        self._publish()

    def confirm(self, temp_id: str, canonical: R) -> bool:
        """
        Swap the optimistic entry `temp_id` for the store's `canonical` record.

        The canonical record is inserted even when `temp_id` is gone already;
        any entry sharing its id is collapsed into it. A confirmed entry that
        a refresh brought in with a later `updated_at` is left in place.

        Returns
        -------
        bool
            True when refresh tickets issued before this call were
            invalidated. Their responses may predate the write and would drop
            the canonical record, so the caller should fetch again.
        """
        invalidated = self.refresh_in_flight
        if invalidated:
            self._issued_ticket += 1
        canonical = _as_optimistic(canonical, False)
        pending = self._pending.pop(temp_id, None)
        self._masks.pop(temp_id, None)
        self._retired.add(temp_id)

        existing = self._confirmed.get(canonical.id)
        if existing is not None and _is_newer(existing.record, canonical):
            log.debug(
                "[CONFIRM] kept newer refreshed row",
                extra={"list": self.name, "record_id": canonical.id},
            )
        else:
            if pending is not None:
                seq = pending.seq
            elif existing is not None:
                seq = existing.seq
            else:
                seq = next(self._seq)
            self._confirmed[canonical.id] = _Entry(canonical, seq)
        self._publish()
        return invalidated

    def revert(self, temp_id: str) -> bool:
        """Drop the optimistic entry `temp_id`. Idempotent; True if something changed."""
        self._retired.add(temp_id)
        removed = self._pending.pop(temp_id, None) is not None
        unmasked = self._masks.pop(temp_id, None) is not None
        if removed or unmasked:
            self._publish()
        return removed

    def begin_refresh(self) -> int:
        """Issue a ticket for a refresh about to be fetched."""
        self._issued_ticket += 1
        return self._issued_ticket

    def is_current(self, ticket: int) -> bool:
        return ticket >= self._issued_ticket

    @property
    def refresh_in_flight(self) -> bool:
        """Whether an issued ticket has not been applied yet."""
        return self._issued_ticket > self._applied_ticket

    def refresh(self, rows: Iterable[R], ticket: Optional[int] = None) -> bool:
        """
        Replace the confirmed subset with `rows`; pending entries survive.

        When `ticket` is given and a newer refresh has been issued since, the
        rows are stale and are discarded. Rows applied without a ticket count
        as the newest data, so every ticket issued so far becomes stale.
        Returns whether the rows were applied.
        """
        if ticket is not None and (ticket < self._issued_ticket or ticket <= self._applied_ticket):
            log.debug(
                "[REFRESH] discarded stale response",
                extra={"list": self.name, "ticket": ticket, "latest": self._issued_ticket},
            )
            return False

        confirmed: Dict[str, _Entry[R]] = {}
        for row in rows:
            record = _as_optimistic(row, False)
            previous = confirmed.get(record.id) or self._confirmed.get(record.id)
            seq = previous.seq if previous is not None else next(self._seq)
            confirmed[record.id] = _Entry(record, seq)
        self._confirmed = confirmed
        self._applied_ticket = self._issued_ticket if ticket is None else ticket
        self._publish()
        return True

    def stage_delete(self, record_id: str) -> bool:
        """Hide a confirmed record while its remote delete is in flight."""
        if record_id not in self._confirmed:
            return False
        self._masks[_delete_mask(record_id)] = record_id
        self._publish()
        return True

    def commit_delete(self, record_id: str) -> None:
        self._masks.pop(_delete_mask(record_id), None)
        self._confirmed.pop(record_id, None)
        self._publish()

    def rollback_delete(self, record_id: str) -> None:
        """Show the record again after a failed delete (if a refresh kept it)."""
        if self._masks.pop(_delete_mask(record_id), None) is not None:
            self._publish()

    def clear(self) -> None:
        """Forget everything, e.g. after sign-out. Tickets stay monotonic."""
        self._retired.update(self._pending)
        self._pending.clear()
        self._confirmed.clear()
        self._masks.clear()
        self._applied_ticket = self._issued_ticket
        self._publish()

    # --------------------------------------------------------------- internal

    def _publish(self) -> None:
        hidden = set(self._masks.values())
        entries = list(self._pending.values()) + [
            entry for entry in self._confirmed.values() if entry.record.id not in hidden
        ]
        entries.sort(key=lambda entry: entry.seq)

        keyed = [entry for entry in entries if self._order.value(entry.record) is not None]
        unkeyed = [entry for entry in entries if self._order.value(entry.record) is None]
        # list.sort is stable in both directions, so ties keep insertion order.
        keyed.sort(key=lambda entry: self._order.value(entry.record), reverse=self._order.descending)

        self._visible = tuple(entry.record for entry in keyed + unkeyed)
        for listener in list(self._listeners):
            try:
                listener(self._visible)
            except Exception:  # noqa: BLE001 - a broken view must not undo a mutation
                log.exception("[LISTENER FAILED]", extra={"list": self.name})


__all__ = [
    "RecordOrder",
    "TRANSACTION_ORDER",
    "SCHEDULE_ORDER",
    "Reconciler",
]
