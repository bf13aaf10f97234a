from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

import pytest

from securepay.domain.normalize import normalize_transaction
from securepay.errors import RemoteStoreError
from securepay.sync.reconciler import TRANSACTION_ORDER
from securepay.sync.synced_list import SyncedList

OWNER = "user-1"


class _FakeStore:
    """Scriptable store: queued query results and an optional write failure."""

    table = "fake_transactions"

    def __init__(self) -> None:
        self.rows: List[Dict[str, Any]] = []
        self.fail_writes: Optional[Exception] = None
        self.fail_query: Optional[Exception] = None
        self.fail_delete: Optional[Exception] = None
        self.write_gate: Optional[asyncio.Event] = None
        self.query_gates: List[asyncio.Event] = []
        self.next_id = 0

    async def query(self, owner_id: str) -> List[Dict[str, Any]]:
        snapshot = [dict(r) for r in self.rows if r["user_id"] == owner_id]
        if self.query_gates:
            await self.query_gates.pop(0).wait()
        if self.fail_query is not None:
            raise self.fail_query
        return snapshot

    async def insert_or_update(self, row: Mapping[str, Any]) -> Dict[str, Any]:
        if self.write_gate is not None:
            await self.write_gate.wait()
        if self.fail_writes is not None:
            raise self.fail_writes
        self.next_id += 1
        saved = {**row, "id": f"c-{self.next_id}"}
        self.rows.append(saved)
        return saved

    async def delete(self, record_id: str) -> None:
        if self.fail_delete is not None:
            raise self.fail_delete
        self.rows = [r for r in self.rows if r["id"] != record_id]


def _list(store: _FakeStore) -> SyncedList:
    synced = SyncedList(store, normalize_transaction, TRANSACTION_ORDER, name="transactions")
    synced.bind(OWNER)
    return synced


def _optimistic(temp_id: str, amount: str = "50.005"):
    return normalize_transaction({"id": temp_id, "user_id": OWNER, "amount": amount}, is_optimistic=True)


@pytest.mark.asyncio
async def test_submit_confirms_with_canonical_id() -> None:
    store = _FakeStore()
    synced = _list(store)

    result = await synced.submit(_optimistic("temp-1"), {"user_id": OWNER, "amount": Decimal("50.01")})

    assert result == {"ok": True, "record_id": "c-1", "error": None}
    assert [(r.id, r.amount, r.is_optimistic) for r in synced.items] == [("c-1", Decimal("50.01"), False)]


@pytest.mark.asyncio
async def test_failed_write_reverts_to_exact_prior_state() -> None:
    store = _FakeStore()
    store.rows = [{"id": "c-0", "user_id": OWNER, "amount": "5"}]
    synced = _list(store)
    await synced.load()
    before = synced.items

    store.write_gate = asyncio.Event()
    store.fail_writes = RemoteStoreError("insert rejected")
    task = asyncio.create_task(synced.submit(_optimistic("temp-1"), {"user_id": OWNER, "amount": "50.01"}))
    await asyncio.sleep(0)

    assert [r.amount for r in synced.items if r.is_optimistic] == [Decimal("50.01")]

    store.write_gate.set()
    result = await task

    assert result["ok"] is False
    assert result["error"] == "insert rejected"
    assert synced.items == before


@pytest.mark.asyncio
async def test_write_without_canonical_id_reverts() -> None:
    class _NoIdStore(_FakeStore):
        async def insert_or_update(self, row):
            return {}

    synced = _list(_NoIdStore())
    result = await synced.submit(_optimistic("temp-1"), {"user_id": OWNER})

    assert result["ok"] is False
    assert synced.items == ()


@pytest.mark.asyncio
async def test_query_error_keeps_previous_rows_visible() -> None:
    store = _FakeStore()
    store.rows = [{"id": "c-0", "user_id": OWNER, "amount": "5"}]
    synced = _list(store)
    assert await synced.load() is True

    store.fail_query = RemoteStoreError("timeout")
    assert await synced.load() is False

    assert synced.error == "timeout"
    assert [r.id for r in synced.items] == ["c-0"]

    store.fail_query = None
    await synced.load()
    assert synced.error is None


@pytest.mark.asyncio
async def test_slow_older_load_cannot_overwrite_newer_one() -> None:
    store = _FakeStore()
    slow, fast = asyncio.Event(), asyncio.Event()
    store.query_gates = [slow, fast]
    synced = _list(store)

    store.rows = [{"id": "old", "user_id": OWNER}]
    first = asyncio.create_task(synced.load())
    await asyncio.sleep(0)
    store.rows = [{"id": "new", "user_id": OWNER}]
    second = asyncio.create_task(synced.load())
    await asyncio.sleep(0)

    fast.set()
    assert await second is True
    slow.set()
    assert await first is False
    assert [r.id for r in synced.items] == ["new"]


@pytest.mark.asyncio
async def test_remove_hides_then_deletes() -> None:
    store = _FakeStore()
    store.rows = [{"id": "c-0", "user_id": OWNER}]
    synced = _list(store)
    await synced.load()

    result = await synced.remove("c-0")

    assert result["ok"] is True
    assert synced.items == ()
    assert store.rows == []


@pytest.mark.asyncio
async def test_failed_remove_restores_record() -> None:
    store = _FakeStore()
    store.rows = [{"id": "c-0", "user_id": OWNER}]
    store.fail_delete = RemoteStoreError("")
    synced = _list(store)
    await synced.load()

    result = await synced.remove("c-0")

    assert result == {"ok": False, "record_id": "c-0", "error": "Delete failed."}
    assert [r.id for r in synced.items] == ["c-0"]


@pytest.mark.asyncio
async def test_remove_rejects_pending_and_unknown_ids() -> None:
    store = _FakeStore()
    store.write_gate = asyncio.Event()
    synced = _list(store)
    task = asyncio.create_task(synced.submit(_optimistic("temp-1"), {"user_id": OWNER}))
    await asyncio.sleep(0)

    assert (await synced.remove("temp-1"))["error"] == "This entry is still being saved."
    assert (await synced.remove("nope"))["error"] == "Entry not found."

    store.write_gate.set()
    await task


@pytest.mark.asyncio
async def test_bind_to_other_owner_clears_list() -> None:
    store = _FakeStore()
    store.rows = [{"id": "c-0", "user_id": OWNER}]
    synced = _list(store)
    await synced.load()

    synced.bind("someone-else")

    assert synced.items == ()
    assert await synced.load() is True
    assert synced.items == ()


@pytest.mark.asyncio
async def test_load_fetched_before_a_write_cannot_drop_the_confirmed_row() -> None:
    store = _FakeStore()
    gate = asyncio.Event()
    store.query_gates = [gate]
    synced = _list(store)

    # The query snapshot is taken before the write lands.
    load = asyncio.create_task(synced.load())
    await asyncio.sleep(0)
    result = await synced.submit(_optimistic("temp-1"), {"user_id": OWNER, "amount": "50.01"})

    gate.set()
    assert await load is False
    await synced.wait_idle()

    assert [r.id for r in synced.items] == [result["record_id"]]
    assert synced.loading is False


@pytest.mark.asyncio
async def test_write_settling_after_owner_change_leaves_list_alone() -> None:
    store = _FakeStore()
    store.write_gate = asyncio.Event()
    synced = _list(store)
    task = asyncio.create_task(synced.submit(_optimistic("temp-1"), {"user_id": OWNER, "amount": "5"}))
    await asyncio.sleep(0)

    synced.bind("someone-else")
    store.write_gate.set()
    result = await task

    assert result == {"ok": True, "record_id": "c-1", "error": None}
    assert synced.items == ()
