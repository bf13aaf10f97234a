from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

import pytest

from securepay.domain.models import ScheduledPayment, Transaction
from securepay.sync.reconciler import SCHEDULE_ORDER, TRANSACTION_ORDER, Reconciler, RecordOrder

BASE = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def _tx(
    record_id: str,
    minutes: Optional[int] = 0,
    amount: str = "10.00",
    merchant: str = "Shop",
    updated: Optional[int] = None,
) -> Transaction:
    return Transaction(
        id=record_id,
        owner_id="user-1",
        merchant=merchant,
        amount=Decimal(amount),
        created_at=None if minutes is None else BASE + timedelta(minutes=minutes),
        updated_at=None if updated is None else BASE + timedelta(minutes=updated),
    )


def _ids(reconciler: Reconciler) -> list[str]:
    return [record.id for record in reconciler.items]


def test_insert_optimistic_is_visible_and_flagged() -> None:
    rec: Reconciler[Transaction] = Reconciler(TRANSACTION_ORDER)
    rec.insert_optimistic(_tx("temp-1", minutes=5))

    assert _ids(rec) == ["temp-1"]
    assert rec.items[0].is_optimistic is True
    assert rec.pending_ids == ("temp-1",)


def test_confirm_replaces_temp_entry_exactly_once() -> None:
    rec: Reconciler[Transaction] = Reconciler(TRANSACTION_ORDER)
    rec.insert_optimistic(_tx("temp-1", minutes=5))
    rec.confirm("temp-1", _tx("c-1", minutes=5))

    assert _ids(rec) == ["c-1"]
    assert rec.items[0].is_optimistic is False
    assert rec.pending_ids == ()


def test_confirm_after_refresh_already_delivered_row_does_not_duplicate() -> None:
    rec: Reconciler[Transaction] = Reconciler(TRANSACTION_ORDER)
    rec.insert_optimistic(_tx("temp-1", minutes=5))
    rec.refresh([_tx("c-1", minutes=5)])
    rec.confirm("temp-1", _tx("c-1", minutes=5))

    assert _ids(rec) == ["c-1"]


def test_confirm_keeps_newer_refreshed_row() -> None:
    rec: Reconciler[Transaction] = Reconciler(TRANSACTION_ORDER)
    rec.insert_optimistic(_tx("temp-1", minutes=5))
    rec.refresh([_tx("c-1", minutes=5, merchant="Edited elsewhere", updated=30)])
    rec.confirm("temp-1", _tx("c-1", minutes=5, merchant="Original", updated=10))

    assert [r.merchant for r in rec.items] == ["Edited elsewhere"]


def test_revert_restores_prior_state_and_is_idempotent() -> None:
    rec: Reconciler[Transaction] = Reconciler(TRANSACTION_ORDER)
    rec.refresh([_tx("c-1", minutes=1), _tx("c-2", minutes=2)])
    before = rec.items

    rec.insert_optimistic(_tx("temp-1", minutes=9))
    assert rec.revert("temp-1") is True
    assert rec.items == before

    assert rec.revert("temp-1") is False
    assert rec.revert("never-existed") is False
    assert rec.items == before


def test_refresh_keeps_pending_entries() -> None:
    rec: Reconciler[Transaction] = Reconciler(TRANSACTION_ORDER)
    rec.insert_optimistic(_tx("temp-1", minutes=10))
    rec.refresh([_tx("c-1", minutes=1), _tx("c-2", minutes=2)])

    assert _ids(rec) == ["temp-1", "c-2", "c-1"]
    assert rec.get("temp-1").is_optimistic is True

    rec.refresh([])
    assert _ids(rec) == ["temp-1"]


def test_refresh_replaces_confirmed_subset_wholesale() -> None:
    rec: Reconciler[Transaction] = Reconciler(TRANSACTION_ORDER)
    rec.refresh([_tx("c-1", minutes=1), _tx("c-2", minutes=2)])
    rec.refresh([_tx("c-3", minutes=3)])

    assert _ids(rec) == ["c-3"]


def test_ordering_is_stable_for_equal_keys_and_puts_missing_keys_last() -> None:
    rec: Reconciler[Transaction] = Reconciler(TRANSACTION_ORDER)
    rec.refresh([_tx("a", minutes=5), _tx("b", minutes=5), _tx("none", minutes=None), _tx("c", minutes=7)])

    assert _ids(rec) == ["c", "a", "b", "none"]


def test_optimistic_inserts_are_ordered_and_ties_keep_insertion_order() -> None:
    rec: Reconciler[Transaction] = Reconciler(TRANSACTION_ORDER)
    rec.insert_optimistic(_tx("temp-3", minutes=3))
    rec.insert_optimistic(_tx("temp-1", minutes=1))
    rec.insert_optimistic(_tx("temp-2a", minutes=2))
    rec.insert_optimistic(_tx("temp-2b", minutes=2))

    assert _ids(rec) == ["temp-3", "temp-2a", "temp-2b", "temp-1"]

    # Confirming keeps the entry's slot among its ties.
    rec.confirm("temp-2a", _tx("c-2a", minutes=2))
    assert _ids(rec) == ["temp-3", "c-2a", "temp-2b", "temp-1"]


def test_optimistic_schedules_are_ordered_ascending_with_stable_ties() -> None:
    rec: Reconciler[ScheduledPayment] = Reconciler(SCHEDULE_ORDER)
    rec.insert_optimistic(ScheduledPayment(id="temp-3", next_run=BASE + timedelta(days=3)))
    rec.insert_optimistic(ScheduledPayment(id="temp-1", next_run=BASE + timedelta(days=1)))
    rec.insert_optimistic(ScheduledPayment(id="temp-2a", next_run=BASE + timedelta(days=2)))
    rec.insert_optimistic(ScheduledPayment(id="temp-2b", next_run=BASE + timedelta(days=2)))

    assert _ids(rec) == ["temp-1", "temp-2a", "temp-2b", "temp-3"]


def test_schedule_order_is_ascending_by_next_run() -> None:
    rec: Reconciler[ScheduledPayment] = Reconciler(SCHEDULE_ORDER)
    rec.refresh(
        [
            ScheduledPayment(id="late", next_run=BASE + timedelta(days=9)),
            ScheduledPayment(id="unset"),
            ScheduledPayment(id="soon", next_run=BASE + timedelta(days=1)),
        ]
    )

    assert _ids(rec) == ["soon", "late", "unset"]


def test_insert_rejects_present_and_retired_ids() -> None:
    rec: Reconciler[Transaction] = Reconciler(TRANSACTION_ORDER)
    rec.refresh([_tx("c-1")])
    with pytest.raises(ValueError):
        rec.insert_optimistic(_tx("c-1"))

    rec.insert_optimistic(_tx("temp-1"))
    with pytest.raises(ValueError):
        rec.insert_optimistic(_tx("temp-1"))

    rec.revert("temp-1")
    with pytest.raises(ValueError):
        rec.insert_optimistic(_tx("temp-1"))


def test_optimistic_edit_masks_original_until_confirmed() -> None:
    rec: Reconciler[Transaction] = Reconciler(TRANSACTION_ORDER)
    rec.refresh([_tx("c-1", minutes=1, merchant="Old")])

    rec.insert_optimistic(_tx("temp-1", minutes=1, merchant="New"), replaces="c-1")
    assert [r.merchant for r in rec.items] == ["New"]

    # A refresh landing mid-edit must not show the old row next to the edit.
    rec.refresh([_tx("c-1", minutes=1, merchant="Old")])
    assert _ids(rec) == ["temp-1"]

    rec.confirm("temp-1", _tx("c-1", minutes=1, merchant="New", updated=5))
    assert [(r.id, r.merchant) for r in rec.items] == [("c-1", "New")]


def test_reverted_edit_shows_original_again() -> None:
    rec: Reconciler[Transaction] = Reconciler(TRANSACTION_ORDER)
    rec.refresh([_tx("c-1", merchant="Old")])
    rec.insert_optimistic(_tx("temp-1", merchant="New"), replaces="c-1")

    rec.revert("temp-1")

    assert [(r.id, r.merchant) for r in rec.items] == [("c-1", "Old")]


def test_staged_delete_hides_and_rollback_restores() -> None:
    rec: Reconciler[Transaction] = Reconciler(TRANSACTION_ORDER)
    rec.refresh([_tx("c-1", minutes=1), _tx("c-2", minutes=2)])

    assert rec.stage_delete("c-1") is True
    assert _ids(rec) == ["c-2"]

    rec.rollback_delete("c-1")
    assert _ids(rec) == ["c-2", "c-1"]

    assert rec.stage_delete("missing") is False


def test_committed_delete_removes_record() -> None:
    rec: Reconciler[Transaction] = Reconciler(TRANSACTION_ORDER)
    rec.refresh([_tx("c-1")])
    rec.stage_delete("c-1")
    rec.commit_delete("c-1")

    assert rec.items == ()
    rec.rollback_delete("c-1")
    assert rec.items == ()


def test_stale_refresh_ticket_is_discarded() -> None:
    rec: Reconciler[Transaction] = Reconciler(TRANSACTION_ORDER)
    older = rec.begin_refresh()
    newer = rec.begin_refresh()

    assert rec.refresh([_tx("new")], ticket=newer) is True
    assert rec.refresh([_tx("old")], ticket=older) is False
    assert _ids(rec) == ["new"]
    assert rec.is_current(newer) is True
    assert rec.is_current(older) is False


def test_confirm_invalidates_refresh_fetched_before_the_write() -> None:
    rec: Reconciler[Transaction] = Reconciler(TRANSACTION_ORDER)
    ticket = rec.begin_refresh()
    rec.insert_optimistic(_tx("temp-1", minutes=5))

    assert rec.confirm("temp-1", _tx("c-1", minutes=5)) is True
    assert rec.refresh([], ticket=ticket) is False
    assert _ids(rec) == ["c-1"]


def test_confirm_without_refresh_in_flight_leaves_tickets_alone() -> None:
    rec: Reconciler[Transaction] = Reconciler(TRANSACTION_ORDER)
    rec.insert_optimistic(_tx("temp-1", minutes=5))

    assert rec.confirm("temp-1", _tx("c-1", minutes=5)) is False
    assert rec.refresh_in_flight is False

    ticket = rec.begin_refresh()
    assert rec.refresh([_tx("c-1", minutes=5)], ticket=ticket) is True


def test_refresh_without_ticket_supersedes_issued_tickets() -> None:
    rec: Reconciler[Transaction] = Reconciler(TRANSACTION_ORDER)
    ticket = rec.begin_refresh()

    assert rec.refresh([_tx("live")]) is True
    assert rec.refresh([_tx("old")], ticket=ticket) is False
    assert _ids(rec) == ["live"]
    assert rec.refresh_in_flight is False


def test_clear_forgets_everything() -> None:
    rec: Reconciler[Transaction] = Reconciler(TRANSACTION_ORDER)
    rec.refresh([_tx("c-1")])
    rec.insert_optimistic(_tx("temp-1"))
    ticket = rec.begin_refresh()

    rec.clear()

    assert rec.items == ()
    assert rec.refresh([_tx("c-1")], ticket=ticket) is False


def test_listeners_see_every_mutation_and_errors_are_contained() -> None:
    rec: Reconciler[Transaction] = Reconciler(TRANSACTION_ORDER)
    seen: list[tuple[str, ...]] = []

    def broken(_snapshot) -> None:
        raise RuntimeError("view crashed")

    rec.add_listener(broken)
    remove = rec.add_listener(lambda snapshot: seen.append(tuple(r.id for r in snapshot)))

    rec.insert_optimistic(_tx("temp-1", minutes=3))
    rec.confirm("temp-1", _tx("c-1", minutes=3))
    remove()
    rec.refresh([])

    assert seen == [("temp-1",), ("c-1",)]
    assert rec.items == ()


def test_custom_order_field() -> None:
    rec: Reconciler[Transaction] = Reconciler(RecordOrder("amount", descending=True))
    rec.refresh([_tx("small", amount="1.00"), _tx("big", amount="99.00")])

    assert _ids(rec) == ["big", "small"]
