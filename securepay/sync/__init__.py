"""
Sync package for the SecurePay+ sync core.

Re-exports the reconciler, the refresh coordinator and the per-table
`SyncedList` so callers can import from `securepay.sync` directly.
"""

from securepay.sync.reconciler import (
    SCHEDULE_ORDER,
    TRANSACTION_ORDER,
    Reconciler,
    RecordOrder,
)
from securepay.sync.refresh import RefreshCoordinator
from securepay.sync.synced_list import SyncedList
from securepay.sync.temp_ids import is_temp_id, new_temp_id

__all__ = [
    "Reconciler",
    "RecordOrder",
    "RefreshCoordinator",
    "SCHEDULE_ORDER",
    "SyncedList",
    "TRANSACTION_ORDER",
    "is_temp_id",
    "new_temp_id",
]
