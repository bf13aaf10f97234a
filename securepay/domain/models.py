"""
Domain models for the SecurePay+ dashboard.

Closed, versioned record types produced by `securepay.domain.normalize` from
the remote store's open JSON rows. The reconciler works on any
`SyncedRecord`; `Transaction` and `ScheduledPayment` are the two lists the
dashboard keeps in sync.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Optional

from pydantic import BaseModel, Field

RECORD_SCHEMA_VERSION = 1

DEFAULT_TRANSACTION_ICON = "💳"
DEFAULT_SCHEDULE_ICON = "🕒"


class TransactionKind(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class ScheduleType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class SyncedRecord(BaseModel):
    """
    Fields shared by every record the reconciler manages.

    `is_optimistic` is local bookkeeping only and is never written back to
    the remote store.
    """

    schema_version: ClassVar[int] = RECORD_SCHEMA_VERSION

    id: str = Field(..., description="Temporary (`temp-...`) or store-assigned id.")
    owner_id: str = Field("", description="User the record belongs to.")
    amount: Decimal = Field(Decimal("0.00"), description="Two-decimal amount.")
    category: str = Field(..., description="Free-text category.")
    note: Optional[str] = Field(None, description="Optional free-text note.")
    icon: str = Field(DEFAULT_TRANSACTION_ICON, description="Glyph shown next to the row.")
    currency: str = Field("INR", description="ISO currency code.")
    created_at: Optional[datetime] = Field(None, description="Row creation timestamp.")
    updated_at: Optional[datetime] = Field(None, description="Last remote update timestamp.")
    is_optimistic: bool = Field(False, description="True until the store confirms the write.")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "arbitrary_types_allowed": False,
    }


class Transaction(SyncedRecord):
    """A single income or expense entry, newest first in the dashboard."""

    merchant: str = Field("Unknown", description="Merchant name (display label).")
    category: str = Field("Other", description="Spending category.")
    kind: TransactionKind = Field(TransactionKind.EXPENSE, description="Income or expense.")

    @property
    def signed_amount(self) -> Decimal:
        """Contribution to the running balance: income adds, expense subtracts."""
        if self.kind is TransactionKind.INCOME:
            return self.amount
        return -self.amount


class ScheduledPayment(SyncedRecord):
    """A recurring bill, soonest `next_run` first."""

    payee: str = Field("Unknown", description="Who gets paid (display label).")
    category: str = Field("General", description="Bill category.")
    icon: str = Field(DEFAULT_SCHEDULE_ICON, description="Glyph shown next to the row.")
    schedule_type: ScheduleType = Field(ScheduleType.MONTHLY, description="Recurrence kind.")
    interval_value: Optional[int] = Field(
        None,
        description="Day of month (monthly), weekday 0-6 (weekly) or N days (custom).",
    )
    next_run: Optional[datetime] = Field(None, description="Next scheduled execution.")
    active: bool = Field(True, description="Whether the schedule is running.")

    def summary(self) -> str:
        interval = self.interval_value if self.interval_value is not None else "-"
        if self.schedule_type is ScheduleType.DAILY:
            return "Every day"
        if self.schedule_type is ScheduleType.WEEKLY:
            return f"Every week (interval {interval})"
        if self.schedule_type is ScheduleType.MONTHLY:
            return f"Every month (day {interval})"
        return f"Every {interval} days"


__all__ = [
    "RECORD_SCHEMA_VERSION",
    "DEFAULT_TRANSACTION_ICON",
    "DEFAULT_SCHEDULE_ICON",
    "TransactionKind",
    "ScheduleType",
    "SyncedRecord",
    "Transaction",
    "ScheduledPayment",
]
