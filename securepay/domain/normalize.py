"""
Row normalization: remote store rows -> closed record types.

Rows come back from the store (or through optimistic drafts) as open
JSON-like mappings in which any field may be missing, null or of the wrong
type. The functions here are pure and total: for any mapping they return a
fully-populated record, filling defaults deterministically, and never raise.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from securepay.domain.models import (
    DEFAULT_SCHEDULE_ICON,
    DEFAULT_TRANSACTION_ICON,
    ScheduledPayment,
    ScheduleType,
    Transaction,
    TransactionKind,
)
from securepay.utils.money import coerce_money

TRANSACTION_CATEGORY_DEFAULT = "Other"
SCHEDULE_CATEGORY_DEFAULT = "General"
LABEL_DEFAULT = "Unknown"
CURRENCY_DEFAULT = "INR"

# Older rows were written with bank-style debit/credit markers.
_KIND_ALIASES = {
    "income": TransactionKind.INCOME,
    "credit": TransactionKind.INCOME,
    "expense": TransactionKind.EXPENSE,
    "debit": TransactionKind.EXPENSE,
}


def _text(value: Any, default: Optional[str] = None) -> Optional[str]:
    if value is None or isinstance(value, (dict, list, tuple, set)):
        return default
    text = str(value).strip()
    return text or default


def _id(value: Any) -> str:
    return _text(value, "") or ""


def _timestamp(value: Any) -> Optional[datetime]:
    """Parse ISO strings, epoch seconds or datetimes; naive values are UTC."""
    parsed: Optional[datetime] = None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        if not math.isfinite(value):
            return None
        try:
            parsed = datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _kind(value: Any) -> TransactionKind:
    key = _text(value, "") or ""
    return _KIND_ALIASES.get(key.lower(), TransactionKind.EXPENSE)


def _schedule_type(value: Any) -> ScheduleType:
    key = (_text(value, "") or "").lower()
    try:
        return ScheduleType(key)
    except ValueError:
        return ScheduleType.MONTHLY


def _positive_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        number = int(str(value).strip()) if isinstance(value, str) else int(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if number > 0 else None


def _weekday_or_positive(value: Any, schedule_type: ScheduleType) -> Optional[int]:
    # Weekly schedules store the weekday, where Sunday is 0.
    if schedule_type is ScheduleType.WEEKLY and not isinstance(value, bool) and value in (0, "0"):
        return 0
    return _positive_int(value)


def _flag(value: Any, default: bool) -> bool:
    return value if isinstance(value, bool) else default


def _icon(value: Any, default: str) -> str:
    return value if isinstance(value, str) and value else default


def normalize_transaction(row: Mapping[str, Any], *, is_optimistic: bool = False) -> Transaction:
    """Map a raw `securepay_transactions` row to a `Transaction`."""
    return Transaction(
        id=_id(row.get("id")),
        owner_id=_id(row.get("user_id", row.get("owner_id"))),
        merchant=_text(row.get("merchant"), LABEL_DEFAULT),
        category=_text(row.get("category"), TRANSACTION_CATEGORY_DEFAULT),
        amount=coerce_money(row.get("amount")),
        kind=_kind(row.get("type", row.get("kind"))),
        icon=_icon(row.get("icon"), DEFAULT_TRANSACTION_ICON),
        note=_text(row.get("note", row.get("purpose"))),
        currency=_text(row.get("currency"), CURRENCY_DEFAULT),
        created_at=_timestamp(row.get("created_at")),
        updated_at=_timestamp(row.get("updated_at")),
        is_optimistic=is_optimistic,
    )


def normalize_schedule(row: Mapping[str, Any], *, is_optimistic: bool = False) -> ScheduledPayment:
    """Map a raw `scheduled_payments` row to a `ScheduledPayment`."""
    schedule_type = _schedule_type(row.get("schedule_type"))
    return ScheduledPayment(
        id=_id(row.get("id")),
        owner_id=_id(row.get("user_id", row.get("owner_id"))),
        payee=_text(row.get("payee"), LABEL_DEFAULT),
        category=_text(row.get("category"), SCHEDULE_CATEGORY_DEFAULT),
        amount=coerce_money(row.get("amount")),
        currency=_text(row.get("currency"), CURRENCY_DEFAULT),
        schedule_type=schedule_type,
        interval_value=_weekday_or_positive(row.get("interval_value"), schedule_type),
        next_run=_timestamp(row.get("next_run")),
        active=_flag(row.get("active"), True),
        icon=_icon(row.get("icon"), DEFAULT_SCHEDULE_ICON),
        note=_text(row.get("note")),
        created_at=_timestamp(row.get("created_at")),
        updated_at=_timestamp(row.get("updated_at")),
        is_optimistic=is_optimistic,
    )


__all__ = [
    "TRANSACTION_CATEGORY_DEFAULT",
    "SCHEDULE_CATEGORY_DEFAULT",
    "LABEL_DEFAULT",
    "normalize_transaction",
    "normalize_schedule",
]
