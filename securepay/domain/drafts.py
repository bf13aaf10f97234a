"""
User drafts: what the add-transaction and schedule forms submit.

Drafts are validated before anything else happens; a draft that fails
validation never produces an optimistic row or a remote call. Validation
messages are the ones shown to the user.
"""

from __future__ import annotations

import calendar
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError, field_validator, model_validator

from securepay.domain.models import ScheduleType, TransactionKind
from securepay.errors import DraftValidationError
from securepay.utils.money import to_money

MERCHANT_REQUIRED = "Please enter the merchant name."
AMOUNT_INVALID = "Please enter a valid amount."
PAYEE_AND_AMOUNT_REQUIRED = "Please provide payee and amount."

TRANSACTION_CATEGORIES = ("Food", "Groceries", "Transport", "Shopping", "Bills", "Other")

D = TypeVar("D", bound=BaseModel)


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _positive_amount(value: Any) -> Decimal:
    try:
        amount = to_money(value)
    except ValueError as exc:
        raise ValueError(AMOUNT_INVALID) from exc
    if amount <= 0:
        raise ValueError(AMOUNT_INVALID)
    return amount


def _optional_text(value: Any) -> Optional[str]:
    if _blank(value):
        return None
    return str(value).strip()


class TransactionDraft(BaseModel):
    merchant: str = ""
    amount: Optional[Decimal] = None
    category: str = "Food"
    kind: TransactionKind = TransactionKind.EXPENSE
    description: Optional[str] = None

    model_config = {"frozen": True, "validate_default": True}

    @field_validator("merchant", mode="before")
    @classmethod
    def _merchant_required(cls, value: Any) -> str:
        if _blank(value):
            raise ValueError(MERCHANT_REQUIRED)
        return str(value).strip()

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_positive(cls, value: Any) -> Decimal:
        if _blank(value):
            raise ValueError(AMOUNT_INVALID)
        return _positive_amount(value)

    @field_validator("category", mode="before")
    @classmethod
    def _category_or_other(cls, value: Any) -> str:
        return _optional_text(value) or "Other"

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, value: Any) -> Optional[str]:
        return _optional_text(value)

    def to_row(self, owner_id: str, currency: str = "INR") -> Dict[str, Any]:
        """Row payload for the remote store (no id: the store assigns it)."""
        return {
            "user_id": owner_id,
            "type": self.kind.value,
            "amount": self.amount,
            "currency": currency,
            "category": self.category,
            "merchant": self.merchant,
            "note": self.description,
        }


class ScheduleDraft(BaseModel):
    id: Optional[str] = None
    payee: str = ""
    amount: Optional[Decimal] = None
    category: Optional[str] = None
    currency: str = "INR"
    schedule_type: ScheduleType = ScheduleType.MONTHLY
    interval_value: Optional[int] = None
    next_run: Optional[datetime] = None
    note: Optional[str] = None

    model_config = {"frozen": True, "validate_default": True}

    @field_validator("id", "category", "note", mode="before")
    @classmethod
    def _optional(cls, value: Any) -> Optional[str]:
        return _optional_text(value)

    @field_validator("payee", mode="before")
    @classmethod
    def _payee_required(cls, value: Any) -> str:
        if _blank(value):
            raise ValueError(PAYEE_AND_AMOUNT_REQUIRED)
        return str(value).strip()

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_required(cls, value: Any) -> Decimal:
        if _blank(value):
            raise ValueError(PAYEE_AND_AMOUNT_REQUIRED)
        return _positive_amount(value)

    @field_validator("currency", mode="before")
    @classmethod
    def _currency(cls, value: Any) -> str:
        return (_optional_text(value) or "INR").upper()

    @field_validator("interval_value", mode="before")
    @classmethod
    def _interval_blank(cls, value: Any) -> Any:
        return None if _blank(value) else value

    @model_validator(mode="after")
    def _interval_in_range(self) -> "ScheduleDraft":
        value = self.interval_value
        if self.schedule_type is ScheduleType.CUSTOM and (value is None or value < 1):
            raise ValueError("Enter the number of days between payments.")
        if self.schedule_type is ScheduleType.MONTHLY and value is not None and not 1 <= value <= 31:
            raise ValueError("Day of month must be between 1 and 31.")
        if self.schedule_type is ScheduleType.WEEKLY and value is not None and not 0 <= value <= 6:
            raise ValueError("Weekday must be between 0 (Sun) and 6 (Sat).")
        return self

    def to_row(self, owner_id: str, now: datetime) -> Dict[str, Any]:
        """Upsert payload; carries `id` only when editing an existing schedule."""
        row: Dict[str, Any] = {
            "user_id": owner_id,
            "payee": self.payee,
            "category": self.category,
            "amount": self.amount,
            "currency": self.currency,
            "schedule_type": self.schedule_type.value,
            "interval_value": self.interval_value,
            "next_run": self.next_run
            or next_occurrence(self.schedule_type, self.interval_value, now),
            "note": self.note,
            "updated_at": now,
        }
        if self.id:
            row["id"] = self.id
        return row


def next_occurrence(
    schedule_type: ScheduleType, interval_value: Optional[int], now: datetime
) -> datetime:
    """
    First run strictly after `now` for a schedule.

    monthly: day-of-month (clamped to short months, default today's day);
    weekly: weekday with Sunday=0 (default today's weekday);
    custom: every N days; daily: tomorrow.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)

    if schedule_type is ScheduleType.DAILY:
        return today + timedelta(days=1)
    if schedule_type is ScheduleType.CUSTOM:
        return today + timedelta(days=max(1, interval_value or 1))
    if schedule_type is ScheduleType.WEEKLY:
        target = interval_value if interval_value is not None else (today.weekday() + 1) % 7
        # datetime.weekday(): Monday=0; schedules use Sunday=0.
        current = (today.weekday() + 1) % 7
        ahead = (target - current) % 7 or 7
        return today + timedelta(days=ahead)

    day = interval_value or today.day
    year, month = today.year, today.month
    candidate = today.replace(day=min(day, calendar.monthrange(year, month)[1]))
    if candidate <= today:
        year, month = (year + 1, 1) if month == 12 else (year, month + 1)
        candidate = today.replace(
            year=year, month=month, day=min(day, calendar.monthrange(year, month)[1])
        )
    return candidate


def _first_message(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    original = first.get("ctx", {}).get("error")
    if isinstance(original, Exception) and str(original):
        return str(original)
    return first.get("msg", str(exc))


def parse_draft(model: Type[D], data: Mapping[str, Any] | D) -> D:
    """
    Validate form input into a draft model.

    Raises
    ------
    DraftValidationError
        With the first user-facing message when the input is rejected.
    """
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(dict(data))
    except ValidationError as exc:
        raise DraftValidationError(_first_message(exc)) from exc


__all__ = [
    "MERCHANT_REQUIRED",
    "AMOUNT_INVALID",
    "PAYEE_AND_AMOUNT_REQUIRED",
    "TRANSACTION_CATEGORIES",
    "TransactionDraft",
    "ScheduleDraft",
    "next_occurrence",
    "parse_draft",
]
