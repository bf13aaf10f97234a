"""
Derived dashboard figures.

Always computed from the *visible* transaction list, optimistic rows
included, so a freshly added expense moves the balance immediately.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from securepay.domain.models import Transaction, TransactionKind
from securepay.utils.money import ZERO, to_money

INSIGHT_WINDOW_DAYS = 7


@dataclass(frozen=True)
class Insights:
    balance: Decimal
    last_7_days: Decimal
    avg_per_day: Decimal


def balance(rows: Iterable[Transaction]) -> Decimal:
    return to_money(sum((r.signed_amount for r in rows), ZERO))


def compute_insights(rows: Iterable[Transaction], now: Optional[datetime] = None) -> Insights:
    """
    Balance plus last-7-days activity.

    Activity counts income amounts and absolute expense amounts for rows
    created within the window; rows without a timestamp are skipped.
    """
    now = now or datetime.now(timezone.utc)
    window_start = now - timedelta(days=INSIGHT_WINDOW_DAYS)
    rows = list(rows)

    activity = ZERO
    for row in rows:
        if row.created_at is None or not window_start <= row.created_at <= now:
            continue
        activity += row.amount if row.kind is TransactionKind.INCOME else abs(row.amount)

    return Insights(
        balance=balance(rows),
        last_7_days=to_money(activity),
        avg_per_day=to_money(activity / INSIGHT_WINDOW_DAYS),
    )


def _shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def monthly_spending(
    rows: Iterable[Transaction], months: int = 6, now: Optional[datetime] = None
) -> List[Tuple[str, Decimal]]:
    """
    Expense totals for the last `months` calendar months, oldest first.

    Returns `[("Jan", Decimal("1200.00")), ...]`; months with no spending are 0.
    """
    now = now or datetime.now(timezone.utc)
    keys = [_shift_month(now.year, now.month, -offset) for offset in range(months - 1, -1, -1)]
    totals = {key: ZERO for key in keys}
    for row in rows:
        if row.kind is not TransactionKind.EXPENSE or row.created_at is None:
            continue
        key = (row.created_at.year, row.created_at.month)
        if key in totals:
            totals[key] += abs(row.amount)
    return [
        (datetime(year, month, 1).strftime("%b"), to_money(totals[(year, month)]))
        for year, month in keys
    ]


__all__ = ["INSIGHT_WINDOW_DAYS", "Insights", "balance", "compute_insights", "monthly_spending"]
