"""
Savings-goal calculator.

Local-only arithmetic behind the "Create a Savings Goal" card: how much to
put aside per week or month to reach a target, and how far along a goal is.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from securepay.utils.money import ZERO, round_half_up, to_money

WEEKS_PER_MONTH = Decimal(52) / Decimal(12)


class GoalUnit(str, Enum):
    WEEKS = "weeks"
    MONTHS = "months"


@dataclass(frozen=True)
class GoalPlan:
    """Result of `plan_goal`; money fields are two-decimal `Decimal`s."""

    target: Decimal
    saved: Decimal
    remaining: Decimal
    duration: int
    unit: GoalUnit
    per_period: Decimal
    per_month_estimate: Optional[Decimal]
    monthly_needed: Decimal
    weekly_needed: Decimal
    percent: int


def _duration_floor(duration: Any) -> int:
    try:
        value = float(duration)
    except (TypeError, ValueError):
        return 1
    if not math.isfinite(value):
        return 1
    return max(1, math.floor(value))


def plan_goal(
    target: Any,
    duration: Any,
    unit: GoalUnit | str = GoalUnit.MONTHS,
    saved: Any = 0,
) -> GoalPlan:
    """
    Compute the savings plan for a goal.

    `per_period = max(0, target - saved) / duration`, with `duration` floored
    to a whole number of at least 1. Weekly goals also get an approximate
    monthly figure (52/12 weeks per month). `percent` is
    `round(min(100, saved / target * 100))`, 0 when the target is not positive.
    """
    unit = GoalUnit(unit)
    target_amount = to_money(target)
    saved_amount = to_money(saved or 0)
    periods = _duration_floor(duration)

    remaining = max(ZERO, target_amount - saved_amount)
    per_period_raw = remaining / periods
    per_period = to_money(per_period_raw)

    if unit is GoalUnit.WEEKS:
        weekly_raw = per_period_raw
        monthly_raw = per_period_raw * WEEKS_PER_MONTH
    else:
        monthly_raw = per_period_raw
        weekly_raw = per_period_raw / WEEKS_PER_MONTH

    per_month_estimate = to_money(monthly_raw) if unit is GoalUnit.WEEKS and per_period > 0 else None

    if target_amount > 0:
        percent = round_half_up(min(Decimal(100), saved_amount / target_amount * 100))
        percent = max(0, percent)
    else:
        percent = 0

    return GoalPlan(
        target=target_amount,
        saved=saved_amount,
        remaining=to_money(remaining),
        duration=periods,
        unit=unit,
        per_period=per_period,
        per_month_estimate=per_month_estimate,
        monthly_needed=to_money(monthly_raw),
        weekly_needed=to_money(weekly_raw),
        percent=percent,
    )


class BudgetGoal(BaseModel):
    """A named savings goal as entered on the dashboard."""

    id: str = Field(default_factory=lambda: f"local-{uuid4().hex[:12]}")
    name: str
    target: Decimal
    duration: int = 3
    unit: GoalUnit = GoalUnit.MONTHS
    start_date: Optional[date] = None
    note: Optional[str] = None
    saved: Decimal = ZERO
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"frozen": True}

    @field_validator("name", mode="before")
    @classmethod
    def _name_required(cls, value: Any) -> str:
        if value is None or not str(value).strip():
            raise ValueError("Please give the goal a name.")
        return str(value).strip()

    @field_validator("target", mode="before")
    @classmethod
    def _target_positive(cls, value: Any) -> Decimal:
        try:
            amount = to_money(value)
        except ValueError as exc:
            raise ValueError("Enter a positive target amount.") from exc
        if amount <= 0:
            raise ValueError("Enter a positive target amount.")
        return amount

    @field_validator("duration", mode="before")
    @classmethod
    def _duration_at_least_one(cls, value: Any) -> int:
        try:
            number = math.floor(float(value))
        except (TypeError, ValueError, OverflowError) as exc:
            raise ValueError("Enter a duration (>=1).") from exc
        if number < 1:
            raise ValueError("Enter a duration (>=1).")
        return number

    @field_validator("saved", mode="before")
    @classmethod
    def _saved_money(cls, value: Any) -> Decimal:
        return to_money(value or 0)

    def plan(self) -> GoalPlan:
        return plan_goal(self.target, self.duration, self.unit, self.saved)


__all__ = ["WEEKS_PER_MONTH", "GoalUnit", "GoalPlan", "plan_goal", "BudgetGoal"]
