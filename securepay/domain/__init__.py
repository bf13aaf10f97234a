"""
Domain package for the SecurePay+ sync core.

Record types, row normalization, user drafts and the local calculators
(insights, savings goals). Nothing in here performs I/O.
"""

from securepay.domain.drafts import ScheduleDraft, TransactionDraft, parse_draft
from securepay.domain.goals import BudgetGoal, GoalPlan, GoalUnit, plan_goal
from securepay.domain.insights import Insights, compute_insights, monthly_spending
from securepay.domain.models import (
    ScheduledPayment,
    ScheduleType,
    SyncedRecord,
    Transaction,
    TransactionKind,
)
from securepay.domain.normalize import normalize_schedule, normalize_transaction

__all__ = [
    "BudgetGoal",
    "GoalPlan",
    "GoalUnit",
    "Insights",
    "ScheduleDraft",
    "ScheduleType",
    "ScheduledPayment",
    "SyncedRecord",
    "Transaction",
    "TransactionDraft",
    "TransactionKind",
    "compute_insights",
    "monthly_spending",
    "normalize_schedule",
    "normalize_transaction",
    "parse_draft",
    "plan_goal",
]
