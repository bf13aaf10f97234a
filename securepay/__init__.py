"""
SecurePay+ - optimistic sync core for a personal-finance dashboard.

This package keeps a signed-in user's transactions and scheduled payments
mirrored from a remote Postgres store, including:

- Optimistic inserts, edits and deletes reconciled against the store
- Live refresh driven by LISTEN/NOTIFY change feeds
- Total normalization of loosely-typed rows
- Local insights and savings-goal calculations

An in-memory backend provides the same behaviour offline for demos and tests.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from securepay.config import Settings, get_settings
from securepay.domain import (
    BudgetGoal,
    GoalPlan,
    ScheduledPayment,
    Transaction,
    normalize_schedule,
    normalize_transaction,
    plan_goal,
)
from securepay.errors import (
    DraftValidationError,
    RemoteStoreError,
    SecurePayError,
    SubscriptionError,
)
from securepay.infrastructure import AppContext, WriteResult, build_context, memory_context
from securepay.session import DashboardSession
from securepay.sync import Reconciler, SyncedList
from securepay.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Domain
    "BudgetGoal",
    "GoalPlan",
    "ScheduledPayment",
    "Transaction",
    "normalize_schedule",
    "normalize_transaction",
    "plan_goal",
    # Errors
    "SecurePayError",
    "DraftValidationError",
    "RemoteStoreError",
    "SubscriptionError",
    # Wiring and session
    "AppContext",
    "DashboardSession",
    "WriteResult",
    "build_context",
    "memory_context",
    # Sync core
    "Reconciler",
    "SyncedList",
    # Logging
    "configure_logging",
    "get_logger",
]
