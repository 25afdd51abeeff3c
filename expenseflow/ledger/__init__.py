"""Ledger aggregation and budget reconciliation."""

from expenseflow.ledger.aggregation import (
    budget_alerts,
    category_spending,
    monthly_stats,
    top_categories,
)
from expenseflow.ledger.period import PeriodWindow, filter_period, in_current_month
from expenseflow.ledger.search import filter_transactions
from expenseflow.ledger.reconciler import (
    BudgetReconciler,
    PartialReconciliationError,
    apply_delta,
    recompute,
    signed_delta,
)

__all__ = [
    "BudgetReconciler",
    "PartialReconciliationError",
    "PeriodWindow",
    "apply_delta",
    "budget_alerts",
    "category_spending",
    "filter_period",
    "filter_transactions",
    "in_current_month",
    "monthly_stats",
    "recompute",
    "signed_delta",
    "top_categories",
]
