"""
Ledger Aggregations

Pure derived views over an already-loaded list of transactions:
- category_spending: expense magnitudes per category for a period
- monthly_stats: income / expense / net / count for the current month
- budget_alerts: budgets past a usage threshold

None of these can fail. Empty input gives an empty mapping or
all-zero stats. Every sum goes through integer cents.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from expenseflow.ledger.period import PeriodWindow, filter_period
from expenseflow.models.ledger import Budget, Transaction
from expenseflow.models.reports import BudgetAlert, CategorySpending, MonthlyStats
from expenseflow.money import from_cents, subtract, to_cents


def category_spending(
    transactions: Iterable[Transaction],
    now: Optional[datetime] = None,
    window: Optional[PeriodWindow] = None,
) -> CategorySpending:
    """
    Sum expense magnitudes by category.

    Uses the calendar month of `now` unless an explicit window is given.
    Categories are matched exactly (case-sensitive); categories with no
    expenses in the period are absent rather than present with 0.
    """
    window = window or PeriodWindow.current_month(now)

    cents: dict[str, int] = {}
    for transaction in filter_period(transactions, window):
        if not transaction.is_expense:
            continue
        cents[transaction.category] = (
            cents.get(transaction.category, 0) + to_cents(transaction.amount)
        )

    return {category: from_cents(value) for category, value in cents.items()}


def top_categories(
    spending: CategorySpending,
    limit: int = 6,
) -> list[tuple[str, Decimal]]:
    """Largest spending categories first."""
    ranked = sorted(spending.items(), key=lambda item: item[1], reverse=True)
    return ranked[:limit]


def monthly_stats(
    transactions: Iterable[Transaction],
    now: Optional[datetime] = None,
) -> MonthlyStats:
    """Summarize the current calendar month of the ledger."""
    window = PeriodWindow.current_month(now)

    income_cents = 0
    expense_cents = 0
    count = 0
    for transaction in filter_period(transactions, window):
        count += 1
        if transaction.is_income:
            income_cents += to_cents(transaction.amount)
        else:
            expense_cents += to_cents(transaction.amount)

    total_income = from_cents(income_cents)
    total_expenses = from_cents(expense_cents)

    return MonthlyStats(
        total_income=total_income,
        total_expenses=total_expenses,
        net_income=subtract(total_income, total_expenses),
        transaction_count=count,
    )


def budget_alerts(
    budgets: Iterable[Budget],
    threshold_percent: float = 80.0,
) -> list[BudgetAlert]:
    """Budgets whose usage is strictly above the threshold, worst first."""
    threshold = Decimal(str(threshold_percent))

    alerts = [
        BudgetAlert(
            budget_id=budget.id,
            category=budget.category,
            spent=budget.spent,
            amount=budget.amount,
            percent_used=budget.percent_used,
        )
        for budget in budgets
        if budget.amount > 0 and budget.percent_used > threshold
    ]
    alerts.sort(key=lambda alert: alert.percent_used, reverse=True)
    return alerts
