"""
Derived Views and Operation Results

Nothing here is persisted. These models describe what the
aggregators compute from the ledger and what a mutation or a
reconciliation pass reports back to its caller.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from expenseflow.models.ledger import Budget, Transaction
from expenseflow.money import ZERO


# Category name -> summed expense magnitude for the period
CategorySpending = dict[str, Decimal]


class MonthlyStats(BaseModel):
    """Income/expense summary for the current calendar month."""

    total_income: Decimal = ZERO
    total_expenses: Decimal = Field(
        default=ZERO,
        ge=0,
        description="Sum of expense magnitudes (never negative)"
    )
    net_income: Decimal = ZERO
    transaction_count: int = Field(default=0, ge=0)


class BudgetAlert(BaseModel):
    """A budget whose usage crossed the alert threshold."""

    budget_id: UUID
    category: str
    spent: Decimal
    amount: Decimal
    percent_used: Decimal

    @property
    def message(self) -> str:
        return (
            f"You've spent {self.percent_used:.0f}% of your {self.category} "
            f"budget ({self.spent} / {self.amount})"
        )


class DateRange(str, Enum):
    """Relative date ranges for transaction search."""
    ALL = "all"
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class TransactionSearchResult(BaseModel):
    """
    Transactions matching a search, with a summary of them.

    `total` and `average` use signed amounts, so expenses pull them
    below zero and income pushes them above.
    """

    transactions: list[Transaction] = Field(default_factory=list)
    count: int = Field(default=0, ge=0)
    total: Decimal = ZERO
    average: Decimal = ZERO


class ReconciliationMode(str, Enum):
    """How budgets were brought back in line with the ledger."""
    DELTA = "delta"
    FULL = "full"


class BudgetWriteFailure(BaseModel):
    """One budget whose recomputed spent could not be persisted."""

    budget_id: UUID
    category: str
    error: str


class ReconciliationReport(BaseModel):
    """
    Outcome of a reconciliation pass.

    `budgets` is the full in-memory budget set after the pass. It is
    updated uniformly even for budgets listed in `failures`; those are
    only behind in the store.
    """

    mode: ReconciliationMode
    budgets: list[Budget] = Field(default_factory=list)
    touched_budget_ids: list[UUID] = Field(default_factory=list)
    failures: list[BudgetWriteFailure] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failures

    def raise_for_failures(self) -> None:
        """Raise PartialReconciliationError if any budget write failed."""
        from expenseflow.ledger.reconciler import PartialReconciliationError

        if self.failures:
            raise PartialReconciliationError(self.failures)


class MutationResult(BaseModel):
    """
    What a tracker mutation reports back.

    ok=False means a store call failed. The in-memory state still holds
    the change, so local data may be ahead of what was persisted.
    """

    ok: bool = True
    entity_id: Optional[UUID] = None
    errors: list[str] = Field(default_factory=list)
    reconciliation: Optional[ReconciliationReport] = None

    @property
    def message(self) -> Optional[str]:
        return "; ".join(self.errors) if self.errors else None
