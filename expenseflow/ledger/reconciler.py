"""
Budget Reconciler

Keeps every Budget.spent equal to the current month's expense total
for its category.

Two modes:

DELTA (single create or delete of an expense):
    spent <- max(0, spent +/- amount) for every budget of that category.
    O(matching budgets), independent of ledger size. Income never
    touches budgets, and neither does an expense dated outside the
    current month.

FULL (after any edit, and on demand):
    aggregate the ledger once, then spent <- spending[category] or 0
    for every budget. An edit can move a transaction to another
    category, month or amount, and the old values are not reliably
    known, so edits always fall back to this mode.

FAILURE SEMANTICS:
- No budget for a category is a no-op, not an error.
- Persisting a new spent value is retried (tenacity) on transient
  StorageErrors. A write that still fails is recorded in the report;
  the remaining budgets are still written and the in-memory budget set
  is updated uniformly regardless.
- Per-budget writes are not transactional with each other or with the
  ledger write. Running a full pass again is idempotent and repairs any
  budget left behind.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence
from uuid import UUID

import structlog
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from expenseflow.config import get_settings
from expenseflow.ledger.aggregation import category_spending
from expenseflow.ledger.period import in_current_month
from expenseflow.models.ledger import AccountContext, Budget, Transaction
from expenseflow.models.reports import (
    BudgetWriteFailure,
    ReconciliationMode,
    ReconciliationReport,
)
from expenseflow.money import ZERO, add
from expenseflow.services.storage.interface import (
    BudgetStoreInterface,
    NotFoundError,
    StorageError,
)


logger = structlog.get_logger(__name__)


class PartialReconciliationError(Exception):
    """One or more budgets could not persist their reconciled spent value."""

    def __init__(self, failures: Sequence[BudgetWriteFailure]):
        self.failures = list(failures)
        categories = ", ".join(f.category for f in self.failures)
        super().__init__(
            f"{len(self.failures)} budget(s) failed to persist spent: {categories}"
        )


# =============================================================================
# PURE RULES
# =============================================================================

def signed_delta(
    transaction: Transaction,
    removed: bool = False,
    now: Optional[datetime] = None,
) -> Optional[Decimal]:
    """
    The change a single create/delete makes to its category's spent.

    +amount on create, -amount on delete. None for income and for
    expenses dated outside the current month, which spent never counts.
    """
    if not transaction.is_expense or not in_current_month(transaction.date, now):
        return None
    return -transaction.amount if removed else transaction.amount


def apply_delta(
    budgets: Iterable[Budget],
    category: str,
    delta: Decimal,
) -> list[Budget]:
    """Shift spent for every budget of `category`, clamping at zero."""
    return [
        budget.with_spent(max(ZERO, add(budget.spent, delta)))
        if budget.category == category
        else budget
        for budget in budgets
    ]


def recompute(
    budgets: Iterable[Budget],
    transactions: Iterable[Transaction],
    now: Optional[datetime] = None,
) -> list[Budget]:
    """Re-derive spent for every budget from one pass over the ledger."""
    spending = category_spending(transactions, now=now)
    return [budget.with_spent(spending.get(budget.category, ZERO)) for budget in budgets]


# =============================================================================
# STORE-BACKED RECONCILER
# =============================================================================

def _is_transient(error: BaseException) -> bool:
    return isinstance(error, StorageError) and not isinstance(error, NotFoundError)


class BudgetReconciler:
    """
    Applies the reconciliation rules and persists the results.

    The caller owns the budget list; every method returns a
    ReconciliationReport whose `budgets` is the new in-memory set.
    """

    def __init__(
        self,
        store: BudgetStoreInterface,
        retry_attempts: Optional[int] = None,
        retry_wait_seconds: Optional[float] = None,
    ):
        settings = get_settings().storage
        self._store = store
        self._retry_attempts = retry_attempts or settings.retry_attempts
        self._retry_wait = (
            settings.retry_wait_seconds if retry_wait_seconds is None else retry_wait_seconds
        )

    async def _persist_spent(
        self,
        account: AccountContext,
        budget_id: UUID,
        spent: Decimal,
    ) -> None:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(multiplier=self._retry_wait, max=10),
            retry=retry_if_exception(_is_transient),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                await self._store.update_budget_spent(account, budget_id, spent)

    async def _persist_many(
        self,
        account: AccountContext,
        budgets: list[Budget],
    ) -> list[BudgetWriteFailure]:
        failures = []
        for budget in budgets:
            try:
                await self._persist_spent(account, budget.id, budget.spent)
            except (StorageError, RetryError) as e:
                failures.append(BudgetWriteFailure(
                    budget_id=budget.id,
                    category=budget.category,
                    error=str(e),
                ))
        return failures

    async def _persist_batch(
        self,
        account: AccountContext,
        budgets: list[Budget],
    ) -> list[BudgetWriteFailure]:
        """Hand the whole set to the store's batch write."""
        errors = await self._store.update_spent_batch(
            account,
            {budget.id: budget.spent for budget in budgets},
        )
        if not errors:
            return []

        # Retry the stragglers one by one before giving up on them
        by_id = {budget.id: budget for budget in budgets}
        return await self._persist_many(account, [by_id[budget_id] for budget_id in errors])

    def _report(
        self,
        account: AccountContext,
        mode: ReconciliationMode,
        budgets: list[Budget],
        touched: list[Budget],
        failures: list[BudgetWriteFailure],
    ) -> ReconciliationReport:
        for failure in failures:
            logger.error(
                "budget_spent_persist_failed",
                account_id=account.account_id,
                mode=mode.value,
                budget_id=str(failure.budget_id),
                category=failure.category,
                error=failure.error,
            )
        logger.info(
            "budgets_reconciled",
            account_id=account.account_id,
            mode=mode.value,
            touched=len(touched),
            failed=len(failures),
        )
        return ReconciliationReport(
            mode=mode,
            budgets=budgets,
            touched_budget_ids=[budget.id for budget in touched],
            failures=failures,
        )

    async def _apply_incremental(
        self,
        account: AccountContext,
        budgets: Sequence[Budget],
        transaction: Transaction,
        removed: bool,
        now: Optional[datetime],
    ) -> ReconciliationReport:
        budgets = list(budgets)
        delta = signed_delta(transaction, removed=removed, now=now)
        if delta is None:
            return self._report(account, ReconciliationMode.DELTA, budgets, [], [])

        updated = apply_delta(budgets, transaction.category, delta)
        touched = [b for b in updated if b.category == transaction.category]
        failures = await self._persist_many(account, touched)
        return self._report(account, ReconciliationMode.DELTA, updated, touched, failures)

    async def on_transaction_created(
        self,
        account: AccountContext,
        budgets: Sequence[Budget],
        transaction: Transaction,
        now: Optional[datetime] = None,
    ) -> ReconciliationReport:
        """Add an expense's amount to its category's budgets."""
        return await self._apply_incremental(account, budgets, transaction, False, now)

    async def on_transaction_deleted(
        self,
        account: AccountContext,
        budgets: Sequence[Budget],
        transaction: Transaction,
        now: Optional[datetime] = None,
    ) -> ReconciliationReport:
        """Take a removed expense's amount back out, never below zero."""
        return await self._apply_incremental(account, budgets, transaction, True, now)

    async def on_transaction_updated(
        self,
        account: AccountContext,
        budgets: Sequence[Budget],
        transactions: Sequence[Transaction],
        now: Optional[datetime] = None,
    ) -> ReconciliationReport:
        """An edit may change category, amount or date: recompute everything."""
        return await self.reconcile_all(account, budgets, transactions, now=now)

    async def reconcile_all(
        self,
        account: AccountContext,
        budgets: Sequence[Budget],
        transactions: Sequence[Transaction],
        now: Optional[datetime] = None,
    ) -> ReconciliationReport:
        """
        Full recompute of every budget from the ledger.

        Idempotent: a second run with the same ledger writes the same
        values. Use it to repair drift left by an earlier failed write.
        """
        updated = recompute(budgets, transactions, now=now)
        failures = await self._persist_batch(account, updated) if updated else []
        return self._report(account, ReconciliationMode.FULL, updated, updated, failures)
