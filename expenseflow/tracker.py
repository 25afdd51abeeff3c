"""
Finance Tracker Session

This module ties the ledger, the budget reconciler, the goal rules and
the audit trail together for one account.

Flow of every transaction mutation:
1. Apply the change to the in-memory ledger (optimistically)
2. Write it to the store
3. Route it to the reconciler (delta for create/delete, full for edits)
4. Replace the in-memory budgets with the reconciled set
5. Audit each step

DESIGN DECISION: One writer per session. Every mutation holds the
session lock from step 1 to step 4, so reconciliation always reads the
ledger after the change it is reconciling. Other accounts use their own
tracker. Several writers on the same account need serialization around
the read-recompute-write cycle that this class does not provide.

DESIGN DECISION: A failed store call does not roll back the in-memory
change. The mutation returns ok=False, `error` holds the message, and
local state may be ahead of what was persisted. load() re-fetches
everything; reconcile_all() repairs budget drift.
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID

import structlog

from expenseflow.audit import AuditLogger, create_correlation_id
from expenseflow.config import get_settings
from expenseflow.ledger.aggregation import (
    budget_alerts,
    category_spending,
    monthly_stats,
    top_categories,
)
from expenseflow.ledger.reconciler import BudgetReconciler
from expenseflow.ledger.search import filter_transactions
from expenseflow.models.ledger import (
    AccountContext,
    Budget,
    BudgetPeriod,
    Goal,
    GoalUpdate,
    Transaction,
    TransactionType,
    TransactionUpdate,
)
from expenseflow.models.reports import (
    BudgetAlert,
    CategorySpending,
    DateRange,
    MonthlyStats,
    MutationResult,
    ReconciliationReport,
    TransactionSearchResult,
)
from expenseflow.money import ZERO, add, quantize
from expenseflow.services.storage import (
    InMemoryAuditStorage,
    InMemoryLedgerStore,
    JsonFileLedgerStore,
    JsonLinesAuditStorage,
    LedgerStoreInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)


class FinanceTracker:
    """
    In-memory view of one account's ledger, budgets and goals.

    Reads (monthly_stats, category_spending, budget_alerts) are pure
    and recomputed from the in-memory ledger on every call.
    """

    def __init__(
        self,
        account: AccountContext,
        store: LedgerStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        reconciler: Optional[BudgetReconciler] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        settings = get_settings().app
        self._account = account
        self._store = store
        self._audit = audit_logger or AuditLogger()
        self._reconciler = reconciler or BudgetReconciler(store)
        self._clock = clock
        self._alert_threshold = settings.budget_alert_threshold
        self._reconcile_on_load = settings.reconcile_on_load
        self._lock = asyncio.Lock()

        self._transactions: list[Transaction] = []
        self._budgets: list[Budget] = []
        self._goals: list[Goal] = []
        self.error: Optional[str] = None
        self.loaded = False

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def account(self) -> AccountContext:
        return self._account

    @property
    def transactions(self) -> list[Transaction]:
        """Newest first."""
        return list(self._transactions)

    @property
    def budgets(self) -> list[Budget]:
        return list(self._budgets)

    @property
    def goals(self) -> list[Goal]:
        return list(self._goals)

    def clear_error(self) -> None:
        self.error = None

    def _find_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        return next((t for t in self._transactions if t.id == transaction_id), None)

    def _find_goal(self, goal_id: UUID) -> Optional[Goal]:
        return next((g for g in self._goals if g.id == goal_id), None)

    async def _store_call(
        self,
        operation: str,
        call,
        errors: list[str],
        correlation_id: UUID,
        failure_message: str,
    ):
        """Run one store coroutine; record a StorageError instead of raising it."""
        try:
            return await call
        except StorageError as e:
            message = f"{failure_message}: {e}"
            errors.append(message)
            logger.error(
                "store_call_failed",
                account_id=self._account.account_id,
                operation=operation,
                error=str(e),
            )
            await self._audit.log_store_error(
                self._account, operation, str(e), correlation_id
            )
            return None

    async def _absorb_report(
        self,
        report: ReconciliationReport,
        errors: list[str],
        correlation_id: UUID,
    ) -> None:
        self._budgets = list(report.budgets)
        for failure in report.failures:
            errors.append(
                f"Failed to update budget spending for {failure.category}: {failure.error}"
            )
        if report.touched_budget_ids or report.failures:
            await self._audit.log_reconciliation(self._account, report, correlation_id)

    def _finish(
        self,
        errors: list[str],
        entity_id: Optional[UUID] = None,
        report: Optional[ReconciliationReport] = None,
    ) -> MutationResult:
        if errors:
            self.error = errors[-1]
        return MutationResult(
            ok=not errors,
            entity_id=entity_id,
            errors=errors,
            reconciliation=report,
        )

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def load(self) -> MutationResult:
        """
        Fetch everything for the account.

        Budgets are taken as persisted unless reconcile_on_load is set,
        in which case spent is recomputed from the loaded ledger.
        """
        correlation_id = create_correlation_id()
        errors: list[str] = []
        report = None

        async with self._lock:
            try:
                transactions = await self._store.list_transactions(self._account)
                budgets = await self._store.list_budgets(self._account)
                goals = await self._store.list_goals(self._account)
            except StorageError as e:
                errors.append(f"Failed to load data: {e}")
                await self._audit.log_store_error(
                    self._account, "load", str(e), correlation_id
                )
                return self._finish(errors)

            self._transactions = list(transactions)
            self._budgets = list(budgets)
            self._goals = list(goals)
            self.loaded = True
            self.error = None

            await self._audit.log_data_loaded(
                self._account,
                len(self._transactions),
                len(self._budgets),
                len(self._goals),
                correlation_id,
            )

            if self._reconcile_on_load and self._budgets:
                report = await self._reconciler.reconcile_all(
                    self._account, self._budgets, self._transactions, now=self._clock()
                )
                await self._absorb_report(report, errors, correlation_id)

        return self._finish(errors, report=report)

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def add_transaction(self, transaction: Transaction) -> MutationResult:
        """Record a transaction and move its category's budgets."""
        correlation_id = create_correlation_id()
        errors: list[str] = []

        async with self._lock:
            self._transactions.insert(0, transaction)

            stored = await self._store_call(
                "create_transaction",
                self._store.create_transaction(self._account, transaction),
                errors,
                correlation_id,
                "Failed to add transaction",
            )
            if stored is not None:
                await self._audit.log_transaction_created(
                    self._account, transaction, correlation_id
                )

            report = await self._reconciler.on_transaction_created(
                self._account, self._budgets, transaction, now=self._clock()
            )
            await self._absorb_report(report, errors, correlation_id)

        return self._finish(errors, transaction.id, report)

    async def update_transaction(
        self,
        transaction_id: UUID,
        changes: TransactionUpdate,
    ) -> MutationResult:
        """
        Edit a transaction, then recompute every budget.

        Raises pydantic.ValidationError if the edit would produce an
        invalid transaction; nothing is changed in that case.
        """
        correlation_id = create_correlation_id()
        errors: list[str] = []

        async with self._lock:
            existing = self._find_transaction(transaction_id)
            if existing is None:
                errors.append(f"Failed to update transaction: not found: {transaction_id}")
                return self._finish(errors, transaction_id)

            updated = changes.apply_to(existing)
            self._transactions = [
                updated if t.id == transaction_id else t for t in self._transactions
            ]

            await self._store_call(
                "update_transaction",
                self._store.update_transaction(self._account, transaction_id, changes),
                errors,
                correlation_id,
                "Failed to update transaction",
            )
            if not errors:
                await self._audit.log_transaction_updated(
                    self._account,
                    transaction_id,
                    sorted(changes.changes()),
                    correlation_id,
                )

            report = await self._reconciler.on_transaction_updated(
                self._account, self._budgets, self._transactions, now=self._clock()
            )
            await self._absorb_report(report, errors, correlation_id)

        return self._finish(errors, transaction_id, report)

    async def delete_transaction(self, transaction_id: UUID) -> MutationResult:
        """Remove a transaction and take it back out of its budgets."""
        correlation_id = create_correlation_id()
        errors: list[str] = []
        report = None

        async with self._lock:
            existing = self._find_transaction(transaction_id)
            self._transactions = [t for t in self._transactions if t.id != transaction_id]

            await self._store_call(
                "delete_transaction",
                self._store.delete_transaction(self._account, transaction_id),
                errors,
                correlation_id,
                "Failed to delete transaction",
            )
            if not errors:
                await self._audit.log_transaction_deleted(
                    self._account, transaction_id, correlation_id
                )

            if existing is not None:
                report = await self._reconciler.on_transaction_deleted(
                    self._account, self._budgets, existing, now=self._clock()
                )
                await self._absorb_report(report, errors, correlation_id)

        return self._finish(errors, transaction_id, report)

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    async def add_budget(
        self,
        category: str,
        amount: Decimal,
        period: BudgetPeriod = BudgetPeriod.MONTHLY,
        color: str = "#3B82F6",
    ) -> MutationResult:
        """
        Create a budget already reconciled with this month's ledger.

        Raises pydantic.ValidationError for an invalid category or amount.
        """
        correlation_id = create_correlation_id()
        errors: list[str] = []

        async with self._lock:
            spending = category_spending(self._transactions, now=self._clock())
            budget = Budget(
                category=category,
                amount=amount,
                spent=spending.get(category.strip(), ZERO),
                period=period,
                color=color,
            )
            self._budgets.append(budget)

            stored = await self._store_call(
                "create_budget",
                self._store.create_budget(self._account, budget),
                errors,
                correlation_id,
                "Failed to add budget",
            )
            if stored is not None:
                await self._audit.log_budget_created(self._account, budget, correlation_id)

        return self._finish(errors, budget.id)

    async def update_budget_amount(self, budget_id: UUID, amount: Decimal) -> MutationResult:
        """Change a budget's limit. Spent is untouched."""
        correlation_id = create_correlation_id()
        errors: list[str] = []

        async with self._lock:
            if not any(b.id == budget_id for b in self._budgets):
                errors.append(f"Failed to update budget: not found: {budget_id}")
                return self._finish(errors, budget_id)

            self._budgets = [
                b.with_amount(amount) if b.id == budget_id else b for b in self._budgets
            ]
            await self._store_call(
                "update_budget_amount",
                self._store.update_budget_amount(self._account, budget_id, quantize(amount)),
                errors,
                correlation_id,
                "Failed to update budget",
            )
            if not errors:
                await self._audit.log_budget_amount_updated(
                    self._account, budget_id, quantize(amount), correlation_id
                )

        return self._finish(errors, budget_id)

    async def delete_budget(self, budget_id: UUID) -> MutationResult:
        correlation_id = create_correlation_id()
        errors: list[str] = []

        async with self._lock:
            self._budgets = [b for b in self._budgets if b.id != budget_id]
            await self._store_call(
                "delete_budget",
                self._store.delete_budget(self._account, budget_id),
                errors,
                correlation_id,
                "Failed to delete budget",
            )
            if not errors:
                await self._audit.log_budget_deleted(self._account, budget_id, correlation_id)

        return self._finish(errors, budget_id)

    async def reconcile_all(self) -> MutationResult:
        """
        Recompute every budget's spent from the in-memory ledger.

        The on-demand repair for drift left by earlier failed writes.
        """
        correlation_id = create_correlation_id()
        errors: list[str] = []

        async with self._lock:
            report = await self._reconciler.reconcile_all(
                self._account, self._budgets, self._transactions, now=self._clock()
            )
            await self._absorb_report(report, errors, correlation_id)

        return self._finish(errors, report=report)

    # -------------------------------------------------------------------------
    # Goals
    # -------------------------------------------------------------------------

    async def add_goal(self, goal: Goal) -> MutationResult:
        correlation_id = create_correlation_id()
        errors: list[str] = []

        async with self._lock:
            self._goals.append(goal)
            stored = await self._store_call(
                "create_goal",
                self._store.create_goal(self._account, goal),
                errors,
                correlation_id,
                "Failed to add goal",
            )
            if stored is not None:
                await self._audit.log_goal_created(self._account, goal, correlation_id)

        return self._finish(errors, goal.id)

    async def update_goal(self, goal_id: UUID, changes: GoalUpdate) -> MutationResult:
        """Edit title, target, deadline or color."""
        correlation_id = create_correlation_id()
        errors: list[str] = []

        async with self._lock:
            goal = self._find_goal(goal_id)
            if goal is None:
                errors.append(f"Failed to update goal: not found: {goal_id}")
                return self._finish(errors, goal_id)

            updated = changes.apply_to(goal)
            self._goals = [updated if g.id == goal_id else g for g in self._goals]

            await self._store_call(
                "update_goal_fields",
                self._store.update_goal_fields(self._account, goal_id, changes),
                errors,
                correlation_id,
                "Failed to update goal",
            )
            if not errors:
                await self._audit.log_goal_updated(
                    self._account, goal_id, sorted(changes.changes()), correlation_id
                )

        return self._finish(errors, goal_id)

    async def delete_goal(self, goal_id: UUID) -> MutationResult:
        correlation_id = create_correlation_id()
        errors: list[str] = []

        async with self._lock:
            self._goals = [g for g in self._goals if g.id != goal_id]
            await self._store_call(
                "delete_goal",
                self._store.delete_goal(self._account, goal_id),
                errors,
                correlation_id,
                "Failed to delete goal",
            )
            if not errors:
                await self._audit.log_goal_deleted(self._account, goal_id, correlation_id)

        return self._finish(errors, goal_id)

    async def add_money_to_goal(self, goal_id: UUID, amount: Decimal) -> MutationResult:
        """
        Contribute to a goal.

        The saved amount is clamped to the target before it is persisted,
        so a contribution larger than the remaining gap completes the goal.
        """
        correlation_id = create_correlation_id()
        errors: list[str] = []

        async with self._lock:
            goal = self._find_goal(goal_id)
            if goal is None:
                errors.append(f"Failed to add money to goal: not found: {goal_id}")
                return self._finish(errors, goal_id)

            requested = quantize(amount)
            updated = goal.contribute(requested)
            clamped = updated.current_amount != add(goal.current_amount, requested)
            self._goals = [updated if g.id == goal_id else g for g in self._goals]

            await self._store_call(
                "update_goal_current_amount",
                self._store.update_goal_current_amount(
                    self._account, goal_id, updated.current_amount
                ),
                errors,
                correlation_id,
                "Failed to add money to goal",
            )
            if not errors:
                await self._audit.log_goal_contribution(
                    self._account, updated, requested, clamped, correlation_id
                )

        return self._finish(errors, goal_id)

    # -------------------------------------------------------------------------
    # Reset
    # -------------------------------------------------------------------------

    async def clear_all_data(self) -> MutationResult:
        """Delete every transaction, budget and goal of the account."""
        correlation_id = create_correlation_id()
        errors: list[str] = []

        async with self._lock:
            self._transactions = []
            self._budgets = []
            self._goals = []
            await self._store_call(
                "clear_account",
                self._store.clear_account(self._account),
                errors,
                correlation_id,
                "Failed to clear data",
            )
            if not errors:
                await self._audit.log_data_cleared(self._account, correlation_id)

        return self._finish(errors)

    # -------------------------------------------------------------------------
    # Derived views
    # -------------------------------------------------------------------------

    def monthly_stats(self, now: Optional[datetime] = None) -> MonthlyStats:
        return monthly_stats(self._transactions, now=now or self._clock())

    def category_spending(self, now: Optional[datetime] = None) -> CategorySpending:
        return category_spending(self._transactions, now=now or self._clock())

    def top_categories(self, limit: int = 6) -> list[tuple[str, Decimal]]:
        return top_categories(self.category_spending(), limit=limit)

    def budget_alerts(self, threshold_percent: Optional[float] = None) -> list[BudgetAlert]:
        threshold = self._alert_threshold if threshold_percent is None else threshold_percent
        return budget_alerts(self._budgets, threshold_percent=threshold)

    def filter_transactions(
        self,
        search: Optional[str] = None,
        category: Optional[str] = None,
        type: Optional[TransactionType] = None,
        date_range: Optional[DateRange] = None,
    ) -> TransactionSearchResult:
        """Search the in-memory ledger, newest first."""
        return filter_transactions(
            self._transactions,
            search=search,
            category=category,
            type=type,
            date_range=date_range,
            now=self._clock(),
        )


def create_tracker(
    account_id: str,
    backend: Optional[str] = None,
    store: Optional[LedgerStoreInterface] = None,
    audit_logger: Optional[AuditLogger] = None,
) -> FinanceTracker:
    """
    Factory function to build a tracker for one account.

    Args:
        account_id: Owner scope for every store call
        backend: "memory" or "json". When None, EXPENSEFLOW_STORAGE_BACKEND
                 decides. Ignored when an explicit store is given.
        store: Explicit ledger store
        audit_logger: Explicit audit logger. When None, one is built
                      that persists next to the chosen backend.

    Returns:
        A FinanceTracker; call load() before reading state.
    """
    settings = get_settings().storage
    backend = backend or settings.backend
    if backend not in ("memory", "json"):
        raise ValueError(f"Unknown storage backend: {backend}")

    if store is None:
        if backend == "json":
            store = JsonFileLedgerStore(settings.data_dir)
        else:
            store = InMemoryLedgerStore()

    if audit_logger is None:
        if backend == "json":
            audit_logger = AuditLogger(JsonLinesAuditStorage(settings.data_dir / "audit.jsonl"))
        else:
            audit_logger = AuditLogger(InMemoryAuditStorage())

    return FinanceTracker(
        account=AccountContext(account_id=account_id),
        store=store,
        audit_logger=audit_logger,
    )
