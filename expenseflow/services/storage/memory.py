"""
In-Memory Storage Implementation

The default backend and the one the test suite runs against.

Records are kept per account and handed out as copies, so callers
can never mutate stored state by accident. Failures can be injected
per operation (and optionally per entity) to exercise the error paths
of the reconciler and the tracker without a real backend.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Optional
from uuid import UUID

from expenseflow.models.audit import AuditEvent
from expenseflow.models.ledger import (
    AccountContext,
    Budget,
    Goal,
    GoalUpdate,
    Transaction,
    TransactionUpdate,
)
from expenseflow.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStoreInterface,
    NotFoundError,
    StorageError,
)


class InMemoryLedgerStore(LedgerStoreInterface):
    """
    Transactions, budgets and goals held in dictionaries.

    Usage in tests:
        store.fail_on("update_budget_spent", entity_id=budget.id)
        store.fail_on("create_transaction", times=1)
    """

    def __init__(self):
        self._transactions: dict[str, dict[UUID, Transaction]] = defaultdict(dict)
        self._budgets: dict[str, dict[UUID, Budget]] = defaultdict(dict)
        self._goals: dict[str, dict[UUID, Goal]] = defaultdict(dict)
        self._faults: list[dict] = []
        self.calls: list[str] = []

    # -------------------------------------------------------------------------
    # Fault injection
    # -------------------------------------------------------------------------

    def fail_on(
        self,
        operation: str,
        entity_id: Optional[UUID] = None,
        times: Optional[int] = None,
    ) -> None:
        """
        Make an operation raise StorageError.

        Args:
            operation: Method name, e.g. "update_budget_spent"
            entity_id: Only fail for this entity (any entity if None)
            times: Number of failures before recovering (forever if None)
        """
        self._faults.append({
            "operation": operation,
            "entity_id": entity_id,
            "remaining": times,
        })

    def clear_faults(self) -> None:
        self._faults.clear()

    def _check(self, operation: str, entity_id: Optional[UUID] = None) -> None:
        self.calls.append(operation)
        for fault in self._faults:
            if fault["operation"] != operation:
                continue
            if fault["entity_id"] is not None and fault["entity_id"] != entity_id:
                continue
            if fault["remaining"] is not None:
                if fault["remaining"] <= 0:
                    continue
                fault["remaining"] -= 1
            raise StorageError(f"Injected failure: {operation}")

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def create_transaction(
        self,
        account: AccountContext,
        transaction: Transaction,
    ) -> Transaction:
        self._check("create_transaction", transaction.id)
        rows = self._transactions[account.account_id]
        if transaction.id in rows:
            raise DuplicateError(f"Transaction already exists: {transaction.id}")
        rows[transaction.id] = transaction.model_copy(deep=True)
        return transaction.model_copy(deep=True)

    async def update_transaction(
        self,
        account: AccountContext,
        transaction_id: UUID,
        changes: TransactionUpdate,
    ) -> None:
        self._check("update_transaction", transaction_id)
        rows = self._transactions[account.account_id]
        if transaction_id not in rows:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        rows[transaction_id] = changes.apply_to(rows[transaction_id])

    async def delete_transaction(
        self,
        account: AccountContext,
        transaction_id: UUID,
    ) -> None:
        self._check("delete_transaction", transaction_id)
        rows = self._transactions[account.account_id]
        if transaction_id not in rows:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        del rows[transaction_id]

    async def list_transactions(
        self,
        account: AccountContext,
    ) -> list[Transaction]:
        self._check("list_transactions")
        rows = [t.model_copy(deep=True) for t in self._transactions[account.account_id].values()]
        rows.sort(key=lambda t: t.created_at, reverse=True)
        return rows

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    async def create_budget(
        self,
        account: AccountContext,
        budget: Budget,
    ) -> Budget:
        self._check("create_budget", budget.id)
        rows = self._budgets[account.account_id]
        if budget.id in rows:
            raise DuplicateError(f"Budget already exists: {budget.id}")
        rows[budget.id] = budget.model_copy(deep=True)
        return budget.model_copy(deep=True)

    def _get_budget(self, account: AccountContext, budget_id: UUID) -> Budget:
        try:
            return self._budgets[account.account_id][budget_id]
        except KeyError:
            raise NotFoundError(f"Budget not found: {budget_id}")

    async def update_budget_amount(
        self,
        account: AccountContext,
        budget_id: UUID,
        amount: Decimal,
    ) -> None:
        self._check("update_budget_amount", budget_id)
        budget = self._get_budget(account, budget_id)
        self._budgets[account.account_id][budget_id] = budget.with_amount(amount)

    async def update_budget_spent(
        self,
        account: AccountContext,
        budget_id: UUID,
        spent: Decimal,
    ) -> None:
        self._check("update_budget_spent", budget_id)
        budget = self._get_budget(account, budget_id)
        self._budgets[account.account_id][budget_id] = budget.with_spent(spent)

    async def delete_budget(
        self,
        account: AccountContext,
        budget_id: UUID,
    ) -> None:
        self._check("delete_budget", budget_id)
        self._get_budget(account, budget_id)
        del self._budgets[account.account_id][budget_id]

    async def list_budgets(
        self,
        account: AccountContext,
    ) -> list[Budget]:
        self._check("list_budgets")
        rows = [b.model_copy(deep=True) for b in self._budgets[account.account_id].values()]
        rows.sort(key=lambda b: b.created_at)
        return rows

    # -------------------------------------------------------------------------
    # Goals
    # -------------------------------------------------------------------------

    async def create_goal(
        self,
        account: AccountContext,
        goal: Goal,
    ) -> Goal:
        self._check("create_goal", goal.id)
        rows = self._goals[account.account_id]
        if goal.id in rows:
            raise DuplicateError(f"Goal already exists: {goal.id}")
        rows[goal.id] = goal.model_copy(deep=True)
        return goal.model_copy(deep=True)

    def _get_goal(self, account: AccountContext, goal_id: UUID) -> Goal:
        try:
            return self._goals[account.account_id][goal_id]
        except KeyError:
            raise NotFoundError(f"Goal not found: {goal_id}")

    async def update_goal_fields(
        self,
        account: AccountContext,
        goal_id: UUID,
        changes: GoalUpdate,
    ) -> None:
        self._check("update_goal_fields", goal_id)
        goal = self._get_goal(account, goal_id)
        self._goals[account.account_id][goal_id] = changes.apply_to(goal)

    async def update_goal_current_amount(
        self,
        account: AccountContext,
        goal_id: UUID,
        current_amount: Decimal,
    ) -> None:
        self._check("update_goal_current_amount", goal_id)
        goal = self._get_goal(account, goal_id)
        # Re-validate so an unclamped amount is refused here too
        updated = Goal.model_validate({**goal.model_dump(), "current_amount": current_amount})
        self._goals[account.account_id][goal_id] = updated

    async def delete_goal(
        self,
        account: AccountContext,
        goal_id: UUID,
    ) -> None:
        self._check("delete_goal", goal_id)
        self._get_goal(account, goal_id)
        del self._goals[account.account_id][goal_id]

    async def list_goals(
        self,
        account: AccountContext,
    ) -> list[Goal]:
        self._check("list_goals")
        rows = [g.model_copy(deep=True) for g in self._goals[account.account_id].values()]
        rows.sort(key=lambda g: g.created_at)
        return rows

    async def clear_account(self, account: AccountContext) -> None:
        self._check("clear_account")
        self._transactions.pop(account.account_id, None)
        self._budgets.pop(account.account_id, None)
        self._goals.pop(account.account_id, None)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
        account_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if account_id is None or e.account_id == account_id
        ]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
