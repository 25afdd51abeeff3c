"""
Abstract Storage Interface

DESIGN DECISION: The reconciliation engine never talks to a concrete
backend. It calls these contracts, which allows us to:
1. Use in-memory storage for testing
2. Keep a simple JSON file backend for single-user installs
3. Swap in a real database later
4. Keep business logic decoupled from storage implementation

Every operation takes the AccountContext it acts on. Stores must
never fall back to an ambient "current user".
"""

from abc import ABC, abstractmethod
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


class TransactionStoreInterface(ABC):
    """
    Abstract interface for the ledger.

    The store is the source of truth the aggregators read from.
    """

    @abstractmethod
    async def create_transaction(
        self,
        account: AccountContext,
        transaction: Transaction,
    ) -> Transaction:
        """
        Persist a new transaction.

        Returns:
            The transaction as stored

        Raises:
            StorageError: If the write fails
            DuplicateError: If the ID is already taken
        """
        pass

    @abstractmethod
    async def update_transaction(
        self,
        account: AccountContext,
        transaction_id: UUID,
        changes: TransactionUpdate,
    ) -> None:
        """
        Apply a partial edit.

        Raises:
            StorageError: If the write fails
            NotFoundError: If the transaction doesn't exist
        """
        pass

    @abstractmethod
    async def delete_transaction(
        self,
        account: AccountContext,
        transaction_id: UUID,
    ) -> None:
        """
        Remove a transaction.

        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        pass

    @abstractmethod
    async def list_transactions(
        self,
        account: AccountContext,
    ) -> list[Transaction]:
        """All transactions of the account, newest first."""
        pass


class BudgetStoreInterface(ABC):
    """Abstract interface for budgets."""

    @abstractmethod
    async def create_budget(
        self,
        account: AccountContext,
        budget: Budget,
    ) -> Budget:
        pass

    @abstractmethod
    async def update_budget_amount(
        self,
        account: AccountContext,
        budget_id: UUID,
        amount: Decimal,
    ) -> None:
        pass

    @abstractmethod
    async def update_budget_spent(
        self,
        account: AccountContext,
        budget_id: UUID,
        spent: Decimal,
    ) -> None:
        """
        Persist a reconciled spent value.

        Only the reconciler calls this.
        """
        pass

    async def update_spent_batch(
        self,
        account: AccountContext,
        spent_by_budget: dict[UUID, Decimal],
    ) -> dict[UUID, "StorageError"]:
        """
        Persist many spent values.

        Backends with multi-row transactions should override this and
        write everything at once. The default writes one budget at a
        time and collects failures instead of stopping at the first.

        Returns:
            budget_id -> error for every write that failed
        """
        failures: dict[UUID, StorageError] = {}
        for budget_id, spent in spent_by_budget.items():
            try:
                await self.update_budget_spent(account, budget_id, spent)
            except StorageError as e:
                failures[budget_id] = e
        return failures

    @abstractmethod
    async def delete_budget(
        self,
        account: AccountContext,
        budget_id: UUID,
    ) -> None:
        pass

    @abstractmethod
    async def list_budgets(
        self,
        account: AccountContext,
    ) -> list[Budget]:
        pass


class GoalStoreInterface(ABC):
    """Abstract interface for savings goals."""

    @abstractmethod
    async def create_goal(
        self,
        account: AccountContext,
        goal: Goal,
    ) -> Goal:
        pass

    @abstractmethod
    async def update_goal_fields(
        self,
        account: AccountContext,
        goal_id: UUID,
        changes: GoalUpdate,
    ) -> None:
        pass

    @abstractmethod
    async def update_goal_current_amount(
        self,
        account: AccountContext,
        goal_id: UUID,
        current_amount: Decimal,
    ) -> None:
        """
        Persist a saved amount.

        Callers clamp to [0, target_amount] before calling.
        """
        pass

    @abstractmethod
    async def delete_goal(
        self,
        account: AccountContext,
        goal_id: UUID,
    ) -> None:
        pass

    @abstractmethod
    async def list_goals(
        self,
        account: AccountContext,
    ) -> list[Goal]:
        pass


class LedgerStoreInterface(
    TransactionStoreInterface,
    BudgetStoreInterface,
    GoalStoreInterface,
):
    """One backend serving transactions, budgets and goals."""

    async def clear_account(self, account: AccountContext) -> None:
        """Delete every transaction, budget and goal of the account."""
        for transaction in await self.list_transactions(account):
            await self.delete_transaction(account, transaction.id)
        for budget in await self.list_budgets(account):
            await self.delete_budget(account, budget.id)
        for goal in await self.list_goals(account):
            await self.delete_goal(account, goal.id)


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """All events of one user action, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
        account_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        """Most recent events first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class StorageConnectionError(StorageError):
    """Could not reach the storage backend."""
    pass
