"""
Audit Logger

DESIGN DECISION: Every mutation of the user's money data is logged.
This provides:
1. Complete traceability
2. Debugging capability for failed store writes
3. A visible record of budgets that drifted from the ledger

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from expenseflow.config import get_settings
from expenseflow.models.audit import AuditEvent, AuditEventBuilder
from expenseflow.models.ledger import AccountContext, Budget, Goal, Transaction
from expenseflow.models.reports import ReconciliationReport
from expenseflow.services.storage import AuditStorageInterface


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure structlog for local logging.

    Called once on import; call again to change the level.
    """
    level_name = level or get_settings().app.log_level
    logging.basicConfig(format="%(message)s", level=getattr(logging, level_name, logging.INFO))
    logging.getLogger("expenseflow").setLevel(level_name)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(default=str),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


def _money(amount: Decimal) -> str:
    return f"{amount:.2f}"


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit store (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("expenseflow.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transaction_created(
        self,
        account: AccountContext,
        transaction: Transaction,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_created(
            account_id=account.account_id,
            transaction_id=transaction.id,
            category=transaction.category,
            signed_amount=_money(transaction.signed_amount),
            correlation_id=correlation_id,
        ))

    async def log_transaction_updated(
        self,
        account: AccountContext,
        transaction_id: UUID,
        changed_fields: list[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_updated(
            account_id=account.account_id,
            transaction_id=transaction_id,
            changed_fields=changed_fields,
            correlation_id=correlation_id,
        ))

    async def log_transaction_deleted(
        self,
        account: AccountContext,
        transaction_id: UUID,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_deleted(
            account_id=account.account_id,
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        ))

    async def log_budget_created(
        self,
        account: AccountContext,
        budget: Budget,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.budget_created(
            account_id=account.account_id,
            budget_id=budget.id,
            category=budget.category,
            amount=_money(budget.amount),
            spent=_money(budget.spent),
            correlation_id=correlation_id,
        ))

    async def log_budget_amount_updated(
        self,
        account: AccountContext,
        budget_id: UUID,
        amount: Decimal,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.budget_amount_updated(
            account_id=account.account_id,
            budget_id=budget_id,
            amount=_money(amount),
            correlation_id=correlation_id,
        ))

    async def log_budget_deleted(
        self,
        account: AccountContext,
        budget_id: UUID,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.budget_deleted(
            account_id=account.account_id,
            budget_id=budget_id,
            correlation_id=correlation_id,
        ))

    async def log_reconciliation(
        self,
        account: AccountContext,
        report: ReconciliationReport,
        correlation_id: UUID,
    ) -> None:
        """One event for the pass, plus a warning if any write failed."""
        await self.log(AuditEventBuilder.budget_reconciled(
            account_id=account.account_id,
            mode=report.mode.value,
            touched=len(report.touched_budget_ids),
            correlation_id=correlation_id,
        ))
        if report.failures:
            await self.log(AuditEventBuilder.reconciliation_partial_failure(
                account_id=account.account_id,
                mode=report.mode.value,
                failures=[f.model_dump(mode="json") for f in report.failures],
                correlation_id=correlation_id,
            ))

    async def log_goal_created(
        self,
        account: AccountContext,
        goal: Goal,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.goal_created(
            account_id=account.account_id,
            goal_id=goal.id,
            title=goal.title,
            target_amount=_money(goal.target_amount),
            correlation_id=correlation_id,
        ))

    async def log_goal_updated(
        self,
        account: AccountContext,
        goal_id: UUID,
        changed_fields: list[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.goal_updated(
            account_id=account.account_id,
            goal_id=goal_id,
            changed_fields=changed_fields,
            correlation_id=correlation_id,
        ))

    async def log_goal_deleted(
        self,
        account: AccountContext,
        goal_id: UUID,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.goal_deleted(
            account_id=account.account_id,
            goal_id=goal_id,
            correlation_id=correlation_id,
        ))

    async def log_goal_contribution(
        self,
        account: AccountContext,
        goal: Goal,
        requested: Decimal,
        clamped: bool,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.goal_contribution(
            account_id=account.account_id,
            goal_id=goal.id,
            requested=_money(requested),
            new_amount=_money(goal.current_amount),
            clamped=clamped,
            correlation_id=correlation_id,
        ))

    async def log_data_loaded(
        self,
        account: AccountContext,
        transactions: int,
        budgets: int,
        goals: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.data_loaded(
            account_id=account.account_id,
            transactions=transactions,
            budgets=budgets,
            goals=goals,
            correlation_id=correlation_id,
        ))

    async def log_data_cleared(
        self,
        account: AccountContext,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.data_cleared(
            account_id=account.account_id,
            correlation_id=correlation_id,
        ))

    async def log_store_error(
        self,
        account: AccountContext,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.store_error(
            account_id=account.account_id,
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., adding a
    transaction). Pass it through all subsequent operations.
    """
    return uuid4()
