"""
Audit Models for ExpenseFlow

Every ledger, budget and goal mutation is logged for audit purposes.
This provides:
1. Complete traceability of every change to the user's money data
2. Debugging information when a store write or reconciliation fails
3. A record of which budgets drifted from the ledger and when

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Each store-backed operation has its own event type.
    """
    # Ledger
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"

    # Budgets
    BUDGET_CREATED = "budget_created"
    BUDGET_AMOUNT_UPDATED = "budget_amount_updated"
    BUDGET_DELETED = "budget_deleted"
    BUDGET_RECONCILED = "budget_reconciled"
    RECONCILIATION_PARTIAL_FAILURE = "reconciliation_partial_failure"

    # Goals
    GOAL_CREATED = "goal_created"
    GOAL_UPDATED = "goal_updated"
    GOAL_DELETED = "goal_deleted"
    GOAL_CONTRIBUTION = "goal_contribution"

    # Session
    DATA_LOADED = "data_loaded"
    DATA_CLEARED = "data_cleared"

    # System events
    STORE_ERROR = "store_error"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - which account and entity is this about?
    account_id: Optional[str] = Field(
        default=None,
        description="Owner of the entity"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'budget', 'goal')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., a transaction and the budgets it moved)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "account_id": self.account_id,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_json_line(self) -> str:
        """One JSON object per line, for append-only file sinks."""
        return json.dumps(self.to_log_dict(), default=str)


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_created(account_id, tx, correlation_id)
        event = AuditEventBuilder.budget_reconciled(account_id, budget, "delta", correlation_id)
    """

    @staticmethod
    def transaction_created(
        account_id: str,
        transaction_id: UUID,
        category: str,
        signed_amount: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            account_id=account_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction recorded: {category} {signed_amount}",
            details={
                "category": category,
                "amount": signed_amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_updated(
        account_id: str,
        transaction_id: UUID,
        changed_fields: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            account_id=account_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction edited: {', '.join(changed_fields) or 'no fields'}",
            details={
                "changed_fields": changed_fields,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        account_id: str,
        transaction_id: UUID,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            account_id=account_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction deleted",
            is_user_action=True,
        )

    @staticmethod
    def budget_created(
        account_id: str,
        budget_id: UUID,
        category: str,
        amount: str,
        spent: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_CREATED,
            account_id=account_id,
            entity_type="budget",
            entity_id=budget_id,
            correlation_id=correlation_id,
            description=f"Budget created for {category}: {amount}",
            details={
                "category": category,
                "amount": amount,
                "initial_spent": spent,
            },
            is_user_action=True,
        )

    @staticmethod
    def budget_amount_updated(
        account_id: str,
        budget_id: UUID,
        amount: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_AMOUNT_UPDATED,
            account_id=account_id,
            entity_type="budget",
            entity_id=budget_id,
            correlation_id=correlation_id,
            description=f"Budget limit changed to {amount}",
            details={"amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def budget_deleted(
        account_id: str,
        budget_id: UUID,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_DELETED,
            account_id=account_id,
            entity_type="budget",
            entity_id=budget_id,
            correlation_id=correlation_id,
            description="Budget deleted",
            is_user_action=True,
        )

    @staticmethod
    def budget_reconciled(
        account_id: str,
        mode: str,
        touched: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_RECONCILED,
            account_id=account_id,
            entity_type="budget",
            correlation_id=correlation_id,
            description=f"Budgets reconciled ({mode}): {touched} updated",
            details={
                "mode": mode,
                "budgets_touched": touched,
            },
        )

    @staticmethod
    def reconciliation_partial_failure(
        account_id: str,
        mode: str,
        failures: list[dict],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECONCILIATION_PARTIAL_FAILURE,
            severity=AuditSeverity.WARNING,
            account_id=account_id,
            entity_type="budget",
            correlation_id=correlation_id,
            description=f"{len(failures)} budget(s) could not persist their spent value",
            details={
                "mode": mode,
                "failures": failures,
            },
        )

    @staticmethod
    def goal_created(
        account_id: str,
        goal_id: UUID,
        title: str,
        target_amount: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_CREATED,
            account_id=account_id,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"Goal created: {title} ({target_amount})",
            details={
                "title": title,
                "target_amount": target_amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def goal_updated(
        account_id: str,
        goal_id: UUID,
        changed_fields: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_UPDATED,
            account_id=account_id,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"Goal edited: {', '.join(changed_fields) or 'no fields'}",
            details={"changed_fields": changed_fields},
            is_user_action=True,
        )

    @staticmethod
    def goal_deleted(
        account_id: str,
        goal_id: UUID,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_DELETED,
            account_id=account_id,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description="Goal deleted",
            is_user_action=True,
        )

    @staticmethod
    def goal_contribution(
        account_id: str,
        goal_id: UUID,
        requested: str,
        new_amount: str,
        clamped: bool,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_CONTRIBUTION,
            account_id=account_id,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"Added {requested} to goal, now {new_amount}",
            details={
                "requested": requested,
                "current_amount": new_amount,
                "clamped": clamped,
            },
            is_user_action=True,
        )

    @staticmethod
    def data_loaded(
        account_id: str,
        transactions: int,
        budgets: int,
        goals: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_LOADED,
            severity=AuditSeverity.DEBUG,
            account_id=account_id,
            correlation_id=correlation_id,
            description="Ledger, budgets and goals loaded",
            details={
                "transactions": transactions,
                "budgets": budgets,
                "goals": goals,
            },
        )

    @staticmethod
    def data_cleared(
        account_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_CLEARED,
            severity=AuditSeverity.WARNING,
            account_id=account_id,
            correlation_id=correlation_id,
            description="All transactions, budgets and goals cleared",
            is_user_action=True,
        )

    @staticmethod
    def store_error(
        account_id: str,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_ERROR,
            severity=AuditSeverity.ERROR,
            account_id=account_id,
            correlation_id=correlation_id,
            description=f"Store operation failed: {operation}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
