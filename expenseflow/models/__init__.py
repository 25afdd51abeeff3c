"""
Data Models Package

This package contains all Pydantic models used in ExpenseFlow.
All data flowing through the system must conform to these schemas.
"""

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
    BudgetWriteFailure,
    CategorySpending,
    DateRange,
    MonthlyStats,
    MutationResult,
    ReconciliationMode,
    ReconciliationReport,
    TransactionSearchResult,
)
from expenseflow.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "AccountContext",
    "Budget",
    "BudgetPeriod",
    "Goal",
    "GoalUpdate",
    "Transaction",
    "TransactionType",
    "TransactionUpdate",
    # Derived views and results
    "BudgetAlert",
    "BudgetWriteFailure",
    "CategorySpending",
    "DateRange",
    "MonthlyStats",
    "MutationResult",
    "ReconciliationMode",
    "ReconciliationReport",
    "TransactionSearchResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
