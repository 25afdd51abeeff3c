"""Services package."""

from expenseflow.services.storage import (
    AuditStorageInterface,
    BudgetStoreInterface,
    DuplicateError,
    GoalStoreInterface,
    InMemoryAuditStorage,
    InMemoryLedgerStore,
    JsonFileLedgerStore,
    JsonLinesAuditStorage,
    LedgerStoreInterface,
    NotFoundError,
    StorageConnectionError,
    StorageError,
    TransactionStoreInterface,
)

__all__ = [
    "AuditStorageInterface",
    "BudgetStoreInterface",
    "DuplicateError",
    "GoalStoreInterface",
    "InMemoryAuditStorage",
    "InMemoryLedgerStore",
    "JsonFileLedgerStore",
    "JsonLinesAuditStorage",
    "LedgerStoreInterface",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    "TransactionStoreInterface",
]
