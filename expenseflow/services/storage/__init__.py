"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
In-memory and JSON file backends ship today; both follow the same contracts.
"""

from expenseflow.services.storage.interface import (
    AuditStorageInterface,
    BudgetStoreInterface,
    DuplicateError,
    GoalStoreInterface,
    LedgerStoreInterface,
    NotFoundError,
    StorageConnectionError,
    StorageError,
    TransactionStoreInterface,
)
from expenseflow.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStore,
)
from expenseflow.services.storage.json_file import (
    JsonFileLedgerStore,
    JsonLinesAuditStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "BudgetStoreInterface",
    "GoalStoreInterface",
    "LedgerStoreInterface",
    "TransactionStoreInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStore",
    # JSON file implementation
    "JsonFileLedgerStore",
    "JsonLinesAuditStorage",
]
