"""Shared fixtures.

Settings are read from the environment on every access, so each test
gets its own data directory and a zero retry backoff.
"""

import os
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

import pytest

from expenseflow.config import get_settings
from expenseflow.models import AccountContext, Budget, Transaction, TransactionType


# Fixed evaluation time; "this month" is October 2026 in every test
NOW = datetime(2026, 10, 18, 12, 0, 0)
TODAY = NOW.date()
LAST_MONTH = date(2026, 9, 20)


@pytest.fixture(autouse=True)
def _isolate_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Per-test data directory and no retry sleeps."""
    monkeypatch.setenv("EXPENSEFLOW_STORAGE_DATA_DIR", os.fspath(tmp_path / "data"))
    monkeypatch.setenv("EXPENSEFLOW_STORAGE_RETRY_WAIT_SECONDS", "0")
    monkeypatch.delenv("EXPENSEFLOW_STORAGE_BACKEND", raising=False)
    monkeypatch.delenv("EXPENSEFLOW_RECONCILE_ON_LOAD", raising=False)
    monkeypatch.delenv("EXPENSEFLOW_BUDGET_ALERT_THRESHOLD", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def account() -> AccountContext:
    return AccountContext(account_id="user-1")


def expense(amount, category="Food", on=TODAY, **fields) -> Transaction:
    return Transaction(
        amount=amount,
        category=category,
        date=on,
        type=TransactionType.EXPENSE,
        **fields,
    )


def income(amount, category="Salary", on=TODAY, **fields) -> Transaction:
    return Transaction(
        amount=amount,
        category=category,
        date=on,
        type=TransactionType.INCOME,
        **fields,
    )


def budget(category="Food", amount="500", spent="0") -> Budget:
    return Budget(category=category, amount=Decimal(amount), spent=Decimal(spent))
