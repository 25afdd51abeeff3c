"""
Period Filter

Decides which transactions belong to the aggregation window.

DESIGN DECISION: "This month" means the local calendar month of the
evaluation time, not a rolling 30-day window. A transaction dated the
1st counts; one dated the last day of the previous month does not,
even if only hours apart. There is no fiscal-period configuration.
"""

import calendar
from datetime import date, datetime
from typing import Iterable, Iterator, Optional

from pydantic import BaseModel, model_validator

from expenseflow.models.ledger import Transaction


def _resolve_now(now: Optional[datetime]) -> datetime:
    # Local wall-clock time, matching how users think of "this month"
    return now if now is not None else datetime.now()


def in_current_month(tx_date: date, now: Optional[datetime] = None) -> bool:
    """True when tx_date falls in the same calendar month as now."""
    now = _resolve_now(now)
    return tx_date.year == now.year and tx_date.month == now.month


class PeriodWindow(BaseModel):
    """Inclusive date range used to select transactions."""

    start: date
    end: date

    @model_validator(mode='after')
    def validate_range(self) -> 'PeriodWindow':
        if self.end < self.start:
            raise ValueError("Period end cannot be before start")
        return self

    @classmethod
    def for_month(cls, year: int, month: int) -> "PeriodWindow":
        last_day = calendar.monthrange(year, month)[1]
        return cls(start=date(year, month, 1), end=date(year, month, last_day))

    @classmethod
    def current_month(cls, now: Optional[datetime] = None) -> "PeriodWindow":
        now = _resolve_now(now)
        return cls.for_month(now.year, now.month)

    def contains(self, d: date) -> bool:
        return self.start <= d <= self.end


def filter_period(
    transactions: Iterable[Transaction],
    window: PeriodWindow,
) -> Iterator[Transaction]:
    """Yield the transactions dated inside the window."""
    for transaction in transactions:
        if window.contains(transaction.date):
            yield transaction
