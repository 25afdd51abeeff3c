"""
Transaction Search

Filters the ledger by free text, category, type and a relative date
range, and summarizes what matched. All filters combine with AND; a
filter left as None matches everything.
"""

from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Union

from expenseflow.models.ledger import Transaction, TransactionType
from expenseflow.models.reports import DateRange, TransactionSearchResult
from expenseflow.money import ZERO, quantize, total


def _matches_search(transaction: Transaction, needle: str) -> bool:
    return needle in transaction.description.lower() or needle in transaction.category.lower()


def _matches_date(tx_date: date, date_range: DateRange, now: datetime) -> bool:
    today = now.date()
    if date_range is DateRange.TODAY:
        return tx_date == today
    if date_range is DateRange.WEEK:
        # Open-ended: anything from seven days ago onward, future dates included
        return tx_date >= (now - timedelta(days=7)).date()
    if date_range is DateRange.MONTH:
        return tx_date.year == today.year and tx_date.month == today.month
    if date_range is DateRange.YEAR:
        return tx_date.year == today.year
    return True


def filter_transactions(
    transactions: Iterable[Transaction],
    search: Optional[str] = None,
    category: Optional[str] = None,
    type: Optional[Union[TransactionType, str]] = None,
    date_range: Optional[Union[DateRange, str]] = None,
    now: Optional[datetime] = None,
) -> TransactionSearchResult:
    """
    Select transactions and summarize them.

    Args:
        transactions: Ledger to search, order is kept
        search: Case-insensitive substring of description or category
        category: Exact category name
        type: Expense or income
        date_range: today, week (last 7 days), month, year or all
        now: Evaluation time, local now by default

    Returns:
        The matches plus count, signed total and average
    """
    needle = search.strip().lower() if search else ""
    tx_type = TransactionType(type) if type else None
    window = DateRange(date_range) if date_range else DateRange.ALL
    now = now if now is not None else datetime.now()

    matches = [
        t for t in transactions
        if (not needle or _matches_search(t, needle))
        and (not category or t.category == category)
        and (tx_type is None or t.type is tx_type)
        and _matches_date(t.date, window, now)
    ]

    summed = total(t.signed_amount for t in matches)
    average = quantize(summed / len(matches)) if matches else ZERO

    return TransactionSearchResult(
        transactions=matches,
        count=len(matches),
        total=summed,
        average=average,
    )
