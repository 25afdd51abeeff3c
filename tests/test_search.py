"""
Tests for transaction search.
"""

import pytest
from datetime import date
from decimal import Decimal

from expenseflow.ledger import filter_transactions
from expenseflow.models import DateRange, TransactionType

from conftest import LAST_MONTH, NOW, TODAY, expense, income


@pytest.fixture
def ledger():
    return [
        expense("40", category="Food", description="Weekly groceries"),
        income("3000", description="October salary"),
        expense("12.50", category="Transport", description="Bus pass", on=date(2026, 10, 11)),
        expense("60", category="Food", description="Dinner out", on=date(2026, 10, 10)),
        expense("200", category="Rent", on=LAST_MONTH),
        income("150", category="Freelance", description="Logo job", on=date(2025, 12, 30)),
    ]


class TestSearchFilters:
    """Tests for the individual filters."""

    def test_no_filters_returns_everything_in_order(self, ledger):
        result = filter_transactions(ledger, now=NOW)

        assert result.transactions == ledger
        assert result.count == 6

    def test_search_matches_description_case_insensitively(self, ledger):
        result = filter_transactions(ledger, search="  GROCERIES ", now=NOW)

        assert [t.description for t in result.transactions] == ["Weekly groceries"]

    def test_search_matches_category(self, ledger):
        result = filter_transactions(ledger, search="food", now=NOW)

        assert [t.description for t in result.transactions] == ["Weekly groceries", "Dinner out"]

    def test_category_is_exact(self, ledger):
        assert filter_transactions(ledger, category="Food", now=NOW).count == 2
        assert filter_transactions(ledger, category="food", now=NOW).count == 0

    def test_type_filter(self, ledger):
        result = filter_transactions(ledger, type=TransactionType.INCOME, now=NOW)

        assert {t.category for t in result.transactions} == {"Salary", "Freelance"}

    def test_type_accepts_plain_string(self, ledger):
        assert filter_transactions(ledger, type="expense", now=NOW).count == 4

    def test_filters_combine(self, ledger):
        result = filter_transactions(
            ledger,
            search="out",
            category="Food",
            type=TransactionType.EXPENSE,
            date_range=DateRange.MONTH,
            now=NOW,
        )

        assert [t.description for t in result.transactions] == ["Dinner out"]


class TestDateRanges:
    """Tests for relative date ranges, evaluated at 2026-10-18."""

    def test_today(self, ledger):
        result = filter_transactions(ledger, date_range=DateRange.TODAY, now=NOW)

        assert {t.date for t in result.transactions} == {TODAY}
        assert result.count == 2

    def test_week_includes_seventh_day_back(self, ledger):
        result = filter_transactions(ledger, date_range="week", now=NOW)

        assert date(2026, 10, 11) in {t.date for t in result.transactions}
        assert date(2026, 10, 10) not in {t.date for t in result.transactions}
        assert result.count == 3

    def test_week_includes_future_dates(self):
        upcoming = expense("25", on=date(2026, 10, 25))

        assert filter_transactions([upcoming], date_range=DateRange.WEEK, now=NOW).count == 1

    def test_month(self, ledger):
        result = filter_transactions(ledger, date_range=DateRange.MONTH, now=NOW)

        assert result.count == 4
        assert all(t.date.month == 10 for t in result.transactions)

    def test_year(self, ledger):
        result = filter_transactions(ledger, date_range=DateRange.YEAR, now=NOW)

        assert result.count == 5
        assert all(t.date.year == 2026 for t in result.transactions)

    def test_all(self, ledger):
        assert filter_transactions(ledger, date_range=DateRange.ALL, now=NOW).count == 6


class TestSearchSummary:
    """Tests for count, total and average."""

    def test_expenses_sum_negative(self, ledger):
        result = filter_transactions(ledger, category="Food", now=NOW)

        assert result.count == 2
        assert result.total == Decimal("-100.00")
        assert result.average == Decimal("-50.00")

    def test_mixed_types_use_signed_amounts(self, ledger):
        result = filter_transactions(ledger, date_range=DateRange.TODAY, now=NOW)

        assert result.total == Decimal("2960.00")
        assert result.average == Decimal("1480.00")

    def test_average_rounds_to_cents(self):
        result = filter_transactions(
            [expense("10"), expense("10"), expense("0.01")],
            now=NOW,
        )

        assert result.total == Decimal("-20.01")
        assert result.average == Decimal("-6.67")

    def test_empty_result(self, ledger):
        result = filter_transactions(ledger, search="nothing like this", now=NOW)

        assert result.transactions == []
        assert result.count == 0
        assert result.total == Decimal("0.00")
        assert result.average == Decimal("0.00")

    def test_empty_ledger(self):
        result = filter_transactions([], date_range=DateRange.MONTH, now=NOW)

        assert result.count == 0
        assert result.average == Decimal("0.00")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
