"""
Tests for budget reconciliation.

Covers both modes (delta on create/delete, full recompute on edit),
their equivalence, and partial write failures against the in-memory
store's fault injection.
"""

import pytest
from decimal import Decimal

from expenseflow.ledger import (
    BudgetReconciler,
    PartialReconciliationError,
    apply_delta,
    recompute,
    signed_delta,
)
from expenseflow.models import ReconciliationMode, TransactionUpdate
from expenseflow.services.storage import InMemoryLedgerStore

from conftest import LAST_MONTH, NOW, budget, expense, income


async def _seed(store, account, *budgets):
    for b in budgets:
        await store.create_budget(account, b)
    return list(budgets)


@pytest.fixture
def store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def reconciler(store) -> BudgetReconciler:
    return BudgetReconciler(store, retry_attempts=2, retry_wait_seconds=0)


class TestPureRules:
    """Tests for the store-free reconciliation rules."""

    def test_signed_delta(self):
        tx = expense("50")
        assert signed_delta(tx, now=NOW) == Decimal("50.00")
        assert signed_delta(tx, removed=True, now=NOW) == Decimal("-50.00")

    def test_income_has_no_delta(self):
        assert signed_delta(income("50"), now=NOW) is None

    def test_other_month_has_no_delta(self):
        assert signed_delta(expense("50", on=LAST_MONTH), now=NOW) is None

    def test_apply_delta_touches_only_category(self):
        food, rent = budget(spent="10"), budget(category="Rent", spent="10")
        result = apply_delta([food, rent], "Food", Decimal("5"))
        assert [b.spent for b in result] == [Decimal("15.00"), Decimal("10.00")]

    def test_apply_delta_never_negative(self):
        result = apply_delta([budget(spent="10")], "Food", Decimal("-25"))
        assert result[0].spent == Decimal("0.00")

    def test_recompute_zeroes_missing_categories(self):
        result = recompute([budget(spent="75"), budget(category="Rent", spent="5")],
                           [expense("20")], now=NOW)
        assert [b.spent for b in result] == [Decimal("20.00"), Decimal("0.00")]


class TestDeltaReconciliation:
    """Tests for incremental updates on create and delete."""

    @pytest.mark.asyncio
    async def test_create_adds_expense(self, store, reconciler, account):
        """Adding a 50.00 Food expense moves the Food budget to 50.00."""
        budgets = await _seed(store, account, budget())
        tx = expense("-50.00")

        report = await reconciler.on_transaction_created(account, budgets, tx, now=NOW)

        assert report.mode is ReconciliationMode.DELTA
        assert report.budgets[0].spent == Decimal("50.00")
        assert (await store.list_budgets(account))[0].spent == Decimal("50.00")

    @pytest.mark.asyncio
    async def test_create_then_delete_returns_to_zero(self, store, reconciler, account):
        budgets = await _seed(store, account, budget())
        tx = expense("50")

        created = await reconciler.on_transaction_created(account, budgets, tx, now=NOW)
        deleted = await reconciler.on_transaction_deleted(account, created.budgets, tx, now=NOW)

        assert str(deleted.budgets[0].spent) == "0.00"

    @pytest.mark.asyncio
    async def test_over_delete_clamps_at_zero(self, store, reconciler, account):
        """Removing more than was recorded never goes negative."""
        budgets = await _seed(store, account, budget(spent="20"))

        report = await reconciler.on_transaction_deleted(account, budgets, expense("50"), now=NOW)

        assert report.budgets[0].spent == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_no_matching_budget_is_noop(self, store, reconciler, account):
        budgets = await _seed(store, account, budget(category="Rent"))
        store.calls.clear()

        report = await reconciler.on_transaction_created(account, budgets, expense("10"), now=NOW)

        assert report.succeeded
        assert report.touched_budget_ids == []
        assert "update_budget_spent" not in store.calls

    @pytest.mark.asyncio
    async def test_income_and_backdated_expense_skip_store(self, store, reconciler, account):
        budgets = await _seed(store, account, budget(category="Salary"), budget())
        store.calls.clear()

        await reconciler.on_transaction_created(account, budgets, income("900"), now=NOW)
        await reconciler.on_transaction_created(
            account, budgets, expense("10", on=LAST_MONTH), now=NOW
        )

        assert store.calls == []

    @pytest.mark.asyncio
    async def test_every_budget_of_category_moves(self, store, reconciler, account):
        budgets = await _seed(store, account, budget(), budget(amount="100"))

        report = await reconciler.on_transaction_created(account, budgets, expense("5"), now=NOW)

        assert [b.spent for b in report.budgets] == [Decimal("5.00"), Decimal("5.00")]
        assert len(report.touched_budget_ids) == 2


class TestFullRecompute:
    """Tests for full recompute after edits and on demand."""

    @pytest.mark.asyncio
    async def test_category_change_moves_spending(self, store, reconciler, account):
        """Editing Food -> Transport empties Food and fills Transport."""
        food, transport = await _seed(
            store, account, budget(spent="50"), budget(category="Transport", spent="10")
        )
        tx = expense("50")
        other = expense("10", category="Transport")
        edited = TransactionUpdate(category="Transport").apply_to(tx)

        report = await reconciler.on_transaction_updated(
            account, [food, transport], [edited, other], now=NOW
        )

        assert report.mode is ReconciliationMode.FULL
        spent = {b.category: b.spent for b in report.budgets}
        assert spent == {"Food": Decimal("0.00"), "Transport": Decimal("60.00")}

    @pytest.mark.asyncio
    async def test_idempotent(self, store, reconciler, account):
        budgets = await _seed(store, account, budget(spent="999"), budget(category="Rent"))
        ledger = [expense("12.34"), expense("800", category="Rent"), income("50")]

        first = await reconciler.reconcile_all(account, budgets, ledger, now=NOW)
        second = await reconciler.reconcile_all(account, first.budgets, ledger, now=NOW)

        assert [b.spent for b in first.budgets] == [b.spent for b in second.budgets]
        assert [b.spent for b in await store.list_budgets(account)] == [
            Decimal("12.34"), Decimal("800.00"),
        ]

    @pytest.mark.asyncio
    async def test_delta_matches_recompute(self, store, reconciler, account):
        """Any single create gives the same spent either way."""
        ledger = [expense("10.10"), expense("3", category="Rent"), expense("7", on=LAST_MONTH)]
        budgets = recompute([budget(), budget(category="Rent")], ledger, now=NOW)
        await _seed(store, account, *budgets)

        for tx in [expense("0.20"), expense("4", on=LAST_MONTH), income("100"), expense("9", category="Rent")]:
            delta = await reconciler.on_transaction_created(account, budgets, tx, now=NOW)
            full = recompute(budgets, [tx] + ledger, now=NOW)
            assert [b.spent for b in delta.budgets] == [b.spent for b in full]

    @pytest.mark.asyncio
    async def test_empty_budget_set(self, store, reconciler, account):
        report = await reconciler.reconcile_all(account, [], [expense("5")], now=NOW)
        assert report.budgets == []
        assert report.succeeded


class TestPartialFailure:
    """Tests for budget writes that fail."""

    @pytest.mark.asyncio
    async def test_failed_budget_reported_others_written(self, store, reconciler, account):
        food, rent = await _seed(store, account, budget(), budget(category="Rent"))
        store.fail_on("update_budget_spent", entity_id=food.id)

        report = await reconciler.reconcile_all(
            account, [food, rent], [expense("5"), expense("7", category="Rent")], now=NOW
        )

        assert [f.budget_id for f in report.failures] == [food.id]
        # In-memory set is updated uniformly
        assert [b.spent for b in report.budgets] == [Decimal("5.00"), Decimal("7.00")]
        stored = {b.category: b.spent for b in await store.list_budgets(account)}
        assert stored == {"Food": Decimal("0.00"), "Rent": Decimal("7.00")}

        with pytest.raises(PartialReconciliationError):
            report.raise_for_failures()

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self, store, reconciler, account):
        budgets = await _seed(store, account, budget())
        store.fail_on("update_budget_spent", times=1)

        report = await reconciler.on_transaction_created(account, budgets, expense("5"), now=NOW)

        assert report.succeeded
        assert (await store.list_budgets(account))[0].spent == Decimal("5.00")

    @pytest.mark.asyncio
    async def test_rerun_repairs_drift(self, store, reconciler, account):
        budgets = await _seed(store, account, budget())
        ledger = [expense("25")]
        store.fail_on("update_budget_spent")

        broken = await reconciler.reconcile_all(account, budgets, ledger, now=NOW)
        assert not broken.succeeded

        store.clear_faults()
        repaired = await reconciler.reconcile_all(account, broken.budgets, ledger, now=NOW)

        assert repaired.succeeded
        assert (await store.list_budgets(account))[0].spent == Decimal("25.00")

    @pytest.mark.asyncio
    async def test_missing_budget_is_not_retried(self, store, reconciler, account):
        ghost = budget()
        store.calls.clear()

        report = await reconciler.on_transaction_created(account, [ghost], expense("5"), now=NOW)

        assert len(report.failures) == 1
        assert store.calls.count("update_budget_spent") == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
