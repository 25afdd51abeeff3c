"""
Tests for ExpenseFlow models

Test strategy:
1. Unit tests for individual components (models, validators)
2. Integration tests for flows (against the in-memory store)
3. No real file or network I/O outside tmp_path
"""

import json
import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from expenseflow.models import (
    AccountContext,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    Budget,
    BudgetAlert,
    Goal,
    GoalUpdate,
    MutationResult,
    ReconciliationMode,
    ReconciliationReport,
    BudgetWriteFailure,
    Transaction,
    TransactionType,
    TransactionUpdate,
)
from expenseflow.ledger import PartialReconciliationError

from conftest import TODAY, expense, income


class TestTransactionModel:
    """Tests for the ledger entry model."""

    def test_signed_expense_is_folded_to_magnitude(self):
        """A negative expense amount is stored as its magnitude."""
        tx = expense("-50")
        assert tx.amount == Decimal("50.00")
        assert tx.signed_amount == Decimal("-50.00")
        assert tx.is_expense

    def test_negative_income_is_rejected(self):
        """The sign cannot contradict the type."""
        with pytest.raises(ValueError):
            income("-10")

    def test_from_signed(self):
        """Sign picks the type when building from a signed amount."""
        spent = Transaction.from_signed("-19.99", category="Food", date=TODAY)
        earned = Transaction.from_signed("2500", category="Salary", date=TODAY)
        assert spent.type is TransactionType.EXPENSE
        assert spent.amount == Decimal("19.99")
        assert earned.type is TransactionType.INCOME
        assert earned.signed_amount == Decimal("2500.00")

    def test_amount_is_quantized(self):
        assert expense("12.345").amount == Decimal("12.35")

    def test_zero_expense_has_no_negative_zero(self):
        assert str(expense("0").signed_amount) == "0.00"

    def test_category_strips_whitespace(self):
        assert expense("5", category="  Food  ").category == "Food"

    def test_blank_category_rejected(self):
        with pytest.raises(ValueError):
            expense("5", category="   ")

    def test_tags_are_cleaned(self):
        """Blank and duplicate tags are dropped, order kept."""
        tx = expense("5", tags=["lunch", " lunch ", "", "work"])
        assert tx.tags == ["lunch", "work"]

    def test_json_round_trip(self):
        tx = expense("42.10", description="Groceries", tags=["weekly"])
        restored = Transaction.model_validate(json.loads(tx.model_dump_json()))
        assert restored == tx


class TestTransactionUpdate:
    """Tests for partial transaction edits."""

    def test_only_set_fields_change(self):
        tx = expense("50", description="Lunch")
        updated = TransactionUpdate(category="Transport").apply_to(tx)
        assert updated.category == "Transport"
        assert updated.amount == Decimal("50.00")
        assert updated.description == "Lunch"
        assert updated.id == tx.id

    def test_changes_excludes_unset(self):
        assert TransactionUpdate(amount="10").changes() == {"amount": Decimal("10.00")}

    def test_negative_amount_on_income_rejected(self):
        with pytest.raises(ValueError):
            TransactionUpdate(amount="-5").apply_to(income("100"))

    def test_switching_type_keeps_magnitude(self):
        tx = expense("30")
        updated = TransactionUpdate(type=TransactionType.INCOME).apply_to(tx)
        assert updated.signed_amount == Decimal("30.00")


class TestBudgetModel:
    """Tests for budget limits and usage."""

    def test_usage(self):
        budget = Budget(category="Food", amount="500", spent="400")
        assert budget.percent_used == Decimal("80.00")
        assert budget.remaining == Decimal("100.00")
        assert not budget.is_over_budget

    def test_zero_amount_budget_has_zero_usage(self):
        assert Budget(category="Food", amount="0", spent="20").percent_used == Decimal("0.00")

    def test_with_spent_clamps_at_zero(self):
        budget = Budget(category="Food", amount="500")
        assert budget.with_spent(Decimal("-25")).spent == Decimal("0.00")

    def test_negative_spent_rejected(self):
        with pytest.raises(ValueError):
            Budget(category="Food", amount="500", spent="-1")

    def test_with_amount_rejects_negative(self):
        with pytest.raises(ValueError):
            Budget(category="Food", amount="500").with_amount(Decimal("-1"))


class TestGoalModel:
    """Tests for savings goals."""

    def _goal(self, target="500", current="400") -> Goal:
        return Goal(
            title="Emergency fund",
            target_amount=target,
            current_amount=current,
            deadline=date(2027, 1, 1),
        )

    def test_current_cannot_exceed_target(self):
        with pytest.raises(ValueError):
            self._goal(target="100", current="150")

    def test_target_must_be_positive(self):
        with pytest.raises(ValueError):
            self._goal(target="0", current="0")

    def test_contribution_clamps_to_target(self):
        """A contribution larger than the gap completes the goal."""
        goal = self._goal().contribute(Decimal("1000"))
        assert goal.current_amount == Decimal("500.00")
        assert goal.is_complete
        assert goal.progress_percent == Decimal("100.00")

    def test_withdrawal_clamps_at_zero(self):
        assert self._goal().contribute(Decimal("-1000")).current_amount == Decimal("0.00")

    def test_lowering_target_pulls_current_down(self):
        goal = GoalUpdate(target_amount="300").apply_to(self._goal())
        assert goal.target_amount == Decimal("300.00")
        assert goal.current_amount == Decimal("300.00")

    def test_update_keeps_current(self):
        goal = GoalUpdate(title="Car").apply_to(self._goal())
        assert goal.title == "Car"
        assert goal.current_amount == Decimal("400.00")


class TestReportModels:
    """Tests for derived views and results."""

    def test_alert_message(self):
        alert = BudgetAlert(
            budget_id=uuid4(),
            category="Food",
            spent=Decimal("450.00"),
            amount=Decimal("500.00"),
            percent_used=Decimal("90.00"),
        )
        assert "90%" in alert.message
        assert "Food" in alert.message

    def test_report_raises_for_failures(self):
        failure = BudgetWriteFailure(budget_id=uuid4(), category="Food", error="boom")
        report = ReconciliationReport(mode=ReconciliationMode.FULL, failures=[failure])
        assert not report.succeeded
        with pytest.raises(PartialReconciliationError) as exc:
            report.raise_for_failures()
        assert exc.value.failures == [failure]

    def test_clean_report_does_not_raise(self):
        ReconciliationReport(mode=ReconciliationMode.DELTA).raise_for_failures()

    def test_mutation_result_message(self):
        assert MutationResult().message is None
        result = MutationResult(ok=False, errors=["a", "b"])
        assert result.message == "a; b"


class TestAccountContext:
    """Tests for the owner scope."""

    def test_is_frozen(self):
        account = AccountContext(account_id="user-1")
        with pytest.raises(ValueError):
            account.account_id = "other"

    def test_empty_id_rejected(self):
        with pytest.raises(ValueError):
            AccountContext(account_id="  ")


class TestAuditModels:
    """Tests for audit event models."""

    def test_transaction_created_event(self):
        tx_id = uuid4()
        correlation_id = uuid4()
        event = AuditEventBuilder.transaction_created(
            account_id="user-1",
            transaction_id=tx_id,
            category="Food",
            signed_amount="-50.00",
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.TRANSACTION_CREATED
        assert event.entity_type == "transaction"
        assert event.entity_id == tx_id
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_store_error_is_error_severity(self):
        event = AuditEventBuilder.store_error(
            account_id="user-1",
            operation="create_budget",
            error_message="disk full",
        )
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "disk full"

    def test_to_log_dict_and_json_line(self):
        event = AuditEvent(
            event_type=AuditEventType.DATA_CLEARED,
            account_id="user-1",
            description="All data cleared",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "data_cleared"
        assert log_dict["account_id"] == "user-1"
        assert json.loads(event.to_json_line())["event_id"] == str(event.event_id)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
