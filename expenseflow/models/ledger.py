"""
Core Data Models for ExpenseFlow

These models define the strict schemas for the ledger, the budgets
derived from it, and savings goals. They are designed to:
1. Enforce type safety at runtime
2. Keep every money value quantized to cents
3. Be serializable for storage and logging
4. Make contradictory records impossible to construct

DESIGN DECISION: A transaction's `type` is authoritative and its
`amount` is always the unsigned magnitude. The signed value shown to
users is derived from the type, so "an income with a negative amount"
cannot exist. Callers that still speak the signed convention can pass a
negative amount for an expense (it is folded to its magnitude) or use
Transaction.from_signed().
"""

import datetime as dt
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from expenseflow.money import ZERO, add, quantize


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a transaction."""
    EXPENSE = "expense"
    INCOME = "income"


class BudgetPeriod(str, Enum):
    """
    Budget period label.

    Only informational: spending is always aggregated over the
    current calendar month, whatever the label says.
    """
    MONTHLY = "monthly"
    WEEKLY = "weekly"


# =============================================================================
# OWNER SCOPE
# =============================================================================

class AccountContext(BaseModel):
    """
    The account every store operation acts on.

    Passed explicitly into each call instead of being read from
    ambient session state.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    account_id: str = Field(
        ...,
        min_length=1,
        max_length=128,
        description="Owner of the ledger, budgets and goals"
    )


# =============================================================================
# LEDGER
# =============================================================================

def _fold_signed_amount(data: Any) -> Any:
    """Turn a signed expense amount into its magnitude; reject signed income."""
    if not isinstance(data, dict) or data.get("amount") is None:
        return data

    try:
        value = quantize(data["amount"])
    except (ValueError, InvalidOperation):
        return data  # field validation reports it

    if value >= 0:
        return data

    try:
        tx_type = TransactionType(data.get("type"))
    except ValueError:
        return data

    if tx_type is TransactionType.INCOME:
        raise ValueError("Negative amount contradicts transaction type 'income'")
    return {**data, "amount": -value}


def _clean_tags(v: Optional[list[str]]) -> list[str]:
    """Strip, drop blanks and de-duplicate, keeping first occurrence."""
    if v is None:
        return []
    seen = []
    for tag in v:
        tag = str(tag).strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


class Transaction(BaseModel):
    """
    A single ledger entry.

    `amount` is the magnitude; `type` says which way the money moved.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    # Identity
    id: UUID = Field(
        default_factory=uuid4,
        description="Unique transaction ID"
    )

    amount: Decimal = Field(
        ...,
        ge=0,
        description="Unsigned magnitude, quantized to cents"
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Category name, matched case-sensitively against budgets"
    )
    description: str = Field(
        default="",
        max_length=500
    )
    date: dt.date = Field(
        ...,
        description="Calendar date the money moved"
    )
    type: TransactionType
    payment_method: str = Field(
        default="",
        max_length=50
    )
    tags: list[str] = Field(default_factory=list)
    recurring: bool = False

    # Timestamps
    created_at: dt.datetime = Field(default_factory=_utcnow)
    updated_at: dt.datetime = Field(default_factory=_utcnow)

    @model_validator(mode='before')
    @classmethod
    def fold_signed_amount(cls, data: Any) -> Any:
        return _fold_signed_amount(data)

    @field_validator('amount', mode='before')
    @classmethod
    def quantize_amount(cls, v: Any) -> Decimal:
        return quantize(v)

    @field_validator('tags', mode='before')
    @classmethod
    def clean_tags(cls, v: Optional[list[str]]) -> list[str]:
        return _clean_tags(v)

    @classmethod
    def from_signed(cls, amount: Any, **fields: Any) -> "Transaction":
        """
        Build a transaction from a signed amount.

        Negative means expense, anything else income.
        """
        value = quantize(amount)
        tx_type = TransactionType.EXPENSE if value < 0 else TransactionType.INCOME
        return cls(amount=abs(value), type=tx_type, **fields)

    @property
    def is_expense(self) -> bool:
        return self.type is TransactionType.EXPENSE

    @property
    def is_income(self) -> bool:
        return self.type is TransactionType.INCOME

    @property
    def signed_amount(self) -> Decimal:
        """Negative for expenses, positive for income."""
        return -self.amount if self.is_expense and self.amount else self.amount


class TransactionUpdate(BaseModel):
    """
    Partial edit of a transaction.

    Fields left as None are not touched.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Optional[Decimal] = None
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    date: Optional[dt.date] = None
    type: Optional[TransactionType] = None
    payment_method: Optional[str] = Field(default=None, max_length=50)
    tags: Optional[list[str]] = None
    recurring: Optional[bool] = None

    @field_validator('amount', mode='before')
    @classmethod
    def quantize_amount(cls, v: Any) -> Optional[Decimal]:
        return None if v is None else quantize(v)

    def changes(self) -> dict[str, Any]:
        """Only the fields this update actually sets."""
        return self.model_dump(exclude_none=True)

    def apply_to(self, transaction: Transaction) -> Transaction:
        """
        Return a new transaction with these changes applied.

        Goes back through full validation, so a negative amount on an
        income is rejected here exactly as it is at creation.
        """
        merged = transaction.model_dump()
        merged.update(self.changes())
        merged["updated_at"] = _utcnow()
        return Transaction.model_validate(merged)


# =============================================================================
# BUDGETS
# =============================================================================

class Budget(BaseModel):
    """
    Spending limit for one category.

    `spent` is derived from the ledger by the reconciler and is never
    authoritative on its own.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    category: str = Field(
        ...,
        min_length=1,
        max_length=100
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Limit for the period"
    )
    spent: Decimal = Field(
        default=ZERO,
        ge=0,
        description="Current-month expenses in this category"
    )
    period: BudgetPeriod = BudgetPeriod.MONTHLY
    color: str = Field(
        default="#3B82F6",
        max_length=20,
        description="Display only"
    )

    created_at: dt.datetime = Field(default_factory=_utcnow)
    updated_at: dt.datetime = Field(default_factory=_utcnow)

    @field_validator('amount', 'spent', mode='before')
    @classmethod
    def quantize_money(cls, v: Any) -> Decimal:
        return quantize(v)

    @property
    def remaining(self) -> Decimal:
        """Limit minus spent; negative when over budget."""
        return add(self.amount, -self.spent)

    @property
    def percent_used(self) -> Decimal:
        if self.amount == 0:
            return ZERO
        return quantize(self.spent / self.amount * 100)

    @property
    def is_over_budget(self) -> bool:
        return self.spent > self.amount

    def with_spent(self, spent: Decimal) -> "Budget":
        """Copy with a new spent value, clamped at zero."""
        return self.model_copy(update={
            "spent": max(ZERO, quantize(spent)),
            "updated_at": _utcnow(),
        })

    def with_amount(self, amount: Decimal) -> "Budget":
        value = quantize(amount)
        if value < 0:
            raise ValueError("Budget amount cannot be negative")
        return self.model_copy(update={"amount": value, "updated_at": _utcnow()})


# =============================================================================
# GOALS
# =============================================================================

class Goal(BaseModel):
    """
    A savings goal.

    0 <= current_amount <= target_amount always holds; contributions
    are clamped rather than rejected.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    title: str = Field(
        ...,
        min_length=1,
        max_length=200
    )
    target_amount: Decimal = Field(..., gt=0)
    current_amount: Decimal = Field(default=ZERO, ge=0)
    deadline: dt.date
    color: str = Field(default="#10B981", max_length=20)

    created_at: dt.datetime = Field(default_factory=_utcnow)
    updated_at: dt.datetime = Field(default_factory=_utcnow)

    @field_validator('target_amount', 'current_amount', mode='before')
    @classmethod
    def quantize_money(cls, v: Any) -> Decimal:
        return quantize(v)

    @model_validator(mode='after')
    def validate_progress(self) -> 'Goal':
        if self.current_amount > self.target_amount:
            raise ValueError("Current amount cannot exceed target amount")
        return self

    @property
    def remaining_amount(self) -> Decimal:
        return add(self.target_amount, -self.current_amount)

    @property
    def progress_percent(self) -> Decimal:
        return quantize(self.current_amount / self.target_amount * 100)

    @property
    def is_complete(self) -> bool:
        return self.current_amount >= self.target_amount

    def contribute(self, amount: Any) -> "Goal":
        """
        Copy with `amount` added to the saved total.

        The result is clamped into [0, target_amount], so a contribution
        larger than the remaining gap simply completes the goal.
        """
        new_amount = add(self.current_amount, amount)
        new_amount = min(max(ZERO, new_amount), self.target_amount)
        return self.model_copy(update={
            "current_amount": new_amount,
            "updated_at": _utcnow(),
        })


class GoalUpdate(BaseModel):
    """Editable goal fields. The saved amount changes only via contributions."""
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    target_amount: Optional[Decimal] = Field(default=None, gt=0)
    deadline: Optional[dt.date] = None
    color: Optional[str] = Field(default=None, max_length=20)

    @field_validator('target_amount', mode='before')
    @classmethod
    def quantize_target(cls, v: Any) -> Optional[Decimal]:
        return None if v is None else quantize(v)

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)

    def apply_to(self, goal: Goal) -> Goal:
        """
        Return the edited goal.

        Lowering the target below what is already saved pulls the
        saved amount down to the new target.
        """
        merged = goal.model_dump()
        merged.update(self.changes())
        if merged["current_amount"] > merged["target_amount"]:
            merged["current_amount"] = merged["target_amount"]
        merged["updated_at"] = _utcnow()
        return Goal.model_validate(merged)
