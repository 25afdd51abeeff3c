"""Cent-exact money arithmetic."""

from expenseflow.money.currency import (
    CENT,
    ZERO,
    MoneyLike,
    add,
    format_amount,
    format_indian,
    from_cents,
    is_whole_number,
    multiply,
    parse,
    quantize,
    subtract,
    to_cents,
    total,
)

__all__ = [
    "CENT",
    "ZERO",
    "MoneyLike",
    "add",
    "format_amount",
    "format_indian",
    "from_cents",
    "is_whole_number",
    "multiply",
    "parse",
    "quantize",
    "subtract",
    "to_cents",
    "total",
]
