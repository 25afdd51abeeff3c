"""
Currency Arithmetic

Every money value in ExpenseFlow is a Decimal with exactly two
fractional digits. Sums, differences and scaling go through integer
cents so repeated additions never drift.

DESIGN DECISION: Rounding is ROUND_HALF_UP (ties away from zero)
everywhere - parsing, cent conversion, scaling and whole-number
formatting all use the same rule. parse("12.345") is 12.35 and
format_amount("-2.5", show_decimals=False) is "-3".

Floats are accepted at the edges for convenience, but they are
converted through their shortest repr (str(0.1) == "0.1"), never
through their binary expansion.
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Union

import structlog


logger = structlog.get_logger(__name__)

MoneyLike = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
_ONE = Decimal("1")

# Leading number of a string, the way a lenient float parser reads it:
# "12abc" -> "12", "  -3.5e2 USD" -> "-3.5e2", ".5" -> ".5"
_LEADING_NUMBER = re.compile(
    r"^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)"
)


def _to_decimal(value: MoneyLike) -> Decimal:
    """Convert a money-like value to a finite Decimal or raise ValueError."""
    if isinstance(value, bool):
        raise ValueError("Booleans are not money")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(repr(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"Not a decimal amount: {value!r}")
    else:
        raise ValueError(f"Unsupported money type: {type(value).__name__}")

    if not result.is_finite():
        raise ValueError(f"Amount must be finite: {value!r}")
    return result


def _normalize_zero(value: Decimal) -> Decimal:
    # Decimal keeps the sign of zero ("-0.00"); money never does.
    return ZERO if value == 0 else value


def quantize(amount: MoneyLike) -> Decimal:
    """Round any money-like value to cents."""
    value = _to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)
    return _normalize_zero(value)


def to_cents(amount: MoneyLike) -> int:
    """round(amount * 100) as an exact integer."""
    scaled = (_to_decimal(amount) * 100).quantize(_ONE, rounding=ROUND_HALF_UP)
    return int(scaled)


def from_cents(cents: int) -> Decimal:
    """cents / 100 as a two-place Decimal."""
    return _normalize_zero(Decimal(int(cents)).scaleb(-2).quantize(CENT))


def add(a: MoneyLike, b: MoneyLike) -> Decimal:
    return from_cents(to_cents(a) + to_cents(b))


def subtract(a: MoneyLike, b: MoneyLike) -> Decimal:
    return from_cents(to_cents(a) - to_cents(b))


def multiply(amount: MoneyLike, factor: MoneyLike) -> Decimal:
    """Scale an amount, rounding the result to whole cents."""
    scaled = Decimal(to_cents(amount)) * _to_decimal(factor)
    return from_cents(int(scaled.quantize(_ONE, rounding=ROUND_HALF_UP)))


def total(amounts: Iterable[MoneyLike]) -> Decimal:
    """Cent-exact sum of many amounts. Empty input sums to 0.00."""
    return from_cents(sum(to_cents(amount) for amount in amounts))


def parse(value: object) -> Decimal:
    """
    Parse user input into an amount.

    Never raises: anything that does not start with a number
    (or is not a number at all) becomes 0.00.
    """
    if value is None:
        return ZERO

    if isinstance(value, str):
        match = _LEADING_NUMBER.match(value)
        if not match:
            logger.debug("currency_parse_defaulted", raw_value=value)
            return ZERO
        value = match.group(1)

    try:
        return quantize(value)
    except (ValueError, InvalidOperation):
        # Overflowing exponents and unsupported types land here
        logger.debug("currency_parse_defaulted", raw_value=str(value))
        return ZERO


def is_whole_number(amount: MoneyLike) -> bool:
    value = _to_decimal(amount)
    return abs(value - value.to_integral_value(rounding=ROUND_HALF_UP)) < CENT


def format_amount(amount: MoneyLike, show_decimals: bool = True) -> str:
    """
    Plain display string.

    "1234.50" with decimals, "1235" without.
    """
    value = quantize(amount)
    if show_decimals:
        return f"{value:.2f}"
    whole = _normalize_zero(value.quantize(_ONE, rounding=ROUND_HALF_UP))
    return str(int(whole))


def _group_indian(digits: str) -> str:
    """1234567 -> 12,34,567 (last three digits, then pairs)."""
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    pairs = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ",".join(pairs + [tail])


def format_indian(amount: MoneyLike, show_decimals: bool = True) -> str:
    """
    Display string with Indian digit grouping.

    show_decimals=True always prints two decimals ("12,34,567.50").
    show_decimals=False drops the fraction for whole values and trims
    trailing zeros otherwise ("1,500", "12.5").
    """
    value = quantize(amount)

    if not show_decimals and is_whole_number(value):
        whole = _normalize_zero(value.quantize(_ONE, rounding=ROUND_HALF_UP))
        sign = "-" if whole < 0 else ""
        return sign + _group_indian(str(abs(int(whole))))

    sign = "-" if value < 0 else ""
    integer_part, fraction = f"{abs(value):.2f}".split(".")
    if not show_decimals:
        fraction = fraction.rstrip("0")

    grouped = _group_indian(integer_part)
    return f"{sign}{grouped}.{fraction}" if fraction else f"{sign}{grouped}"
