"""
Numeric helpers for report math.

Monetary inputs from the database are loosely typed (numbers, numeric
strings, NULL). Everything is coerced to Decimal here so that report code
never sees NaN, Infinity or a division by zero.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

ZERO = Decimal("0")
CENT = Decimal("0.01")


def safe_number(value: Any) -> Decimal:
    """
    Coerce a monetary value to a finite Decimal.

    None, booleans, non-numeric strings, NaN and Infinity all become 0.

    Examples:
        safe_number(150) -> Decimal("150")
        safe_number("99.90") -> Decimal("99.90")
        safe_number("abc") -> Decimal("0")
        safe_number(float("nan")) -> Decimal("0")
    """
    if value is None or isinstance(value, bool):
        return ZERO

    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, (int, float)):
        number = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return ZERO
        try:
            number = Decimal(text)
        except InvalidOperation:
            return ZERO
    else:
        return ZERO

    if not number.is_finite():
        return ZERO
    return number


def safe_rate(done: int, total: int) -> int:
    """
    Percentage of done over total, rounded half up to an integer.

    Returns 0 when total is not positive. Never negative.
    """
    if not total or total <= 0 or done <= 0:
        return 0
    rate = Decimal(done) * 100 / Decimal(total)
    return int(rate.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def safe_divide(amount: Decimal, count: int) -> Decimal:
    """Divide an amount by a count, 0 when the count is not positive."""
    if not count or count <= 0:
        return ZERO
    return amount / Decimal(count)


def to_money(amount: Decimal) -> Decimal:
    """Round a Decimal to cents (half up)."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)
