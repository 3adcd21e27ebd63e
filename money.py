"""
Money helpers built on Decimal.

Floats are converted through their string form so 0.1 stays 0.1 instead of
picking up binary noise.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

MONEY_PRECISION = Decimal("0.01")

Number = Union[str, int, float, Decimal]


def to_decimal(value: Number) -> Decimal:
    """
    Convert a value to Decimal.

    Raises:
        ValueError: if the value is not a finite number (bools are rejected too)
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
        except (InvalidOperation, ValueError, TypeError):
            raise ValueError(f"Not a number: {value!r}") from None
    if not result.is_finite():
        raise ValueError(f"Not a number: {value!r}")
    return result


def round_money(value: Decimal) -> Decimal:
    """Round to cents, halves away from zero."""
    return value.quantize(MONEY_PRECISION, rounding=ROUND_HALF_UP)


def to_cents(value: Number) -> int:
    """Amount in major units -> integer minor units (what Stripe expects)."""
    return int((to_decimal(value) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    return round_money(Decimal(cents) / 100)
