"""
Money helpers. Every amount in the engine is an integer number of cents.

Division is the only place rounding can happen, so it goes through
``percent_of`` / ``half_of`` which round half-up to the cent.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

Number = Union[int, float, str, Decimal]

CENTS_PER_DOLLAR = 100


def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal without float artifacts."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def percent_of(amount: int, percent: Number) -> int:
    """Return ``percent``% of ``amount`` cents, rounded half-up to the cent."""
    exact = Decimal(amount) * to_decimal(percent) / Decimal(100)
    return int(exact.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def half_of(amount: int) -> int:
    """Half of ``amount`` cents, rounded half-up."""
    return percent_of(amount, 50)


def round_to_dollar(amount: int) -> int:
    """Round cents to the nearest whole dollar (half-up), still in cents."""
    dollars = (Decimal(amount) / CENTS_PER_DOLLAR).quantize(
        Decimal(1), rounding=ROUND_HALF_UP
    )
    return int(dollars) * CENTS_PER_DOLLAR


def dollars_to_cents(value: Number) -> int:
    """
    Convert a dollar amount (e.g. ``"1500.25"`` or ``1500.25``) to cents.

    Raises:
        ValueError: if the value is not a number or has fractional cents
    """
    try:
        cents = to_decimal(value) * CENTS_PER_DOLLAR
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"Not a dollar amount: {value!r}") from e
    if not cents.is_finite():
        raise ValueError(f"Not a dollar amount: {value!r}")
    if cents != cents.to_integral_value():
        raise ValueError(f"Dollar amount has fractional cents: {value!r}")
    return int(cents)


def cents_to_dollars(amount: int) -> float:
    """Cents as a float dollar value (for reports and DataFrames only)."""
    return amount / CENTS_PER_DOLLAR


def format_dollars(amount: int) -> str:
    """Format cents as ``$1,234.56``."""
    sign = "-" if amount < 0 else ""
    dollars, cents = divmod(abs(amount), CENTS_PER_DOLLAR)
    return f"{sign}${dollars:,}.{cents:02d}"
