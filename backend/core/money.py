"""
Decimal helpers for currency-exact arithmetic.

All monetary values are Decimals with two places; rounding is
half-up and happens once per computed amount.
"""
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal('0.01')
ZERO = Decimal('0.00')


def to_money(value) -> Decimal:
    """Coerce int/str/Decimal into a two-place Decimal (half-up)."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(amount: Decimal, percent: Decimal) -> Decimal:
    """``amount * percent / 100`` rounded to the currency unit."""
    return to_money(amount * percent / Decimal(100))


def fraction_of(amount: Decimal, rate: Decimal) -> Decimal:
    """``amount * rate`` rounded to the currency unit."""
    return to_money(amount * rate)
