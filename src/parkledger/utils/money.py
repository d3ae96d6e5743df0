"""Cent-accurate money helpers.

All amounts are ``Decimal``. Rounding is commercial (half away from zero) so
that ``round2(-x) == -round2(x)``; a credit note line negating an invoice line
always reconciles to the cent.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
# Scale of stored quantities and unit prices
UNIT_SCALE = Decimal("0.0001")
ZERO = Decimal("0.00")


def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal without binary float artifacts.

    Floats go through ``str`` so ``0.1`` becomes ``Decimal("0.1")`` and not
    its exact binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round2(value: Number) -> Decimal:
    """Round to two decimal places."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round4(value: Number) -> Decimal:
    """Round a quantity or unit price to the four decimals it is stored with."""
    return to_decimal(value).quantize(UNIT_SCALE, rounding=ROUND_HALF_UP)


def to_cents(value: Number) -> int:
    """Convert an amount to integer cents."""
    return int((to_decimal(value) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    """Convert integer cents back to a two-decimal amount."""
    return (Decimal(cents) / 100).quantize(CENT)


def format_eur(amount: Decimal) -> str:
    """Format an amount the German way, e.g. ``1.234,56 EUR``."""
    text = f"{round2(amount):,.2f}"
    return text.replace(",", "_").replace(".", ",").replace("_", ".") + " EUR"
