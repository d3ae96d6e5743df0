"""Line-item amount calculation.

Every line is computed independently: ``net = round2(quantity * unit_price)``,
``tax = round2(net * rate / 100)``, ``gross = round2(net + tax)``. Invoice
totals are the rounded sums of the rounded line amounts, never a
recomputation from quantities.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Protocol

from parkledger.domain.entities import TaxType
from parkledger.domain.tax_rates import TaxRateLookup
from parkledger.utils.money import Number, round2, to_decimal


@dataclass(frozen=True)
class ItemAmounts:
    """Computed amounts of one line."""

    net_amount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    gross_amount: Decimal

    def negated(self) -> "ItemAmounts":
        """Amounts of a line reversing this one."""
        return ItemAmounts(
            net_amount=-self.net_amount,
            tax_rate=self.tax_rate,
            tax_amount=-self.tax_amount,
            gross_amount=-self.gross_amount,
        )


@dataclass(frozen=True)
class AmountTotals:
    """Summed amounts of a document."""

    net_amount: Decimal
    tax_amount: Decimal
    gross_amount: Decimal


class HasAmounts(Protocol):
    net_amount: Decimal
    tax_amount: Decimal
    gross_amount: Decimal


def calculate_item_amounts(
    quantity: Number, unit_price: Number, tax_type: TaxType, get_tax_rate: TaxRateLookup
) -> ItemAmounts:
    """Calculate net, tax and gross for one line.

    Args:
        quantity: Line quantity
        unit_price: Price per unit
        tax_type: Tax category of the line
        get_tax_rate: Lookup resolving a tax category to a percentage

    Returns:
        ItemAmounts with every value rounded to cents
    """
    net_amount = round2(to_decimal(quantity) * to_decimal(unit_price))
    tax_rate = to_decimal(get_tax_rate(tax_type))
    tax_amount = round2(net_amount * tax_rate / 100)
    gross_amount = round2(net_amount + tax_amount)
    return ItemAmounts(
        net_amount=net_amount,
        tax_rate=tax_rate,
        tax_amount=tax_amount,
        gross_amount=gross_amount,
    )


def sum_item_amounts(items: Iterable[HasAmounts]) -> AmountTotals:
    """Sum net, tax and gross over lines, each sum rounded once."""
    items = list(items)
    return AmountTotals(
        net_amount=round2(sum((item.net_amount for item in items), Decimal("0"))),
        tax_amount=round2(sum((item.tax_amount for item in items), Decimal("0"))),
        gross_amount=round2(sum((item.gross_amount for item in items), Decimal("0"))),
    )
