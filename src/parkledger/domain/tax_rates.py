"""Tax rate domain service."""

from decimal import Decimal
from typing import Callable, Optional

from parkledger.database.base import Database
from parkledger.domain.entities import TaxType
from parkledger.domain.errors import ValidationError
from parkledger.utils.money import to_decimal

DEFAULT_TAX_RATES = {
    TaxType.STANDARD: Decimal("19"),
    TaxType.REDUCED: Decimal("7"),
    TaxType.EXEMPT: Decimal("0"),
}

DEFAULT_TAX_LABELS = {
    TaxType.STANDARD: "Regelsteuersatz",
    TaxType.REDUCED: "Ermäßigter Steuersatz",
    TaxType.EXEMPT: "Steuerbefreit",
}

TaxRateLookup = Callable[[TaxType], Decimal]


class TaxRateService:
    """Service for tenant-configured tax percentages."""

    def __init__(self, db: Database):
        """Initialize tax rate service.

        Args:
            db: Database instance
        """
        self.db = db

    def get_tax_rate(self, tenant_id: str, tax_type: TaxType) -> Decimal:
        """Get the percentage for a tax category.

        Falls back to the statutory default when the tenant has not
        configured the category.
        """
        config = self.db.get_tax_rate(tenant_id, tax_type)
        if config is None:
            return DEFAULT_TAX_RATES[tax_type]
        return config.rate

    def set_tax_rate(
        self, tenant_id: str, tax_type: TaxType, rate, label: Optional[str] = None
    ) -> None:
        """Configure the tenant's percentage for a tax category.

        Raises:
            ValidationError: If the rate is outside 0-100
        """
        rate = to_decimal(rate)
        if rate < 0 or rate > 100:
            raise ValidationError(f"Steuersatz muss zwischen 0 und 100 liegen, nicht {rate}")
        self.db.set_tax_rate(tenant_id, tax_type, rate, label or DEFAULT_TAX_LABELS[tax_type])

    def list_tax_rates(self, tenant_id: str) -> dict[TaxType, Decimal]:
        """Return the effective rate of every tax category for the tenant."""
        rates = dict(DEFAULT_TAX_RATES)
        for config in self.db.list_tax_rates(tenant_id):
            rates[config.tax_type] = config.rate
        return rates

    def resolver(self, tenant_id: str) -> TaxRateLookup:
        """Return a lookup function bound to one tenant."""
        return lambda tax_type: self.get_tax_rate(tenant_id, tax_type)
