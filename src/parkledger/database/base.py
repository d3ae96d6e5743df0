"""Abstract database interface."""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

# Import entities directly to avoid circular import through domain/__init__.py
from parkledger.domain.entities import (
    Invoice,
    InvoiceDraft,
    InvoiceStatus,
    InvoiceType,
    TaxRateConfig,
    TaxType,
)


class Database(ABC):
    """Abstract database interface for parkledger.

    Every write commits immediately unless it runs inside ``transaction()``,
    in which case the whole block commits or rolls back as one unit.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    @abstractmethod
    def transaction(self) -> AbstractContextManager["Database"]:
        """Run the enclosed operations as one atomic unit of work."""
        pass

    # Tax rate operations
    @abstractmethod
    def set_tax_rate(
        self, tenant_id: str, tax_type: TaxType, rate: Decimal, label: Optional[str] = None
    ) -> None:
        """Create or replace the tenant's rate for a tax category."""
        pass

    @abstractmethod
    def get_tax_rate(self, tenant_id: str, tax_type: TaxType) -> Optional[TaxRateConfig]:
        """Get the tenant's configured rate for a tax category."""
        pass

    @abstractmethod
    def list_tax_rates(self, tenant_id: str) -> list[TaxRateConfig]:
        """List the tenant's configured tax rates."""
        pass

    # Number allocation
    @abstractmethod
    def next_invoice_number(self, tenant_id: str, invoice_type: InvoiceType, year: int) -> str:
        """Atomically allocate the next sequential number for tenant and type."""
        pass

    # Invoice operations
    @abstractmethod
    def create_invoice(self, draft: InvoiceDraft) -> int:
        """Create an invoice with its lines. Returns invoice ID."""
        pass

    @abstractmethod
    def get_invoice(self, invoice_id: int) -> Optional[Invoice]:
        """Get invoice by ID with lines ordered by position."""
        pass

    @abstractmethod
    def get_invoice_for_update(self, invoice_id: int) -> Optional[Invoice]:
        """Get invoice by ID and lock its row until the transaction ends."""
        pass

    @abstractmethod
    def list_invoices(
        self,
        tenant_id: str,
        invoice_type: Optional[InvoiceType] = None,
        status: Optional[InvoiceStatus] = None,
    ) -> list[Invoice]:
        """List a tenant's invoices ordered by creation."""
        pass

    @abstractmethod
    def update_invoice_status(
        self,
        invoice_id: int,
        status: InvoiceStatus,
        sent_at: Optional[datetime] = None,
        paid_at: Optional[datetime] = None,
        skonto_deadline: Optional[date] = None,
        skonto_amount: Optional[Decimal] = None,
        skonto_paid: Optional[bool] = None,
    ) -> None:
        """Set the invoice status; non-None keyword values are stored too."""
        pass

    @abstractmethod
    def list_corrections(self, invoice_id: int) -> list[Invoice]:
        """List documents whose correction_of points at the invoice."""
        pass

    @abstractmethod
    def list_legacy_cancellations(self, invoice_id: int) -> list[Invoice]:
        """List documents linked only through the legacy cancelled_invoice_id."""
        pass
