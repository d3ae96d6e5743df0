"""Invoice domain service (routine billing and lifecycle)."""

import logging
from datetime import date, datetime, UTC
from decimal import Decimal
from typing import Optional, Sequence

from parkledger.database.base import Database
from parkledger.domain.amounts import calculate_item_amounts, sum_item_amounts
from parkledger.domain.entities import (
    Invoice as InvoiceEntity,
    InvoiceDraft,
    InvoiceItemDraft,
    InvoiceLineInput,
    InvoiceStatus,
    InvoiceType,
    SkontoStatus,
)
from parkledger.domain.errors import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
    invalid_status_transition,
    invoice_forbidden,
    invoice_not_found,
)
from parkledger.domain.skonto import (
    calculate_skonto_deadline,
    calculate_skonto_discount,
    get_invoice_skonto_status,
)
from parkledger.domain.tax_rates import TaxRateService
from parkledger.utils.money import round4, to_decimal

logger = logging.getLogger(__name__)

# Forward-only lifecycle
ALLOWED_TRANSITIONS = {
    InvoiceStatus.DRAFT: {InvoiceStatus.SENT, InvoiceStatus.CANCELLED},
    InvoiceStatus.SENT: {InvoiceStatus.PAID, InvoiceStatus.CANCELLED},
    InvoiceStatus.PAID: {InvoiceStatus.CANCELLED},
    InvoiceStatus.CANCELLED: set(),
}


def ensure_transition(current: InvoiceStatus, target: InvoiceStatus) -> None:
    """Raise InvalidStateError unless ``current -> target`` moves forward."""
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStateError(invalid_status_transition(current.value, target.value))


def load_tenant_invoice(db: Database, invoice_id: int, tenant_id: str, for_update: bool = False) -> InvoiceEntity:
    """Load an invoice and check that it belongs to the tenant.

    Raises:
        NotFoundError: If the invoice does not exist
        ForbiddenError: If the invoice belongs to another tenant
    """
    if for_update:
        invoice = db.get_invoice_for_update(invoice_id)
    else:
        invoice = db.get_invoice(invoice_id)
    if invoice is None:
        raise NotFoundError(invoice_not_found(invoice_id))
    if invoice.tenant_id != tenant_id:
        raise ForbiddenError(invoice_forbidden(invoice_id))
    return invoice


class InvoiceService:
    """Service for creating invoices and moving them through their lifecycle."""

    def __init__(self, db: Database):
        """Initialize invoice service.

        Args:
            db: Database instance
        """
        self.db = db
        self.tax_rate_service = TaxRateService(db)

    def create_invoice(
        self,
        tenant_id: str,
        user_id: str,
        recipient_name: str,
        lines: Sequence[InvoiceLineInput],
        invoice_type: InvoiceType = InvoiceType.INVOICE,
        invoice_date: Optional[date] = None,
        due_date: Optional[date] = None,
        recipient_type: Optional[str] = None,
        recipient_address: Optional[str] = None,
        service_start_date: Optional[date] = None,
        service_end_date: Optional[date] = None,
        payment_reference: Optional[str] = None,
        notes: Optional[str] = None,
        skonto_percent: Optional[Decimal] = None,
        skonto_days: Optional[int] = None,
        park_id: Optional[str] = None,
        fund_id: Optional[str] = None,
        shareholder_id: Optional[str] = None,
        lease_id: Optional[str] = None,
        settlement_period_id: Optional[str] = None,
    ) -> int:
        """Create a DRAFT invoice with computed line and header amounts.

        Args:
            tenant_id: Owning tenant
            user_id: Creating user
            recipient_name: Recipient snapshot name
            lines: Lines in position order
            invoice_type: INVOICE or CREDIT_NOTE
            invoice_date: Invoice date (defaults to today)
            skonto_percent: Optional early payment discount percentage
            skonto_days: Days the discount stays valid after the invoice date

        Returns:
            Invoice ID

        Raises:
            ValidationError: If lines or Skonto settings are invalid
        """
        if not recipient_name or not recipient_name.strip():
            raise ValidationError("Empfänger muss angegeben werden")
        if not lines:
            raise ValidationError("Mindestens eine Position muss angegeben werden")
        for index, line in enumerate(lines):
            if not line.description or not line.description.strip():
                raise ValidationError(f"Beschreibung für Position {index + 1} fehlt")
            if round4(line.quantity) <= 0:
                raise ValidationError(f"Menge für Position {index + 1} muss größer als 0 sein")

        if skonto_percent is not None:
            skonto_percent = to_decimal(skonto_percent)
            if skonto_percent <= 0 or skonto_percent > 100:
                raise ValidationError("Skonto muss größer als 0 und höchstens 100 Prozent sein")
            if not skonto_days or skonto_days <= 0:
                raise ValidationError("Skonto-Frist in Tagen muss angegeben werden")
        elif skonto_days is not None:
            raise ValidationError("Skonto-Frist ohne Skonto-Prozentsatz angegeben")

        get_tax_rate = self.tax_rate_service.resolver(tenant_id)
        items = []
        for line in lines:
            # Amounts must be reproducible from the stored four-decimal values
            quantity = round4(line.quantity)
            unit_price = round4(line.unit_price)
            amounts = calculate_item_amounts(quantity, unit_price, line.tax_type, get_tax_rate)
            items.append(
                InvoiceItemDraft(
                    description=line.description,
                    quantity=quantity,
                    unit_price=unit_price,
                    tax_type=line.tax_type,
                    tax_rate=amounts.tax_rate,
                    net_amount=amounts.net_amount,
                    tax_amount=amounts.tax_amount,
                    gross_amount=amounts.gross_amount,
                    unit=line.unit,
                    plot_area_type=line.plot_area_type,
                    plot_id=line.plot_id,
                    reference_type=line.reference_type,
                    reference_id=line.reference_id,
                    datev_account=line.datev_account,
                    datev_counter_account=line.datev_counter_account,
                    datev_cost_center=line.datev_cost_center,
                )
            )
        totals = sum_item_amounts(items)
        invoice_date = invoice_date or date.today()

        with self.db.transaction():
            invoice_number = self.db.next_invoice_number(tenant_id, invoice_type, invoice_date.year)
            invoice_id = self.db.create_invoice(
                InvoiceDraft(
                    tenant_id=tenant_id,
                    invoice_type=invoice_type,
                    invoice_number=invoice_number,
                    invoice_date=invoice_date,
                    status=InvoiceStatus.DRAFT,
                    recipient_name=recipient_name.strip(),
                    net_amount=totals.net_amount,
                    # Document-level rate is the highest rate of its lines
                    tax_rate=max(item.tax_rate for item in items),
                    tax_amount=totals.tax_amount,
                    gross_amount=totals.gross_amount,
                    items=tuple(items),
                    recipient_type=recipient_type,
                    recipient_address=recipient_address,
                    due_date=due_date,
                    service_start_date=service_start_date,
                    service_end_date=service_end_date,
                    payment_reference=payment_reference,
                    notes=notes,
                    created_by_id=user_id,
                    fund_id=fund_id,
                    shareholder_id=shareholder_id,
                    lease_id=lease_id,
                    park_id=park_id,
                    settlement_period_id=settlement_period_id,
                    skonto_percent=skonto_percent,
                    skonto_days=skonto_days,
                )
            )

        logger.info(
            "Created %s %s for tenant %s (gross %s)",
            invoice_type.value, invoice_number, tenant_id, totals.gross_amount,
        )
        return invoice_id

    def get_invoice(self, invoice_id: int, tenant_id: str) -> InvoiceEntity:
        """Get a tenant's invoice.

        Raises:
            NotFoundError: If the invoice does not exist
            ForbiddenError: If the invoice belongs to another tenant
        """
        return load_tenant_invoice(self.db, invoice_id, tenant_id)

    def list_invoices(
        self,
        tenant_id: str,
        invoice_type: Optional[InvoiceType] = None,
        status: Optional[InvoiceStatus] = None,
    ) -> list[InvoiceEntity]:
        """List a tenant's invoices."""
        return self.db.list_invoices(tenant_id, invoice_type=invoice_type, status=status)

    def send_invoice(self, invoice_id: int, tenant_id: str, sent_at: Optional[datetime] = None) -> None:
        """Mark a DRAFT invoice as SENT and fix its Skonto deadline and amount.

        Raises:
            InvalidStateError: If the invoice is not a draft
        """
        with self.db.transaction():
            invoice = load_tenant_invoice(self.db, invoice_id, tenant_id, for_update=True)
            ensure_transition(invoice.status, InvoiceStatus.SENT)

            skonto_deadline = None
            skonto_amount = None
            if invoice.skonto_percent and invoice.skonto_days:
                skonto_deadline = calculate_skonto_deadline(invoice.invoice_date, invoice.skonto_days)
                skonto_amount = calculate_skonto_discount(invoice.gross_amount, invoice.skonto_percent)

            self.db.update_invoice_status(
                invoice_id,
                InvoiceStatus.SENT,
                sent_at=sent_at or datetime.now(UTC),
                skonto_deadline=skonto_deadline,
                skonto_amount=skonto_amount,
            )
        logger.info("Invoice %s sent", invoice.invoice_number)

    def record_payment(
        self,
        invoice_id: int,
        tenant_id: str,
        paid_at: Optional[datetime] = None,
        skonto_paid: bool = False,
    ) -> None:
        """Mark a SENT invoice as PAID.

        Args:
            skonto_paid: Whether the payment deducted the Skonto discount

        Raises:
            InvalidStateError: If the invoice is not SENT
            ValidationError: If Skonto is claimed but not configured or expired
        """
        paid_at = paid_at or datetime.now(UTC)
        with self.db.transaction():
            invoice = load_tenant_invoice(self.db, invoice_id, tenant_id, for_update=True)
            ensure_transition(invoice.status, InvoiceStatus.PAID)

            if skonto_paid:
                status = get_invoice_skonto_status(invoice, now=paid_at)
                if status == SkontoStatus.NONE:
                    raise ValidationError("Für diese Rechnung ist kein Skonto vereinbart")
                if status == SkontoStatus.EXPIRED:
                    raise ValidationError(
                        f"Skonto-Frist ist am {invoice.skonto_deadline.isoformat()} abgelaufen"
                    )

            self.db.update_invoice_status(
                invoice_id, InvoiceStatus.PAID, paid_at=paid_at, skonto_paid=skonto_paid
            )
        logger.info("Invoice %s paid (skonto=%s)", invoice.invoice_number, skonto_paid)

    def get_skonto_status(
        self, invoice_id: int, tenant_id: str, now: Optional[datetime] = None
    ) -> SkontoStatus:
        """Current Skonto state of a tenant's invoice."""
        invoice = load_tenant_invoice(self.db, invoice_id, tenant_id)
        return get_invoice_skonto_status(invoice, now=now)
