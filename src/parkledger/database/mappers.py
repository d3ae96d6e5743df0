"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic, including the enum conversion of
string columns and the decoding of the correction audit payload.
"""

from typing import Optional

from parkledger.domain import entities as domain
from parkledger.domain.correction_audit import decode_audit, encode_audit
from parkledger.database.models import (
    Invoice as ORMInvoice,
    InvoiceItem as ORMInvoiceItem,
    TaxRateConfig as ORMTaxRateConfig,
)


def tax_rate_config_to_domain(orm_config: ORMTaxRateConfig) -> domain.TaxRateConfig:
    """Convert SQLAlchemy TaxRateConfig model to domain TaxRateConfig entity."""
    return domain.TaxRateConfig(
        tenant_id=orm_config.tenant_id,
        tax_type=domain.TaxType(orm_config.tax_type),
        rate=orm_config.rate,
        label=orm_config.label,
    )


def invoice_item_to_domain(orm_item: ORMInvoiceItem) -> domain.InvoiceItem:
    """Convert SQLAlchemy InvoiceItem model to domain InvoiceItem entity."""
    return domain.InvoiceItem(
        id=orm_item.id,
        invoice_id=orm_item.invoice_id,
        position=orm_item.position,
        description=orm_item.description,
        quantity=orm_item.quantity,
        unit_price=orm_item.unit_price,
        tax_type=domain.TaxType(orm_item.tax_type),
        tax_rate=orm_item.tax_rate,
        net_amount=orm_item.net_amount,
        tax_amount=orm_item.tax_amount,
        gross_amount=orm_item.gross_amount,
        unit=orm_item.unit,
        plot_area_type=orm_item.plot_area_type,
        plot_id=orm_item.plot_id,
        reference_type=orm_item.reference_type,
        reference_id=orm_item.reference_id,
        datev_account=orm_item.datev_account,
        datev_counter_account=orm_item.datev_counter_account,
        datev_cost_center=orm_item.datev_cost_center,
    )


def _optional_enum(enum_cls, value: Optional[str]):
    return enum_cls(value) if value is not None else None


def invoice_to_domain(orm_invoice: ORMInvoice) -> domain.Invoice:
    """Convert SQLAlchemy Invoice model (with lines) to domain Invoice entity."""
    corrected_invoice = None
    if orm_invoice.corrected_invoice is not None:
        corrected_invoice = domain.InvoiceReference(
            id=orm_invoice.corrected_invoice.id,
            invoice_number=orm_invoice.corrected_invoice.invoice_number,
        )

    return domain.Invoice(
        id=orm_invoice.id,
        tenant_id=orm_invoice.tenant_id,
        invoice_type=domain.InvoiceType(orm_invoice.invoice_type),
        invoice_number=orm_invoice.invoice_number,
        invoice_date=orm_invoice.invoice_date,
        status=domain.InvoiceStatus(orm_invoice.status),
        recipient_name=orm_invoice.recipient_name,
        net_amount=orm_invoice.net_amount,
        tax_rate=orm_invoice.tax_rate,
        tax_amount=orm_invoice.tax_amount,
        gross_amount=orm_invoice.gross_amount,
        created_at=orm_invoice.created_at,
        items=tuple(invoice_item_to_domain(item) for item in orm_invoice.items),
        recipient_type=orm_invoice.recipient_type,
        recipient_address=orm_invoice.recipient_address,
        due_date=orm_invoice.due_date,
        service_start_date=orm_invoice.service_start_date,
        service_end_date=orm_invoice.service_end_date,
        payment_reference=orm_invoice.payment_reference,
        internal_reference=orm_invoice.internal_reference,
        notes=orm_invoice.notes,
        sent_at=orm_invoice.sent_at,
        paid_at=orm_invoice.paid_at,
        created_by_id=orm_invoice.created_by_id,
        fund_id=orm_invoice.fund_id,
        shareholder_id=orm_invoice.shareholder_id,
        lease_id=orm_invoice.lease_id,
        park_id=orm_invoice.park_id,
        settlement_period_id=orm_invoice.settlement_period_id,
        correction_of=orm_invoice.correction_of,
        correction_type=_optional_enum(domain.CorrectionType, orm_invoice.correction_type),
        corrected_positions=decode_audit(orm_invoice.corrected_positions),
        cancelled_invoice_id=orm_invoice.cancelled_invoice_id,
        corrected_invoice=corrected_invoice,
        skonto_percent=orm_invoice.skonto_percent,
        skonto_days=orm_invoice.skonto_days,
        skonto_deadline=orm_invoice.skonto_deadline,
        skonto_amount=orm_invoice.skonto_amount,
        skonto_paid=orm_invoice.skonto_paid,
    )


def invoice_draft_to_orm(draft: domain.InvoiceDraft) -> ORMInvoice:
    """Build an SQLAlchemy Invoice (with lines) from a domain draft."""
    corrected_positions = None
    if draft.corrected_positions is not None:
        corrected_positions = encode_audit(draft.corrected_positions)

    orm_invoice = ORMInvoice(
        tenant_id=draft.tenant_id,
        invoice_type=draft.invoice_type.value,
        invoice_number=draft.invoice_number,
        invoice_date=draft.invoice_date,
        due_date=draft.due_date,
        status=draft.status.value,
        recipient_type=draft.recipient_type,
        recipient_name=draft.recipient_name,
        recipient_address=draft.recipient_address,
        service_start_date=draft.service_start_date,
        service_end_date=draft.service_end_date,
        payment_reference=draft.payment_reference,
        internal_reference=draft.internal_reference,
        notes=draft.notes,
        net_amount=draft.net_amount,
        tax_rate=draft.tax_rate,
        tax_amount=draft.tax_amount,
        gross_amount=draft.gross_amount,
        sent_at=draft.sent_at,
        created_by_id=draft.created_by_id,
        fund_id=draft.fund_id,
        shareholder_id=draft.shareholder_id,
        lease_id=draft.lease_id,
        park_id=draft.park_id,
        settlement_period_id=draft.settlement_period_id,
        correction_of=draft.correction_of,
        correction_type=draft.correction_type.value if draft.correction_type else None,
        corrected_positions=corrected_positions,
        cancelled_invoice_id=draft.cancelled_invoice_id,
        skonto_percent=draft.skonto_percent,
        skonto_days=draft.skonto_days,
        skonto_paid=False,
    )
    orm_invoice.items = [
        ORMInvoiceItem(
            position=position,
            description=item.description,
            quantity=item.quantity,
            unit=item.unit,
            unit_price=item.unit_price,
            tax_type=item.tax_type.value,
            tax_rate=item.tax_rate,
            net_amount=item.net_amount,
            tax_amount=item.tax_amount,
            gross_amount=item.gross_amount,
            plot_area_type=item.plot_area_type,
            plot_id=item.plot_id,
            reference_type=item.reference_type,
            reference_id=item.reference_id,
            datev_account=item.datev_account,
            datev_counter_account=item.datev_counter_account,
            datev_cost_center=item.datev_cost_center,
        )
        for position, item in enumerate(draft.items, start=1)
    ]
    return orm_invoice
