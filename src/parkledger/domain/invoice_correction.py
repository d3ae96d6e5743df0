"""Invoice correction domain service.

Corrections never modify a sent invoice's lines. They issue new documents
that point back at the original through ``correction_of``:

- Partial cancellation (Teilstorno): one credit note reversing selected
  positions, fully or by a partial quantity.
- Correction (Rechnungskorrektur): a credit note reversing the wrong
  positions entirely plus a replacement invoice carrying the corrected values.
- Full cancellation (Storno): one credit note reversing every line; the
  original becomes CANCELLED.

Each operation locks the source invoice, validates, allocates numbers and
writes all documents inside a single unit of work.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, UTC
from decimal import Decimal
from typing import Optional, Sequence

from parkledger.database.base import Database
from parkledger.domain.amounts import ItemAmounts, calculate_item_amounts, sum_item_amounts
from parkledger.domain.entities import (
    CorrectedPosition,
    CorrectionAudit,
    CorrectionHistory,
    CorrectionHistoryEntry,
    CorrectionNetEffect,
    CorrectionResult,
    CorrectionType,
    Invoice as InvoiceEntity,
    InvoiceDraft,
    InvoiceItem,
    InvoiceItemDraft,
    InvoiceStatus,
    InvoiceType,
    OriginalInvoiceSummary,
    PartialCancelAudit,
    PartialCancelPosition,
    TaxType,
)
from parkledger.domain.errors import (
    FULL_CANCEL_VIA_PARTIAL,
    NO_CORRECTIONS_GIVEN,
    NO_POSITIONS_SELECTED,
    InvalidStateError,
    ValidationError,
    cancel_quantity_exceeds,
    cancel_quantity_not_positive,
    duplicate_position,
    invalid_position,
    invoice_not_correctable,
    no_changes_detected,
    quantity_not_positive,
    unit_price_negative,
)
from parkledger.domain.invoice import ensure_transition, load_tenant_invoice
from parkledger.domain.tax_rates import TaxRateLookup, TaxRateService
from parkledger.utils.money import round2, round4

logger = logging.getLogger(__name__)

CORRECTABLE_STATUSES = (InvoiceStatus.SENT, InvoiceStatus.PAID)


@dataclass(frozen=True)
class _DocumentHeader:
    """Per-document texts of a correction document."""

    invoice_type: InvoiceType
    invoice_number: str
    payment_reference: str
    internal_reference: str
    notes: str
    due_date: Optional[date] = None
    cancelled_invoice_id: Optional[int] = None


def _line_draft(
    original_item: InvoiceItem,
    description: str,
    quantity: Decimal,
    unit_price: Decimal,
    tax_type: TaxType,
    amounts: ItemAmounts,
) -> InvoiceItemDraft:
    """Build a line that carries the original's pass-through references."""
    return InvoiceItemDraft(
        description=description,
        quantity=quantity,
        unit_price=unit_price,
        tax_type=tax_type,
        tax_rate=amounts.tax_rate,
        net_amount=amounts.net_amount,
        tax_amount=amounts.tax_amount,
        gross_amount=amounts.gross_amount,
        unit=original_item.unit,
        plot_area_type=original_item.plot_area_type,
        plot_id=original_item.plot_id,
        reference_type=original_item.reference_type,
        reference_id=original_item.reference_id,
        datev_account=original_item.datev_account,
        datev_counter_account=original_item.datev_counter_account,
        datev_cost_center=original_item.datev_cost_center,
    )


def _reversal_line(
    original_item: InvoiceItem, prefix: str, quantity: Decimal, get_tax_rate: TaxRateLookup
) -> InvoiceItemDraft:
    """Line reversing ``quantity`` units of an original line at its unit price."""
    amounts = calculate_item_amounts(
        quantity, original_item.unit_price, original_item.tax_type, get_tax_rate
    )
    return _line_draft(
        original_item,
        description=f"{prefix}: {original_item.description}",
        quantity=quantity,
        unit_price=-original_item.unit_price,
        tax_type=original_item.tax_type,
        amounts=amounts.negated(),
    )


class InvoiceCorrectionService:
    """Service for partial cancellations, corrections and correction history."""

    def __init__(self, db: Database):
        """Initialize invoice correction service.

        Args:
            db: Database instance
        """
        self.db = db
        self.tax_rate_service = TaxRateService(db)

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _load_correctable(self, invoice_id: int, tenant_id: str, action: str) -> InvoiceEntity:
        """Lock and load the source invoice and check its status."""
        original = load_tenant_invoice(self.db, invoice_id, tenant_id, for_update=True)
        if original.status not in CORRECTABLE_STATUSES:
            raise InvalidStateError(invoice_not_correctable(action))
        return original

    @staticmethod
    def _check_index(index: int, original: InvoiceEntity, seen: set[int]) -> InvoiceItem:
        if index < 0 or index >= len(original.items):
            raise ValidationError(invalid_position(index, len(original.items)))
        if index in seen:
            raise ValidationError(duplicate_position(index))
        seen.add(index)
        return original.items[index]

    def _create_document(
        self,
        original: InvoiceEntity,
        header: _DocumentHeader,
        items: Sequence[InvoiceItemDraft],
        correction_type: CorrectionType,
        audit,
        user_id: str,
        tenant_id: str,
    ) -> int:
        """Persist one correction document; must run inside a unit of work."""
        totals = sum_item_amounts(items)
        return self.db.create_invoice(
            InvoiceDraft(
                tenant_id=tenant_id,
                invoice_type=header.invoice_type,
                invoice_number=header.invoice_number,
                invoice_date=date.today(),
                status=InvoiceStatus.SENT,
                recipient_name=original.recipient_name,
                net_amount=totals.net_amount,
                tax_rate=original.tax_rate,
                tax_amount=totals.tax_amount,
                gross_amount=totals.gross_amount,
                items=tuple(items),
                recipient_type=original.recipient_type,
                recipient_address=original.recipient_address,
                due_date=header.due_date,
                service_start_date=original.service_start_date,
                service_end_date=original.service_end_date,
                payment_reference=header.payment_reference,
                internal_reference=header.internal_reference,
                notes=header.notes,
                sent_at=datetime.now(UTC),
                created_by_id=user_id,
                fund_id=original.fund_id,
                shareholder_id=original.shareholder_id,
                lease_id=original.lease_id,
                park_id=original.park_id,
                settlement_period_id=original.settlement_period_id,
                correction_of=original.id,
                correction_type=correction_type,
                corrected_positions=audit,
                cancelled_invoice_id=header.cancelled_invoice_id,
            )
        )

    def _next_number(self, tenant_id: str, invoice_type: InvoiceType) -> str:
        return self.db.next_invoice_number(tenant_id, invoice_type, date.today().year)

    # ------------------------------------------------------------------
    # Partial cancellation (Teilstorno)
    # ------------------------------------------------------------------

    def create_partial_cancellation(
        self,
        invoice_id: int,
        positions: Sequence[PartialCancelPosition],
        reason: str,
        user_id: str,
        tenant_id: str,
    ) -> InvoiceEntity:
        """Create a credit note cancelling selected positions.

        A position without ``cancel_quantity`` is cancelled in full. The
        original invoice keeps its status. Selecting every position at its
        full quantity is rejected; that is a full cancellation.

        Returns:
            The persisted credit note with lines and backlink

        Raises:
            NotFoundError: If the invoice does not exist
            ForbiddenError: If the invoice belongs to another tenant
            InvalidStateError: If the invoice is not SENT or PAID
            ValidationError: If the selection is invalid
        """
        with self.db.transaction():
            original = self._load_correctable(invoice_id, tenant_id, "teilstorniert")

            if not positions:
                raise ValidationError(NO_POSITIONS_SELECTED)

            seen: set[int] = set()
            cancel_quantities: list[tuple[InvoiceItem, int, Decimal]] = []
            for pos in positions:
                original_item = self._check_index(pos.original_index, original, seen)
                original_qty = original_item.quantity
                if pos.cancel_quantity is None:
                    cancel_qty = original_qty
                else:
                    cancel_qty = round4(pos.cancel_quantity)
                    if cancel_qty <= 0:
                        raise ValidationError(cancel_quantity_not_positive(pos.original_index))
                    if cancel_qty > original_qty:
                        raise ValidationError(
                            cancel_quantity_exceeds(pos.original_index, cancel_qty, original_qty)
                        )
                cancel_quantities.append((original_item, pos.original_index, cancel_qty))

            is_effectively_full_cancel = len(seen) == len(original.items) and all(
                cancel_qty == item.quantity for item, _, cancel_qty in cancel_quantities
            )
            if is_effectively_full_cancel:
                raise ValidationError(FULL_CANCEL_VIA_PARTIAL)

            get_tax_rate = self.tax_rate_service.resolver(tenant_id)
            items = [
                _reversal_line(item, "TEILSTORNO", cancel_qty, get_tax_rate)
                for item, _, cancel_qty in cancel_quantities
            ]
            audit = tuple(
                PartialCancelAudit(
                    original_index=index,
                    original_position=item.position,
                    original_description=item.description,
                    original_quantity=item.quantity,
                    cancelled_quantity=cancel_qty,
                )
                for item, index, cancel_qty in cancel_quantities
            )
            for entry in audit:
                logger.debug(
                    "Cancelling %s of %s on position %s",
                    entry.cancelled_quantity, entry.original_quantity, entry.original_position,
                )

            number = self._next_number(tenant_id, InvoiceType.CREDIT_NOTE)
            credit_note_id = self._create_document(
                original,
                _DocumentHeader(
                    invoice_type=InvoiceType.CREDIT_NOTE,
                    invoice_number=number,
                    payment_reference=f"TEILSTORNO {original.invoice_number}",
                    internal_reference=f"Teilstorno zu {original.invoice_number}",
                    notes=f"Teilstornierung von {original.invoice_number}: {reason}",
                    cancelled_invoice_id=original.id,
                ),
                items,
                CorrectionType.PARTIAL_CANCEL,
                audit,
                user_id,
                tenant_id,
            )

        logger.info(
            "Created partial cancellation %s for invoice %s (%d position(s))",
            number, original.invoice_number, len(items),
        )
        return self.db.get_invoice(credit_note_id)

    # ------------------------------------------------------------------
    # Correction (Rechnungskorrektur)
    # ------------------------------------------------------------------

    def create_correction_invoice(
        self,
        invoice_id: int,
        corrections: Sequence[CorrectedPosition],
        reason: str,
        user_id: str,
        tenant_id: str,
    ) -> CorrectionResult:
        """Create a credit note and a replacement invoice for wrong positions.

        The credit note reverses each corrected position at its original
        quantity, price and tax category. The replacement invoice carries the
        corrected values, computed fresh, and inherits the original's due
        date. Both documents share one audit payload and are written
        together or not at all.

        Returns:
            CorrectionResult with both persisted documents

        Raises:
            NotFoundError: If the invoice does not exist
            ForbiddenError: If the invoice belongs to another tenant
            InvalidStateError: If the invoice is not SENT or PAID
            ValidationError: If a correction is invalid or changes nothing
        """
        with self.db.transaction():
            original = self._load_correctable(invoice_id, tenant_id, "korrigiert")

            if not corrections:
                raise ValidationError(NO_CORRECTIONS_GIVEN)

            seen: set[int] = set()
            for corr in corrections:
                original_item = self._check_index(corr.original_index, original, seen)

                if corr.new_quantity is not None and round4(corr.new_quantity) <= 0:
                    raise ValidationError(quantity_not_positive(corr.original_index))
                if corr.new_unit_price is not None and round4(corr.new_unit_price) < 0:
                    raise ValidationError(unit_price_negative(corr.original_index))

                has_change = (
                    (corr.new_description is not None
                     and corr.new_description != original_item.description)
                    or (corr.new_quantity is not None
                        and round4(corr.new_quantity) != original_item.quantity)
                    or (corr.new_unit_price is not None
                        and round4(corr.new_unit_price) != original_item.unit_price)
                    or (corr.new_tax_type is not None
                        and corr.new_tax_type != original_item.tax_type)
                )
                if not has_change:
                    raise ValidationError(no_changes_detected(corr.original_index))

            get_tax_rate = self.tax_rate_service.resolver(tenant_id)
            credit_note_items = []
            correction_items = []
            audit_entries = []
            for corr in corrections:
                original_item = original.items[corr.original_index]
                credit_note_items.append(
                    _reversal_line(original_item, "KORREKTUR (alt)", original_item.quantity, get_tax_rate)
                )

                new_description = (
                    corr.new_description if corr.new_description is not None else original_item.description
                )
                new_quantity = (
                    round4(corr.new_quantity) if corr.new_quantity is not None else original_item.quantity
                )
                new_unit_price = (
                    round4(corr.new_unit_price)
                    if corr.new_unit_price is not None
                    else original_item.unit_price
                )
                new_tax_type = corr.new_tax_type or original_item.tax_type

                new_amounts = calculate_item_amounts(new_quantity, new_unit_price, new_tax_type, get_tax_rate)
                correction_items.append(
                    _line_draft(
                        original_item,
                        description=f"KORREKTUR (neu): {new_description}",
                        quantity=new_quantity,
                        unit_price=new_unit_price,
                        tax_type=new_tax_type,
                        amounts=new_amounts,
                    )
                )
                audit_entries.append(
                    CorrectionAudit(
                        original_index=corr.original_index,
                        original_position=original_item.position,
                        original_description=original_item.description,
                        original_quantity=original_item.quantity,
                        original_unit_price=original_item.unit_price,
                        original_tax_type=original_item.tax_type,
                        new_description=new_description,
                        new_quantity=new_quantity,
                        new_unit_price=new_unit_price,
                        new_tax_type=new_tax_type,
                    )
                )
            audit = tuple(audit_entries)

            credit_note_number = self._next_number(tenant_id, InvoiceType.CREDIT_NOTE)
            correction_number = self._next_number(tenant_id, original.invoice_type)

            credit_note_id = self._create_document(
                original,
                _DocumentHeader(
                    invoice_type=InvoiceType.CREDIT_NOTE,
                    invoice_number=credit_note_number,
                    payment_reference=f"KORREKTUR-GS {original.invoice_number}",
                    internal_reference=f"Korrekturgutschrift zu {original.invoice_number}",
                    notes=f"Korrekturgutschrift zu {original.invoice_number}: {reason}",
                    cancelled_invoice_id=original.id,
                ),
                credit_note_items,
                CorrectionType.CORRECTION,
                audit,
                user_id,
                tenant_id,
            )
            correction_invoice_id = self._create_document(
                original,
                _DocumentHeader(
                    invoice_type=original.invoice_type,
                    invoice_number=correction_number,
                    payment_reference=f"KORREKTUR {original.invoice_number}",
                    internal_reference=f"Korrekturrechnung zu {original.invoice_number}",
                    notes=f"Korrekturrechnung zu {original.invoice_number}: {reason}",
                    # Same payment terms as the original
                    due_date=original.due_date,
                ),
                correction_items,
                CorrectionType.CORRECTION,
                audit,
                user_id,
                tenant_id,
            )

        logger.info(
            "Created correction %s / %s for invoice %s (%d position(s))",
            credit_note_number, correction_number, original.invoice_number, len(audit),
        )
        return CorrectionResult(
            credit_note=self.db.get_invoice(credit_note_id),
            correction_invoice=self.db.get_invoice(correction_invoice_id),
        )

    # ------------------------------------------------------------------
    # Full cancellation (Storno)
    # ------------------------------------------------------------------

    def create_full_cancellation(
        self, invoice_id: int, reason: str, user_id: str, tenant_id: str
    ) -> InvoiceEntity:
        """Cancel an invoice completely with a credit note reversing every line.

        The original invoice moves to CANCELLED in the same unit of work.

        Raises:
            NotFoundError: If the invoice does not exist
            ForbiddenError: If the invoice belongs to another tenant
            InvalidStateError: If the invoice is not SENT or PAID
        """
        with self.db.transaction():
            original = self._load_correctable(invoice_id, tenant_id, "storniert")
            ensure_transition(original.status, InvoiceStatus.CANCELLED)

            get_tax_rate = self.tax_rate_service.resolver(tenant_id)
            items = [
                _reversal_line(item, "STORNO", item.quantity, get_tax_rate)
                for item in original.items
            ]
            number = self._next_number(tenant_id, InvoiceType.CREDIT_NOTE)
            credit_note_id = self._create_document(
                original,
                _DocumentHeader(
                    invoice_type=InvoiceType.CREDIT_NOTE,
                    invoice_number=number,
                    payment_reference=f"STORNO {original.invoice_number}",
                    internal_reference=f"Storno zu {original.invoice_number}",
                    notes=f"Stornierung von {original.invoice_number}: {reason}",
                    cancelled_invoice_id=original.id,
                ),
                items,
                CorrectionType.FULL_CANCEL,
                None,
                user_id,
                tenant_id,
            )
            self.db.update_invoice_status(original.id, InvoiceStatus.CANCELLED)

        logger.info("Cancelled invoice %s with credit note %s", original.invoice_number, number)
        return self.db.get_invoice(credit_note_id)

    # ------------------------------------------------------------------
    # Correction history
    # ------------------------------------------------------------------

    def get_invoice_correction_history(self, invoice_id: int, tenant_id: str) -> CorrectionHistory:
        """Collect every correction of an invoice and their net effect.

        Includes documents linked only through the legacy
        ``cancelled_invoice_id`` (treated as full cancellations). Correction
        amounts are signed, so the effective amounts are the original plus the
        sum of all corrections.

        Raises:
            NotFoundError: If the invoice does not exist
            ForbiddenError: If the invoice belongs to another tenant
        """
        original = load_tenant_invoice(self.db, invoice_id, tenant_id)

        entries = [
            CorrectionHistoryEntry(
                id=doc.id,
                invoice_number=doc.invoice_number,
                invoice_date=doc.invoice_date,
                correction_type=doc.correction_type or CorrectionType.FULL_CANCEL,
                net_amount=doc.net_amount,
                gross_amount=doc.gross_amount,
                reason=doc.notes,
                corrected_positions=doc.corrected_positions,
                created_at=doc.created_at,
            )
            for doc in self.db.list_corrections(invoice_id)
        ]
        entries.extend(
            CorrectionHistoryEntry(
                id=doc.id,
                invoice_number=doc.invoice_number,
                invoice_date=doc.invoice_date,
                correction_type=CorrectionType.FULL_CANCEL,
                net_amount=doc.net_amount,
                gross_amount=doc.gross_amount,
                reason=doc.notes,
                corrected_positions=None,
                created_at=doc.created_at,
            )
            for doc in self.db.list_legacy_cancellations(invoice_id)
        )
        entries.sort(key=lambda entry: (entry.created_at, entry.id))

        original_net = original.net_amount
        original_gross = original.gross_amount
        total_correction_net = round2(sum((e.net_amount for e in entries), Decimal("0")))
        total_correction_gross = round2(sum((e.gross_amount for e in entries), Decimal("0")))

        return CorrectionHistory(
            original_invoice=OriginalInvoiceSummary(
                id=original.id,
                invoice_number=original.invoice_number,
                net_amount=original_net,
                gross_amount=original_gross,
                status=original.status,
            ),
            corrections=tuple(entries),
            net_effect=CorrectionNetEffect(
                original_net=original_net,
                original_gross=original_gross,
                total_correction_net=total_correction_net,
                total_correction_gross=total_correction_gross,
                effective_net=round2(original_net + total_correction_net),
                effective_gross=round2(original_gross + total_correction_gross),
            ),
        )
