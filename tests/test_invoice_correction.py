"""Tests for InvoiceCorrectionService (Teilstorno, Rechnungskorrektur, Storno)."""

from datetime import date
from decimal import Decimal

import pytest

from conftest import OTHER_TENANT, TENANT, USER, create_sample_invoice
from parkledger.domain.entities import (
    CorrectedPosition,
    CorrectionAudit,
    CorrectionType,
    InvoiceLineInput,
    InvoiceStatus,
    InvoiceType,
    PartialCancelAudit,
    PartialCancelPosition,
    TaxType,
)
from parkledger.domain.errors import (
    FULL_CANCEL_VIA_PARTIAL,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from parkledger.utils.money import round2

YEAR = date.today().year


def partial_cancel(service, invoice, positions, reason="Doppelt berechnet", tenant_id=TENANT):
    return service.create_partial_cancellation(
        invoice_id=invoice.id,
        positions=positions,
        reason=reason,
        user_id=USER,
        tenant_id=tenant_id,
    )


def correct(service, invoice, corrections, reason="Falsche Menge", tenant_id=TENANT):
    return service.create_correction_invoice(
        invoice_id=invoice.id,
        corrections=corrections,
        reason=reason,
        user_id=USER,
        tenant_id=tenant_id,
    )


def create_single_line_invoice(invoice_service, quantity, unit_price):
    """Create and send an invoice with one STANDARD-taxed line."""
    invoice_id = invoice_service.create_invoice(
        tenant_id=TENANT,
        user_id=USER,
        recipient_name="Windpark Süd GmbH",
        lines=[
            InvoiceLineInput(
                description="Kranstellfläche",
                quantity=Decimal(quantity),
                unit_price=Decimal(unit_price),
                tax_type=TaxType.STANDARD,
            )
        ],
        invoice_date=date(2024, 3, 1),
    )
    invoice_service.send_invoice(invoice_id, TENANT)
    return invoice_service.get_invoice(invoice_id, TENANT)


def assert_line_reproducible(item):
    """Stored amounts follow from the stored quantity and unit price."""
    assert item.net_amount == round2(item.quantity * item.unit_price)

class TestPartialCancellation:
    """Tests for partial cancellation."""

    def test_cancels_partial_quantity(self, correction_service, sample_invoice):
        credit_note = partial_cancel(
            correction_service,
            sample_invoice,
            [PartialCancelPosition(original_index=2, cancel_quantity=Decimal("3"))],
        )

        assert credit_note.invoice_type == InvoiceType.CREDIT_NOTE
        assert credit_note.status == InvoiceStatus.SENT
        assert credit_note.invoice_number == f"GS-{YEAR}-00001"
        assert credit_note.invoice_date == date.today()
        assert credit_note.sent_at is not None
        assert credit_note.due_date is None

        assert len(credit_note.items) == 1
        line = credit_note.items[0]
        assert line.position == 1
        assert line.description == "TEILSTORNO: Wartung Zuwegung"
        assert line.quantity == Decimal("3")
        assert line.unit_price == Decimal("-50")
        assert line.net_amount == Decimal("-150.00")
        assert line.tax_amount == Decimal("-28.50")
        assert line.gross_amount == Decimal("-178.50")

        assert credit_note.net_amount == Decimal("-150.00")
        assert credit_note.tax_amount == Decimal("-28.50")
        assert credit_note.gross_amount == Decimal("-178.50")

    def test_links_back_to_original(self, correction_service, sample_invoice):
        credit_note = partial_cancel(
            correction_service, sample_invoice, [PartialCancelPosition(original_index=2)]
        )

        assert credit_note.correction_of == sample_invoice.id
        assert credit_note.correction_type == CorrectionType.PARTIAL_CANCEL
        assert credit_note.cancelled_invoice_id == sample_invoice.id
        assert credit_note.corrected_invoice.id == sample_invoice.id
        assert credit_note.corrected_invoice.invoice_number == sample_invoice.invoice_number

    def test_copies_header_and_references(self, correction_service, sample_invoice):
        credit_note = partial_cancel(
            correction_service,
            sample_invoice,
            [PartialCancelPosition(original_index=2)],
            reason="Leistung nicht erbracht",
        )

        assert credit_note.recipient_name == sample_invoice.recipient_name
        assert credit_note.service_start_date == sample_invoice.service_start_date
        assert credit_note.service_end_date == sample_invoice.service_end_date
        assert credit_note.park_id == "park-nord"
        assert credit_note.lease_id == "lease-7"
        assert credit_note.tax_rate == sample_invoice.tax_rate
        assert credit_note.created_by_id == USER
        assert credit_note.payment_reference == f"TEILSTORNO {sample_invoice.invoice_number}"
        assert credit_note.internal_reference == f"Teilstorno zu {sample_invoice.invoice_number}"
        assert credit_note.notes == (
            f"Teilstornierung von {sample_invoice.invoice_number}: Leistung nicht erbracht"
        )
        assert credit_note.items[0].unit == "Std"
        assert credit_note.items[0].datev_cost_center == "WP-NORD"

    def test_full_quantity_when_not_given(self, correction_service, sample_invoice):
        credit_note = partial_cancel(
            correction_service, sample_invoice, [PartialCancelPosition(original_index=0)]
        )

        line = credit_note.items[0]
        assert line.quantity == Decimal("1")
        assert line.net_amount == Decimal("-1200.00")
        assert line.gross_amount == Decimal("-1428.00")
        assert line.plot_id == "plot-12"

    def test_records_audit(self, correction_service, sample_invoice):
        credit_note = partial_cancel(
            correction_service,
            sample_invoice,
            [
                PartialCancelPosition(original_index=2, cancel_quantity=Decimal("2.5")),
                PartialCancelPosition(original_index=0),
            ],
        )

        assert credit_note.corrected_positions == (
            PartialCancelAudit(
                original_index=2,
                original_position=3,
                original_description="Wartung Zuwegung",
                original_quantity=Decimal("10"),
                cancelled_quantity=Decimal("2.5"),
            ),
            PartialCancelAudit(
                original_index=0,
                original_position=1,
                original_description="Grundpacht 2024",
                original_quantity=Decimal("1"),
                cancelled_quantity=Decimal("1"),
            ),
        )
        # Lines follow the order of the request
        assert [item.description for item in credit_note.items] == [
            "TEILSTORNO: Wartung Zuwegung",
            "TEILSTORNO: Grundpacht 2024",
        ]

    def test_original_stays_unchanged(self, correction_service, invoice_service, sample_invoice):
        partial_cancel(correction_service, sample_invoice, [PartialCancelPosition(original_index=1)])

        original = invoice_service.get_invoice(sample_invoice.id, TENANT)
        assert original.status == InvoiceStatus.SENT
        assert original.gross_amount == sample_invoice.gross_amount
        assert original.items == sample_invoice.items

    def test_all_positions_but_one_partial_is_allowed(self, correction_service, sample_invoice):
        credit_note = partial_cancel(
            correction_service,
            sample_invoice,
            [
                PartialCancelPosition(original_index=0),
                PartialCancelPosition(original_index=1),
                PartialCancelPosition(original_index=2, cancel_quantity=Decimal("9")),
            ],
        )

        assert len(credit_note.items) == 3

    def test_rejects_full_cancel_via_partial(self, correction_service, sample_invoice):
        positions = [
            PartialCancelPosition(original_index=0),
            PartialCancelPosition(original_index=1, cancel_quantity=Decimal("2")),
            PartialCancelPosition(original_index=2),
        ]

        with pytest.raises(ValidationError) as excinfo:
            partial_cancel(correction_service, sample_invoice, positions)
        assert str(excinfo.value) == FULL_CANCEL_VIA_PARTIAL

    def test_rejected_request_does_not_consume_number(self, correction_service, sample_invoice):
        with pytest.raises(ValidationError):
            partial_cancel(
                correction_service,
                sample_invoice,
                [PartialCancelPosition(original_index=i) for i in range(3)],
            )

        credit_note = partial_cancel(
            correction_service, sample_invoice, [PartialCancelPosition(original_index=0)]
        )
        assert credit_note.invoice_number == f"GS-{YEAR}-00001"

    @pytest.mark.parametrize("index", [3, -1])
    def test_rejects_out_of_range_position(self, correction_service, sample_invoice, index):
        with pytest.raises(ValidationError, match="Gültig: 1-3"):
            partial_cancel(
                correction_service, sample_invoice, [PartialCancelPosition(original_index=index)]
            )

    @pytest.mark.parametrize("quantity", [Decimal("0"), Decimal("-1")])
    def test_rejects_non_positive_quantity(self, correction_service, sample_invoice, quantity):
        with pytest.raises(ValidationError, match="Position 3"):
            partial_cancel(
                correction_service,
                sample_invoice,
                [PartialCancelPosition(original_index=2, cancel_quantity=quantity)],
            )

    def test_rejects_quantity_above_original(self, correction_service, sample_invoice):
        with pytest.raises(ValidationError, match="übersteigt Originalmenge"):
            partial_cancel(
                correction_service,
                sample_invoice,
                [PartialCancelPosition(original_index=2, cancel_quantity=Decimal("11"))],
            )

    def test_cancel_quantity_is_rounded_to_stored_scale(self, correction_service, sample_invoice):
        credit_note = partial_cancel(
            correction_service,
            sample_invoice,
            [PartialCancelPosition(original_index=2, cancel_quantity=Decimal("2.00005"))],
        )

        line = credit_note.items[0]
        assert line.quantity == Decimal("2.0001")
        assert line.net_amount == Decimal("-100.01")
        assert_line_reproducible(line)
        assert credit_note.corrected_positions[0].cancelled_quantity == Decimal("2.0001")

    def test_rejects_duplicate_position(self, correction_service, sample_invoice):
        with pytest.raises(ValidationError, match="mehrfach"):
            partial_cancel(
                correction_service,
                sample_invoice,
                [
                    PartialCancelPosition(original_index=2, cancel_quantity=Decimal("1")),
                    PartialCancelPosition(original_index=2, cancel_quantity=Decimal("1")),
                ],
            )

    def test_rejects_empty_selection(self, correction_service, sample_invoice):
        with pytest.raises(ValidationError):
            partial_cancel(correction_service, sample_invoice, [])

    def test_rejects_draft(self, correction_service, invoice_service):
        draft = create_sample_invoice(invoice_service, send=False)

        with pytest.raises(InvalidStateError, match="teilstorniert"):
            partial_cancel(correction_service, draft, [PartialCancelPosition(original_index=0)])

    def test_allows_paid_invoice(self, correction_service, invoice_service, sample_invoice):
        invoice_service.record_payment(sample_invoice.id, TENANT)

        credit_note = partial_cancel(
            correction_service, sample_invoice, [PartialCancelPosition(original_index=1)]
        )
        assert credit_note.gross_amount == Decimal("-321.00")

    def test_foreign_tenant_is_forbidden(self, correction_service, sample_invoice):
        with pytest.raises(ForbiddenError):
            partial_cancel(
                correction_service,
                sample_invoice,
                [PartialCancelPosition(original_index=0)],
                tenant_id=OTHER_TENANT,
            )

    def test_missing_invoice(self, correction_service):
        with pytest.raises(NotFoundError):
            correction_service.create_partial_cancellation(
                invoice_id=4711,
                positions=[PartialCancelPosition(original_index=0)],
                reason="x",
                user_id=USER,
                tenant_id=TENANT,
            )


class TestCorrectionInvoice:
    """Tests for the credit note + correction invoice pair."""

    def test_quantity_correction(self, correction_service, sample_invoice):
        result = correct(
            correction_service,
            sample_invoice,
            [CorrectedPosition(original_index=2, new_quantity=Decimal("8"))],
        )

        credit_note = result.credit_note
        assert credit_note.invoice_type == InvoiceType.CREDIT_NOTE
        assert credit_note.invoice_number == f"GS-{YEAR}-00001"
        assert len(credit_note.items) == 1
        old_line = credit_note.items[0]
        assert old_line.description == "KORREKTUR (alt): Wartung Zuwegung"
        assert old_line.quantity == Decimal("10")
        assert old_line.unit_price == Decimal("-50")
        assert old_line.net_amount == Decimal("-500.00")
        assert old_line.tax_amount == Decimal("-95.00")
        assert old_line.gross_amount == Decimal("-595.00")

        correction_invoice = result.correction_invoice
        assert correction_invoice.invoice_type == InvoiceType.INVOICE
        assert correction_invoice.invoice_number.startswith(f"RE-{YEAR}-")
        assert correction_invoice.invoice_number != sample_invoice.invoice_number
        new_line = correction_invoice.items[0]
        assert new_line.description == "KORREKTUR (neu): Wartung Zuwegung"
        assert new_line.quantity == Decimal("8")
        assert new_line.unit_price == Decimal("50")
        assert new_line.net_amount == Decimal("400.00")
        assert new_line.tax_amount == Decimal("76.00")
        assert new_line.gross_amount == Decimal("476.00")
        assert new_line.unit == "Std"

    def test_both_documents_link_to_original(self, correction_service, sample_invoice):
        result = correct(
            correction_service,
            sample_invoice,
            [CorrectedPosition(original_index=2, new_quantity=Decimal("8"))],
        )

        for document in (result.credit_note, result.correction_invoice):
            assert document.correction_of == sample_invoice.id
            assert document.correction_type == CorrectionType.CORRECTION
            assert document.status == InvoiceStatus.SENT
            assert document.corrected_invoice.invoice_number == sample_invoice.invoice_number
        assert result.credit_note.cancelled_invoice_id == sample_invoice.id
        assert result.correction_invoice.cancelled_invoice_id is None

    def test_documents_share_audit(self, correction_service, sample_invoice):
        result = correct(
            correction_service,
            sample_invoice,
            [
                CorrectedPosition(
                    original_index=1,
                    new_description="Wegenutzung Nord",
                    new_tax_type=TaxType.STANDARD,
                )
            ],
        )

        expected = (
            CorrectionAudit(
                original_index=1,
                original_position=2,
                original_description="Wegenutzung",
                original_quantity=Decimal("2"),
                original_unit_price=Decimal("150.00"),
                original_tax_type=TaxType.REDUCED,
                new_description="Wegenutzung Nord",
                new_quantity=Decimal("2"),
                new_unit_price=Decimal("150.00"),
                new_tax_type=TaxType.STANDARD,
            ),
        )
        assert result.credit_note.corrected_positions == expected
        assert result.correction_invoice.corrected_positions == expected

    def test_tax_type_correction_recomputes_tax(self, correction_service, sample_invoice):
        result = correct(
            correction_service,
            sample_invoice,
            [CorrectedPosition(original_index=1, new_tax_type=TaxType.STANDARD)],
        )

        # Credit note reverses at the original 7%
        assert result.credit_note.items[0].tax_amount == Decimal("-21.00")
        assert result.credit_note.items[0].tax_type == TaxType.REDUCED
        # Correction invoice charges 19%
        new_line = result.correction_invoice.items[0]
        assert new_line.tax_type == TaxType.STANDARD
        assert new_line.tax_amount == Decimal("57.00")
        assert new_line.gross_amount == Decimal("357.00")

    def test_price_only_correction(self, correction_service, invoice_service):
        invoice = create_single_line_invoice(invoice_service, "5", "100")

        result = correct(
            correction_service,
            invoice,
            [CorrectedPosition(original_index=0, new_unit_price=Decimal("120"))],
            reason="Falscher Preis",
        )

        old_line = result.credit_note.items[0]
        assert old_line.quantity == Decimal("5")
        assert old_line.net_amount == Decimal("-500.00")
        assert old_line.tax_amount == Decimal("-95.00")
        assert old_line.gross_amount == Decimal("-595.00")

        new_line = result.correction_invoice.items[0]
        assert new_line.description == "KORREKTUR (neu): Kranstellfläche"
        assert new_line.quantity == Decimal("5")
        assert new_line.unit_price == Decimal("120")
        assert new_line.net_amount == Decimal("600.00")
        assert new_line.tax_amount == Decimal("114.00")
        assert new_line.gross_amount == Decimal("714.00")

        for document in (result.credit_note, result.correction_invoice):
            audit = document.corrected_positions[0]
            assert audit.original_unit_price == Decimal("100")
            assert audit.new_unit_price == Decimal("120")
            assert audit.original_quantity == audit.new_quantity == Decimal("5")

    def test_new_unit_price_is_rounded_to_stored_scale(self, correction_service, invoice_service):
        invoice = create_single_line_invoice(invoice_service, "1000", "0.1")

        result = correct(
            correction_service,
            invoice,
            [CorrectedPosition(original_index=0, new_unit_price=Decimal("0.12345"))],
            reason="Falscher Preis",
        )

        new_line = result.correction_invoice.items[0]
        assert new_line.unit_price == Decimal("0.1235")
        assert new_line.net_amount == Decimal("123.50")
        assert_line_reproducible(new_line)
        assert result.credit_note.corrected_positions[0].new_unit_price == Decimal("0.1235")

    def test_correction_invoice_inherits_due_date(self, correction_service, sample_invoice):
        result = correct(
            correction_service,
            sample_invoice,
            [CorrectedPosition(original_index=0, new_unit_price=Decimal("1100"))],
        )

        assert result.correction_invoice.due_date == sample_invoice.due_date
        assert result.credit_note.due_date is None
        assert result.correction_invoice.payment_reference == f"KORREKTUR {sample_invoice.invoice_number}"
        assert result.credit_note.payment_reference == f"KORREKTUR-GS {sample_invoice.invoice_number}"

    def test_zero_price_is_a_valid_change(self, correction_service, sample_invoice):
        result = correct(
            correction_service,
            sample_invoice,
            [CorrectedPosition(original_index=2, new_unit_price=Decimal("0"))],
        )

        assert result.correction_invoice.gross_amount == Decimal("0.00")

    def test_rejects_correction_without_change(self, correction_service, sample_invoice):
        with pytest.raises(ValidationError, match="Keine Änderungen"):
            correct(
                correction_service,
                sample_invoice,
                [
                    CorrectedPosition(
                        original_index=2,
                        new_description="Wartung Zuwegung",
                        new_quantity=Decimal("10"),
                        new_unit_price=Decimal("50"),
                        new_tax_type=TaxType.STANDARD,
                    )
                ],
            )

    def test_rejects_negative_price(self, correction_service, sample_invoice):
        with pytest.raises(ValidationError, match="negativ"):
            correct(
                correction_service,
                sample_invoice,
                [CorrectedPosition(original_index=0, new_unit_price=Decimal("-1"))],
            )

    def test_rejects_non_positive_quantity(self, correction_service, sample_invoice):
        with pytest.raises(ValidationError, match="größer als 0"):
            correct(
                correction_service,
                sample_invoice,
                [CorrectedPosition(original_index=0, new_quantity=Decimal("0"))],
            )

    def test_rejects_invalid_position(self, correction_service, sample_invoice):
        with pytest.raises(ValidationError, match="Ungültige Position"):
            correct(
                correction_service,
                sample_invoice,
                [CorrectedPosition(original_index=5, new_quantity=Decimal("1"))],
            )

    def test_rejects_cancelled_invoice(self, correction_service, sample_invoice):
        correction_service.create_full_cancellation(sample_invoice.id, "Storno", USER, TENANT)

        with pytest.raises(InvalidStateError, match="korrigiert"):
            correct(
                correction_service,
                sample_invoice,
                [CorrectedPosition(original_index=0, new_quantity=Decimal("2"))],
            )

    def test_failure_writes_neither_document(
        self, correction_service, invoice_service, temp_db, sample_invoice, monkeypatch
    ):
        create_invoice = temp_db.create_invoice
        calls = []

        def fail_on_second(draft):
            calls.append(draft)
            if len(calls) == 2:
                raise RuntimeError("disk full")
            return create_invoice(draft)

        monkeypatch.setattr(temp_db, "create_invoice", fail_on_second)

        with pytest.raises(RuntimeError):
            correct(
                correction_service,
                sample_invoice,
                [CorrectedPosition(original_index=2, new_quantity=Decimal("8"))],
            )

        monkeypatch.undo()
        documents = invoice_service.list_invoices(TENANT)
        assert [document.id for document in documents] == [sample_invoice.id]

        # Numbers were rolled back together with the documents
        result = correct(
            correction_service,
            sample_invoice,
            [CorrectedPosition(original_index=2, new_quantity=Decimal("8"))],
        )
        assert result.credit_note.invoice_number == f"GS-{YEAR}-00001"


class TestFullCancellation:
    """Tests for full cancellation."""

    def test_negates_every_line_and_cancels_original(
        self, correction_service, invoice_service, sample_invoice
    ):
        credit_note = correction_service.create_full_cancellation(
            sample_invoice.id, "Vertrag aufgehoben", USER, TENANT
        )

        assert credit_note.correction_type == CorrectionType.FULL_CANCEL
        assert credit_note.correction_of == sample_invoice.id
        assert credit_note.cancelled_invoice_id == sample_invoice.id
        assert credit_note.corrected_positions is None
        assert [item.description for item in credit_note.items] == [
            "STORNO: Grundpacht 2024",
            "STORNO: Wegenutzung",
            "STORNO: Wartung Zuwegung",
        ]
        assert credit_note.net_amount == -sample_invoice.net_amount
        assert credit_note.gross_amount == -sample_invoice.gross_amount

        original = invoice_service.get_invoice(sample_invoice.id, TENANT)
        assert original.status == InvoiceStatus.CANCELLED

    def test_sub_cent_unit_price_reverses_exactly(
        self, correction_service, invoice_service
    ):
        invoice = create_single_line_invoice(invoice_service, "1000", "0.12345")
        assert invoice.items[0].unit_price == Decimal("0.1235")
        assert_line_reproducible(invoice.items[0])

        credit_note = correction_service.create_full_cancellation(
            invoice.id, "Falscher Preis", USER, TENANT
        )

        assert credit_note.net_amount == -invoice.net_amount
        assert credit_note.gross_amount == -invoice.gross_amount
        assert_line_reproducible(credit_note.items[0])
        history = correction_service.get_invoice_correction_history(invoice.id, TENANT)
        assert history.net_effect.effective_net == Decimal("0.00")
        assert history.net_effect.effective_gross == Decimal("0.00")

    def test_cannot_cancel_twice(self, correction_service, sample_invoice):
        correction_service.create_full_cancellation(sample_invoice.id, "Storno", USER, TENANT)

        with pytest.raises(InvalidStateError, match="storniert"):
            correction_service.create_full_cancellation(sample_invoice.id, "Storno", USER, TENANT)
