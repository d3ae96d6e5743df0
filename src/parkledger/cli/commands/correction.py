"""Invoice correction commands (Teilstorno, Rechnungskorrektur, Storno)."""

import json

import click
from parkledger.cli.error_handling import handle_domain_error
from parkledger.cli.invoice_display import echo_invoice, format_quantity
from parkledger.domain.entities import (
    CorrectedPosition,
    CorrectionAudit,
    PartialCancelAudit,
    PartialCancelPosition,
    TaxType,
)
from parkledger.domain.invoice_correction import InvoiceCorrectionService
from parkledger.utils.amount_parser import parse_amount
from parkledger.utils.money import format_eur

CORRECTION_FIELDS = {
    "description": "new_description",
    "quantity": "new_quantity",
    "price": "new_unit_price",
    "tax-type": "new_tax_type",
}


def _parse_position_number(text: str) -> int:
    """Convert a 1-based position from the command line to a 0-based index."""
    try:
        return int(text) - 1
    except ValueError:
        raise ValueError(f"Invalid position '{text}'. Positions are numbered from 1")


def parse_cancel_position(value: str) -> PartialCancelPosition:
    """Parse ``POSITION`` or ``POSITION:QUANTITY``."""
    position, _, quantity = value.partition(":")
    return PartialCancelPosition(
        original_index=_parse_position_number(position.strip()),
        cancel_quantity=parse_amount(quantity) if quantity.strip() else None,
    )


def parse_corrections(values: tuple[str, ...]) -> list[CorrectedPosition]:
    """Parse repeated ``POSITION:FIELD=VALUE`` options into one entry per position.

    FIELD is description, quantity, price or tax-type. Positions keep the
    order in which they first appear.
    """
    changes: dict[int, dict] = {}
    for value in values:
        position, sep, assignment = value.partition(":")
        field, eq, new_value = assignment.partition("=")
        field = field.strip().lower()
        if not sep or not eq or field not in CORRECTION_FIELDS:
            raise ValueError(
                f"Invalid change '{value}'. Expected POSITION:FIELD=VALUE with FIELD one of "
                f"{', '.join(CORRECTION_FIELDS)}"
            )
        index = _parse_position_number(position.strip())

        if field == "description":
            parsed = new_value.strip()
        elif field == "tax-type":
            try:
                parsed = TaxType(new_value.strip().upper())
            except ValueError:
                raise ValueError(f"Unknown tax type '{new_value}'. Use STANDARD, REDUCED or EXEMPT")
        else:
            parsed = parse_amount(new_value)
        changes.setdefault(index, {})[CORRECTION_FIELDS[field]] = parsed

    return [CorrectedPosition(original_index=index, **fields) for index, fields in changes.items()]


@click.group()
def correction_group():
    """Correct sent invoices."""
    pass


@correction_group.command("partial-cancel")
@click.argument("invoice_id", type=int)
@click.option(
    "--position",
    "positions",
    multiple=True,
    required=True,
    help="Position to cancel as 'N' (full quantity) or 'N:QUANTITY' (repeatable)",
)
@click.option("--reason", required=True, help="Reason for the cancellation")
@click.pass_context
def partial_cancel(ctx, invoice_id: int, positions: tuple[str, ...], reason: str):
    """Cancel selected positions of an invoice with a credit note.

    Examples:
        parkledger correction partial-cancel 7 --position 2 --reason "Doppelt berechnet"
        parkledger correction partial-cancel 7 --position 1:2,5 --reason "Mindermenge"
    """
    service = InvoiceCorrectionService(ctx.obj["db"])
    try:
        credit_note = service.create_partial_cancellation(
            invoice_id=invoice_id,
            positions=[parse_cancel_position(value) for value in positions],
            reason=reason,
            user_id=ctx.obj["user"],
            tenant_id=ctx.obj["tenant"],
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Created credit note {credit_note.invoice_number} (ID: {credit_note.id})")
    echo_invoice(credit_note)


@correction_group.command("correct")
@click.argument("invoice_id", type=int)
@click.option(
    "--set",
    "changes",
    multiple=True,
    required=True,
    help="Change as 'N:FIELD=VALUE', FIELD one of description, quantity, price, tax-type (repeatable)",
)
@click.option("--reason", required=True, help="Reason for the correction")
@click.pass_context
def correct_invoice(ctx, invoice_id: int, changes: tuple[str, ...], reason: str):
    """Reissue wrong positions with a credit note and a correction invoice.

    Examples:
        parkledger correction correct 7 --set 2:quantity=8 --reason "Falsche Menge"
        parkledger correction correct 7 --set 1:price=45,50 --set 1:tax-type=REDUCED \\
            --reason "Falscher Preis"
    """
    service = InvoiceCorrectionService(ctx.obj["db"])
    try:
        result = service.create_correction_invoice(
            invoice_id=invoice_id,
            corrections=parse_corrections(changes),
            reason=reason,
            user_id=ctx.obj["user"],
            tenant_id=ctx.obj["tenant"],
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(
        f"Created credit note {result.credit_note.invoice_number} (ID: {result.credit_note.id}) "
        f"and correction invoice {result.correction_invoice.invoice_number} "
        f"(ID: {result.correction_invoice.id})"
    )
    echo_invoice(result.credit_note)
    echo_invoice(result.correction_invoice)


@correction_group.command("full-cancel")
@click.argument("invoice_id", type=int)
@click.option("--reason", required=True, help="Reason for the cancellation")
@click.pass_context
def full_cancel(ctx, invoice_id: int, reason: str):
    """Cancel an invoice completely with a credit note."""
    service = InvoiceCorrectionService(ctx.obj["db"])
    try:
        credit_note = service.create_full_cancellation(
            invoice_id=invoice_id,
            reason=reason,
            user_id=ctx.obj["user"],
            tenant_id=ctx.obj["tenant"],
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Created credit note {credit_note.invoice_number} (ID: {credit_note.id})")
    click.echo(f"  Invoice {invoice_id} is now CANCELLED")


@correction_group.command("history")
@click.argument("invoice_id", type=int)
@click.option("--json", "as_json", is_flag=True, help="Print the history as JSON")
@click.pass_context
def show_history(ctx, invoice_id: int, as_json: bool):
    """Show all corrections of an invoice and their net effect."""
    service = InvoiceCorrectionService(ctx.obj["db"])
    try:
        history = service.get_invoice_correction_history(invoice_id, ctx.obj["tenant"])
    except ValueError as e:
        handle_domain_error(ctx, e)

    if as_json:
        click.echo(json.dumps(history.to_dict(), indent=2, ensure_ascii=False))
        return

    original = history.original_invoice
    click.echo(f"\nCorrections of {original.invoice_number} ({original.status.value}):")
    click.echo("-" * 78)
    if not history.corrections:
        click.echo("No corrections found.")
    for entry in history.corrections:
        click.echo(
            f"{entry.invoice_number:14s} | {entry.invoice_date} | {entry.correction_type.value:14s} | "
            f"{format_eur(entry.gross_amount):>16s}"
        )
        for audit in entry.corrected_positions or ():
            if isinstance(audit, PartialCancelAudit):
                click.echo(
                    f"    Pos. {audit.original_position}: {format_quantity(audit.cancelled_quantity)} of "
                    f"{format_quantity(audit.original_quantity)} cancelled"
                )
            elif isinstance(audit, CorrectionAudit):
                click.echo(
                    f"    Pos. {audit.original_position}: {format_quantity(audit.original_quantity)} x "
                    f"{format_quantity(audit.original_unit_price)} -> "
                    f"{format_quantity(audit.new_quantity)} x {format_quantity(audit.new_unit_price)}"
                )

    effect = history.net_effect
    click.echo("")
    click.echo(f"  Original gross:    {format_eur(effect.original_gross):>16s}")
    click.echo(f"  Corrections gross: {format_eur(effect.total_correction_gross):>16s}")
    click.echo(f"  Effective gross:   {format_eur(effect.effective_gross):>16s}")
    click.echo(f"  Effective net:     {format_eur(effect.effective_net):>16s}")


def register_commands(cli):
    """Register correction commands with main CLI."""
    cli.add_command(correction_group, name="correction")
