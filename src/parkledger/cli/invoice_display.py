"""Shared invoice rendering for CLI commands."""

import click

from parkledger.domain.entities import Invoice
from parkledger.utils.money import format_eur


def format_quantity(value) -> str:
    """Render a Decimal without trailing zeros or exponent."""
    return format(value.normalize(), "f")


def echo_invoice_summary(invoice: Invoice) -> None:
    """Print one line per invoice, as used in listings."""
    correction = f" -> {invoice.corrected_invoice.invoice_number}" if invoice.corrected_invoice else ""
    click.echo(
        f"ID: {invoice.id:4d} | {invoice.invoice_number:14s} | {invoice.invoice_date} | "
        f"{invoice.status.value:9s} | {format_eur(invoice.gross_amount):>16s} | "
        f"{invoice.recipient_name}{correction}"
    )


def echo_invoice(invoice: Invoice) -> None:
    """Print an invoice header with all lines."""
    kind = "Credit note" if invoice.invoice_type.value == "CREDIT_NOTE" else "Invoice"
    click.echo(f"\n{kind} {invoice.invoice_number} (ID: {invoice.id})")
    click.echo("-" * 78)
    click.echo(f"  Status:    {invoice.status.value}")
    click.echo(f"  Date:      {invoice.invoice_date}")
    if invoice.due_date:
        click.echo(f"  Due:       {invoice.due_date}")
    click.echo(f"  Recipient: {invoice.recipient_name}")
    if invoice.corrected_invoice:
        click.echo(
            f"  Corrects:  {invoice.corrected_invoice.invoice_number} "
            f"({invoice.correction_type.value if invoice.correction_type else 'FULL_CANCEL'})"
        )
    if invoice.payment_reference:
        click.echo(f"  Reference: {invoice.payment_reference}")
    if invoice.notes:
        click.echo(f"  Notes:     {invoice.notes}")

    click.echo("")
    for item in invoice.items:
        click.echo(
            f"  {item.position:3d}. {item.description[:36]:36s} "
            f"{format_quantity(item.quantity):>8} x {format_quantity(item.unit_price):>10} "
            f"{format_quantity(item.tax_rate):>3}% {format_eur(item.gross_amount):>16s}"
        )
    click.echo("")
    click.echo(f"  Net:   {format_eur(invoice.net_amount):>16s}")
    click.echo(f"  Tax:   {format_eur(invoice.tax_amount):>16s}")
    click.echo(f"  Gross: {format_eur(invoice.gross_amount):>16s}")
