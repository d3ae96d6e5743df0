"""Invoice commands."""

from datetime import datetime, time, UTC

import click
from parkledger.cli.error_handling import handle_domain_error
from parkledger.cli.invoice_display import echo_invoice, echo_invoice_summary
from parkledger.domain.entities import InvoiceLineInput, InvoiceStatus, InvoiceType, SkontoStatus, TaxType
from parkledger.domain.invoice import InvoiceService
from parkledger.domain.skonto import calculate_skonto_payment_amount
from parkledger.utils.amount_parser import parse_amount
from parkledger.utils.date_parser import parse_date
from parkledger.utils.money import format_eur


def parse_item(value: str) -> InvoiceLineInput:
    """Parse ``DESCRIPTION;QUANTITY;UNIT_PRICE[;TAX_TYPE]`` into a line.

    Raises:
        ValueError: If the value is malformed
    """
    parts = [part.strip() for part in value.split(";")]
    if len(parts) not in (3, 4):
        raise ValueError(
            f"Invalid item '{value}'. Expected DESCRIPTION;QUANTITY;UNIT_PRICE[;TAX_TYPE]"
        )
    tax_type = TaxType.STANDARD
    if len(parts) == 4:
        try:
            tax_type = TaxType(parts[3].upper())
        except ValueError:
            raise ValueError(f"Unknown tax type '{parts[3]}'. Use STANDARD, REDUCED or EXEMPT")
    return InvoiceLineInput(
        description=parts[0],
        quantity=parse_amount(parts[1]),
        unit_price=parse_amount(parts[2]),
        tax_type=tax_type,
    )


@click.group()
def invoice_group():
    """Create and manage invoices."""
    pass


@invoice_group.command("create")
@click.option("--recipient", required=True, help="Recipient name")
@click.option(
    "--item",
    "items",
    multiple=True,
    required=True,
    help="Line as 'DESCRIPTION;QUANTITY;UNIT_PRICE[;TAX_TYPE]' (repeatable)",
)
@click.option(
    "--type",
    "invoice_type",
    type=click.Choice([t.value for t in InvoiceType], case_sensitive=False),
    default=InvoiceType.INVOICE.value,
    show_default=True,
    help="Document type",
)
@click.option("--date", "invoice_date", help="Invoice date (YYYY-MM-DD, DD.MM.YYYY or 'today')")
@click.option("--due-date", help="Due date (e.g. 'in 14 days')")
@click.option("--address", help="Recipient address")
@click.option("--service-start", help="Start of the service period")
@click.option("--service-end", help="End of the service period")
@click.option("--payment-reference", help="Payment reference")
@click.option("--skonto-percent", help="Early payment discount in percent")
@click.option("--skonto-days", type=int, help="Days the discount stays valid")
@click.option("--notes", help="Notes")
@click.pass_context
def create_invoice(
    ctx,
    recipient: str,
    items: tuple[str, ...],
    invoice_type: str,
    invoice_date: str | None,
    due_date: str | None,
    address: str | None,
    service_start: str | None,
    service_end: str | None,
    payment_reference: str | None,
    skonto_percent: str | None,
    skonto_days: int | None,
    notes: str | None,
):
    """Create a draft invoice.

    Examples:
        parkledger invoice create --recipient "Windpark Nord GmbH" \\
            --item "Pacht Flurstück 12/3;1;1.250,00;EXEMPT"
        parkledger invoice create --recipient "Müller" --item "Wartung;10;50" \\
            --skonto-percent 2 --skonto-days 10 --due-date "in 30 days"
    """
    service = InvoiceService(ctx.obj["db"])

    try:
        lines = [parse_item(item) for item in items]
        invoice_id = service.create_invoice(
            tenant_id=ctx.obj["tenant"],
            user_id=ctx.obj["user"],
            recipient_name=recipient,
            lines=lines,
            invoice_type=InvoiceType(invoice_type.upper()),
            invoice_date=parse_date(invoice_date) if invoice_date else None,
            due_date=parse_date(due_date) if due_date else None,
            recipient_address=address,
            service_start_date=parse_date(service_start) if service_start else None,
            service_end_date=parse_date(service_end) if service_end else None,
            payment_reference=payment_reference,
            notes=notes,
            skonto_percent=parse_amount(skonto_percent) if skonto_percent else None,
            skonto_days=skonto_days,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    invoice = service.get_invoice(invoice_id, ctx.obj["tenant"])
    click.echo(f"Created {invoice.invoice_number} (ID: {invoice_id})")
    click.echo(f"  Gross: {format_eur(invoice.gross_amount)}")


@invoice_group.command("send")
@click.argument("invoice_id", type=int)
@click.pass_context
def send_invoice(ctx, invoice_id: int):
    """Mark a draft invoice as sent."""
    service = InvoiceService(ctx.obj["db"])
    try:
        service.send_invoice(invoice_id, ctx.obj["tenant"])
        invoice = service.get_invoice(invoice_id, ctx.obj["tenant"])
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Sent {invoice.invoice_number}")
    if invoice.skonto_deadline:
        click.echo(
            f"  Skonto: {format_eur(invoice.skonto_amount)} until {invoice.skonto_deadline}"
        )


@invoice_group.command("pay")
@click.argument("invoice_id", type=int)
@click.option("--date", "paid_date", help="Payment date (defaults to now)")
@click.option("--skonto", is_flag=True, help="Payment deducted the Skonto discount")
@click.pass_context
def pay_invoice(ctx, invoice_id: int, paid_date: str | None, skonto: bool):
    """Record the payment of a sent invoice."""
    service = InvoiceService(ctx.obj["db"])
    try:
        paid_at = None
        if paid_date:
            paid_at = datetime.combine(parse_date(paid_date), time(12, 0), tzinfo=UTC)
        service.record_payment(invoice_id, ctx.obj["tenant"], paid_at=paid_at, skonto_paid=skonto)
        invoice = service.get_invoice(invoice_id, ctx.obj["tenant"])
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Recorded payment for {invoice.invoice_number}")
    if skonto:
        amount = calculate_skonto_payment_amount(invoice.gross_amount, invoice.skonto_percent)
        click.echo(f"  Paid with Skonto: {format_eur(amount)}")


@invoice_group.command("show")
@click.argument("invoice_id", type=int)
@click.pass_context
def show_invoice(ctx, invoice_id: int):
    """Show an invoice with all lines."""
    service = InvoiceService(ctx.obj["db"])
    try:
        invoice = service.get_invoice(invoice_id, ctx.obj["tenant"])
    except ValueError as e:
        handle_domain_error(ctx, e)
    echo_invoice(invoice)


@invoice_group.command("list")
@click.option(
    "--status",
    type=click.Choice([s.value for s in InvoiceStatus], case_sensitive=False),
    help="Only invoices in this status",
)
@click.option(
    "--type",
    "invoice_type",
    type=click.Choice([t.value for t in InvoiceType], case_sensitive=False),
    help="Only documents of this type",
)
@click.pass_context
def list_invoices(ctx, status: str | None, invoice_type: str | None):
    """List invoices and credit notes."""
    service = InvoiceService(ctx.obj["db"])
    invoices = service.list_invoices(
        ctx.obj["tenant"],
        invoice_type=InvoiceType(invoice_type.upper()) if invoice_type else None,
        status=InvoiceStatus(status.upper()) if status else None,
    )
    if not invoices:
        click.echo("No invoices found.")
        return

    click.echo("\nInvoices:")
    click.echo("-" * 90)
    for invoice in invoices:
        echo_invoice_summary(invoice)


@invoice_group.command("skonto")
@click.argument("invoice_id", type=int)
@click.pass_context
def show_skonto(ctx, invoice_id: int):
    """Show the Skonto state of an invoice."""
    service = InvoiceService(ctx.obj["db"])
    try:
        invoice = service.get_invoice(invoice_id, ctx.obj["tenant"])
        status = service.get_skonto_status(invoice_id, ctx.obj["tenant"])
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Skonto for {invoice.invoice_number}: {status.value}")
    if status == SkontoStatus.NONE:
        return
    click.echo(f"  Percent:  {invoice.skonto_percent}% within {invoice.skonto_days} days")
    if invoice.skonto_deadline:
        click.echo(f"  Deadline: {invoice.skonto_deadline}")
    amount = calculate_skonto_payment_amount(invoice.gross_amount, invoice.skonto_percent)
    click.echo(f"  Pay with Skonto: {format_eur(amount)} instead of {format_eur(invoice.gross_amount)}")


def register_commands(cli):
    """Register invoice commands with main CLI."""
    cli.add_command(invoice_group, name="invoice")
