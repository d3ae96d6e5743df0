"""Tax rate configuration commands."""

import click
from parkledger.cli.error_handling import handle_domain_error
from parkledger.domain.entities import TaxType
from parkledger.domain.tax_rates import DEFAULT_TAX_LABELS, TaxRateService
from parkledger.utils.amount_parser import parse_amount

TAX_TYPE_CHOICE = click.Choice([tax_type.value for tax_type in TaxType], case_sensitive=False)


@click.group()
def tax_rate_group():
    """Manage tenant tax rates."""
    pass


@tax_rate_group.command("set")
@click.argument("tax_type", type=TAX_TYPE_CHOICE, metavar="TAX_TYPE")
@click.argument("rate", metavar="PERCENT")
@click.option("--label", help="Display label (defaults to the statutory name)")
@click.pass_context
def set_tax_rate(ctx, tax_type: str, rate: str, label: str | None):
    """Set the percentage for a tax category.

    TAX_TYPE is STANDARD, REDUCED or EXEMPT.

    Examples:
        parkledger tax-rate set STANDARD 19
        parkledger tax-rate set REDUCED 7,0
    """
    service = TaxRateService(ctx.obj["db"])

    try:
        percent = parse_amount(rate)
        service.set_tax_rate(ctx.obj["tenant"], TaxType(tax_type.upper()), percent, label=label)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Set {tax_type.upper()} to {percent}%")


@tax_rate_group.command("list")
@click.pass_context
def list_tax_rates(ctx):
    """List the effective rate of every tax category."""
    service = TaxRateService(ctx.obj["db"])
    rates = service.list_tax_rates(ctx.obj["tenant"])

    click.echo("\nTax rates:")
    click.echo("-" * 50)
    for tax_type, rate in rates.items():
        click.echo(f"{tax_type.value:10s} | {rate:>6}% | {DEFAULT_TAX_LABELS[tax_type]}")


def register_commands(cli):
    """Register tax rate commands with main CLI."""
    cli.add_command(tax_rate_group, name="tax-rate")
