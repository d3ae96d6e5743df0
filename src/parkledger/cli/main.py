"""Main CLI entry point."""

import logging

import click
from parkledger.database.factories import create_sqlite_database

# Import and register all commands at module level
from parkledger.cli.commands import (
    tax_rate,
    invoice,
    correction,
    shapefile,
)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides PARKLEDGER_DB_PATH environment variable)",
    envvar="PARKLEDGER_DB_PATH",
)
@click.option(
    "--tenant",
    default="default",
    show_default=True,
    envvar="PARKLEDGER_TENANT",
    help="Tenant whose documents are managed",
)
@click.option(
    "--user",
    default="cli",
    show_default=True,
    envvar="PARKLEDGER_USER",
    help="User recorded as creator of new documents",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    envvar="PARKLEDGER_LOG_LEVEL",
    help="Logging verbosity",
)
@click.pass_context
def cli(ctx, db_path: str | None, tenant: str, user: str, log_level: str):
    """Parkledger - Invoicing and cadastral import for wind park administration.

    Create invoices, correct sent invoices with credit notes and correction
    invoices, and inspect ALKIS shapefile exports.
    """
    ctx.ensure_object(dict)
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    ctx.obj["tenant"] = tenant
    ctx.obj["user"] = user

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.call_on_close(db.disconnect)


# Register all commands
tax_rate.register_commands(cli)
invoice.register_commands(cli)
correction.register_commands(cli)
shapefile.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
