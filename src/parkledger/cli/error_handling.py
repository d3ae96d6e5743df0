"""CLI error handling helpers."""

import logging

import click

from parkledger.domain.errors import DecodeError, ForbiddenError, NotFoundError

logger = logging.getLogger(__name__)

# Follow-up shown below the message for error kinds the user can act on
ERROR_HINTS: dict[type, str] = {
    NotFoundError: "Hint: 'parkledger invoice list' shows the available invoices.",
    ForbiddenError: "Hint: check the --tenant option.",
    DecodeError: "Hint: check the ZIP contents or pass --encoding.",
}


def error_hint(error: ValueError) -> str | None:
    """Return the follow-up hint for an error, if its kind has one."""
    for kind, hint in ERROR_HINTS.items():
        if isinstance(error, kind):
            return hint
    return None


def handle_domain_error(ctx: click.Context, error: ValueError) -> None:
    """Print the German message and an optional hint, then exit with status 1.

    Covers DomainError subclasses as well as the plain ValueError raised while
    parsing command options.
    """
    logger.debug("%s failed with %s: %s", ctx.command_path, type(error).__name__, error)
    click.echo(f"Error: {error}", err=True)
    hint = error_hint(error)
    if hint:
        click.echo(hint, err=True)
    ctx.exit(1)
