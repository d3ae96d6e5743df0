"""Shared domain error messages and error types."""

from decimal import Decimal


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ForbiddenError(DomainError):
    """Entity exists but belongs to another tenant."""


class InvalidStateError(DomainError):
    """Operation not allowed in the entity's current status."""


class DecodeError(DomainError):
    """Uploaded file could not be decoded into usable data."""


def invoice_not_found(invoice_id: int) -> str:
    """Return message for missing invoice."""
    return f"Rechnung {invoice_id} nicht gefunden"


def invoice_forbidden(invoice_id: int) -> str:
    """Return message for an invoice owned by another tenant."""
    return f"Keine Berechtigung für Rechnung {invoice_id}"


def invoice_not_correctable(action: str) -> str:
    """Return message when the invoice status does not allow a correction."""
    return f"Nur versendete oder bezahlte Rechnungen können {action} werden"


def invalid_status_transition(current: str, target: str) -> str:
    """Return message for a backwards or skipped status change."""
    return f"Statuswechsel von {current} nach {target} ist nicht erlaubt"


def invalid_position(index: int, item_count: int) -> str:
    """Return message for an out-of-range 0-based position index."""
    return f"Ungültige Position: {index + 1}. Gültig: 1-{item_count}"


def duplicate_position(index: int) -> str:
    """Return message when a position is selected more than once."""
    return f"Position {index + 1} wurde mehrfach ausgewählt"


def cancel_quantity_not_positive(index: int) -> str:
    """Return message for a non-positive cancel quantity."""
    return f"Stornomenge für Position {index + 1} muss größer als 0 sein"


def cancel_quantity_exceeds(index: int, cancel_quantity: Decimal, original_quantity: Decimal) -> str:
    """Return message for a cancel quantity above the original quantity."""
    return (
        f"Stornomenge ({cancel_quantity}) übersteigt Originalmenge "
        f"({original_quantity}) bei Position {index + 1}"
    )


def quantity_not_positive(index: int) -> str:
    """Return message for a non-positive corrected quantity."""
    return f"Menge für Position {index + 1} muss größer als 0 sein"


def unit_price_negative(index: int) -> str:
    """Return message for a negative corrected unit price."""
    return f"Einzelpreis für Position {index + 1} darf nicht negativ sein"


def no_changes_detected(index: int) -> str:
    """Return message for a correction that changes nothing."""
    return f"Position {index + 1}: Keine Änderungen erkannt"


FULL_CANCEL_VIA_PARTIAL = (
    "Alle Positionen mit voller Menge ausgewählt. Bitte nutzen Sie die Vollstornierung."
)
NO_POSITIONS_SELECTED = "Mindestens eine Position muss ausgewählt werden"
NO_CORRECTIONS_GIVEN = "Mindestens eine Korrektur muss angegeben werden"
