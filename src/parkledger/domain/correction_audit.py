"""Serialization of the correction audit payload.

The payload is stored as a JSON array with one object per touched position.
Each object carries a ``kind`` discriminator (``PARTIAL_CANCEL`` or
``CORRECTION``) and is validated on write and on read. Rows stored before the
discriminator existed are recognized by the presence of ``cancelledQuantity``.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from parkledger.domain.entities import (
    AuditEntry,
    CorrectionAudit,
    CorrectionType,
    PartialCancelAudit,
    TaxType,
)
from parkledger.domain.errors import ValidationError

_PARTIAL_CANCEL_FIELDS = (
    ("originalIndex", "original_index", int),
    ("originalPosition", "original_position", int),
    ("originalDescription", "original_description", str),
    ("originalQuantity", "original_quantity", Decimal),
    ("cancelledQuantity", "cancelled_quantity", Decimal),
)

_CORRECTION_FIELDS = (
    ("originalIndex", "original_index", int),
    ("originalPosition", "original_position", int),
    ("originalDescription", "original_description", str),
    ("originalQuantity", "original_quantity", Decimal),
    ("originalUnitPrice", "original_unit_price", Decimal),
    ("originalTaxType", "original_tax_type", TaxType),
    ("newDescription", "new_description", str),
    ("newQuantity", "new_quantity", Decimal),
    ("newUnitPrice", "new_unit_price", Decimal),
    ("newTaxType", "new_tax_type", TaxType),
)

_VARIANTS = {
    CorrectionType.PARTIAL_CANCEL.value: (PartialCancelAudit, _PARTIAL_CANCEL_FIELDS),
    CorrectionType.CORRECTION.value: (CorrectionAudit, _CORRECTION_FIELDS),
}


def _encode_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        # Strings keep the exact decimal value through JSON
        return str(value)
    if isinstance(value, TaxType):
        return value.value
    return value


def _decode_value(raw: Any, expected: type, key: str) -> Any:
    if expected is int:
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise ValidationError(f"Korrekturprotokoll: '{key}' muss eine Ganzzahl sein")
        return raw
    if expected is str:
        if not isinstance(raw, str):
            raise ValidationError(f"Korrekturprotokoll: '{key}' muss ein Text sein")
        return raw
    if expected is Decimal:
        if isinstance(raw, bool) or not isinstance(raw, (str, int, float)):
            raise ValidationError(f"Korrekturprotokoll: '{key}' muss eine Zahl sein")
        try:
            return Decimal(str(raw))
        except InvalidOperation:
            raise ValidationError(f"Korrekturprotokoll: '{key}' muss eine Zahl sein")
    try:
        return TaxType(raw)
    except ValueError:
        raise ValidationError(f"Korrekturprotokoll: unbekannte Steuerart '{raw}' in '{key}'")


def encode_audit(entries: Iterable[AuditEntry]) -> list[dict[str, Any]]:
    """Encode audit entries into the stored JSON structure."""
    payload = []
    for entry in entries:
        if isinstance(entry, PartialCancelAudit):
            kind, fields = CorrectionType.PARTIAL_CANCEL.value, _PARTIAL_CANCEL_FIELDS
        elif isinstance(entry, CorrectionAudit):
            kind, fields = CorrectionType.CORRECTION.value, _CORRECTION_FIELDS
        else:
            raise ValidationError(f"Unbekannter Korrekturprotokoll-Eintrag: {type(entry).__name__}")

        record: dict[str, Any] = {"kind": kind}
        for json_key, attr, _ in fields:
            record[json_key] = _encode_value(getattr(entry, attr))
        payload.append(record)
    return payload


def decode_audit(payload: Optional[Any]) -> Optional[tuple[AuditEntry, ...]]:
    """Decode and validate a stored audit payload.

    Raises:
        ValidationError: If the payload does not match a known record kind
    """
    if payload is None:
        return None
    if not isinstance(payload, list):
        raise ValidationError("Korrekturprotokoll muss eine Liste sein")

    entries: list[AuditEntry] = []
    for record in payload:
        if not isinstance(record, dict):
            raise ValidationError("Korrekturprotokoll-Eintrag muss ein Objekt sein")

        kind = record.get("kind")
        if kind is None:
            kind = (
                CorrectionType.PARTIAL_CANCEL.value
                if "cancelledQuantity" in record
                else CorrectionType.CORRECTION.value
            )
        if kind not in _VARIANTS:
            raise ValidationError(f"Unbekannte Art im Korrekturprotokoll: '{kind}'")

        entry_cls, fields = _VARIANTS[kind]
        values = {}
        for json_key, attr, expected in fields:
            if json_key not in record:
                raise ValidationError(f"Korrekturprotokoll: Feld '{json_key}' fehlt")
            values[attr] = _decode_value(record[json_key], expected, json_key)
        entries.append(entry_cls(**values))

    return tuple(entries)
