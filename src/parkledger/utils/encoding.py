"""Repair of UTF-8 text that was decoded as Latin-1 ("mojibake").

German ALKIS exports frequently ship UTF-8 DBF files without a ``.cpg``
declaration. Read as Latin-1, "Böttcher" (bytes C3 B6) turns into
"BÃ¶ttcher". Reinterpreting every character as one byte and decoding those
bytes as UTF-8 restores the original text.
"""

import re
from typing import Any

_HIGH_LATIN1 = re.compile("[\x80-\xff]")


def fix_mojibake(text: str) -> str:
    """Return ``text`` with Latin-1-decoded UTF-8 repaired.

    Text without characters in the 0x80-0xFF range is returned untouched.
    When the characters cannot be mapped back to bytes, or the bytes are not
    valid UTF-8, the input is returned unchanged.
    """
    if not _HIGH_LATIN1.search(text):
        return text

    try:
        raw = text.encode("latin-1")
    except UnicodeEncodeError:
        # Contains code points above 0xFF, so it never went through Latin-1
        return text

    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return text


def fix_property_encoding(properties: dict[str, Any]) -> tuple[dict[str, Any], bool]:
    """Repair all keys and string values of an attribute map.

    Returns:
        Tuple of (repaired properties, whether anything was repaired)
    """
    fixed: dict[str, Any] = {}
    had_mojibake = False

    for key, value in properties.items():
        fixed_key = fix_mojibake(key)
        if fixed_key != key:
            had_mojibake = True

        if isinstance(value, str):
            fixed_value = fix_mojibake(value)
            if fixed_value != value:
                had_mojibake = True
            fixed[fixed_key] = fixed_value
        else:
            fixed[fixed_key] = value

    return fixed, had_mojibake
