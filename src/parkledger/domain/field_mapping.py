"""ALKIS field mapping for shapefile attributes.

Shapefiles exported from cadastral systems name their attributes in many
ways (``GEMARKUNG``, ``gmk_name``, ``FLSTNRZAE``...). The pattern tables
below propose a mapping from each semantic field to the shapefile's own
attribute name; callers can override any entry before applying it.
"""

import math
import re
from typing import Any, Mapping, Optional

from parkledger.domain.entities import MappableField, MappedOwnerData, MappedPlotData

FieldMapping = dict[str, Optional[str]]

# Candidate attribute names per semantic field, in priority order
ALKIS_PLOT_PATTERNS: dict[str, list[str]] = {
    "cadastral_district": ["gemarkung", "gmk", "gmk_name", "gem", "gemarkungsname", "gem_name"],
    "field_number": ["flur", "flr", "flurnummer", "flurnr"],
    "plot_number": ["flurstueck", "flst", "flst_nr", "zaehlernenner", "flurstcksknnzchng", "flstnr"],
    "plot_numerator": ["flstnrzae", "zaehler", "zae", "flst_zae", "flstzae", "nenner_zaehler"],
    "plot_denominator": ["flstnrnen", "nenner", "nen", "flst_nen", "flstnen"],
    "area_sqm": ["amtlicheflaeche", "area", "shape_area", "flaeche", "flaeche_m2"],
    "county": ["landkreis", "kreis", "lkr"],
    "municipality": ["gemeinde", "gem_name", "ortsteil"],
    "usage_type": ["nutzungsart", "nat", "tatsaechlichenutzung", "nutzung"],
}

ALKIS_OWNER_PATTERNS: dict[str, list[str]] = {
    "owner_name": ["eigentuemer", "eigentuemer_name", "besitzer", "name1", "eigentum"],
    "owner_first_name": ["vorname", "eigentuemer_vorname", "eigent_vorname"],
    "owner_last_name": ["nachname", "eigentuemer_nachname", "eigent_nachname", "name"],
    "owner_street": ["strasse", "eigentuemer_strasse", "str", "eigent_str"],
    "owner_house_number": ["hausnummer", "hausnr", "hnr", "eigent_hnr"],
    "owner_postal_code": ["plz", "eigentuemer_plz", "eigent_plz"],
    "owner_city": ["ort", "eigentuemer_ort", "wohnort", "eigent_ort"],
    "owner_count": ["anzahl_eigentuemer", "anz_eigent", "eigent_anz", "anz_eigen"],
}

PLOT_FIELD_LABELS = {
    "cadastral_district": ("Gemarkung", True),
    "field_number": ("Flur", False),
    "plot_number": ("Flurstück (komplett)", False),
    "plot_numerator": ("Flurstück Zähler", False),
    "plot_denominator": ("Flurstück Nenner", False),
    "area_sqm": ("Fläche (m²)", False),
    "county": ("Landkreis", False),
    "municipality": ("Gemeinde", False),
    "usage_type": ("Nutzungsart", False),
}

OWNER_FIELD_LABELS = {
    "owner_name": ("Eigentümer (Name)", False),
    "owner_first_name": ("Eigentümer Vorname", False),
    "owner_last_name": ("Eigentümer Nachname", False),
    "owner_street": ("Eigentümer Straße", False),
    "owner_house_number": ("Eigentümer Hausnummer", False),
    "owner_postal_code": ("Eigentümer PLZ", False),
    "owner_city": ("Eigentümer Ort", False),
    "owner_count": ("Anzahl Eigentümer", False),
}

PLACEHOLDER_VALUES = {"-", "--", "---", ".", "..", "?", "??"}

MULTI_OWNER_SEPARATORS = re.compile(r";| und | u\. ", re.IGNORECASE)
MULTI_OWNER_ENTITY_KEYWORDS = re.compile(r"erbengemeinschaft|gbr", re.IGNORECASE)


def _auto_detect(shp_fields: list[str], patterns: Mapping[str, list[str]]) -> FieldMapping:
    """Claim at most one shapefile field per semantic field.

    Matching is case-insensitive; the shapefile's original spelling is
    returned. A field claimed by an earlier semantic field is skipped.
    """
    lower_to_original = {name.lower(): name for name in shp_fields}
    claimed: set[str] = set()
    result: FieldMapping = {}

    for semantic_field, candidates in patterns.items():
        matched = None
        for candidate in candidates:
            original = lower_to_original.get(candidate.lower())
            if original is not None and original not in claimed:
                matched = original
                claimed.add(original)
                break
        result[semantic_field] = matched

    return result


def auto_detect_plot_mapping(shp_fields: list[str]) -> FieldMapping:
    """Propose plot field mappings from the shapefile's field names."""
    return _auto_detect(shp_fields, ALKIS_PLOT_PATTERNS)


def auto_detect_owner_mapping(shp_fields: list[str]) -> FieldMapping:
    """Propose owner field mappings from the shapefile's field names."""
    return _auto_detect(shp_fields, ALKIS_OWNER_PATTERNS)


def read_string(properties: Mapping[str, Any], field_name: Optional[str]) -> Optional[str]:
    """Read a trimmed string; unmapped, empty and placeholder values are None."""
    if not field_name:
        return None
    value = properties.get(field_name)
    if value is None:
        return None
    text = str(value).strip()
    if not text or text in PLACEHOLDER_VALUES:
        return None
    return text


def read_number(properties: Mapping[str, Any], field_name: Optional[str]) -> Optional[float]:
    """Read a finite number; strings may use a German decimal comma."""
    if not field_name:
        return None
    value = properties.get(field_name)
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def apply_plot_mapping(properties: Mapping[str, Any], mapping: Mapping[str, Optional[str]]) -> MappedPlotData:
    """Extract plot data from one feature's properties.

    Required fields default to empty strings. The plot number is composed as
    ``numerator/denominator`` when a denominator other than "0" is present.
    """
    numerator = (
        read_string(properties, mapping.get("plot_numerator"))
        or read_string(properties, mapping.get("plot_number"))
        or ""
    )
    denominator = read_string(properties, mapping.get("plot_denominator"))
    if numerator and denominator and denominator != "0":
        plot_number = f"{numerator}/{denominator}"
    else:
        plot_number = numerator

    return MappedPlotData(
        cadastral_district=read_string(properties, mapping.get("cadastral_district")) or "",
        field_number=read_string(properties, mapping.get("field_number")) or "",
        plot_number=plot_number,
        area_sqm=read_number(properties, mapping.get("area_sqm")),
        county=read_string(properties, mapping.get("county")),
        municipality=read_string(properties, mapping.get("municipality")),
        usage_type=read_string(properties, mapping.get("usage_type")),
    )


def apply_owner_mapping(properties: Mapping[str, Any], mapping: Mapping[str, Optional[str]]) -> MappedOwnerData:
    """Extract owner data from one feature's properties.

    The plot has multiple owners when any of these hold:

    1. the owner count is greater than 1
    2. the name contains ``;``, `` und `` or `` u. ``
    3. the name mentions an Erbengemeinschaft or GbR
    """
    name = read_string(properties, mapping.get("owner_name"))
    owner_count = read_number(properties, mapping.get("owner_count"))

    is_multi_owner = False
    if owner_count is not None and owner_count > 1:
        is_multi_owner = True
    if name:
        if MULTI_OWNER_SEPARATORS.search(name):
            is_multi_owner = True
        if MULTI_OWNER_ENTITY_KEYWORDS.search(name):
            is_multi_owner = True

    return MappedOwnerData(
        name=name,
        first_name=read_string(properties, mapping.get("owner_first_name")),
        last_name=read_string(properties, mapping.get("owner_last_name")),
        street=read_string(properties, mapping.get("owner_street")),
        house_number=read_string(properties, mapping.get("owner_house_number")),
        postal_code=read_string(properties, mapping.get("owner_postal_code")),
        city=read_string(properties, mapping.get("owner_city")),
        is_multi_owner=is_multi_owner,
        owner_count=owner_count,
    )


def get_plot_mappable_fields() -> list[MappableField]:
    """Plot fields a mapping can target, with German labels."""
    return [MappableField(key=key, label=label, required=required)
            for key, (label, required) in PLOT_FIELD_LABELS.items()]


def get_owner_mappable_fields() -> list[MappableField]:
    """Owner fields a mapping can target, with German labels."""
    return [MappableField(key=key, label=label, required=required)
            for key, (label, required) in OWNER_FIELD_LABELS.items()]
