"""Shapefile ZIP decoding into GeoJSON-like features.

Each ``.shp`` member of the archive is one layer; only the first is used.
Attributes are read with the ``.cpg`` encoding when the archive declares
one and as Latin-1 otherwise, after which mojibake repair restores UTF-8
text that was exported without a declaration.
"""

import codecs
import io
import logging
import posixpath
import zipfile
from typing import Any, Optional

import shapefile
from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError

from parkledger.domain.entities import ParsedShpFeature, ShpParseResult
from parkledger.domain.errors import DecodeError
from parkledger.utils.encoding import fix_mojibake, fix_property_encoding
from parkledger.utils.geometry import compute_area_sqm, compute_centroid

logger = logging.getLogger(__name__)

DEFAULT_DBF_ENCODING = "latin-1"
WGS84 = "EPSG:4326"


class _Layer:
    """Members of one shapefile layer inside a ZIP archive."""

    def __init__(self, stem: str):
        self.stem = stem
        self.members: dict[str, str] = {}

    def read(self, archive: zipfile.ZipFile, extension: str) -> Optional[bytes]:
        name = self.members.get(extension)
        return archive.read(name) if name else None


def _find_layers(archive: zipfile.ZipFile) -> list[_Layer]:
    """Group archive members by stem; every stem with a ``.shp`` is a layer."""
    by_stem: dict[str, _Layer] = {}
    order: list[str] = []
    for name in archive.namelist():
        if name.endswith("/") or name.startswith("__MACOSX/"):
            continue
        stem, extension = posixpath.splitext(name)
        key = stem.lower()
        if key not in by_stem:
            by_stem[key] = _Layer(stem)
            order.append(key)
        by_stem[key].members[extension.lower()] = name
    return [by_stem[key] for key in order if ".shp" in by_stem[key].members]


def _resolve_encoding(cpg: Optional[bytes]) -> str:
    """Map a ``.cpg`` declaration to a Python codec name."""
    if not cpg:
        return DEFAULT_DBF_ENCODING
    declared = cpg.decode("ascii", errors="ignore").strip()
    if declared.isdigit():
        declared = f"cp{declared}"
    try:
        return codecs.lookup(declared).name
    except LookupError:
        logger.warning("Unknown .cpg encoding %r, falling back to %s", declared, DEFAULT_DBF_ENCODING)
        return DEFAULT_DBF_ENCODING


def _transform_coordinates(coords: Any, transformer: Optional[Transformer]) -> Any:
    """Copy nested coordinates into lists, reprojecting each position."""
    if coords and isinstance(coords[0], (int, float)):
        x, y = coords[0], coords[1]
        if transformer is not None:
            x, y = transformer.transform(x, y)
        return [x, y]
    return [_transform_coordinates(part, transformer) for part in coords]


def _to_geometry(shape: shapefile.Shape, transformer: Optional[Transformer]) -> Optional[dict[str, Any]]:
    if shape.shapeType == shapefile.NULL or not shape.points:
        return None
    geo = shape.__geo_interface__
    if geo["type"] == "GeometryCollection":
        return {
            "type": "GeometryCollection",
            "geometries": [
                {"type": member["type"], "coordinates": _transform_coordinates(member["coordinates"], transformer)}
                for member in geo["geometries"]
            ],
        }
    return {"type": geo["type"], "coordinates": _transform_coordinates(geo["coordinates"], transformer)}


def _source_crs(prj: Optional[bytes], warnings: list[str]) -> tuple[Optional[str], Optional[Transformer]]:
    """Read the ``.prj`` and build a transformer to WGS84 lon/lat."""
    if not prj:
        return None, None
    try:
        source = CRS.from_wkt(prj.decode("latin-1"))
    except CRSError as exc:
        logger.warning("Could not read projection: %s", exc)
        warnings.append(
            "Die Projektionsdatei (.prj) konnte nicht gelesen werden. "
            "Koordinaten werden unverändert übernommen."
        )
        return None, None
    transformer = Transformer.from_crs(source, CRS.from_user_input(WGS84), always_xy=True)
    return source.name, transformer


def _read_layer(
    archive: zipfile.ZipFile, layer: _Layer, encoding: Optional[str], warnings: list[str]
) -> tuple[list[tuple[Optional[dict[str, Any]], dict[str, Any]]], list[str], Optional[str]]:
    """Decode one layer into (geometry, properties) pairs, field names and CRS."""
    dbf_encoding = encoding or _resolve_encoding(layer.read(archive, ".cpg"))
    crs, transformer = _source_crs(layer.read(archive, ".prj"), warnings)

    shx = layer.read(archive, ".shx")
    dbf = layer.read(archive, ".dbf")
    with shapefile.Reader(
        shp=io.BytesIO(layer.read(archive, ".shp")),
        shx=io.BytesIO(shx) if shx else None,
        dbf=io.BytesIO(dbf) if dbf else None,
        encoding=dbf_encoding,
        encodingErrors="replace",
    ) as reader:
        fields = [field[0] for field in reader.fields[1:]]
        entries = []
        for shape_record in reader.iterShapeRecords():
            properties = shape_record.record.as_dict() if dbf else {}
            entries.append((_to_geometry(shape_record.shape, transformer), properties))
    return entries, fields, crs


def parse_shapefile(buffer: bytes, file_name: str, encoding: Optional[str] = None) -> ShpParseResult:
    """Parse a shapefile ZIP into features with centroid and area.

    Args:
        buffer: Raw ZIP bytes
        file_name: Upload name, used in messages
        encoding: DBF encoding overriding the archive's ``.cpg``

    Returns:
        ShpParseResult with WGS84 geometries, field names, source CRS and
        German user-facing warnings

    Raises:
        DecodeError: If the archive cannot be decoded, has no layers, no
            features, or no feature has a geometry
    """
    warnings: list[str] = []

    try:
        with zipfile.ZipFile(io.BytesIO(buffer)) as archive:
            layers = _find_layers(archive)
            if not layers:
                raise DecodeError(f'Die Shapefile-ZIP "{file_name}" enthält keine Layer.')
            if len(layers) > 1:
                warnings.append(
                    f'Die ZIP-Datei "{file_name}" enthält {len(layers)} Layer. '
                    "Nur der erste Layer wird verwendet."
                )
            entries, fields, crs = _read_layer(archive, layers[0], encoding, warnings)
    except DecodeError:
        raise
    except Exception as exc:
        raise DecodeError(f'Shapefile "{file_name}" konnte nicht gelesen werden: {exc}') from exc

    if not entries:
        raise DecodeError(f'Das Shapefile "{file_name}" enthält keine Objekte.')

    features = []
    encoding_fixed = False
    for index, (geometry, raw_properties) in enumerate(entries):
        if geometry is None:
            warnings.append(f"Objekt {index} hat keine Geometrie und wurde übersprungen.")
            continue

        properties, had_mojibake = fix_property_encoding(raw_properties)
        if had_mojibake:
            encoding_fixed = True

        features.append(
            ParsedShpFeature(
                id=index,
                geometry=geometry,
                properties=properties,
                centroid=compute_centroid(geometry),
                area_sqm=compute_area_sqm(geometry),
            )
        )

    if encoding_fixed:
        warnings.append("Zeichenkodierung wurde automatisch korrigiert (UTF-8 Mojibake erkannt).")
        fields = [fix_mojibake(name) for name in fields]

    if not features:
        raise DecodeError(f'Alle Objekte in "{file_name}" wurden übersprungen (keine gültigen Geometrien).')

    if len(features) < len(entries):
        skipped = len(entries) - len(features)
        warnings.append(f"{skipped} von {len(entries)} Objekten ohne Geometrie wurden übersprungen.")

    for warning in warnings:
        logger.warning("%s: %s", file_name, warning)
    logger.info(
        "Parsed %s: %d feature(s), %d field(s), crs=%s", file_name, len(features), len(fields), crs
    )
    return ShpParseResult(
        features=tuple(features),
        fields=tuple(fields),
        crs=crs,
        warnings=tuple(warnings),
    )
