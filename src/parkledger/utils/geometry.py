"""Planar geometry helpers for GeoJSON geometries in lon/lat degrees.

Both the centroid and the area are approximations meant for small cadastral
parcels. The centroid is the plain average of all vertices (not area
weighted) and the area is a Shoelace area in square degrees scaled by a
latitude-dependent metres-per-degree factor (not geodesic).
"""

import math
from typing import Any, Optional

from parkledger.domain.entities import Centroid

METRES_PER_DEGREE = 111_320.0


def extract_coordinates(geometry: dict[str, Any]) -> list[tuple[float, float]]:
    """Collect every (lng, lat) pair of a geometry into a flat list."""
    geom_type = geometry.get("type")
    coords = geometry.get("coordinates")

    if geom_type == "Point":
        points = [coords] if coords else []
    elif geom_type in ("MultiPoint", "LineString"):
        points = list(coords or [])
    elif geom_type in ("MultiLineString", "Polygon"):
        points = [pt for part in coords or [] for pt in part]
    elif geom_type == "MultiPolygon":
        points = [pt for polygon in coords or [] for ring in polygon for pt in ring]
    elif geom_type == "GeometryCollection":
        return [
            pt
            for member in geometry.get("geometries") or []
            for pt in extract_coordinates(member)
        ]
    else:
        return []

    return [(float(pt[0]), float(pt[1])) for pt in points if len(pt) >= 2]


def compute_centroid(geometry: dict[str, Any]) -> Centroid:
    """Average of all vertices; (0, 0) for a geometry without coordinates."""
    coords = extract_coordinates(geometry)
    if not coords:
        return Centroid(lat=0.0, lng=0.0)

    sum_lng = sum(lng for lng, _ in coords)
    sum_lat = sum(lat for _, lat in coords)
    return Centroid(lat=sum_lat / len(coords), lng=sum_lng / len(coords))


def shoelace_area(ring: list) -> float:
    """Unsigned area of a ring in square degrees."""
    area = 0.0
    n = len(ring)
    for i in range(n):
        j = (i + 1) % n
        area += ring[i][0] * ring[j][1]
        area -= ring[j][0] * ring[i][1]
    return abs(area) / 2


def square_degrees_to_square_metres(area_deg2: float, lat_deg: float) -> float:
    """Scale square degrees to square metres at the given latitude."""
    m_per_deg_lat = METRES_PER_DEGREE
    m_per_deg_lng = METRES_PER_DEGREE * math.cos(math.radians(lat_deg))
    return area_deg2 * m_per_deg_lat * m_per_deg_lng


def _polygon_area_deg2(rings: list) -> float:
    # Outer ring minus holes
    area = shoelace_area(rings[0])
    for hole in rings[1:]:
        area -= shoelace_area(hole)
    return abs(area)


def compute_area_sqm(geometry: dict[str, Any]) -> Optional[float]:
    """Approximate area of a Polygon or MultiPolygon; None for other types."""
    geom_type = geometry.get("type")
    coords = geometry.get("coordinates") or []

    if geom_type == "Polygon":
        if not coords:
            return None
        area_deg2 = _polygon_area_deg2(coords)
    elif geom_type == "MultiPolygon":
        polygons = [rings for rings in coords if rings]
        if not polygons:
            return None
        area_deg2 = sum(_polygon_area_deg2(rings) for rings in polygons)
    else:
        return None

    centroid = compute_centroid(geometry)
    return square_degrees_to_square_metres(area_deg2, centroid.lat)
