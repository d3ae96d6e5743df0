"""Tests for planar geometry helpers."""

import math

import pytest

from parkledger.domain.entities import Centroid
from parkledger.utils.geometry import (
    METRES_PER_DEGREE,
    compute_area_sqm,
    compute_centroid,
    extract_coordinates,
    shoelace_area,
)

UNIT_SQUARE = [[0.0, 0.0], [0.0, 1.0], [1.0, 1.0], [1.0, 0.0]]


def test_extract_coordinates_flattens_nested_types():
    geometry = {
        "type": "GeometryCollection",
        "geometries": [
            {"type": "Point", "coordinates": [1, 2]},
            {"type": "LineString", "coordinates": [[3, 4], [5, 6]]},
            {"type": "MultiPolygon", "coordinates": [[[[7, 8], [9, 10]]]]},
        ],
    }

    assert extract_coordinates(geometry) == [(1, 2), (3, 4), (5, 6), (7, 8), (9, 10)]


def test_extract_coordinates_of_unknown_type_is_empty():
    assert extract_coordinates({"type": "Curve", "coordinates": [[1, 2]]}) == []


def test_centroid_is_vertex_average():
    geometry = {"type": "Polygon", "coordinates": [UNIT_SQUARE]}

    assert compute_centroid(geometry) == Centroid(lat=0.5, lng=0.5)


def test_centroid_counts_closing_vertex():
    closed = UNIT_SQUARE + [[0.0, 0.0]]
    centroid = compute_centroid({"type": "Polygon", "coordinates": [closed]})

    assert centroid.lat == pytest.approx(0.4)
    assert centroid.lng == pytest.approx(0.4)


def test_centroid_without_coordinates():
    assert compute_centroid({"type": "Polygon", "coordinates": []}) == Centroid(lat=0.0, lng=0.0)


def test_shoelace_is_orientation_independent():
    assert shoelace_area(UNIT_SQUARE) == pytest.approx(1.0)
    assert shoelace_area(list(reversed(UNIT_SQUARE))) == pytest.approx(1.0)


def test_polygon_area_at_equator():
    size = 0.001
    ring = [[0, 0], [0, size], [size, size], [size, 0]]

    area = compute_area_sqm({"type": "Polygon", "coordinates": [ring]})

    # Centroid latitude is 0.0005, cos() is practically 1
    assert area == pytest.approx((size * METRES_PER_DEGREE) ** 2, rel=1e-6)


def test_polygon_area_uses_latitude_correction():
    size = 0.001
    ring = [[10, 52], [10, 52 + size], [10 + size, 52 + size], [10 + size, 52]]

    area = compute_area_sqm({"type": "Polygon", "coordinates": [ring]})

    centroid_lat = 52 + size / 2
    expected = size * size * METRES_PER_DEGREE * METRES_PER_DEGREE * math.cos(math.radians(centroid_lat))
    assert area == pytest.approx(expected)
    assert 7_000 < area < 8_000


def test_holes_are_subtracted():
    outer = [[0, 0], [0, 4], [4, 4], [4, 0]]
    hole = [[1, 1], [2, 1], [2, 2], [1, 2]]

    with_hole = compute_area_sqm({"type": "Polygon", "coordinates": [outer, hole]})
    without_hole = compute_area_sqm({"type": "Polygon", "coordinates": [outer]})

    # The hole's vertices shift the reference latitude
    lat = compute_centroid({"type": "Polygon", "coordinates": [outer, hole]}).lat
    factor = METRES_PER_DEGREE * METRES_PER_DEGREE * math.cos(math.radians(lat))
    assert with_hole == pytest.approx(15 * factor)
    assert without_hole > with_hole


def test_multipolygon_sums_parts():
    a = [[0, 0], [0, 0.001], [0.001, 0.001], [0.001, 0]]
    b = [[0.002, 0], [0.002, 0.001], [0.003, 0.001], [0.003, 0]]

    area = compute_area_sqm({"type": "MultiPolygon", "coordinates": [[a], [b]]})
    single = compute_area_sqm({"type": "Polygon", "coordinates": [a]})

    assert area == pytest.approx(2 * single, rel=1e-6)


@pytest.mark.parametrize(
    "geometry",
    [
        {"type": "Point", "coordinates": [10, 52]},
        {"type": "LineString", "coordinates": [[10, 52], [11, 53]]},
        {"type": "Polygon", "coordinates": []},
    ],
)
def test_area_is_none_for_non_polygons(geometry):
    assert compute_area_sqm(geometry) is None
