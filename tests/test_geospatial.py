import math

import pytest

from tourplanner.services import geospatial

SQUARE = [[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0], [0.0, 0.0]]


def test_haversine_paris_to_london():
    paris = (2.3522, 48.8566)
    london = (-0.1278, 51.5074)

    assert geospatial.haversine_km(paris, london) == pytest.approx(343.5, abs=1.0)
    assert geospatial.haversine_km(paris, paris) == 0.0


def test_bbox_area_matches_degree_square_at_equator():
    area = geospatial.bbox_area_km2((0.0, 0.0, 1.0, 1.0))

    assert area == pytest.approx(geospatial.KM2_PER_SQUARE_DEGREE, rel=1e-3)


def test_polygon_area_subtracts_holes():
    hole = [[0.25, 0.25], [0.75, 0.25], [0.75, 0.75], [0.25, 0.75], [0.25, 0.25]]
    full = geospatial.polygon_area_km2({"type": "Polygon", "coordinates": [SQUARE]})
    holed = geospatial.polygon_area_km2({"type": "Polygon", "coordinates": [SQUARE, hole]})

    assert full == pytest.approx(geospatial.KM2_PER_SQUARE_DEGREE, rel=1e-3)
    assert holed == pytest.approx(full * 0.75, rel=1e-3)


def test_geojson_area_recurses_and_ignores_other_types():
    polygon = {"type": "Polygon", "coordinates": [SQUARE]}
    collection = {
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "geometry": polygon},
            {"type": "Feature", "geometry": {"type": "MultiPolygon", "coordinates": [[SQUARE], [SQUARE]]}},
            {"type": "Feature", "geometry": {"type": "Point", "coordinates": [0.5, 0.5]}},
        ],
    }

    single = geospatial.geojson_area_km2(polygon)
    assert geospatial.geojson_area_km2(collection) == pytest.approx(single * 3)
    assert geospatial.geojson_area_km2({"type": "LineString", "coordinates": SQUARE}) == 0.0
    assert geospatial.geojson_area_km2(None) == 0.0


def test_path_length_needs_two_points():
    assert geospatial.path_length_km([]) == 0.0
    assert geospatial.path_length_km([[2.0, 48.0]]) == 0.0

    line = {"type": "LineString", "coordinates": [[0.0, 0.0], [0.0, 1.0], [0.0, 2.0]]}
    assert geospatial.linestring_length_km(line) == pytest.approx(2 * 111.195, rel=1e-3)


def test_malformed_coordinates_are_skipped():
    line = {"type": "LineString", "coordinates": [[0.0, 0.0], ["x", 1.0], [math.nan, 0.0], [0.0, 1.0]]}

    assert geospatial.linestring_length_km(line) == pytest.approx(111.195, rel=1e-3)
    assert geospatial.sanitize_coordinate([1.0]) is None
    assert geospatial.sanitize_coordinate((1, 2)) == (1.0, 2.0)


def test_geometry_bbox_spans_all_coordinates():
    collection = {
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "geometry": {"type": "Point", "coordinates": [3.0, -1.0]}},
            {"type": "Feature", "geometry": {"type": "Polygon", "coordinates": [SQUARE]}},
        ],
    }

    assert geospatial.geometry_bbox(collection) == (0.0, -1.0, 3.0, 1.0)
    assert geospatial.geometry_bbox({"type": "FeatureCollection", "features": []}) is None


def test_point_in_geojson_uses_outer_rings():
    hole = [[0.25, 0.25], [0.75, 0.25], [0.75, 0.75], [0.25, 0.75], [0.25, 0.25]]
    feature = {"type": "Feature", "geometry": {"type": "Polygon", "coordinates": [SQUARE, hole]}}
    shifted = [[lon + 5.0, lat] for lon, lat in SQUARE]
    multi = {"type": "MultiPolygon", "coordinates": [[SQUARE], [shifted]]}

    assert geospatial.point_in_geojson(feature, (0.5, 0.5))
    assert not geospatial.point_in_geojson(feature, (1.5, 0.5))
    assert geospatial.point_in_geojson(multi, (5.5, 0.5))
    assert geospatial.point_in_geojson({"type": "FeatureCollection", "features": [feature]}, (0.1, 0.9))
    assert not geospatial.point_in_geojson({"type": "FeatureCollection", "features": []}, (0.5, 0.5))
    assert not geospatial.point_in_geojson({"type": "Point", "coordinates": [0.5, 0.5]}, (0.5, 0.5))
