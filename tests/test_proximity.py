import pytest

from tourplanner.services.proximity import (
    DEFAULT_TOLERANCE_KM,
    compute_route_proximity,
    is_coordinate_near_route,
    point_to_segment_distance_km,
)

PARIS_SEGMENT = {
    "type": "FeatureCollection",
    "features": [
        {
            "type": "Feature",
            "properties": {},
            "geometry": {"type": "LineString", "coordinates": [[2.3522, 48.8566], [2.3622, 48.8566]]},
        }
    ],
}


def test_point_on_segment_is_zero_distance():
    result = compute_route_proximity(PARIS_SEGMENT, [2.355, 48.8566])

    assert result.distance_km < 0.001
    assert result.is_within_tolerance


def test_point_just_off_segment():
    result = compute_route_proximity(PARIS_SEGMENT, [2.3572, 48.8568])

    assert result.distance_km == pytest.approx(0.02223, abs=5e-4)
    assert result.distance_km <= DEFAULT_TOLERANCE_KM
    assert result.is_within_tolerance
    assert is_coordinate_near_route(PARIS_SEGMENT, [2.3572, 48.8568], 0.03)


def test_point_far_from_segment():
    far = [2.295, 48.858]

    assert not is_coordinate_near_route(PARIS_SEGMENT, far, 0.5)
    result = compute_route_proximity(PARIS_SEGMENT, far, 1)
    assert result.distance_km > 4
    assert not result.is_within_tolerance


def test_projection_beyond_end_snaps_to_endpoint():
    start, end = (2.3522, 48.8566), (2.3622, 48.8566)
    beyond = (2.3722, 48.8566)

    from tourplanner.services.geospatial import haversine_km

    assert point_to_segment_distance_km(beyond, start, end) == pytest.approx(haversine_km(beyond, end))
    assert point_to_segment_distance_km(beyond, start, start) == pytest.approx(haversine_km(beyond, start))


def test_non_positive_tolerance_falls_back_to_default():
    near = [2.3572, 48.8568]

    assert compute_route_proximity(PARIS_SEGMENT, near, 0).is_within_tolerance
    assert compute_route_proximity(PARIS_SEGMENT, near, -3).is_within_tolerance


def test_nested_collections_and_multilines_are_searched():
    route = {
        "type": "GeometryCollection",
        "geometries": [
            {"type": "Point", "coordinates": [0.0, 0.0]},
            {
                "type": "MultiLineString",
                "coordinates": [[[10.0, 10.0]], [[2.3522, 48.8566], [2.3622, 48.8566]]],
            },
        ],
    }

    assert compute_route_proximity(route, [2.355, 48.8566]).distance_km < 0.001


@pytest.mark.parametrize(
    "route",
    [
        None,
        {"type": "FeatureCollection", "features": []},
        {"type": "LineString", "coordinates": [[2.35, 48.85]]},
        {"type": "Polygon", "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 0]]]},
    ],
)
def test_routes_without_usable_lines_are_rejected(route):
    with pytest.raises(ValueError):
        compute_route_proximity(route, [2.35, 48.85])


@pytest.mark.parametrize("coordinate", [[2.35], [2.35, float("nan")], ["a", "b"], None])
def test_bad_coordinates_are_rejected(coordinate):
    with pytest.raises(ValueError):
        compute_route_proximity(PARIS_SEGMENT, coordinate)
