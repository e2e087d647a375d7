"""Distance between a coordinate and a route geometry, measured on the sphere."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from .geospatial import EARTH_RADIUS_KM, LonLat, haversine_km, initial_bearing_rad, sanitize_line

DEFAULT_TOLERANCE_KM = 0.1
EPSILON = 1e-9


@dataclass(slots=True, frozen=True)
class RouteProximityResult:
    distance_km: float
    is_within_tolerance: bool


def _append_line_strings(geometry: Any, sink: list[list[LonLat]]) -> None:
    if not isinstance(geometry, Mapping):
        return
    match geometry.get("type"):
        case "FeatureCollection":
            for feature in geometry.get("features") or []:
                if isinstance(feature, Mapping) and feature.get("geometry"):
                    _append_line_strings(feature["geometry"], sink)
        case "Feature":
            if geometry.get("geometry"):
                _append_line_strings(geometry["geometry"], sink)
        case "GeometryCollection":
            for inner in geometry.get("geometries") or []:
                _append_line_strings(inner, sink)
        case "LineString":
            line = sanitize_line(geometry.get("coordinates") or [])
            if len(line) >= 2:
                sink.append(line)
        case "MultiLineString":
            for coordinates in geometry.get("coordinates") or []:
                line = sanitize_line(coordinates)
                if len(line) >= 2:
                    sink.append(line)


def point_to_segment_distance_km(point: LonLat, start: LonLat, end: LonLat) -> float:
    """Shortest distance from ``point`` to the great-circle segment ``start``-``end``.

    Uses the cross-track / along-track decomposition: projections falling before the
    start or past the end of the segment snap to the nearest endpoint.
    """

    segment_km = haversine_km(start, end)
    if segment_km < EPSILON:
        return haversine_km(point, start)

    to_start_km = haversine_km(start, point)
    if to_start_km < EPSILON:
        return 0.0

    angular_13 = to_start_km / EARTH_RADIUS_KM
    bearing_13 = initial_bearing_rad(start, point)
    bearing_12 = initial_bearing_rad(start, end)

    sin_cross_track = math.sin(angular_13) * math.sin(bearing_13 - bearing_12)
    cross_track = math.asin(max(-1.0, min(1.0, sin_cross_track)))
    cross_track_km = abs(cross_track) * EARTH_RADIUS_KM

    along_track = math.atan2(
        math.sin(angular_13) * math.cos(bearing_13 - bearing_12),
        math.cos(angular_13),
    )
    if math.isnan(along_track):
        return min(to_start_km, haversine_km(point, end))
    if along_track < -EPSILON:
        return to_start_km
    if along_track - segment_km / EARTH_RADIUS_KM > EPSILON:
        return haversine_km(point, end)
    return cross_track_km


def _minimum_distance_km(lines: Sequence[Sequence[LonLat]], coordinate: LonLat) -> float:
    minimum = math.inf
    for line in lines:
        for index in range(len(line) - 1):
            distance = point_to_segment_distance_km(coordinate, line[index], line[index + 1])
            if distance < minimum:
                minimum = distance
                if minimum < EPSILON:
                    return 0.0
    return minimum


def _validate_coordinate(coordinate: Any) -> LonLat:
    if (
        not isinstance(coordinate, (list, tuple))
        or len(coordinate) != 2
        or not all(isinstance(value, (int, float)) and not isinstance(value, bool) for value in coordinate)
        or not all(math.isfinite(value) for value in coordinate)
    ):
        raise ValueError("Coordinate must be a [lon, lat] pair with finite values.")
    return float(coordinate[0]), float(coordinate[1])


def compute_route_proximity(
    route: Mapping[str, Any],
    coordinate: Sequence[float],
    tolerance_km: float | None = None,
) -> RouteProximityResult:
    """Measure how far ``coordinate`` sits from ``route`` and whether it is within tolerance.

    ``route`` may be a FeatureCollection, Feature, GeometryCollection, LineString or
    MultiLineString. A tolerance that is missing or not positive falls back to 100 m.
    """

    if not isinstance(route, Mapping):
        raise ValueError("Route GeoJSON input is required.")
    point = _validate_coordinate(coordinate)

    lines: list[list[LonLat]] = []
    _append_line_strings(route, lines)
    if not lines:
        raise ValueError("Route GeoJSON must contain at least one LineString with two or more coordinates.")

    distance_km = _minimum_distance_km(lines, point)
    tolerance = tolerance_km if tolerance_km and tolerance_km > 0 else DEFAULT_TOLERANCE_KM
    return RouteProximityResult(distance_km=distance_km, is_within_tolerance=distance_km <= tolerance)


def is_coordinate_near_route(
    route: Mapping[str, Any],
    coordinate: Sequence[float],
    tolerance_km: float | None = None,
) -> bool:
    return compute_route_proximity(route, coordinate, tolerance_km).is_within_tolerance
