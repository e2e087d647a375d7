"""Geospatial helper functions.

Coordinates follow the GeoJSON convention used by openrouteservice: ``(lon, lat)``.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, Iterator, Mapping, Sequence

from shapely.geometry import Point, Polygon

EARTH_RADIUS_KM = 6371.0
KM2_PER_SQUARE_DEGREE = ((math.pi / 180.0) * EARTH_RADIUS_KM) ** 2

LonLat = tuple[float, float]
BBox = tuple[float, float, float, float]


def sanitize_coordinate(value: Any) -> LonLat | None:
    """Return ``(lon, lat)`` when ``value`` holds two finite numbers, otherwise None."""

    if not isinstance(value, (list, tuple)) or len(value) < 2:
        return None
    try:
        lon = float(value[0])
        lat = float(value[1])
    except (TypeError, ValueError):
        return None
    if not math.isfinite(lon) or not math.isfinite(lat):
        return None
    return lon, lat


def sanitize_line(coordinates: Iterable[Any]) -> list[LonLat]:
    return [coordinate for coordinate in map(sanitize_coordinate, coordinates or ()) if coordinate]


def haversine_km(a: Sequence[float], b: Sequence[float]) -> float:
    """Compute distance between two ``(lon, lat)`` coordinates using the Haversine formula."""

    lon1, lat1 = a[0], a[1]
    lon2, lat2 = b[0], b[1]
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    h = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c


def initial_bearing_rad(start: Sequence[float], end: Sequence[float]) -> float:
    """Initial great-circle bearing from ``start`` to ``end`` in radians."""

    phi1 = math.radians(start[1])
    phi2 = math.radians(end[1])
    delta_lambda = math.radians(end[0] - start[0])
    y = math.sin(delta_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda)
    return math.atan2(y, x)


def bbox_area_km2(bbox: Sequence[float]) -> float:
    """Approximate the area of a lon/lat box as width x height along its minimum edges.

    Good enough for limit checks, not for cartography.
    """

    min_lon, min_lat, max_lon, max_lat = bbox
    width = haversine_km((min_lon, min_lat), (max_lon, min_lat))
    height = haversine_km((min_lon, min_lat), (min_lon, max_lat))
    return width * height


def _ring_area_km2(ring: Sequence[LonLat], latitude_factor: float) -> float:
    area = 0.0
    count = len(ring)
    for index in range(count):
        lon1, lat1 = ring[index]
        lon2, lat2 = ring[(index + 1) % count]
        area += (lon1 * latitude_factor) * lat2 - (lon2 * latitude_factor) * lat1
    return abs(area) * 0.5 * KM2_PER_SQUARE_DEGREE


def polygon_area_km2(polygon: Mapping[str, Any]) -> float:
    """Planar shoelace area of a GeoJSON Polygon on a local equirectangular projection."""

    rings = polygon.get("coordinates") or []
    if not rings:
        return 0.0
    outer = sanitize_line(rings[0])
    if not outer:
        return 0.0

    mean_lat = sum(lat for _, lat in outer) / len(outer)
    latitude_factor = math.cos(math.radians(mean_lat))

    area = _ring_area_km2(outer, latitude_factor)
    for hole in rings[1:]:
        area -= _ring_area_km2(sanitize_line(hole), latitude_factor)
    return max(area, 0.0)


def multipolygon_area_km2(multipolygon: Mapping[str, Any]) -> float:
    return sum(
        polygon_area_km2({"type": "Polygon", "coordinates": rings})
        for rings in multipolygon.get("coordinates") or []
    )


def geojson_area_km2(geojson: Mapping[str, Any] | None) -> float:
    """Sum polygon areas across Polygon, MultiPolygon, Feature and FeatureCollection inputs."""

    if not isinstance(geojson, Mapping):
        return 0.0
    match geojson.get("type"):
        case "Polygon":
            return polygon_area_km2(geojson)
        case "MultiPolygon":
            return multipolygon_area_km2(geojson)
        case "Feature":
            return geojson_area_km2(geojson.get("geometry"))
        case "FeatureCollection":
            return sum(geojson_area_km2(feature) for feature in geojson.get("features") or [])
        case _:
            return 0.0


def path_length_km(coordinates: Sequence[Sequence[float]]) -> float:
    """Straight-line length of a coordinate path."""

    if len(coordinates) < 2:
        return 0.0
    return sum(haversine_km(coordinates[i], coordinates[i + 1]) for i in range(len(coordinates) - 1))


def linestring_length_km(line: Mapping[str, Any]) -> float:
    return path_length_km(sanitize_line(line.get("coordinates") or []))


def iter_coordinates(geojson: Any) -> Iterator[LonLat]:
    """Yield every finite coordinate of a GeoJSON object, whatever its nesting."""

    if not isinstance(geojson, Mapping):
        return
    geometry_type = geojson.get("type")
    if geometry_type == "FeatureCollection":
        for feature in geojson.get("features") or []:
            yield from iter_coordinates(feature)
    elif geometry_type == "Feature":
        yield from iter_coordinates(geojson.get("geometry"))
    elif geometry_type == "GeometryCollection":
        for inner in geojson.get("geometries") or []:
            yield from iter_coordinates(inner)
    elif geometry_type == "Point":
        coordinate = sanitize_coordinate(geojson.get("coordinates"))
        if coordinate:
            yield coordinate
    elif geometry_type in ("MultiPoint", "LineString"):
        yield from sanitize_line(geojson.get("coordinates"))
    elif geometry_type in ("MultiLineString", "Polygon"):
        for line in geojson.get("coordinates") or []:
            yield from sanitize_line(line)
    elif geometry_type == "MultiPolygon":
        for polygon in geojson.get("coordinates") or []:
            for ring in polygon:
                yield from sanitize_line(ring)


def geometry_bbox(geojson: Any) -> BBox | None:
    coordinates = list(iter_coordinates(geojson))
    if not coordinates:
        return None
    lons = [lon for lon, _ in coordinates]
    lats = [lat for _, lat in coordinates]
    return min(lons), min(lats), max(lons), max(lats)


def point_in_polygon(lon: float, lat: float, ring: Sequence[Sequence[float]]) -> bool:
    """Return True if the point lies inside the ring denoted by (lon, lat) pairs."""

    cleaned = sanitize_line(ring)
    if len(cleaned) < 3:
        return False
    return Polygon(cleaned).contains(Point(lon, lat))


def point_in_geojson(geojson: Any, coordinate: Sequence[float]) -> bool:
    """Containment test against the outer rings of any polygonal GeoJSON object."""

    if not isinstance(geojson, Mapping):
        return False
    lon, lat = coordinate[0], coordinate[1]
    match geojson.get("type"):
        case "FeatureCollection":
            return any(point_in_geojson(feature, coordinate) for feature in geojson.get("features") or [])
        case "Feature":
            return point_in_geojson(geojson.get("geometry"), coordinate)
        case "Polygon":
            rings = geojson.get("coordinates") or []
            return bool(rings) and point_in_polygon(lon, lat, rings[0])
        case "MultiPolygon":
            return any(
                bool(rings) and point_in_polygon(lon, lat, rings[0])
                for rings in geojson.get("coordinates") or []
            )
        case _:
            return False
