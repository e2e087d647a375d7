"""Road geometry for built tours and pickup of clients lying along it."""

from __future__ import annotations

import logging
from typing import Any, Mapping, MutableMapping, Optional

from ..geospatial import LonLat
from ..proximity import compute_route_proximity
from .builder import EPSILON, best_insertion_index
from .matrix import RoutingService, TravelMatrix
from .models import NormalizedClient, PlannedStop, TourContext

logger = logging.getLogger(__name__)


async def enrich_with_directions(
    client: RoutingService,
    profile: str,
    depot: LonLat,
    tour: TourContext,
    *,
    max_waypoints: int,
    request_options: Optional[Mapping[str, Any]] = None,
) -> Optional[Any]:
    """Depot-to-depot route geometry for ``tour``, or None when it cannot be fetched."""

    if len(tour.stops) + 2 > max_waypoints:
        logger.info(f"Tour around {tour.seed.id} has too many waypoints for directions, skipping geometry")
        return None

    coordinates = [list(depot), *(list(stop.coordinate) for stop in tour.stops), list(depot)]
    request = {
        "coordinates": coordinates,
        "instructions": False,
        "geometry": True,
        "geometry_simplify": False,
        "format": "geojson",
    }
    try:
        return await client.directions(profile, request, request_options)
    except Exception as exc:
        logger.warning(f"Directions request for tour around {tour.seed.id} failed: {exc}")
        return None


def inject_along_route_clients(
    tour: TourContext,
    matrix: TravelMatrix,
    remaining: MutableMapping[str, NormalizedClient],
    tolerance_km: float,
    capacity_kg: float,
) -> bool:
    """Insert unassigned clients within ``tolerance_km`` of the tour's road geometry.

    Accepted clients are removed from ``remaining``. Returns whether any were added.
    """

    if not tour.route_geojson:
        return False

    stop_ids = tour.stop_ids()
    nearby: list[NormalizedClient] = []
    for candidate in remaining.values():
        if candidate.id in stop_ids:
            continue
        try:
            result = compute_route_proximity(tour.route_geojson, candidate.coordinate, tolerance_km)
        except ValueError as exc:
            logger.warning(f"Route geometry for tour around {tour.seed.id} is unusable: {exc}")
            return False
        if result.is_within_tolerance:
            nearby.append(candidate)

    nearby.sort(key=lambda candidate: -candidate.score)
    inserted = False
    for candidate in nearby:
        if candidate.weight_kg + tour.total_weight_kg > capacity_kg + EPSILON:
            continue
        index, cost = best_insertion_index(tour.stops, candidate, matrix, lock_first=True)
        tour.stops.insert(index, PlannedStop(candidate, index + 1, max(cost, 0.0)))
        tour.total_weight_kg += candidate.weight_kg
        remaining.pop(candidate.id, None)
        inserted = True

    tour.renumber()
    if inserted:
        logger.info(f"Picked up clients along the route of tour around {tour.seed.id}")
    return inserted
