"""Heuristic delivery tour planning over ORS matrix, isochrone and directions data."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Optional

from ...models.domain import TourPlanningRequest
from ..geospatial import LonLat
from .builder import EPSILON, build_tour
from .corridor import enrich_with_directions, inject_along_route_clients
from .matrix import RoutingService, TravelMatrix, fetch_matrix
from .models import (
    NormalizedClient,
    PlannedTour,
    ScoringWeights,
    TourContext,
    TourPlanningOptions,
    TourPlanningResult,
)
from .normalizer import normalize_clients, normalize_coordinate
from .reachability import build_isochrones
from .scoring import compute_neighbor_counts, compute_scores, select_seeds, update_client_base_metrics

logger = logging.getLogger(__name__)


def validate_request(request: TourPlanningRequest) -> LonLat:
    """Reject malformed requests before any remote call; returns the parsed depot."""

    if request is None or not request.clients:
        raise ValueError("At least one client is required to plan tours.")
    capacity = request.truck_capacity_kg
    if (
        isinstance(capacity, bool)
        or not isinstance(capacity, (int, float))
        or not math.isfinite(capacity)
        or capacity <= 0
    ):
        raise ValueError("Truck capacity must be a positive number.")
    tour_count = request.desired_tour_count
    if isinstance(tour_count, bool) or not isinstance(tour_count, int) or tour_count <= 0:
        raise ValueError("desired_tour_count must be a positive integer.")
    return normalize_coordinate(request.depot, "Depot coordinate")


def sum_route_metrics(tour: TourContext, matrix: TravelMatrix) -> tuple[float, float]:
    """Distance and duration of depot -> stops -> depot, read from ``matrix``."""

    distance_km = 0.0
    duration_min = 0.0
    previous = 0
    for stop in tour.stops:
        distance_km += matrix.distance(previous, stop.matrix_index)
        duration_min += matrix.duration(previous, stop.matrix_index)
        previous = stop.matrix_index
    distance_km += matrix.distance(previous, 0)
    duration_min += matrix.duration(previous, 0)
    return distance_km, duration_min


async def _refresh_geometry(
    client: RoutingService,
    depot: LonLat,
    context: TourContext,
    options: TourPlanningOptions,
) -> None:
    geometry = await enrich_with_directions(
        client,
        options.profile,
        depot,
        context,
        max_waypoints=options.limits.directions_max_waypoints,
        request_options=options.directions_request_options,
    )
    if geometry:
        context.route_geojson = geometry


async def plan_delivery_tours(
    client: RoutingService,
    request: TourPlanningRequest,
    options: Optional[TourPlanningOptions] = None,
) -> TourPlanningResult:
    """Plan up to ``request.desired_tour_count`` capacity-feasible tours.

    Steps: normalise clients, build the travel matrix (falling back to great-circle
    estimates), score clients, choose seeds, fetch per-seed isochrones, then for
    each seed grow a tour, fetch its road geometry, pick up clients along that
    road and refetch the geometry if the tour changed. Whatever is left over is
    reported as unassigned. Upstream failures degrade into warnings; only invalid
    input raises.
    """

    depot = validate_request(request)
    options = options or TourPlanningOptions()
    reference_date = options.reference_date or datetime.now(timezone.utc)
    if reference_date.tzinfo is None:
        reference_date = reference_date.replace(tzinfo=timezone.utc)
    weights = ScoringWeights.merged(options.scoring_weights)
    capacity_kg = float(request.truck_capacity_kg)

    clients = normalize_clients(request.clients, depot, reference_date, options.average_speed_kmh)

    outcome = await fetch_matrix(
        client,
        options.profile,
        depot,
        clients,
        average_speed_kmh=options.average_speed_kmh,
        max_cells=options.limits.matrix_max_cells,
        request_options=options.matrix_request_options,
    )
    matrix = outcome.matrix

    update_client_base_metrics(clients, matrix)
    compute_neighbor_counts(clients, matrix, options.neighbor_radius_km)
    compute_scores(clients, weights)
    seeds = select_seeds(clients, request.desired_tour_count)

    isochrones = await build_isochrones(
        client,
        options.profile,
        seeds,
        iso_range_minutes=options.iso_range_minutes,
        max_iso_requests=options.max_iso_requests,
        max_locations=options.limits.isochrone_max_locations,
        request_options=options.isochrone_request_options,
    )

    remaining: dict[str, NormalizedClient] = {item.id: item for item in clients}
    tours: list[PlannedTour] = []
    warnings: list[str] = list(matrix.warnings)

    for seed in seeds:
        if seed.id not in remaining:
            continue
        if seed.weight_kg > capacity_kg + EPSILON:
            logger.warning(f"Seed {seed.id} alone exceeds truck capacity, leaving it unassigned")
            continue
        context = build_tour(
            seed,
            remaining,
            matrix,
            capacity_kg,
            cluster_radius_km=options.cluster_radius_km,
            max_candidates_per_tour=options.max_candidates_per_tour,
            isochrone=isochrones.get(seed.id),
        )
        await _refresh_geometry(client, depot, context, options)
        if inject_along_route_clients(
            context,
            matrix,
            remaining,
            options.along_route_tolerance_km,
            capacity_kg,
        ):
            await _refresh_geometry(client, depot, context, options)

        distance_km, duration_min = sum_route_metrics(context, matrix)
        tours.append(
            PlannedTour(
                id=f"tour_{len(tours) + 1}",
                stops=context.stops,
                total_weight_kg=context.total_weight_kg,
                estimated_distance_km=distance_km,
                estimated_duration_min=duration_min,
                route_geojson=context.route_geojson,
                warnings=context.warnings,
            )
        )
        for stop in context.stops:
            remaining.pop(stop.id, None)

    if remaining:
        for leftover in remaining.values():
            if leftover.weight_kg > capacity_kg:
                warnings.append(f'Client "{leftover.name}" exceeds truck capacity and remains unassigned.')
        warnings.append(f"{len(remaining)} client(s) remain unassigned after planning.")

    unassigned = sorted(remaining.values(), key=lambda item: -item.score)
    logger.info(
        f"Planned {len(tours)} tour(s) for {len(clients)} client(s); {len(unassigned)} unassigned"
    )
    return TourPlanningResult(
        tours=tours,
        unassigned=unassigned,
        warnings=warnings,
        scoring_weights=weights,
        created_at=reference_date,
    )


def result_summary(result: TourPlanningResult) -> dict[str, Any]:
    """Totals across all tours, used by the API response."""

    return {
        "tour_count": len(result.tours),
        "assigned_clients": sum(len(tour.stops) for tour in result.tours),
        "unassigned_clients": len(result.unassigned),
        "total_weight_kg": sum(tour.total_weight_kg for tour in result.tours),
        "total_distance_km": sum(tour.estimated_distance_km for tour in result.tours),
        "total_duration_min": sum(tour.estimated_duration_min for tour in result.tours),
    }
