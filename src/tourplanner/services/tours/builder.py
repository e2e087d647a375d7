"""Greedy capacity-constrained tour construction by cheapest insertion."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from ..geospatial import point_in_geojson
from .matrix import TravelMatrix
from .models import NormalizedClient, PlannedStop, TourContext

EPSILON = 1e-6

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Candidate:
    client: NormalizedClient
    insertion_index: int
    cost_km: float
    priority: float


def best_insertion_index(
    sequence: Sequence[Any],
    candidate: NormalizedClient,
    matrix: TravelMatrix,
    lock_first: bool = False,
) -> tuple[int, float]:
    """Cheapest position for ``candidate`` in a depot-to-depot ``sequence``.

    ``sequence`` holds anything with a ``matrix_index``. With ``lock_first`` the
    first stop keeps its place.
    """

    if not sequence:
        return 0, matrix.distance(0, candidate.matrix_index)

    best_index = 0
    best_cost = float("inf")
    target = candidate.matrix_index
    for insert_at in range(len(sequence) + 1):
        if lock_first and insert_at == 0:
            continue
        prev_index = 0 if insert_at == 0 else sequence[insert_at - 1].matrix_index
        next_index = 0 if insert_at == len(sequence) else sequence[insert_at].matrix_index
        cost = (
            matrix.distance(prev_index, target)
            + matrix.distance(target, next_index)
            - matrix.distance(prev_index, next_index)
        )
        if cost < best_cost:
            best_cost = cost
            best_index = insert_at
    return best_index, best_cost


def _priority(candidate: NormalizedClient, distance_to_seed: float, cluster_radius_km: float) -> float:
    if distance_to_seed <= cluster_radius_km:
        return candidate.score
    return candidate.score * (cluster_radius_km / (distance_to_seed + EPSILON))


def build_tour(
    seed: NormalizedClient,
    candidates: Mapping[str, NormalizedClient],
    matrix: TravelMatrix,
    capacity_kg: float,
    *,
    cluster_radius_km: float,
    max_candidates_per_tour: int,
    isochrone: Optional[Any] = None,
) -> TourContext:
    """Grow a tour around ``seed`` until capacity, reach or the stop cap stops it.

    ``candidates`` is copied, never mutated. When an isochrone is given, a
    candidate outside it is only admitted within ``cluster_radius_km`` of the seed.
    """

    context = TourContext(
        seed=seed,
        stops=[PlannedStop(seed, 1, matrix.distance(0, seed.matrix_index))],
        total_weight_kg=seed.weight_kg,
    )
    remaining = dict(candidates)
    remaining.pop(seed.id, None)

    while remaining:
        feasible: list[_Candidate] = []
        for candidate in remaining.values():
            if candidate.weight_kg + context.total_weight_kg > capacity_kg + EPSILON:
                continue
            distance_to_seed = matrix.distance(seed.matrix_index, candidate.matrix_index)
            if (
                isochrone
                and not point_in_geojson(isochrone, candidate.coordinate)
                and distance_to_seed > cluster_radius_km
            ):
                continue
            index, cost = best_insertion_index(context.stops, candidate, matrix, lock_first=True)
            feasible.append(_Candidate(candidate, index, cost, _priority(candidate, distance_to_seed, cluster_radius_km)))

        if not feasible:
            break

        best = feasible[0]
        for option in feasible[1:]:
            diff = option.priority - best.priority
            if diff > EPSILON or (abs(diff) <= EPSILON and option.cost_km < best.cost_km):
                best = option

        context.stops.insert(
            best.insertion_index,
            PlannedStop(best.client, best.insertion_index + 1, max(best.cost_km, 0.0)),
        )
        context.total_weight_kg += best.client.weight_kg
        remaining.pop(best.client.id, None)

        if len(context.stops) >= max_candidates_per_tour:
            context.warnings.append(f"Reached max candidates per tour constraint ({max_candidates_per_tour}).")
            break

    context.renumber()
    logger.debug(f"Built tour around {seed.id}: {len(context.stops)} stop(s), {context.total_weight_kg:.1f} kg")
    return context
