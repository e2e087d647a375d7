"""Client scoring and seed selection."""

from __future__ import annotations

import logging
from typing import Sequence

from .matrix import TravelMatrix
from .models import NormalizedClient, ScoringWeights

EPSILON = 1e-6

logger = logging.getLogger(__name__)


def update_client_base_metrics(clients: Sequence[NormalizedClient], matrix: TravelMatrix) -> None:
    """Replace the straight-line depot estimates with the depot row of ``matrix``."""

    for client in clients:
        if client.matrix_index < matrix.size:
            client.distance_from_depot_km = matrix.distance(0, client.matrix_index)
            client.duration_from_depot_min = matrix.duration(0, client.matrix_index)


def compute_neighbor_counts(
    clients: Sequence[NormalizedClient],
    matrix: TravelMatrix,
    neighbor_radius_km: float,
) -> None:
    for client in clients:
        neighbors = 0
        for other in clients:
            if other.id == client.id:
                continue
            if matrix.distance(client.matrix_index, other.matrix_index) <= neighbor_radius_km:
                neighbors += 1
        client.neighbor_count = neighbors


def compute_scores(clients: Sequence[NormalizedClient], weights: ScoringWeights) -> None:
    """Weighted sum of age, depot distance, neighbour density and urgency.

    Each factor is normalised by its maximum over ``clients``; a factor whose
    maximum is (near) zero contributes nothing.
    """

    max_age = max([client.age_days for client in clients] + [0.0])
    max_distance = max([client.distance_from_depot_km for client in clients] + [0.0])
    max_neighbors = max([client.neighbor_count for client in clients] + [0])

    for client in clients:
        age_score = client.age_days / max_age if max_age > EPSILON else 0.0
        distance_score = client.distance_from_depot_km / max_distance if max_distance > EPSILON else 0.0
        cluster_score = client.neighbor_count / max_neighbors if max_neighbors > 0 else 0.0
        urgent_score = 1.0 if client.urgent else 0.0
        client.score = (
            age_score * weights.age
            + distance_score * weights.distance
            + cluster_score * weights.cluster
            + urgent_score * weights.urgent
        )


def select_seeds(clients: Sequence[NormalizedClient], desired_count: int) -> list[NormalizedClient]:
    """Pick up to ``desired_count`` distinct tour anchors, best score first."""

    ordered = sorted(clients, key=lambda client: (-client.score, -client.age_days))
    seeds: list[NormalizedClient] = []
    seen: set[str] = set()
    for client in ordered:
        if client.weight_kg <= 0:
            continue
        if client.id not in seen:
            client.seed = True
            seen.add(client.id)
            seeds.append(client)
        if len(seeds) >= desired_count:
            break
    logger.info(f"Selected {len(seeds)} seed(s): {', '.join(seed.id for seed in seeds)}")
    return seeds
