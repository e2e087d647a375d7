from datetime import datetime, timezone

import numpy as np
import pytest

from tourplanner.services.tours.matrix import TravelMatrix
from tourplanner.services.tours.models import NormalizedClient, ScoringWeights
from tourplanner.services.tours.scoring import (
    compute_neighbor_counts,
    compute_scores,
    select_seeds,
    update_client_base_metrics,
)

DISTANCES = np.array(
    [
        [0.0, 12.0, 18.0, 9.0],
        [12.0, 0.0, 5.0, 30.0],
        [18.0, 5.0, 0.0, 31.0],
        [9.0, 30.0, 31.0, 0.0],
    ]
)


def _client(index: int, age_days: float = 1.0, weight_kg: float = 100.0, urgent: bool = False) -> NormalizedClient:
    return NormalizedClient(
        id=f"c{index}",
        name=f"Client {index}",
        coordinate=(2.0 + index / 10, 48.0),
        weight_kg=weight_kg,
        order_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
        urgent=urgent,
        age_days=age_days,
        distance_from_depot_km=0.0,
        duration_from_depot_min=0.0,
        matrix_index=index,
    )


def _matrix() -> TravelMatrix:
    return TravelMatrix(distances_km=DISTANCES.copy(), durations_min=DISTANCES * 2)


def test_base_metrics_come_from_depot_row():
    clients = [_client(1), _client(2), _client(3)]

    update_client_base_metrics(clients, _matrix())

    assert [client.distance_from_depot_km for client in clients] == [12.0, 18.0, 9.0]
    assert [client.duration_from_depot_min for client in clients] == [24.0, 36.0, 18.0]


def test_neighbor_counts_use_matrix_distance():
    clients = [_client(1), _client(2), _client(3)]

    compute_neighbor_counts(clients, _matrix(), 25)

    assert [client.neighbor_count for client in clients] == [1, 1, 0]


def test_scores_are_max_normalized_weighted_sums():
    clients = [_client(1, age_days=50), _client(2, age_days=100, urgent=True), _client(3, age_days=0)]
    matrix = _matrix()
    update_client_base_metrics(clients, matrix)
    compute_neighbor_counts(clients, matrix, 25)

    compute_scores(clients, ScoringWeights())

    assert clients[0].score == pytest.approx(0.5 * 0.5 + 12 / 18 * 0.25 + 0.15)
    assert clients[1].score == pytest.approx(1.0)
    assert clients[2].score == pytest.approx(9 / 18 * 0.25)


def test_zero_maxima_contribute_nothing():
    clients = [_client(1, age_days=0), _client(2, age_days=0)]

    compute_scores(clients, ScoringWeights.merged({"urgent": 2.0}))

    assert [client.score for client in clients] == [0.0, 0.0]


def test_weight_overrides_ignore_none_and_reject_unknown_keys():
    weights = ScoringWeights.merged({"age": 1.0, "distance": None})

    assert weights.age == 1.0
    assert weights.distance == 0.25
    with pytest.raises(ValueError):
        ScoringWeights.merged({"speed": 1.0})


def test_select_seeds_orders_by_score_then_age_and_skips_weightless():
    clients = [
        _client(1, age_days=5),
        _client(2, age_days=9),
        _client(3, age_days=50, weight_kg=0),
    ]
    clients[0].score = 0.5
    clients[1].score = 0.5
    clients[2].score = 0.9

    seeds = select_seeds(clients, 2)

    assert [seed.id for seed in seeds] == ["c2", "c1"]
    assert all(seed.seed for seed in seeds)
    assert not clients[2].seed


def test_select_seeds_stops_at_desired_count():
    clients = [_client(index) for index in (1, 2, 3)]

    seeds = select_seeds(clients, 1)

    assert len(seeds) == 1
    assert sum(client.seed for client in clients) == 1
