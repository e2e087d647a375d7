"""Pairwise distance/duration matrix for the depot and every client."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol, Sequence

import numpy as np

from ..geospatial import LonLat, haversine_km
from .models import NormalizedClient

KM_PER_M = 0.001
SECONDS_PER_MINUTE = 60.0

FALLBACK_WARNING = "Used haversine fallback for pairwise distances and durations."
MISSING_DISTANCE_WARNING = "Missing distance value in matrix response, used haversine estimate."
MISSING_DURATION_WARNING = "Missing duration value in matrix response, estimated from average speed."

logger = logging.getLogger(__name__)


class RoutingService(Protocol):
    """The three ORS operations the heuristic planner needs."""

    async def matrix(
        self, profile: str, request: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None
    ) -> Any: ...

    async def isochrones(
        self, profile: str, request: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None
    ) -> Any: ...

    async def directions(
        self, profile: str, request: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None
    ) -> Any: ...


@dataclass(slots=True)
class TravelMatrix:
    """Square matrices indexed by matrix index: 0 is the depot, clients follow."""

    distances_km: np.ndarray
    durations_min: np.ndarray
    warnings: list[str] = field(default_factory=list)

    @property
    def size(self) -> int:
        return int(self.distances_km.shape[0])

    def distance(self, origin: int, destination: int) -> float:
        return float(self.distances_km[origin, destination])

    def duration(self, origin: int, destination: int) -> float:
        return float(self.durations_min[origin, destination])


@dataclass(slots=True)
class MatrixOutcome:
    """A matrix plus the reason it was estimated locally, if it was."""

    matrix: TravelMatrix
    fallback_reason: Optional[str] = None

    @property
    def used_fallback(self) -> bool:
        return self.fallback_reason is not None


def build_fallback_matrix(
    locations: Sequence[LonLat],
    average_speed_kmh: float,
    warnings: Optional[list[str]] = None,
) -> TravelMatrix:
    """Great-circle distances with durations derived from ``average_speed_kmh``."""

    size = len(locations)
    distances = np.zeros((size, size), dtype=np.float64)
    for i in range(size):
        for j in range(size):
            if i != j:
                distances[i, j] = haversine_km(locations[i], locations[j])
    durations = distances / average_speed_kmh * 60.0
    collected = list(warnings or [])
    collected.append(FALLBACK_WARNING)
    return TravelMatrix(distances_km=distances, durations_min=durations, warnings=collected)


def _cell(rows: Any, i: int, j: int) -> Optional[float]:
    try:
        value = rows[i][j]
    except (IndexError, KeyError, TypeError):
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def normalize_matrix_response(
    response: Mapping[str, Any],
    locations: Sequence[LonLat],
    average_speed_kmh: float,
    warnings: Optional[list[str]] = None,
) -> TravelMatrix:
    """Convert metres/seconds to km/minutes, estimating any missing cell locally."""

    size = len(locations)
    raw_distances = response.get("distances") if isinstance(response, Mapping) else None
    raw_durations = response.get("durations") if isinstance(response, Mapping) else None
    collected = list(warnings or [])
    distances = np.zeros((size, size), dtype=np.float64)
    durations = np.zeros((size, size), dtype=np.float64)

    for i in range(size):
        for j in range(size):
            distance_m = _cell(raw_distances, i, j)
            if distance_m is not None:
                distances[i, j] = distance_m * KM_PER_M
            else:
                distances[i, j] = haversine_km(locations[i], locations[j])
                collected.append(MISSING_DISTANCE_WARNING)

            duration_s = _cell(raw_durations, i, j)
            if duration_s is not None:
                durations[i, j] = duration_s / SECONDS_PER_MINUTE
            else:
                durations[i, j] = distances[i, j] / average_speed_kmh * 60.0
                collected.append(MISSING_DURATION_WARNING)

    return TravelMatrix(distances_km=distances, durations_min=durations, warnings=collected)


async def fetch_matrix(
    client: RoutingService,
    profile: str,
    depot: LonLat,
    clients: Sequence[NormalizedClient],
    *,
    average_speed_kmh: float,
    max_cells: int,
    request_options: Optional[Mapping[str, Any]] = None,
) -> MatrixOutcome:
    locations: list[LonLat] = [depot, *(client_.coordinate for client_ in clients)]
    cell_count = len(locations) ** 2
    if cell_count > max_cells:
        reason = f"Matrix size {cell_count} exceeds limit {max_cells}. Falling back to haversine distances."
        logger.warning(reason)
        return MatrixOutcome(build_fallback_matrix(locations, average_speed_kmh, [reason]), reason)

    request = {
        "locations": [list(location) for location in locations],
        "metrics": ["distance", "duration"],
    }
    try:
        response = await client.matrix(profile, request, request_options)
    except Exception as exc:
        reason = f"ORS matrix request failed ({exc}). Using haversine fallback."
        logger.warning(reason)
        return MatrixOutcome(build_fallback_matrix(locations, average_speed_kmh, [reason]), reason)

    matrix = normalize_matrix_response(response or {}, locations, average_speed_kmh)
    if matrix.warnings:
        logger.warning(f"Matrix response had {len(matrix.warnings)} missing cell(s), estimated locally")
    else:
        logger.info(f"Loaded {len(locations)}x{len(locations)} matrix from ORS ({profile})")
    return MatrixOutcome(matrix)


async def build_matrix(
    client: RoutingService,
    profile: str,
    depot: LonLat,
    clients: Sequence[NormalizedClient],
    *,
    average_speed_kmh: float,
    max_cells: int,
    request_options: Optional[Mapping[str, Any]] = None,
) -> TravelMatrix:
    outcome = await fetch_matrix(
        client,
        profile,
        depot,
        clients,
        average_speed_kmh=average_speed_kmh,
        max_cells=max_cells,
        request_options=request_options,
    )
    return outcome.matrix
