"""Dataclasses shared by the tour planning pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from typing import Any, Mapping, Optional

from ...config import settings
from ..ors.limits import DEFAULT_LIMITS


@dataclass(slots=True)
class ScoringWeights:
    age: float = 0.5
    distance: float = 0.25
    cluster: float = 0.15
    urgent: float = 0.1

    @classmethod
    def merged(cls, overrides: Mapping[str, float] | None = None) -> "ScoringWeights":
        """Defaults with any non-None override applied."""

        weights = cls()
        known = {item.name for item in fields(cls)}
        for key, value in (overrides or {}).items():
            if value is None:
                continue
            if key not in known:
                raise ValueError(f"Unknown scoring weight '{key}'.")
            setattr(weights, key, float(value))
        return weights

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(slots=True)
class TourPlanningLimits:
    matrix_max_cells: int = DEFAULT_LIMITS.matrix.max_locations_product
    directions_max_waypoints: int = DEFAULT_LIMITS.directions.max_waypoints
    isochrone_max_locations: int = DEFAULT_LIMITS.isochrones.max_locations


@dataclass(slots=True)
class TourPlanningOptions:
    """Tunables for one planning run. Defaults come from the ``ORS_PLANNER_*`` settings."""

    profile: str = field(default_factory=lambda: settings.default_profile)
    iso_range_minutes: float = field(default_factory=lambda: settings.planner_iso_range_minutes)
    max_iso_requests: int = field(default_factory=lambda: settings.planner_max_iso_requests)
    cluster_radius_km: float = field(default_factory=lambda: settings.planner_cluster_radius_km)
    neighbor_radius_km: float = field(default_factory=lambda: settings.planner_neighbor_radius_km)
    along_route_tolerance_km: float = field(default_factory=lambda: settings.planner_along_route_tolerance_km)
    average_speed_kmh: float = field(default_factory=lambda: settings.planner_average_speed_kmh)
    max_candidates_per_tour: int = field(default_factory=lambda: settings.planner_max_candidates_per_tour)
    scoring_weights: Optional[Mapping[str, float]] = None
    reference_date: Optional[datetime] = None
    limits: TourPlanningLimits = field(default_factory=TourPlanningLimits)
    matrix_request_options: Optional[Mapping[str, Any]] = None
    isochrone_request_options: Optional[Mapping[str, Any]] = None
    directions_request_options: Optional[Mapping[str, Any]] = None


@dataclass(slots=True)
class NormalizedClient:
    """A delivery client resolved for one planning run; scoring fields are filled in later."""

    id: str
    name: str
    coordinate: tuple[float, float]
    weight_kg: float
    order_date: datetime
    urgent: bool
    age_days: float
    distance_from_depot_km: float
    duration_from_depot_min: float
    matrix_index: int
    neighbor_count: int = 0
    score: float = 0.0
    seed: bool = False


@dataclass(slots=True)
class PlannedStop:
    client: NormalizedClient
    position: int
    insertion_cost_km: float

    @property
    def id(self) -> str:
        return self.client.id

    @property
    def matrix_index(self) -> int:
        return self.client.matrix_index

    @property
    def coordinate(self) -> tuple[float, float]:
        return self.client.coordinate

    @property
    def weight_kg(self) -> float:
        return self.client.weight_kg


@dataclass(slots=True)
class TourContext:
    """Mutable per-tour state passed between the builder, enricher and injector."""

    seed: NormalizedClient
    stops: list[PlannedStop]
    total_weight_kg: float
    warnings: list[str] = field(default_factory=list)
    route_geojson: Optional[dict[str, Any]] = None

    def renumber(self) -> None:
        for index, stop in enumerate(self.stops):
            stop.position = index + 1

    def stop_ids(self) -> set[str]:
        return {stop.id for stop in self.stops}


@dataclass(slots=True)
class PlannedTour:
    id: str
    stops: list[PlannedStop]
    total_weight_kg: float
    estimated_distance_km: float
    estimated_duration_min: float
    route_geojson: Optional[dict[str, Any]] = None
    warnings: list[str] = field(default_factory=list)


@dataclass(slots=True)
class TourPlanningResult:
    tours: list[PlannedTour]
    unassigned: list[NormalizedClient]
    warnings: list[str]
    scoring_weights: ScoringWeights
    created_at: datetime
