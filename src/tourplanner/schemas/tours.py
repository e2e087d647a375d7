"""Tour planning request/response schemas."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from ..models.domain import DeliveryClient, TourPlanningRequest
from ..services.tours.models import (
    NormalizedClient,
    PlannedTour,
    TourPlanningLimits,
    TourPlanningOptions,
    TourPlanningResult,
)
from ..services.tours.planner import result_summary
from ..services.tours.vrp import VRPPlannerOptions, VRPPlanningResult


class DeliveryClientModel(BaseModel):
    id: Optional[str] = None
    name: str
    coordinate: List[float] = Field(..., description="[lon, lat] pair.")
    weight_kg: float
    order_date: Union[datetime, date, str] = Field(..., description="ISO-8601 date or datetime.")
    urgent: bool = False

    def to_domain(self) -> DeliveryClient:
        return DeliveryClient(
            name=self.name,
            coordinate=tuple(self.coordinate),
            weight_kg=self.weight_kg,
            order_date=self.order_date,
            id=self.id,
            urgent=self.urgent,
        )


class ScoringWeightsModel(BaseModel):
    age: Optional[float] = None
    distance: Optional[float] = None
    cluster: Optional[float] = None
    urgent: Optional[float] = None


class PlanningLimitsModel(BaseModel):
    matrix_max_cells: Optional[int] = Field(None, ge=1)
    directions_max_waypoints: Optional[int] = Field(None, ge=2)
    isochrone_max_locations: Optional[int] = Field(None, ge=0)


class TourPlanRequest(BaseModel):
    depot: List[float] = Field(..., description="[lon, lat] of the depot all tours start and end at.")
    clients: List[DeliveryClientModel]
    truck_capacity_kg: float
    desired_tour_count: int = 1
    profile: Optional[str] = None
    iso_range_minutes: Optional[float] = Field(None, ge=0)
    max_iso_requests: Optional[int] = Field(None, ge=0)
    cluster_radius_km: Optional[float] = Field(None, gt=0)
    neighbor_radius_km: Optional[float] = Field(None, gt=0)
    along_route_tolerance_km: Optional[float] = Field(None, ge=0)
    average_speed_kmh: Optional[float] = Field(None, gt=0)
    max_candidates_per_tour: Optional[int] = Field(None, ge=1)
    scoring_weights: Optional[ScoringWeightsModel] = None
    reference_date: Optional[datetime] = Field(
        default=None, description="Moment client ages are measured from. Defaults to now."
    )
    limits: Optional[PlanningLimitsModel] = None

    @field_validator("depot")
    @classmethod
    def _check_pair(cls, value: List[float]) -> List[float]:
        if len(value) != 2:
            raise ValueError("depot must be a [lon, lat] pair")
        return value

    def to_request(self) -> TourPlanningRequest:
        return TourPlanningRequest(
            depot=tuple(self.depot),
            clients=[client.to_domain() for client in self.clients],
            truck_capacity_kg=self.truck_capacity_kg,
            desired_tour_count=self.desired_tour_count,
        )

    def to_options(self) -> TourPlanningOptions:
        options = TourPlanningOptions()
        overrides = self.model_dump(
            include={
                "profile",
                "iso_range_minutes",
                "max_iso_requests",
                "cluster_radius_km",
                "neighbor_radius_km",
                "along_route_tolerance_km",
                "average_speed_kmh",
                "max_candidates_per_tour",
                "reference_date",
            },
            exclude_none=True,
        )
        for key, value in overrides.items():
            setattr(options, key, value)
        if self.scoring_weights is not None:
            options.scoring_weights = self.scoring_weights.model_dump(exclude_none=True)
        if self.limits is not None:
            limits = TourPlanningLimits()
            for key, value in self.limits.model_dump(exclude_none=True).items():
                setattr(limits, key, value)
            options.limits = limits
        return options


class VRPPlanRequest(BaseModel):
    depot: List[float]
    clients: List[DeliveryClientModel]
    truck_capacity_kg: float
    desired_tour_count: int = 1
    profile: Optional[str] = None
    service_time_minutes: Optional[float] = Field(None, ge=0)
    shift_duration_hours: Optional[float] = Field(None, gt=0)
    shift_start_seconds: Optional[int] = Field(None, ge=0)
    reference_date: Optional[datetime] = None

    def to_request(self) -> TourPlanningRequest:
        return TourPlanningRequest(
            depot=tuple(self.depot),
            clients=[client.to_domain() for client in self.clients],
            truck_capacity_kg=self.truck_capacity_kg,
            desired_tour_count=self.desired_tour_count,
        )

    def to_options(self) -> VRPPlannerOptions:
        options = VRPPlannerOptions()
        for key, value in self.model_dump(
            include={"profile", "service_time_minutes", "shift_duration_hours", "shift_start_seconds", "reference_date"},
            exclude_none=True,
        ).items():
            setattr(options, key, value)
        return options


class PlannedClientModel(BaseModel):
    id: str
    name: str
    coordinate: List[float]
    weight_kg: float
    order_date: datetime
    urgent: bool
    age_days: float
    distance_from_depot_km: float
    duration_from_depot_min: float
    neighbor_count: int
    score: float
    seed: bool
    matrix_index: int

    @classmethod
    def from_client(cls, client: NormalizedClient) -> "PlannedClientModel":
        return cls(
            id=client.id,
            name=client.name,
            coordinate=list(client.coordinate),
            weight_kg=client.weight_kg,
            order_date=client.order_date,
            urgent=client.urgent,
            age_days=client.age_days,
            distance_from_depot_km=client.distance_from_depot_km,
            duration_from_depot_min=client.duration_from_depot_min,
            neighbor_count=client.neighbor_count,
            score=client.score,
            seed=client.seed,
            matrix_index=client.matrix_index,
        )


class PlannedStopModel(PlannedClientModel):
    position: int
    insertion_cost_km: float


class PlannedTourModel(BaseModel):
    id: str
    stops: List[PlannedStopModel]
    total_weight_kg: float
    estimated_distance_km: float
    estimated_duration_min: float
    route_geojson: Optional[Dict[str, Any]] = None
    warnings: List[str] = Field(default_factory=list)

    @classmethod
    def from_tour(cls, tour: PlannedTour) -> "PlannedTourModel":
        stops = [
            PlannedStopModel(
                **PlannedClientModel.from_client(stop.client).model_dump(),
                position=stop.position,
                insertion_cost_km=stop.insertion_cost_km,
            )
            for stop in tour.stops
        ]
        return cls(
            id=tour.id,
            stops=stops,
            total_weight_kg=tour.total_weight_kg,
            estimated_distance_km=tour.estimated_distance_km,
            estimated_duration_min=tour.estimated_duration_min,
            route_geojson=tour.route_geojson,
            warnings=list(tour.warnings),
        )


class TourPlanResponse(BaseModel):
    tours: List[PlannedTourModel]
    unassigned: List[PlannedClientModel]
    warnings: List[str]
    scoring_weights: Dict[str, float]
    created_at: datetime
    summary: Dict[str, float]

    @classmethod
    def from_result(cls, result: TourPlanningResult) -> "TourPlanResponse":
        return cls(
            tours=[PlannedTourModel.from_tour(tour) for tour in result.tours],
            unassigned=[PlannedClientModel.from_client(client) for client in result.unassigned],
            warnings=list(result.warnings),
            scoring_weights=result.scoring_weights.to_dict(),
            created_at=result.created_at,
            summary=result_summary(result),
        )


class SolverSummaryModel(BaseModel):
    vehicles_requested: int
    vehicles_used: int
    cost: Optional[float] = None
    distance_km: float
    duration_min: float
    code: Optional[int] = None


class VRPPlanResponse(BaseModel):
    tours: List[PlannedTourModel]
    unassigned: List[PlannedClientModel]
    warnings: List[str]
    created_at: datetime
    solver: SolverSummaryModel

    @classmethod
    def from_result(cls, result: VRPPlanningResult) -> "VRPPlanResponse":
        solver = result.solver
        return cls(
            tours=[PlannedTourModel.from_tour(tour) for tour in result.tours],
            unassigned=[PlannedClientModel.from_client(client) for client in result.unassigned],
            warnings=list(result.warnings),
            created_at=result.created_at,
            solver=SolverSummaryModel(
                vehicles_requested=solver.vehicles_requested,
                vehicles_used=solver.vehicles_used,
                cost=solver.cost,
                distance_km=solver.distance_km,
                duration_min=solver.duration_min,
                code=solver.code,
            ),
        )
