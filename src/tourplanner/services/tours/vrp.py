"""Tour planning delegated to the ORS optimization (VROOM) endpoint."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Protocol, Sequence

from ...config import settings
from ...models.domain import TourPlanningRequest
from ..geospatial import LonLat, sanitize_coordinate
from ..ors.limits import DEFAULT_LIMITS
from .models import NormalizedClient, PlannedStop, PlannedTour
from .normalizer import normalize_client
from .planner import validate_request

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600

logger = logging.getLogger(__name__)


class OptimizationService(Protocol):
    async def optimization(self, request: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None) -> Any: ...


@dataclass(slots=True)
class VRPPlannerOptions:
    profile: str = field(default_factory=lambda: settings.default_profile)
    service_time_minutes: float = 20.0
    priority_base: int = 60
    priority_age_scale: float = 2.0
    urgent_priority_boost: int = 25
    average_speed_kmh: float = field(default_factory=lambda: settings.planner_average_speed_kmh)
    shift_duration_hours: float = 10.0
    shift_start_seconds: int = 0
    max_vehicles: int = DEFAULT_LIMITS.optimization.max_vehicles
    reference_date: Optional[datetime] = None
    optimization_request_options: Optional[Mapping[str, Any]] = None


@dataclass(slots=True)
class VRPJob:
    client: NormalizedClient
    job_id: int
    demand: int
    priority: int


@dataclass(slots=True)
class SolverSummary:
    vehicles_requested: int
    vehicles_used: int
    cost: Optional[float] = None
    distance_km: float = 0.0
    duration_min: float = 0.0
    code: Optional[int] = None


@dataclass(slots=True)
class VRPPlanningResult:
    tours: list[PlannedTour]
    unassigned: list[NormalizedClient]
    warnings: list[str]
    created_at: datetime
    solver: SolverSummary


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def job_priority(age_days: float, urgent: bool, options: VRPPlannerOptions) -> int:
    """VROOM priority in [1, 100]: starts at ``priority_base`` and drops with age and urgency."""

    priority = options.priority_base - min(45, _round_half_up(age_days * options.priority_age_scale))
    if urgent:
        priority -= options.urgent_priority_boost
    return max(1, min(100, priority))


def _build_jobs(
    request: TourPlanningRequest,
    depot: LonLat,
    reference_date: datetime,
    options: VRPPlannerOptions,
) -> list[VRPJob]:
    jobs: list[VRPJob] = []
    for index, raw in enumerate(request.clients):
        client = normalize_client(raw, index, depot, reference_date, options.average_speed_kmh)
        client.score = client.age_days
        jobs.append(
            VRPJob(
                client=client,
                job_id=index + 1,
                demand=max(1, _round_half_up(client.weight_kg)),
                priority=job_priority(client.age_days, client.urgent, options),
            )
        )
    return jobs


def build_optimization_request(
    jobs: Sequence[VRPJob],
    depot: LonLat,
    capacity_kg: float,
    vehicle_count: int,
    options: VRPPlannerOptions,
) -> dict[str, Any]:
    service_seconds = max(0, _round_half_up(options.service_time_minutes * SECONDS_PER_MINUTE))
    shift_seconds = max(SECONDS_PER_HOUR, _round_half_up(options.shift_duration_hours * SECONDS_PER_HOUR))
    shift_start = max(0, options.shift_start_seconds)
    capacity = max(1, _round_half_up(capacity_kg))

    vehicles = [
        {
            "id": index + 1,
            "profile": options.profile,
            "start": list(depot),
            "end": list(depot),
            "capacity": [capacity],
            "time_window": [shift_start, shift_start + shift_seconds],
            "speed_factor": 1,
        }
        for index in range(vehicle_count)
    ]
    payload_jobs = []
    for job in jobs:
        entry: dict[str, Any] = {
            "id": job.job_id,
            "name": job.client.name or job.client.id,
            "location": list(job.client.coordinate),
            "service": service_seconds,
            "amount": [job.demand],
            "priority": job.priority,
        }
        if job.client.urgent:
            entry["skills"] = [1]
        payload_jobs.append(entry)
    return {"jobs": payload_jobs, "vehicles": vehicles}


def _section(response: Mapping[str, Any], key: str) -> Any:
    value = response.get(key)
    if value:
        return value
    solution = response.get("solution")
    if isinstance(solution, Mapping) and solution.get(key):
        return solution[key]
    return None


def _km(meters: Any) -> float:
    return meters / 1000.0 if isinstance(meters, (int, float)) else 0.0


def _minutes(seconds: Any) -> float:
    return seconds / SECONDS_PER_MINUTE if isinstance(seconds, (int, float)) else 0.0


def _route_geojson(steps: Sequence[Mapping[str, Any]]) -> Optional[dict[str, Any]]:
    coordinates = [
        [coordinate[0], coordinate[1]]
        for coordinate in (sanitize_coordinate(step.get("location")) for step in steps)
        if coordinate
    ]
    if len(coordinates) < 2:
        return None
    return {
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "properties": {}, "geometry": {"type": "LineString", "coordinates": coordinates}}
        ],
    }


def _stops_from_steps(
    steps: Sequence[Mapping[str, Any]],
    jobs_by_id: Mapping[int, VRPJob],
) -> tuple[list[PlannedStop], float, list[int]]:
    stops: list[PlannedStop] = []
    total_weight = 0.0
    previous_distance = 0.0
    job_ids: list[int] = []
    for step in steps:
        job_id = step.get("job") or step.get("id")
        distance = step.get("distance")
        if not job_id or job_id not in jobs_by_id:
            if isinstance(distance, (int, float)):
                previous_distance = distance
            continue
        job = jobs_by_id[job_id]
        cost_m = max(0.0, distance - previous_distance) if isinstance(distance, (int, float)) else 0.0
        if isinstance(distance, (int, float)):
            previous_distance = distance
        total_weight += job.client.weight_kg
        stops.append(PlannedStop(job.client, len(stops) + 1, cost_m / 1000.0))
        job_ids.append(job_id)
    return stops, total_weight, job_ids


async def plan_delivery_tours_vrp(
    client: OptimizationService,
    request: TourPlanningRequest,
    options: Optional[VRPPlannerOptions] = None,
) -> VRPPlanningResult:
    """Plan tours with the ORS optimization solver instead of the local heuristic.

    The vehicle count is clamped to the optimization limit. A solver failure
    raises ``RuntimeError``; jobs the solver drops come back as unassigned.
    """

    depot = validate_request(request)
    options = options or VRPPlannerOptions()
    reference_date = options.reference_date or datetime.now(timezone.utc)
    if reference_date.tzinfo is None:
        reference_date = reference_date.replace(tzinfo=timezone.utc)

    jobs = _build_jobs(request, depot, reference_date, options)
    jobs_by_id = {job.job_id: job for job in jobs}

    requested = request.desired_tour_count
    vehicle_count = min(requested, options.max_vehicles)
    warnings: list[str] = []
    if requested > options.max_vehicles:
        warnings.append(
            f"Requested {requested} vehicles but optimization limit is {options.max_vehicles}. "
            f"Using {vehicle_count} vehicle(s)."
        )

    payload = build_optimization_request(jobs, depot, request.truck_capacity_kg, vehicle_count, options)
    try:
        response = await client.optimization(payload, options.optimization_request_options)
    except Exception as exc:
        logger.warning(f"ORS optimization request failed: {exc}")
        raise RuntimeError(f"ORS optimization failed: {str(exc) or 'Unknown error'}") from exc
    if not isinstance(response, Mapping):
        response = {}

    routes = _section(response, "routes") or []
    tours: list[PlannedTour] = []
    assigned: set[int] = set()
    for route in routes:
        steps = route.get("steps") or []
        stops, total_weight, job_ids = _stops_from_steps(steps, jobs_by_id)
        assigned.update(job_ids)
        tours.append(
            PlannedTour(
                id=f"vrp_tour_{len(tours) + 1}",
                stops=stops,
                total_weight_kg=total_weight,
                estimated_distance_km=_km(route.get("distance")),
                estimated_duration_min=_minutes(route.get("duration")),
                route_geojson=_route_geojson(steps),
            )
        )

    unassigned: list[NormalizedClient] = []
    unassigned_ids: set[int] = set()
    for entry in _section(response, "unassigned") or []:
        job_id = entry.get("job") or entry.get("id")
        job = jobs_by_id.get(job_id) if job_id else None
        if job is not None:
            unassigned.append(job.client)
            unassigned_ids.add(job.job_id)
            warnings.append(f'Client "{job.client.name or job.client.id}" remains unassigned by the solver.')

    for job in jobs:
        if job.job_id not in assigned and job.job_id not in unassigned_ids:
            unassigned.append(job.client)
            warnings.append(f'Client "{job.client.name or job.client.id}" has no assigned route in the solver response.')

    summary = _section(response, "summary") or {}
    logger.info(f"Solver returned {len(routes)} route(s), {len(unassigned)} unassigned client(s)")
    return VRPPlanningResult(
        tours=tours,
        unassigned=unassigned,
        warnings=warnings,
        created_at=reference_date,
        solver=SolverSummary(
            vehicles_requested=requested,
            vehicles_used=len(routes),
            cost=summary.get("cost"),
            distance_km=_km(summary.get("distance")),
            duration_min=_minutes(summary.get("duration")),
            code=response.get("code"),
        ),
    )
