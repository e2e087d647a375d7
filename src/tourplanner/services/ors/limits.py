"""Documented openrouteservice limits and profile groupings."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, fields, is_dataclass
from typing import Any, Mapping

PROFILE_GROUPS: dict[str, tuple[str, ...]] = {
    "driving": (
        "driving-car",
        "driving-hgv",
        "driving-tractor",
        "driving-electric",
        "driving-emergency",
    ),
    "cycling": (
        "cycling-regular",
        "cycling-road",
        "cycling-mountain",
        "cycling-electric",
        "cycling-safe",
        "cycling-tour",
        "cycling-gravel",
    ),
    "foot": ("foot-walking", "foot-hiking"),
    "wheelchair": ("wheelchair",),
}


def profile_group(profile: str) -> str | None:
    for group, profiles in PROFILE_GROUPS.items():
        if profile in profiles:
            return group
    return None


@dataclass(slots=True)
class RateLimit:
    requests: int = 40
    interval_seconds: float = 60.0


@dataclass(slots=True)
class DirectionLimits:
    max_waypoints: int = 50
    max_avoid_polygon_area_km2: float = 200.0
    max_avoid_polygon_extent_km: float = 20.0
    max_alternative_routes: int = 3
    max_round_trip_distance_km: float = 100.0
    max_distance_km_by_group: dict[str, float] = field(
        default_factory=lambda: {"driving": 6000.0, "cycling": 6000.0, "foot": 6000.0, "wheelchair": 6000.0}
    )
    max_restricted_distance_km_by_group: dict[str, float] = field(
        default_factory=lambda: {"driving": 150.0, "cycling": 150.0, "foot": 150.0, "wheelchair": 300.0}
    )


@dataclass(slots=True)
class IsochroneLimits:
    max_locations: int = 5
    max_intervals: int = 10
    max_range_distance_km: float = 120.0
    # wheelchair is not supported by the isochrone service at all
    max_range_time_hours_by_group: dict[str, float] = field(
        default_factory=lambda: {"driving": 1.0, "cycling": 5.0, "foot": 20.0}
    )


@dataclass(slots=True)
class MatrixLimits:
    max_locations_product: int = 3500
    max_dynamic_locations: int = 25


@dataclass(slots=True)
class SnapLimits:
    max_locations: int = 5000


@dataclass(slots=True)
class PoisLimits:
    max_bbox_area_km2: float = 50.0
    max_linestring_length_km: float = 500.0
    max_search_radius_km: float = 2.0


@dataclass(slots=True)
class ElevationLimits:
    max_vertices: int = 2000


@dataclass(slots=True)
class OptimizationLimits:
    max_routes: int = 50
    max_vehicles: int = 3


@dataclass(slots=True)
class ORSLimits:
    rate_limit: RateLimit = field(default_factory=RateLimit)
    directions: DirectionLimits = field(default_factory=DirectionLimits)
    isochrones: IsochroneLimits = field(default_factory=IsochroneLimits)
    matrix: MatrixLimits = field(default_factory=MatrixLimits)
    snap: SnapLimits = field(default_factory=SnapLimits)
    pois: PoisLimits = field(default_factory=PoisLimits)
    elevation: ElevationLimits = field(default_factory=ElevationLimits)
    optimization: OptimizationLimits = field(default_factory=OptimizationLimits)


DEFAULT_LIMITS = ORSLimits()


def _merge_into(target: Any, overrides: Mapping[str, Any]) -> None:
    known = {item.name for item in fields(target)}
    for key, value in overrides.items():
        if value is None:
            continue
        if key not in known:
            raise ValueError(f"Unknown limit '{key}' for {type(target).__name__}.")
        current = getattr(target, key)
        if is_dataclass(current) and isinstance(value, Mapping):
            _merge_into(current, value)
        elif isinstance(current, dict) and isinstance(value, Mapping):
            current.update(value)
        else:
            setattr(target, key, value)


def merge_limits(overrides: Mapping[str, Any] | None = None) -> ORSLimits:
    """Return a private copy of the default limits with ``overrides`` deep-merged in."""

    limits = copy.deepcopy(DEFAULT_LIMITS)
    if overrides:
        _merge_into(limits, overrides)
    return limits
