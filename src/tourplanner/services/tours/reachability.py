"""Per-seed isochrones used to gate which candidates a tour may absorb."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence

from ..ors.limits import DEFAULT_LIMITS, profile_group
from .matrix import RoutingService
from .models import NormalizedClient

logger = logging.getLogger(__name__)


def isochrone_range_seconds(profile: str, iso_range_minutes: float) -> Optional[float]:
    """Requested reach clamped to the group maximum, or None when isochrones are unsupported."""

    group = profile_group(profile)
    max_hours = DEFAULT_LIMITS.isochrones.max_range_time_hours_by_group.get(group) if group else None
    if max_hours is None:
        return None
    return min(iso_range_minutes, max_hours * 60) * 60


async def build_isochrones(
    client: RoutingService,
    profile: str,
    seeds: Sequence[NormalizedClient],
    *,
    iso_range_minutes: float,
    max_iso_requests: int,
    max_locations: int,
    request_options: Optional[Mapping[str, Any]] = None,
) -> dict[str, Optional[Any]]:
    if iso_range_minutes <= 0 or not seeds:
        return {}
    range_seconds = isochrone_range_seconds(profile, iso_range_minutes)
    if range_seconds is None:
        logger.info(f"Profile {profile} has no isochrone support, gating by cluster radius only")
        return {}

    polygons: dict[str, Optional[Any]] = {}
    for seed in list(seeds)[: min(max_iso_requests, max_locations)]:
        request = {
            "locations": [list(seed.coordinate)],
            "range_type": "time",
            "range": [range_seconds],
        }
        try:
            polygons[seed.id] = await client.isochrones(profile, request, request_options)
        except Exception as exc:
            logger.warning(f"Isochrone request for seed {seed.id} failed: {exc}")
            polygons[seed.id] = None
    return polygons
