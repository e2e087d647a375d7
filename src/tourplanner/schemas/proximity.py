"""Route proximity request/response schemas."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ProximityRequest(BaseModel):
    route: Dict[str, Any] = Field(..., description="GeoJSON containing at least one LineString.")
    coordinate: List[float] = Field(..., description="[lon, lat] to test.")
    tolerance_km: Optional[float] = Field(default=None, description="Defaults to 0.1 km when unset or not positive.")


class ProximityResponse(BaseModel):
    distance_km: float
    is_within_tolerance: bool
