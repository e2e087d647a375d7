"""Route proximity endpoint."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from ...schemas.proximity import ProximityRequest, ProximityResponse
from ...services.proximity import compute_route_proximity

router = APIRouter(tags=["proximity"])


@router.post("/proximity", response_model=ProximityResponse, status_code=status.HTTP_200_OK)
def proximity(payload: ProximityRequest) -> ProximityResponse:
    try:
        result = compute_route_proximity(payload.route, payload.coordinate, payload.tolerance_km)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return ProximityResponse(distance_km=result.distance_km, is_within_tolerance=result.is_within_tolerance)
