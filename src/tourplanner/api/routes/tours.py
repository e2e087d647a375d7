"""Tour planning endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from ...schemas.tours import TourPlanRequest, TourPlanResponse, VRPPlanRequest, VRPPlanResponse
from ...services.ors import ORSClient
from ...services.tours import plan_delivery_tours, plan_delivery_tours_vrp
from ..deps import get_ors_client

router = APIRouter(prefix="/tours", tags=["tours"])

logger = logging.getLogger(__name__)


@router.post("/plan", response_model=TourPlanResponse, status_code=status.HTTP_200_OK)
async def plan(payload: TourPlanRequest, client: ORSClient = Depends(get_ors_client)) -> TourPlanResponse:
    try:
        result = await plan_delivery_tours(client, payload.to_request(), payload.to_options())
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception(f"Error planning tours: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to plan tours: {str(exc)}",
        ) from exc
    return TourPlanResponse.from_result(result)


@router.post("/vrp", response_model=VRPPlanResponse, status_code=status.HTTP_200_OK)
async def plan_vrp(payload: VRPPlanRequest, client: ORSClient = Depends(get_ors_client)) -> VRPPlanResponse:
    """Plan tours with the ORS optimization solver."""
    try:
        result = await plan_delivery_tours_vrp(client, payload.to_request(), payload.to_options())
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RuntimeError as exc:
        logger.exception(f"Solver failure: {exc}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception(f"Error planning VRP tours: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to plan VRP tours: {str(exc)}",
        ) from exc
    return VRPPlanResponse.from_result(result)
