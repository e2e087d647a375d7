"""Geocoding endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from ...schemas.geocode import TownZipLookupRequest, TownZipLookupResponse
from ...services.geocode import geocode_town_zip_lookup
from ...services.ors import ORSClient
from ..deps import get_ors_client

router = APIRouter(prefix="/geocode", tags=["geocode"])

logger = logging.getLogger(__name__)


@router.post("/town-zip", response_model=TownZipLookupResponse, status_code=status.HTTP_200_OK)
async def town_zip(
    payload: TownZipLookupRequest,
    client: ORSClient = Depends(get_ors_client),
) -> TownZipLookupResponse:
    try:
        result = await geocode_town_zip_lookup(
            client,
            town=payload.town,
            zip_code=payload.zip_code,
            country_code=payload.country_code,
            structured_size=payload.structured_size,
            autocomplete_size=payload.autocomplete_size,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception(f"Error geocoding town/zip: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to geocode: {str(exc)}",
        ) from exc
    return TownZipLookupResponse.from_result(result)
