"""Geocode lookup schemas."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..services.geocode import GeocodeLookupResult


class TownZipLookupRequest(BaseModel):
    town: Optional[str] = None
    zip_code: Optional[str] = Field(default=None, description="Postal code.")
    country_code: Optional[str] = Field(default=None, description="ISO country code, e.g. 'DE'.")
    structured_size: Optional[int] = Field(default=None, ge=1)
    autocomplete_size: Optional[int] = Field(default=None, ge=1)


class GeocodeAttemptModel(BaseModel):
    stage: str
    params: Dict[str, Any]
    feature: Optional[Dict[str, Any]] = None
    coordinates: Optional[List[float]] = None
    error: Optional[str] = None


class TownZipLookupResponse(BaseModel):
    stage: str
    feature: Optional[Dict[str, Any]] = None
    coordinates: Optional[List[float]] = None
    attempts: List[GeocodeAttemptModel]

    @classmethod
    def from_result(cls, result: GeocodeLookupResult) -> "TownZipLookupResponse":
        return cls(
            stage=result.stage,
            feature=result.feature,
            coordinates=list(result.coordinates) if result.coordinates else None,
            attempts=[
                GeocodeAttemptModel(
                    stage=attempt.stage,
                    params=attempt.params,
                    feature=attempt.feature,
                    coordinates=list(attempt.coordinates) if attempt.coordinates else None,
                    error=attempt.error,
                )
                for attempt in result.attempts
            ],
        )
