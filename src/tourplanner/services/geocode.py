"""Resolve a town and/or postal code to a single point via staged ORS geocoding."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol

from .geospatial import LonLat, sanitize_coordinate

TOWN_PROPERTY_KEYS = ("locality", "name", "city", "localadmin", "county", "region", "state", "label")

logger = logging.getLogger(__name__)


class GeocodingService(Protocol):
    async def geocode_structured(self, params: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None) -> Any: ...

    async def geocode_autocomplete(self, params: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None) -> Any: ...


@dataclass(slots=True)
class GeocodeAttempt:
    stage: str
    params: dict[str, Any]
    feature: Optional[dict[str, Any]] = None
    coordinates: Optional[LonLat] = None
    error: Optional[str] = None


@dataclass(slots=True)
class GeocodeLookupResult:
    stage: str
    feature: Optional[dict[str, Any]] = None
    coordinates: Optional[LonLat] = None
    attempts: list[GeocodeAttempt] = field(default_factory=list)


def _clean(value: Optional[str]) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def town_prefix(town: str) -> str:
    words = (_clean(town) or "").split()
    return words[0][:3] if words else ""


def _point_match(feature: Any) -> Optional[tuple[dict[str, Any], LonLat]]:
    if not isinstance(feature, Mapping):
        return None
    geometry = feature.get("geometry")
    if not isinstance(geometry, Mapping) or geometry.get("type") != "Point":
        return None
    coordinate = sanitize_coordinate(geometry.get("coordinates"))
    if coordinate is None:
        return None
    return dict(feature), coordinate


def first_point_feature(response: Any) -> Optional[tuple[dict[str, Any], LonLat]]:
    if not isinstance(response, Mapping):
        return None
    for feature in response.get("features") or []:
        match = _point_match(feature)
        if match:
            return match
    return None


def _feature_mentions_town(feature: Mapping[str, Any], town: str) -> bool:
    properties = feature.get("properties")
    if not isinstance(properties, Mapping):
        return False
    return any(
        isinstance(properties.get(key), str) and town in properties[key].lower()
        for key in TOWN_PROPERTY_KEYS
    )


def pick_autocomplete_match(response: Any, town: str) -> Optional[tuple[dict[str, Any], LonLat]]:
    """Prefer a point feature whose place names mention ``town``; else the first point."""

    if not isinstance(response, Mapping):
        return None
    needle = (_clean(town) or "").lower()
    if needle:
        for feature in response.get("features") or []:
            match = _point_match(feature)
            if match and _feature_mentions_town(feature, needle):
                return match
    return first_point_feature(response)


async def geocode_town_zip_lookup(
    client: GeocodingService,
    town: Optional[str] = None,
    zip_code: Optional[str] = None,
    country_code: Optional[str] = None,
    structured_size: Optional[int] = None,
    autocomplete_size: Optional[int] = None,
    options: Optional[Mapping[str, Any]] = None,
) -> GeocodeLookupResult:
    """Look a place up in up to three stages, cheapest first.

    1. structured search on postal code and locality together;
    2. structured search on the postal code alone;
    3. autocomplete on the town's first three letters, focused on the stage 2 hit.

    A failing stage is recorded on its attempt and the next stage runs.
    """

    town = _clean(town)
    zip_code = _clean(zip_code)
    country = (_clean(country_code) or "").upper() or None
    if not zip_code and not town:
        raise ValueError('Geocode lookup requires at least a "zip_code" or "town" input.')

    attempts: list[GeocodeAttempt] = []

    def structured_params(**values: Any) -> dict[str, Any]:
        params = dict(values)
        if country:
            params["country"] = country
        if structured_size and structured_size > 0:
            params["size"] = structured_size
        return params

    async def run_stage(stage: str, params: dict[str, Any], call, pick) -> Optional[tuple[dict[str, Any], LonLat]]:
        match = None
        error = None
        try:
            match = pick(await call(params, options))
        except Exception as exc:
            logger.warning(f"Geocode stage {stage} failed: {exc}")
            error = str(exc)
        attempts.append(
            GeocodeAttempt(
                stage=stage,
                params=params,
                feature=match[0] if match else None,
                coordinates=match[1] if match else None,
                error=error,
            )
        )
        return match

    if zip_code and town:
        match = await run_stage(
            "structured_postal_locality",
            structured_params(postalcode=zip_code, locality=town),
            client.geocode_structured,
            first_point_feature,
        )
        if match:
            return GeocodeLookupResult("structured_postal_locality", match[0], match[1], attempts)

    postal_match = None
    if zip_code:
        postal_match = await run_stage(
            "structured_postal",
            structured_params(postalcode=zip_code),
            client.geocode_structured,
            first_point_feature,
        )
        if postal_match and not town:
            return GeocodeLookupResult("structured_postal", postal_match[0], postal_match[1], attempts)

    if postal_match and town:
        prefix = town_prefix(town)
        if prefix:
            params: dict[str, Any] = {"text": prefix}
            if autocomplete_size and autocomplete_size > 0:
                params["size"] = autocomplete_size
            params["focus.point.lat"] = postal_match[1][1]
            params["focus.point.lon"] = postal_match[1][0]
            if country:
                params["boundary.country"] = country
            match = await run_stage(
                "autocomplete",
                params,
                client.geocode_autocomplete,
                lambda response: pick_autocomplete_match(response, town),
            )
            if match:
                return GeocodeLookupResult("autocomplete", match[0], match[1], attempts)

    if postal_match:
        return GeocodeLookupResult("structured_postal", postal_match[0], postal_match[1], attempts)
    return GeocodeLookupResult("not_found", attempts=attempts)
