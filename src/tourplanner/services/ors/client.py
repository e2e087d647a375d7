"""Async HTTP client for the openrouteservice API."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

import httpx

from ...config import settings
from ..geospatial import bbox_area_km2, geojson_area_km2, geometry_bbox, haversine_km, linestring_length_km, path_length_km
from .limits import ORSLimits, merge_limits, profile_group
from .rate_limiter import RateLimiter

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

logger = logging.getLogger(__name__)


class ORSValidationError(ValueError):
    """Raised before sending when a request breaks a documented ORS limit."""


class ORSRequestError(RuntimeError):
    """Raised when ORS answers with an error status after retries are exhausted."""

    def __init__(self, message: str, status_code: int | None = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


def _bbox_extent_km(geojson: Any) -> tuple[float, float] | None:
    bbox = geometry_bbox(geojson)
    if bbox is None:
        return None
    min_lon, min_lat, max_lon, max_lat = bbox
    width = haversine_km((min_lon, min_lat), (max_lon, min_lat))
    height = haversine_km((min_lon, min_lat), (min_lon, max_lat))
    return width, height


def _inner_geometry(geojson: Any) -> Any:
    if isinstance(geojson, Mapping) and geojson.get("type") == "Feature":
        return geojson.get("geometry")
    return geojson


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class ORSClient:
    """Thin async wrapper over the ORS endpoints used by the planners.

    Every endpoint validates its payload against the merged limits before any
    network traffic, then goes through the optional rate limiter and the retry loop.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str | None = None,
        api_version: str | None = None,
        timeout: float | None = None,
        user_agent: str | None = None,
        headers: Mapping[str, str] | None = None,
        default_profile: str | None = None,
        limits: Mapping[str, Any] | None = None,
        rate_limit_enabled: bool | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        resolved_key = api_key or settings.api_key
        if not resolved_key:
            raise ValueError(
                "Missing openrouteservice API key. Provide api_key or set ORS_API_KEY in your environment."
            )
        self.api_key = resolved_key
        self.limits: ORSLimits = merge_limits(limits)
        self.default_profile = default_profile or settings.default_profile
        self.max_retries = max_retries if max_retries is not None else settings.max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.backoff_seconds

        enabled = rate_limit_enabled if rate_limit_enabled is not None else settings.rate_limit_enabled
        self.rate_limiter: RateLimiter | None = None
        if enabled:
            rate_limit = self.limits.rate_limit
            if not (limits or {}).get("rate_limit"):
                rate_limit.requests = settings.rate_limit_requests
                rate_limit.interval_seconds = settings.rate_limit_interval_seconds
            self.rate_limiter = RateLimiter(rate_limit.requests, rate_limit.interval_seconds)

        base = (base_url or settings.base_url).rstrip("/")
        version = (api_version or settings.api_version).lstrip("/")
        self.base_url = f"{base}/{version}"
        self.default_headers = {
            "Content-Type": "application/json",
            "User-Agent": user_agent or settings.user_agent,
            **(headers or {}),
        }
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout or settings.timeout_seconds, connect=10.0),
            transport=transport,
        )

    async def __aenter__(self) -> "ORSClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def set_api_key(self, api_key: str) -> None:
        if not api_key:
            raise ValueError("API key cannot be empty.")
        self.api_key = api_key

    def _ensure_profile(self, profile: str | None) -> str:
        if profile:
            return profile
        if not self.default_profile:
            raise ORSValidationError(
                "A profile is required. Provide it as an argument or configure default_profile."
            )
        return self.default_profile

    @staticmethod
    def _require_group(profile: str) -> str:
        group = profile_group(profile)
        if group is None:
            raise ORSValidationError(f'Unsupported profile "{profile}".')
        return group

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        options: Mapping[str, Any] | None = None,
        as_text: bool = False,
    ) -> Any:
        options = options or {}
        merged_headers = {
            **self.default_headers,
            **(options.get("headers") or {}),
            **(headers or {}),
            "Authorization": self.api_key,
        }
        request_kwargs: dict[str, Any] = {"json": json, "params": params, "headers": merged_headers}
        if options.get("timeout") is not None:
            request_kwargs["timeout"] = options["timeout"]

        attempt = 0
        while True:
            if self.rate_limiter is not None:
                await self.rate_limiter.acquire()
            try:
                response = await self._client.request(method, path, **request_kwargs)
                response.raise_for_status()
                return response.text if as_text else response.json()
            except httpx.HTTPStatusError as error:
                status = error.response.status_code
                attempt += 1
                if status not in RETRYABLE_STATUS_CODES or attempt > self.max_retries:
                    raise ORSRequestError(
                        f"ORS {method} {path} failed with status {status}.",
                        status_code=status,
                        body=_response_body(error.response),
                    ) from error
                wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                logger.debug(f"ORS returned {status}, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})")
                await asyncio.sleep(wait_time)
            except httpx.TimeoutException as error:
                attempt += 1
                if attempt > self.max_retries:
                    logger.warning(f"ORS request {path} timed out after {self.max_retries} retries: {error}")
                    raise
                wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                logger.debug(f"ORS request timeout, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})")
                await asyncio.sleep(wait_time)
            except httpx.TransportError as error:
                attempt += 1
                if attempt > self.max_retries:
                    raise ConnectionError(
                        f"Failed to connect to openrouteservice at {self.base_url}: {error}"
                    ) from error
                wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                logger.debug(f"ORS network error, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries}): {error}")
                await asyncio.sleep(wait_time)

    # -- validation -----------------------------------------------------------------

    def validate_directions(self, profile: str, request: Mapping[str, Any]) -> None:
        coordinates = request.get("coordinates") or []
        limits = self.limits.directions
        if len(coordinates) < 2:
            raise ORSValidationError("Directions request requires at least two coordinates.")
        if len(coordinates) > limits.max_waypoints:
            raise ORSValidationError(f"Directions request exceeds {limits.max_waypoints} waypoints limit.")

        group = self._require_group(profile)
        options = request.get("options") or {}
        restrictions = (options.get("profile_params") or {}).get("restrictions")
        if isinstance(restrictions, Mapping):
            restriction_limit = limits.max_restricted_distance_km_by_group.get(group)
            if restriction_limit is not None and path_length_km(coordinates) > restriction_limit:
                raise ORSValidationError(
                    f"Directions with profile restrictions are limited to {restriction_limit} km "
                    f"straight-line distance for {group} profiles."
                )

        round_trip = options.get("round_trip") or request.get("round_trip") or {}
        if round_trip.get("length") is not None:
            if round_trip["length"] / 1000.0 > limits.max_round_trip_distance_km:
                raise ORSValidationError(f"Round trip length exceeds {limits.max_round_trip_distance_km} km limit.")

        target_count = (options.get("alternative_routes") or {}).get("target_count")
        if target_count is not None and target_count > limits.max_alternative_routes:
            raise ORSValidationError(
                f"Alternative routes target_count cannot exceed {limits.max_alternative_routes}."
            )

        avoid = options.get("avoid_polygons") or options.get("avoid_areas")
        if isinstance(avoid, Mapping) and "type" in avoid:
            if geojson_area_km2(avoid) > limits.max_avoid_polygon_area_km2:
                raise ORSValidationError(f"Avoid areas exceed {limits.max_avoid_polygon_area_km2} km² limit.")
            extent = _bbox_extent_km(avoid)
            if extent and max(extent) > limits.max_avoid_polygon_extent_km:
                raise ORSValidationError(
                    f"Avoid polygon extent exceeds {limits.max_avoid_polygon_extent_km} km limit."
                )

    def validate_isochrones(self, profile: str, request: Mapping[str, Any]) -> None:
        limits = self.limits.isochrones
        locations = request.get("locations") or []
        ranges = request.get("range") or []
        if not locations:
            raise ORSValidationError("Isochrone request requires at least one location.")
        if len(locations) > limits.max_locations:
            raise ORSValidationError(f"Isochrones request exceeds {limits.max_locations} locations limit.")
        if not ranges:
            raise ORSValidationError("Isochrone request requires at least one range value.")
        if len(ranges) > limits.max_intervals:
            raise ORSValidationError(f"Isochrones request exceeds {limits.max_intervals} range intervals limit.")

        group = self._require_group(profile)
        if group == "wheelchair":
            raise ORSValidationError("Wheelchair profile is not supported for isochrone requests.")

        range_type = request.get("range_type") or "time"
        for value in ranges:
            if range_type == "distance":
                value_km = value if request.get("units") == "km" else value / 1000.0
                if value_km > limits.max_range_distance_km:
                    raise ORSValidationError(
                        f"Isochrone distance range exceeds {limits.max_range_distance_km} km limit."
                    )
            else:
                max_hours = limits.max_range_time_hours_by_group.get(group)
                if max_hours is not None and value / 3600.0 > max_hours:
                    raise ORSValidationError(f"Isochrone time range exceeds {max_hours:g} hours for {group} profiles.")

    def validate_matrix(self, request: Mapping[str, Any]) -> None:
        locations = request.get("locations") or []
        if not locations:
            raise ORSValidationError("Matrix request requires at least one location.")

        def _count(selection: Any) -> int:
            if isinstance(selection, (list, tuple)):
                return len(selection)
            return len(locations)

        sources = request.get("sources")
        destinations = request.get("destinations")
        sources_count = _count(sources)
        destinations_count = _count(destinations)
        product = sources_count * destinations_count
        limits = self.limits.matrix
        if product > limits.max_locations_product:
            raise ORSValidationError(
                f"Matrix request exceeds {limits.max_locations_product} cell limit "
                f"({sources_count} sources x {destinations_count} destinations)."
            )
        if (isinstance(sources, str) or isinstance(destinations, str)) and product > limits.max_dynamic_locations:
            raise ORSValidationError(
                f"Matrix requests with dynamic sources/destinations cannot exceed {limits.max_dynamic_locations} cells."
            )

    def validate_snap(self, request: Mapping[str, Any]) -> None:
        locations = request.get("locations") or []
        if not locations:
            raise ORSValidationError("Snap request requires at least one location.")
        if len(locations) > self.limits.snap.max_locations:
            raise ORSValidationError(f"Snap request exceeds {self.limits.snap.max_locations} coordinate limit.")

    def validate_pois(self, request: Mapping[str, Any]) -> None:
        geometry = request.get("geometry")
        if not geometry:
            raise ORSValidationError("POIs request requires geometry definition.")
        limits = self.limits.pois
        kind = request.get("request")
        if kind == "bbox" and geometry.get("bbox"):
            bbox = geometry["bbox"]
            # ORS accepts [[min_lon, min_lat], [max_lon, max_lat]] as well as a flat box
            if len(bbox) == 2 and isinstance(bbox[0], (list, tuple)):
                bbox = (*bbox[0], *bbox[1])
            if bbox_area_km2(bbox) > limits.max_bbox_area_km2:
                raise ORSValidationError(f"POIs bbox area exceeds {limits.max_bbox_area_km2} km² limit.")
        if kind == "radius" and geometry.get("buffer") is not None:
            if geometry["buffer"] / 1000.0 > limits.max_search_radius_km:
                raise ORSValidationError(f"POIs radius exceeds {limits.max_search_radius_km} km limit.")

        geojson = geometry.get("geojson")
        if isinstance(geojson, Mapping) and "type" in geojson:
            if geojson_area_km2(geojson) > limits.max_bbox_area_km2:
                raise ORSValidationError(f"POIs polygon area exceeds {limits.max_bbox_area_km2} km² limit.")
            inner = _inner_geometry(geojson)
            is_line = isinstance(inner, Mapping) and inner.get("type") == "LineString"
            extent = _bbox_extent_km(geojson)
            if not is_line and extent and extent[0] * extent[1] > limits.max_bbox_area_km2:
                raise ORSValidationError(f"POIs search area exceeds {limits.max_bbox_area_km2} km² limit.")
            if is_line and linestring_length_km(inner) > limits.max_linestring_length_km:
                raise ORSValidationError(
                    f"POIs linestring length exceeds {limits.max_linestring_length_km} km limit."
                )

    def validate_elevation_line(self, request: Mapping[str, Any]) -> None:
        geometry = request.get("geometry")
        if not geometry:
            raise ORSValidationError("Elevation line request requires geometry.")
        inner = _inner_geometry(geometry)
        if not isinstance(inner, Mapping) or inner.get("type") != "LineString":
            return
        if len(inner.get("coordinates") or []) > self.limits.elevation.max_vertices:
            raise ORSValidationError(
                f"Elevation line requests cannot exceed {self.limits.elevation.max_vertices} vertices."
            )

    def validate_optimization(self, request: Mapping[str, Any]) -> None:
        limits = self.limits.optimization
        jobs = request.get("jobs")
        vehicles = request.get("vehicles")
        if not isinstance(jobs, list) or not jobs:
            raise ORSValidationError("Optimization request requires at least one job.")
        if len(jobs) > limits.max_routes:
            raise ORSValidationError(f"Optimization request exceeds {limits.max_routes} jobs limit.")
        if not isinstance(vehicles, list) or not vehicles:
            raise ORSValidationError("Optimization request requires at least one vehicle.")
        if len(vehicles) > limits.max_vehicles:
            raise ORSValidationError(f"Optimization request exceeds {limits.max_vehicles} vehicles limit.")

    # -- endpoints ------------------------------------------------------------------

    async def directions(
        self,
        profile: str | None,
        request: Mapping[str, Any],
        options: Mapping[str, Any] | None = None,
    ) -> Any:
        resolved = self._ensure_profile(profile)
        self.validate_directions(resolved, request)
        body = dict(request)
        response_format = body.pop("format", "json")
        match response_format:
            case "gpx":
                accept = "application/gpx+xml"
            case "geojson":
                accept = "application/geo+json"
            case _:
                accept = "application/json"
        return await self._request(
            "POST",
            f"directions/{resolved}/{response_format}",
            json=body,
            headers={"Accept": accept},
            options=options,
            as_text=response_format == "gpx",
        )

    async def isochrones(
        self,
        profile: str | None,
        request: Mapping[str, Any],
        options: Mapping[str, Any] | None = None,
    ) -> Any:
        resolved = self._ensure_profile(profile)
        self.validate_isochrones(resolved, request)
        return await self._request("POST", f"isochrones/{resolved}", json=dict(request), options=options)

    async def matrix(
        self,
        profile: str | None,
        request: Mapping[str, Any],
        options: Mapping[str, Any] | None = None,
    ) -> Any:
        resolved = self._ensure_profile(profile)
        self.validate_matrix(request)
        return await self._request("POST", f"matrix/{resolved}", json=dict(request), options=options)

    async def optimization(self, request: Mapping[str, Any], options: Mapping[str, Any] | None = None) -> Any:
        self.validate_optimization(request)
        return await self._request("POST", "optimization", json=dict(request), options=options)

    async def snap(
        self,
        profile: str | None,
        request: Mapping[str, Any],
        options: Mapping[str, Any] | None = None,
    ) -> Any:
        resolved = self._ensure_profile(profile)
        self.validate_snap(request)
        return await self._request("POST", f"snap/{resolved}", json=dict(request), options=options)

    async def pois(self, request: Mapping[str, Any], options: Mapping[str, Any] | None = None) -> Any:
        self.validate_pois(request)
        return await self._request("POST", "pois", json=dict(request), options=options)

    async def elevation_point(self, request: Mapping[str, Any], options: Mapping[str, Any] | None = None) -> Any:
        if not request.get("geometry"):
            raise ORSValidationError("Elevation point request requires geometry.")
        return await self._request("POST", "elevation/point", json=dict(request), options=options)

    async def elevation_line(self, request: Mapping[str, Any], options: Mapping[str, Any] | None = None) -> Any:
        self.validate_elevation_line(request)
        return await self._request("POST", "elevation/line", json=dict(request), options=options)

    async def geocode_search(self, params: Mapping[str, Any], options: Mapping[str, Any] | None = None) -> Any:
        text = params.get("text")
        if not isinstance(text, str) or not text.strip():
            raise ORSValidationError('Geocode search requires a non-empty "text" parameter.')
        return await self._request("GET", "geocode/search", params=params, options=options)

    async def geocode_reverse(self, params: Mapping[str, Any], options: Mapping[str, Any] | None = None) -> Any:
        lat = params.get("point.lat")
        lon = params.get("point.lon")
        if not isinstance(lat, (int, float)) or not isinstance(lon, (int, float)):
            raise ORSValidationError('Geocode reverse requires "point.lat" and "point.lon" numeric parameters.')
        return await self._request("GET", "geocode/reverse", params=params, options=options)

    async def geocode_autocomplete(self, params: Mapping[str, Any], options: Mapping[str, Any] | None = None) -> Any:
        text = params.get("text")
        if not isinstance(text, str) or not text.strip():
            raise ORSValidationError('Geocode autocomplete requires a non-empty "text" parameter.')
        return await self._request("GET", "geocode/autocomplete", params=params, options=options)

    async def geocode_structured(self, params: Mapping[str, Any], options: Mapping[str, Any] | None = None) -> Any:
        return await self._request("GET", "geocode/structured", params=params, options=options)

    async def health(self) -> Any:
        return await self._request("GET", "health")


async def check_health(client: ORSClient) -> dict[str, Any]:
    """Probe the ORS health endpoint; report ``unavailable`` instead of raising."""

    try:
        payload = await client.health()
    except (ORSRequestError, ConnectionError, httpx.HTTPError) as error:
        logger.warning(f"openrouteservice health probe failed: {error}")
        return {"status": "unavailable", "base_url": client.base_url, "detail": str(error)}
    status = payload.get("status") if isinstance(payload, Mapping) else None
    return {"status": "ok" if status in (None, "ready") else str(status), "base_url": client.base_url}
