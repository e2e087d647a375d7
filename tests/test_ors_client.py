import json
import time

import httpx
import pytest

from tourplanner.services.ors import (
    ORSClient,
    ORSRequestError,
    ORSValidationError,
    RateLimiter,
    check_health,
    merge_limits,
    profile_group,
)
from tourplanner.services.ors import client as client_module


def _client(handler, **kwargs) -> ORSClient:
    kwargs.setdefault("rate_limit_enabled", False)
    kwargs.setdefault("backoff_seconds", 0)
    return ORSClient(
        "secret-key",
        base_url="https://ors.test/",
        api_version="v2",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def test_missing_api_key_is_rejected(monkeypatch):
    monkeypatch.setattr(client_module.settings, "api_key", None)

    with pytest.raises(ValueError, match="Missing openrouteservice API key"):
        ORSClient()


def test_profile_groups_and_limit_overrides():
    assert profile_group("driving-hgv") == "driving"
    assert profile_group("foot-hiking") == "foot"
    assert profile_group("teleport") is None

    limits = merge_limits({"matrix": {"max_locations_product": 100}})
    assert limits.matrix.max_locations_product == 100
    assert merge_limits().matrix.max_locations_product == 3500
    with pytest.raises(ValueError):
        merge_limits({"matrix": {"max_cells": 1}})


@pytest.mark.anyio
async def test_matrix_request_carries_auth_and_base_url():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"distances": [[0]], "durations": [[0]]})

    async with _client(handler, user_agent="planner-tests") as ors:
        payload = await ors.matrix("driving-car", {"locations": [[8.68, 49.41]]}, {"headers": {"X-Trace": "1"}})

    assert payload == {"distances": [[0]], "durations": [[0]]}
    request = seen[0]
    assert str(request.url) == "https://ors.test/v2/matrix/driving-car"
    assert request.headers["Authorization"] == "secret-key"
    assert request.headers["User-Agent"] == "planner-tests"
    assert request.headers["X-Trace"] == "1"
    assert json.loads(request.content) == {"locations": [[8.68, 49.41]]}


@pytest.mark.anyio
async def test_directions_format_picks_path_and_accept_header():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path.endswith("/gpx"):
            return httpx.Response(200, text="<gpx/>")
        return httpx.Response(200, json={"type": "FeatureCollection", "features": []})

    coordinates = [[8.68, 49.41], [8.69, 49.42]]
    async with _client(handler) as ors:
        geojson = await ors.directions("driving-car", {"coordinates": coordinates, "format": "geojson"})
        gpx = await ors.directions("driving-car", {"coordinates": coordinates, "format": "gpx"})

    assert geojson["type"] == "FeatureCollection"
    assert gpx == "<gpx/>"
    assert seen[0].url.path == "/v2/directions/driving-car/geojson"
    assert seen[0].headers["Accept"] == "application/geo+json"
    assert "format" not in json.loads(seen[0].content)
    assert seen[1].headers["Accept"] == "application/gpx+xml"


@pytest.mark.anyio
async def test_validation_fails_before_network():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    async with _client(handler) as ors:
        with pytest.raises(ORSValidationError, match="waypoints limit"):
            await ors.directions("driving-car", {"coordinates": [[8.0, 49.0]] * 51})
        with pytest.raises(ORSValidationError, match="Wheelchair profile is not supported"):
            await ors.isochrones("wheelchair", {"locations": [[8.0, 49.0]], "range": [600]})
        with pytest.raises(ORSValidationError, match="1 hours"):
            await ors.isochrones("driving-car", {"locations": [[8.0, 49.0]], "range": [7200]})
        with pytest.raises(ORSValidationError, match="cell limit"):
            await ors.matrix("driving-car", {"locations": [[8.0, 49.0]] * 60})
        with pytest.raises(ORSValidationError, match="3 vehicles limit"):
            await ors.optimization({"jobs": [{"id": 1}], "vehicles": [{"id": i} for i in range(4)]})
        with pytest.raises(ORSValidationError, match="point.lat"):
            await ors.geocode_reverse({"point.lat": "49.4", "point.lon": 8.6})
        with pytest.raises(ORSValidationError, match="text"):
            await ors.geocode_search({"text": "  "})


@pytest.mark.anyio
async def test_retryable_status_is_retried_then_succeeds():
    statuses = [503, 429, 200]

    def handler(request: httpx.Request) -> httpx.Response:
        status = statuses.pop(0)
        return httpx.Response(status, json={"ok": status == 200})

    async with _client(handler, max_retries=2) as ors:
        assert await ors.pois({"request": "list", "geometry": {"bbox": [[8.8, 53.0], [8.81, 53.01]]}}) == {"ok": True}

    assert statuses == []


@pytest.mark.anyio
async def test_client_errors_are_not_retried():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(400, json={"error": {"code": 2003, "message": "bad parameter"}})

    async with _client(handler, max_retries=3) as ors:
        with pytest.raises(ORSRequestError) as excinfo:
            await ors.snap("driving-car", {"locations": [[8.0, 49.0]], "radius": 300})

    assert len(calls) == 1
    assert excinfo.value.status_code == 400
    assert excinfo.value.body["error"]["code"] == 2003


@pytest.mark.anyio
async def test_transport_failures_become_connection_errors():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("refused", request=request)

    async with _client(handler, max_retries=1) as ors:
        with pytest.raises(ConnectionError, match="Failed to connect"):
            await ors.elevation_point({"format_in": "point", "geometry": [8.0, 49.0]})

    assert len(calls) == 2


@pytest.mark.anyio
async def test_health_probe_reports_unavailable_instead_of_raising():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"status": "not ready"})

    async with _client(handler, max_retries=0) as ors:
        report = await check_health(ors)

    assert report["status"] == "unavailable"
    assert report["base_url"] == "https://ors.test/v2"


@pytest.mark.anyio
async def test_rate_limiter_waits_for_refill():
    limiter = RateLimiter(2, 0.05)
    started = time.monotonic()

    for _ in range(3):
        await limiter.acquire()

    assert time.monotonic() - started >= 0.04
    assert limiter.tokens <= 1


def test_rate_limiter_refills_whole_bucket_per_interval():
    now = [0.0]
    limiter = RateLimiter(3, 10, clock=lambda: now[0])
    limiter._tokens = 0

    now[0] = 9.9
    assert limiter.tokens == 0
    now[0] = 25.0
    assert limiter.tokens == 3


def test_rate_limiter_rejects_non_positive_settings():
    with pytest.raises(ValueError):
        RateLimiter(0, 1)
