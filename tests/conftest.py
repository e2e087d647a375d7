from __future__ import annotations

from typing import Any, Callable, Mapping, Optional

import pytest


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeRoutingService:
    """Records calls and answers matrix/isochrones/directions from canned responses.

    A response may be a value, an exception instance to raise, or a callable
    taking ``(profile, request)``.
    """

    def __init__(
        self,
        matrix: Any = None,
        isochrones: Any = None,
        directions: Any = None,
    ) -> None:
        self.responses = {"matrix": matrix, "isochrones": isochrones, "directions": directions}
        self.calls: dict[str, list[tuple[str, Mapping[str, Any], Optional[Mapping[str, Any]]]]] = {
            "matrix": [],
            "isochrones": [],
            "directions": [],
        }

    async def _answer(self, kind: str, profile: str, request: Mapping[str, Any], options: Any) -> Any:
        self.calls[kind].append((profile, request, options))
        response = self.responses[kind]
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response(profile, request)
        return response

    async def matrix(self, profile, request, options=None):
        return await self._answer("matrix", profile, request, options)

    async def isochrones(self, profile, request, options=None):
        return await self._answer("isochrones", profile, request, options)

    async def directions(self, profile, request, options=None):
        return await self._answer("directions", profile, request, options)


@pytest.fixture
def fake_routing() -> Callable[..., FakeRoutingService]:
    return FakeRoutingService
