"""Shared FastAPI dependencies."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from ..services.ors import ORSClient


def get_ors_client(request: Request) -> ORSClient:
    """The application-wide ORS client created at startup."""

    client = getattr(request.app.state, "ors_client", None)
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="openrouteservice client is not configured. Set ORS_API_KEY.",
        )
    return client
