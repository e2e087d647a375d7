"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...services.ors import ORSClient, check_health
from ..deps import get_ors_client

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/ors", status_code=status.HTTP_200_OK)
async def health_ors(client: ORSClient = Depends(get_ors_client)) -> dict:
    """Check openrouteservice availability."""
    result = await check_health(client)
    return {"service": "ors", "healthy": result["status"] == "ok", **result}
