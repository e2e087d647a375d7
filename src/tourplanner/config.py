"""Application configuration and settings management."""

from typing import Any, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="ORS_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Tour Planner API"
    api_prefix: str = "/api"

    api_key: Optional[str] = Field(
        default=None,
        description="openrouteservice API key sent in the Authorization header.",
    )
    base_url: str = Field(
        default="https://api.openrouteservice.org",
        description="Base URL of the openrouteservice instance.",
    )
    api_version: str = Field(default="v2", description="Path segment appended to the base URL.")
    timeout_seconds: float = Field(default=30.0, gt=0.0)
    user_agent: str = Field(default="tourplanner/0.1")
    max_retries: int = Field(default=2, ge=0)
    backoff_seconds: float = Field(default=0.5, ge=0.0)
    rate_limit_enabled: bool = True
    rate_limit_requests: int = Field(default=40, ge=1)
    rate_limit_interval_seconds: float = Field(default=60.0, gt=0.0)
    default_profile: str = Field(default="driving-hgv", description="Routing profile used when none is given.")

    planner_iso_range_minutes: float = Field(default=60.0, ge=0.0)
    planner_max_iso_requests: int = Field(default=5, ge=0)
    planner_cluster_radius_km: float = Field(default=35.0, gt=0.0)
    planner_neighbor_radius_km: float = Field(default=25.0, gt=0.0)
    planner_along_route_tolerance_km: float = Field(default=8.0, ge=0.0)
    planner_average_speed_kmh: float = Field(default=55.0, gt=0.0)
    planner_max_candidates_per_tour: int = Field(default=40, ge=1)

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            # Try JSON first
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()


settings = Settings()
