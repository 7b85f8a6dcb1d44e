"""Application configuration and settings management."""

from typing import Any, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="GATESOLVE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Gatesolve Routing API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root log level for the API process.")
    overpass_interpreter_url: str = Field(
        default="https://overpass.fvh.io/api/interpreter",
        description="Overpass API interpreter endpoint used for entrance and street queries.",
    )
    olmap_api_url: str = Field(
        default="https://api.olmap.org/rest",
        description="Base URL of the OLMap REST API holding curated venue data.",
    )
    osrm_base_url: Optional[str] = Field(
        default=None,
        description="Base URL for the OSRM routing service (e.g., http://localhost:5000).",
    )
    osrm_profile_default: str = Field(default="foot", description="OSRM profile for plain routes.")
    osrm_profile_delivery_walking: str = Field(
        default="foot",
        description="OSRM profile for the walk from an unloading place to an entrance.",
    )
    osrm_profile_delivery_car: str = Field(
        default="driving",
        description="OSRM profile for the drive from an access point to an unloading place.",
    )
    http_timeout_seconds: float = Field(default=25.0, gt=0.0)
    http_max_retries: int = Field(default=2, ge=0)
    http_backoff_seconds: float = Field(default=0.5, ge=0.0)
    max_parallel_route_requests: int = Field(default=8, ge=1)
    max_routing_distance_m: float = Field(
        default=200.0,
        gt=0.0,
        description="Origins further than this from the destination are not routed.",
    )
    entrance_search_radius_m: int = Field(default=10, ge=1)
    street_match_radius_m: int = Field(default=100, ge=1)
    geolocation_move_threshold_m: float = Field(
        default=20.0,
        ge=0.0,
        description="A geolocation fix replaces an implicit origin only after moving this far.",
    )
    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )
    @field_validator("overpass_interpreter_url", "olmap_api_url", "osrm_base_url", mode="before")
    @classmethod
    def _strip_trailing_separators(cls, value: Any) -> Any:
        # Overpass URLs are often copied with a trailing "?"
        if isinstance(value, str):
            return value.rstrip("?").rstrip("/")
        return value

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
            # Try comma-separated
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            # Single value
            if value.strip():
                return (value.strip(),)
        # Return empty tuple if value is None or empty
        return tuple()


settings = Settings()
