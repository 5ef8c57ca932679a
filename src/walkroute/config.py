"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="WALKROUTE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Walk Route Planner API"
    api_prefix: str = "/api"
    data_root: Path = Field(default=Path("data"), description="Root directory for exported route plans.")
    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Travel model
    walking_speed_mph: float = Field(default=3.0, gt=0.0)
    default_walk_duration_minutes: int = Field(default=30, ge=1)
    default_day_start: str = Field(
        default="08:00",
        description="Clock used when no appointment carries a usable window.",
    )
    replan_from_current_time: bool = Field(
        default=True,
        description="Seed the planning clock from the real time when it falls inside the day's windows.",
    )

    # Pack walks
    pack_capacity: int = Field(default=4, ge=1)
    pickup_service_minutes: float = Field(default=5.0, ge=0.0)
    dropoff_service_minutes: float = Field(default=2.0, ge=0.0)
    duration_tolerance_minutes: float = Field(default=10.0, ge=0.0)
    pickup_candidate_limit: int = Field(default=3, ge=1)

    # Greedy cost weights
    duration_deviation_weight: float = Field(default=2.0, ge=0.0)
    pack_relief_bonus: float = Field(default=20.0, ge=0.0)
    chaining_bonus: float = Field(default=10.0, ge=0.0)
    chaining_radius_miles: float = Field(default=0.3, ge=0.0)
    urgency_horizon_minutes: float = Field(default=30.0, ge=0.0)
    overdue_penalty: float = Field(default=100.0, ge=0.0)
    near_overdue_penalty: float = Field(default=30.0, ge=0.0)
    duration_compatibility_weight: float = Field(default=0.5, ge=0.0)

    # Grouping
    grouping_max_distance_miles: float = Field(default=0.5, ge=0.0)
    grouping_buffer_minutes: int = Field(default=15, ge=0)
    max_group_size: int = Field(default=5, ge=1)
    solo_walk_types: tuple[str, ...] = Field(default=("solo", "training"))

    @field_validator("data_root", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

    @field_validator("frontend_allowed_origins", "solo_walk_types", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
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

    @field_validator("solo_walk_types", mode="after")
    @classmethod
    def _lowercase_walk_types(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(item.lower() for item in value)


settings = Settings()


def configured_origins() -> Optional[list[str]]:
    origins = list(settings.frontend_allowed_origins)
    return origins or None
