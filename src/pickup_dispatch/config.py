"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="PICKUP_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Waste Pickup Dispatch API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root log level applied by the app factory.")
    storage_backend: Literal["memory", "supabase"] = Field(
        default="memory",
        description="Where requests, routes and vehicles are stored.",
    )
    users_file: Optional[Path] = Field(
        default=None,
        description="JSON list of {id, role, name} records seeding the in-memory user directory.",
    )

    # Route metrics
    fuel_efficiency_km_per_liter: float = Field(default=8.0, gt=0.0)
    fuel_price_per_liter: float = Field(default=150.0, ge=0.0)
    co2_kg_per_liter: float = Field(default=2.3, ge=0.0)

    # Lifecycle rules
    max_write_attempts: int = Field(default=3, ge=1, description="Bounded retries after a lost conditional write.")
    request_code_attempts: int = Field(default=3, ge=1)
    min_lead_days: int = Field(default=1, ge=0, description="Pickups must be requested at least this many days ahead.")
    dispatcher_roles: tuple[str, ...] = Field(default=("dispatcher", "admin"))

    # Event sinks
    notification_webhook_url: Optional[str] = Field(
        default=None,
        description="Endpoint receiving notification events (push/email/SMS gateway).",
    )
    analytics_webhook_url: Optional[str] = Field(
        default=None,
        description="Endpoint receiving lifecycle events for analytics aggregation.",
    )
    webhook_timeout_seconds: float = Field(default=10.0, gt=0.0)
    webhook_max_retries: int = Field(default=2, ge=0)
    webhook_backoff_seconds: float = Field(default=0.5, ge=0.0)
    webhook_workers: int = Field(default=2, ge=1)
    webhook_max_pending: int = Field(default=500, ge=1)

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:19006",
            "http://127.0.0.1:19006",
            "http://localhost:8081",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )

    @field_validator("users_file", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Optional[Path]:
        if value is None or value == "":
            return None
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

    @field_validator("frontend_allowed_origins", "dispatcher_roles", mode="before")
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


settings = Settings()
