"""
Configuration and settings for the JetJot backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the service and the sync engine."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Document store (Postgres expected; any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None, env="DATABASE_URL")

    # Rate limiter windows (Redis when configured)
    redis_url: Optional[str] = Field(default=None, env="REDIS_URL")
    redis_key_prefix: str = Field(default="jetjot:rl:", env="REDIS_KEY_PREFIX")

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "JETJOT_USE_IN_MEMORY_BACKENDS", "use_in_memory_backends"
        ),
    )

    # Login gate
    global_login_max_attempts: int = Field(default=15)
    global_login_window_seconds: float = Field(default=10 * 60)
    user_login_max_attempts: int = Field(default=5)
    user_login_window_seconds: float = Field(default=15 * 60)
    bcrypt_rounds: int = Field(default=8, ge=4, le=31)
    credential_timeout_seconds: float = Field(default=10.0)

    # Sprints
    max_sprint_days: int = Field(default=366)
    undo_seconds: float = Field(default=6.0)
    reminder_title: str = Field(default="JetJot reminder")

    # External collaborators
    http_timeout_seconds: float = Field(default=10.0)
    nominatim_url: str = Field(
        default="https://nominatim.openstreetmap.org/reverse"
    )
    weather_forecast_url: str = Field(
        default="https://api.open-meteo.com/v1/forecast"
    )
    weather_archive_url: str = Field(
        default="https://archive-api.open-meteo.com/v1/archive"
    )
    weather_timezone: str = Field(default="Asia/Kolkata")
    default_latitude: float = Field(default=22.5937)
    default_longitude: float = Field(default=78.9629)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
