"""
Engine configuration using Pydantic Settings.

Tunables for the scheduling engine are read from environment variables (or a
local .env file) once and cached.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ===========================================
    # Logging
    # ===========================================
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    LOG_FORMAT: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    # ===========================================
    # Time & working hours
    # ===========================================
    DEFAULT_TIMEZONE: str = "UTC"
    DEFAULT_WORK_START_HOUR: int = Field(9, ge=0, le=23)
    DEFAULT_WORK_END_HOUR: int = Field(17, ge=1, le=24)

    # Same-day scheduling is allowed past the window end until this local hour
    AFTER_HOURS_LIMIT_HOUR: int = Field(23, ge=0, le=24)

    SLOT_GRANULARITY_MINUTES: int = Field(15, ge=1, le=60)

    # ===========================================
    # Search horizons (days)
    # ===========================================
    DEFAULT_SEARCH_DAYS: int = Field(30, ge=1)
    NEXT_MONTH_SEARCH_DAYS: int = Field(60, ge=1)
    OPTIMAL_NO_DUE_DATE_DAYS: int = Field(7, ge=1)

    # ===========================================
    # Cascade shuffle / reflow guards
    # ===========================================
    SHUFFLE_MAX_DEPTH: int = Field(100, ge=1)
    MAX_TIMEOUT_MS: int = Field(30_000, ge=1)
    MAX_CASCADE_DAYS: int = Field(7, ge=1)
    PULL_FORWARD_LOOKAHEAD_DAYS: int = Field(14, ge=1)

    # ===========================================
    # Group auto-scheduling
    # ===========================================
    AUTO_SCHEDULE_DEFAULT_TASKS: int = Field(5, ge=1)
    AUTO_SCHEDULE_MAX_TASKS: int = Field(20, ge=1)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures settings are loaded only once.
    """
    return Settings()
