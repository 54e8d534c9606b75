# backend/lounge/core/config.py
import logging
import os
from datetime import time
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


CapacityScope = Literal["global", "station_type"]


class Settings(BaseSettings):
    # Database
    database_url: str = Field(
        default="sqlite:///./lounge.db",
        description="SQLAlchemy URL for the bookings store",
    )
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis URL for the shared cache; in-memory cache when unset",
    )

    # Business hours
    lounge_timezone: str = "Asia/Kolkata"
    business_open_time: time = time(11, 0)
    business_close_time: time = time(23, 0)
    slot_buffer_minutes: int = Field(default=0, ge=0)

    # Capacity
    total_controllers: int = Field(default=6, ge=0)
    capacity_scope: CapacityScope = "global"

    # Cache TTLs (seconds)
    stations_cache_ttl_seconds: int = Field(default=300, gt=0)
    time_slots_cache_ttl_seconds: int = Field(default=300, gt=0)
    today_bookings_cache_ttl_seconds: int = Field(default=60, gt=0)

    # Polling
    today_bookings_refresh_seconds: int = Field(default=120, gt=0)
    reminder_check_seconds: int = Field(default=60, gt=0)
    reminder_lookahead_minutes: int = Field(default=15, gt=0)

    # Access codes
    access_code_length: int = Field(default=8, ge=4, le=16)
    access_code_attempts: int = Field(default=3, ge=1)

    is_testing: bool = Field(default_factory=is_running_tests)

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def _validate_business_hours(self) -> "Settings":
        if self.business_open_time >= self.business_close_time:
            raise ValueError("business_open_time must be before business_close_time")
        return self


settings = Settings()
