# backend/mentorslot/core/config.py
import logging
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    DEFAULT_ALLOWED_DURATIONS,
    DEFAULT_PAYMENT_WINDOW_SECONDS,
    SLOT_GRANULARITY_MINUTES,
)


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


_BACKEND_ROOT = Path(__file__).resolve().parents[2]

logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = _BACKEND_ROOT / ".env"
    logger.info(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: str = Field(default="development", description="Deployment environment name")

    database_url: str = Field(
        default=f"sqlite:///{_BACKEND_ROOT / 'mentorslot.db'}",
        description="SQLAlchemy database URL",
    )
    sqlite_busy_timeout_seconds: float = Field(
        default=30.0,
        description="How long SQLite writers wait for the database lock",
    )
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis URL for the per-mentor booking mutex (disabled when empty)",
    )
    celery_broker_url: Optional[str] = Field(default=None, description="Celery broker URL")

    # Reservation engine
    payment_window_seconds: int = Field(
        default=DEFAULT_PAYMENT_WINDOW_SECONDS,
        description="How long a pending session holds its slot awaiting payment",
    )
    slot_granularity_minutes: int = SLOT_GRANULARITY_MINUTES
    allowed_durations: List[int] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_DURATIONS),
        description="Session durations (minutes) that can be booked",
    )
    business_timezone: str = Field(
        default="UTC", description="Timezone that session dates and start times are expressed in"
    )
    slot_lock_ttl_seconds: int = 30
    expiry_sweep_interval_seconds: int = Field(
        default=60, description="Cadence of the scheduled expired-session sweep"
    )

    # Client countdown tracker
    api_base_url: str = "http://localhost:8000"
    reconciliation_interval_seconds: int = 30
    countdown_tick_seconds: int = 1

    is_testing: bool = False

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("allowed_durations", mode="before")
    @classmethod
    def _parse_allowed_durations(cls, value: object) -> object:
        if isinstance(value, str):
            return [int(token.strip()) for token in value.split(",") if token.strip()]
        return value

    @field_validator("allowed_durations")
    @classmethod
    def _validate_allowed_durations(cls, value: List[int]) -> List[int]:
        for duration in value:
            if duration <= 0 or duration % SLOT_GRANULARITY_MINUTES != 0:
                raise ValueError(
                    f"allowed_durations must be positive multiples of {SLOT_GRANULARITY_MINUTES}"
                )
        return sorted(set(value))

    @field_validator("payment_window_seconds")
    @classmethod
    def _validate_payment_window(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("payment_window_seconds must be positive")
        return value

    @field_validator("slot_granularity_minutes")
    @classmethod
    def _validate_granularity(cls, value: int) -> int:
        if value != SLOT_GRANULARITY_MINUTES:
            raise ValueError(f"slot_granularity_minutes is fixed at {SLOT_GRANULARITY_MINUTES}")
        return value

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


settings = Settings()
logger.info(
    "[CONFIG] Reservation engine: payment_window=%ss durations=%s sweep_interval=%ss",
    settings.payment_window_seconds,
    settings.allowed_durations,
    settings.expiry_sweep_interval_seconds,
)
