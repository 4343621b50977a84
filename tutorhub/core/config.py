import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
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
    env_path = Path(__file__).parent.parent.parent / ".env"
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    app_name: str = "TutorHub"
    environment: str = Field(
        default="development",
        description="Deployment environment (development|staging|production)",
    )
    log_level: str = Field(default="INFO", description="Root log level")

    database_url: str = Field(
        default="sqlite+pysqlite:///./tutorhub.db",
        description="SQLAlchemy database URL",
    )
    database_echo: bool = False

    # Redis backs the per-teacher booking mutex and the Celery broker.
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis URL for booking locks; locking is skipped when unset",
    )
    celery_broker_url: str = Field(
        default="redis://localhost:6379/0",
        description="Celery broker URL",
    )
    booking_lock_ttl_seconds: int = Field(default=30, ge=1, le=600)

    default_currency: str = Field(default="NGN", min_length=3, max_length=3)
    timezone: str = "Africa/Lagos"

    # Booking rules
    min_booking_duration_minutes: int = 30
    max_booking_duration_minutes: int = 480
    slot_step_minutes: int = 30
    available_days_window: int = 30

    default_per_page: int = Field(default=15, ge=1, le=100)

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("default_currency")
    @classmethod
    def normalize_currency(cls, value: str) -> str:
        return value.upper()

    @field_validator("environment")
    @classmethod
    def normalize_environment(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized in {"prod", "live"}:
            return "production"
        return normalized or "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


settings = Settings()
