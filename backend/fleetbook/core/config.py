# backend/fleetbook/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal

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
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug("[CONFIG] Looking for .env at: %s (exists=%s)", env_path, env_path.exists())
    load_dotenv(env_path)


class Settings(BaseSettings):
    # Database
    database_url: str = Field(
        default="sqlite:///./fleetbook.db",
        description="SQLAlchemy URL for the booking store",
    )
    sqlite_busy_timeout_seconds: float = Field(
        default=30.0,
        ge=0,
        description="How long SQLite writers wait for the database lock",
    )

    # Runtime
    environment: str = Field(default="development", description="Deployment environment")
    log_level: str = Field(default="INFO", description="Root log level")
    slow_request_ms: float = Field(default=500.0, ge=0, description="Slow request warning threshold")

    # Availability
    advance_notice_hours: int = Field(
        default=0,
        ge=0,
        description="Minimum lead time before a slot can be booked",
    )

    # Bookings
    upcoming_window_days: int = Field(default=7, ge=1, le=90)
    default_page_size: int = Field(default=20, ge=1, le=100)
    max_page_size: int = Field(default=100, ge=1, le=500)
    booking_request_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Default deadline applied to mutating booking operations",
    )
    enforce_start_time_guard: bool = Field(
        default=False,
        description="Refuse to start a booking before its scheduled time",
    )

    # Commissions
    commission_rate_source: Literal["snapshot", "current"] = Field(
        default="snapshot",
        description=(
            "'snapshot' settles with the rate captured when the booking was created; "
            "'current' uses the partner's rate at completion"
        ),
    )

    # Use ConfigDict instead of Config class (Pydantic V2 style)
    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        env_prefix="FLEETBOOK_",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = (value or "INFO").strip().upper()
        if not isinstance(logging.getLevelName(normalized), int):
            raise ValueError(f"Unknown log level: {value}")
        return normalized

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    def get_database_url(self) -> str:
        """Get the appropriate database URL based on context."""
        if is_running_tests() and os.getenv("FLEETBOOK_TEST_DATABASE_URL"):
            return os.environ["FLEETBOOK_TEST_DATABASE_URL"]
        return self.database_url


settings = Settings()
