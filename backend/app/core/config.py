# backend/app/core/config.py
"""
Application settings.

All tunables of the scheduling engine live here so that commission rates,
refund thresholds and job cadences can vary per deployment without code
changes. Values come from the environment (or a local ``.env`` file).
"""

from decimal import Decimal
import logging

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Runtime configuration for the API process and the Celery workers."""

    environment: str = Field(default="development", description="Deployment environment name")
    log_level: str = Field(default="INFO", description="Root log level")
    api_title: str = Field(default="Expert Sessions API", description="OpenAPI title")

    # Database
    database_url: str = Field(
        default="sqlite:///./sessions.db",
        description="SQLAlchemy database URL",
    )
    sql_echo: bool = Field(default=False, description="Echo SQL statements to the log")

    # Celery / Redis
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Broker and result backend for Celery",
    )

    # Pricing
    platform_commission_rate: Decimal = Field(
        default=Decimal("0.20"),
        description="Fraction of each session price retained by the platform",
    )
    default_currency: str = Field(default="USD", description="Currency for new experts")
    default_timezone: str = Field(default="UTC", description="Timezone for new experts")

    # Cancellation policy
    full_refund_hours: int = Field(
        default=24, description="Minimum lead time (hours) for a full refund"
    )
    partial_refund_hours: int = Field(
        default=12, description="Minimum lead time (hours) for a partial refund"
    )
    partial_refund_fraction: Decimal = Field(
        default=Decimal("0.5"), description="Fraction refunded inside the partial window"
    )
    refund_captured_payments_only: bool = Field(
        default=False,
        description=(
            "Base cancellation refunds on what was actually collected (credits "
            "applied, plus the price once payment is captured) instead of the price"
        ),
    )

    # Periodic jobs
    reminder_lead_hours: int = Field(
        default=24, description="Send session reminders this many hours ahead"
    )
    outbox_dispatch_batch_size: int = Field(
        default=200, description="Max outbox rows queued per dispatch tick"
    )

    # Listing
    upcoming_sessions_limit: int = Field(default=5, description="Upcoming sessions shown")
    default_page_size: int = Field(default=20, description="Default page size for listings")
    max_page_size: int = Field(default=100, description="Upper bound for page size")

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("platform_commission_rate")
    @classmethod
    def _validate_commission_rate(cls, value: Decimal) -> Decimal:
        if value < 0 or value >= 1:
            raise ValueError("platform_commission_rate must be in [0, 1)")
        return value

    @field_validator("partial_refund_fraction")
    @classmethod
    def _validate_refund_fraction(cls, value: Decimal) -> Decimal:
        if value < 0 or value > 1:
            raise ValueError("partial_refund_fraction must be in [0, 1]")
        return value

    @field_validator("partial_refund_hours")
    @classmethod
    def _validate_refund_windows(cls, value: int, info) -> int:
        full = info.data.get("full_refund_hours")
        if full is not None and value > full:
            raise ValueError("partial_refund_hours cannot exceed full_refund_hours")
        return value


settings = Settings()
