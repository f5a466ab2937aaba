# tablebook/core/config.py
"""
Runtime configuration for the Tablebook engine.

Values come from ``TABLEBOOK_*`` environment variables or a ``.env`` file
next to the project root. Business policy that the venue may want to tune
(role exemptions, span limits, pricing) lives here rather than in code.
"""

import logging
import os
from pathlib import Path
from typing import Dict, Literal, Set

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

_PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = _PROJECT_ROOT / ".env"
    logger.debug("[CONFIG] Looking for .env at: %s (exists=%s)", env_path, env_path.exists())
    load_dotenv(env_path)


def is_running_tests() -> bool:
    """PYTEST_CURRENT_TEST is set by pytest and never in production."""
    return os.getenv("PYTEST_CURRENT_TEST") is not None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TABLEBOOK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = Field(default="development", description="Deployment environment name")
    database_url: str = Field(
        default=f"sqlite:///{_PROJECT_ROOT / 'tablebook.db'}",
        description="SQLAlchemy database URL",
    )
    timezone: str = Field(default="Asia/Hong_Kong", description="Venue timezone for slot grids")

    # Resources in assignment priority order (first free wins)
    resources: Dict[str, str] = Field(
        default_factory=lambda: {"room-1": "Room 1", "room-2": "Room 2"},
        description="Bookable resource id -> display name",
    )

    max_span_slots: int = Field(default=48, description="Longest bookable span in slots")
    min_span_slots: int = Field(default=2, description="Shortest span for regular users")
    privileged_min_span_slots: int = Field(default=1, description="Shortest span for admins")
    cancellation_notice_hours: int = Field(default=12)
    redemption_grace_minutes: int = Field(default=30)
    access_code_default_minutes: int = Field(default=30)

    balance_exempt_roles: Set[str] = Field(default_factory=lambda: {"admin"})
    privileged_discount_roles: Set[str] = Field(default_factory=lambda: {"vip", "vvip", "admin"})
    single_active_code_roles: Set[str] = Field(default_factory=lambda: {"vvip"})
    access_code_issuer_roles: Set[str] = Field(default_factory=lambda: {"vvip", "admin"})
    reconcile_statuses: Set[str] = Field(default_factory=lambda: {"requesting"})

    store_retry_attempts: int = Field(default=3, description="Attempts on transient contention")

    slot_price_default: int = Field(default=50)
    slot_price_evening: int = Field(default=80, description="Slots starting 18:00-22:30")
    slot_price_early: int = Field(default=40, description="Slots starting before 07:00")
    solo_discount_per_slot: int = Field(default=15)
    privileged_discount_percent: int = Field(
        default=15, ge=0, le=100, description="Percent off the quote for privileged roles"
    )
    token_price_cents: int = Field(default=100, description="Cents charged per balance unit")

    fps_payee_id: str = Field(default="", description="FPS identifier encoded into payment QR")
    payment_webhook_secret: SecretStr = Field(
        default=SecretStr(""), description="Shared secret for payment notifications"
    )
    door_api_key: SecretStr = Field(default=SecretStr(""), description="Door scanner API key")

    email_provider: Literal["console", "resend"] = Field(default="console")
    resend_api_key: SecretStr | None = Field(default=None)
    email_from_address: str = Field(default="Tablebook <bookings@tablebook.local>")
    calendar_webhook_url: str = Field(default="", description="Calendar mirror endpoint")
    calendar_webhook_timeout: float = Field(default=5.0)

    @field_validator("resources")
    @classmethod
    def _require_resources(cls, value: Dict[str, str]) -> Dict[str, str]:
        if not value:
            raise ValueError("at least one resource must be configured")
        return value

    @field_validator("max_span_slots", "min_span_slots", "privileged_min_span_slots")
    @classmethod
    def _positive_span(cls, value: int) -> int:
        if value < 1:
            raise ValueError("span limits must be positive")
        return value

    @field_validator(
        "balance_exempt_roles",
        "privileged_discount_roles",
        "single_active_code_roles",
        "access_code_issuer_roles",
        "reconcile_statuses",
    )
    @classmethod
    def _lowercase(cls, value: Set[str]) -> Set[str]:
        return {item.strip().lower() for item in value}

    @property
    def resource_ids(self) -> list[str]:
        return list(self.resources.keys())


settings = Settings()
