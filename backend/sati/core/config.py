# backend/sati/core/config.py
import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None or os.getenv("is_testing") == "true"


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: str = Field(default="development", description="deployment environment")
    is_testing: bool = Field(default=False, description="Set by the test suite")
    log_level: str = Field(default="INFO", description="Root logging level")

    database_url: str = Field(
        default="sqlite:///./sati.db",
        description="SQLAlchemy database URL (PostgreSQL in production)",
    )
    database_echo: bool = Field(default=False, description="Echo SQL statements")

    business_timezone: str = Field(
        default="America/Mexico_City",
        description="Time zone in which booking dates and times are expressed",
    )

    # Sessions
    session_cookie_name: str = Field(default="sati_sid", description="Session cookie name")
    session_idle_timeout_minutes: int = Field(
        default=30, ge=1, description="Sliding inactivity window for sessions"
    )
    session_absolute_hours: int = Field(
        default=12, ge=1, description="Absolute session lifetime regardless of activity"
    )

    # Stripe Configuration
    stripe_publishable_key: str = Field(
        default="", description="Stripe publishable key for frontend"
    )
    stripe_secret_key: SecretStr = Field(
        default=SecretStr(""),
        description="Stripe secret key for backend API calls",
    )
    stripe_webhook_secret: SecretStr = Field(
        default=SecretStr(""),
        description="Stripe webhook signing secret",
    )
    stripe_currency: str = Field(default="mxn", description="Default currency for payments")

    # Email
    resend_api_key: str = Field(default="", description="Resend API key")
    from_email: str = Field(
        default="SATI Centro de Consulta <reservas@sati.mx>",
        description="Sender used for transactional email",
    )

    # Account views
    account_summary_ttl_seconds: int = Field(
        default=60, ge=0, description="TTL of the in-process account summary cache"
    )
    next_payment_interval_days: int = Field(
        default=30, ge=1, description="Days after the last succeeded payment the next one is due"
    )

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("stripe_currency")
    @classmethod
    def _normalize_currency(cls, value: str) -> str:
        return (value or "mxn").strip().lower()

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return (value or "INFO").strip().upper()

    @property
    def stripe_configured(self) -> bool:
        return bool(self.stripe_secret_key.get_secret_value())

    @property
    def webhook_secret(self) -> str:
        return self.stripe_webhook_secret.get_secret_value()


settings = Settings()
