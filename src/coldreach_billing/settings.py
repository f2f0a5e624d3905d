"""Centralized configuration using pydantic-settings.

All configuration is loaded from environment variables and .env files.
Nested values use a double underscore: COLDREACH_BILLING__GRACE_PERIOD_DAYS=10
"""

from enum import Enum

from moneyed import get_currency
from moneyed.classes import CurrencyDoesNotExist
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Settings(BaseSettings):
    """Billing core settings.

    All settings can be overridden via environment variables prefixed with
    ``COLDREACH_``.
    """

    model_config = SettingsConfigDict(
        env_prefix="COLDREACH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore",
    )

    app_name: str = Field("coldreach-billing", description="Application name")
    environment: Environment = Field(Environment.DEVELOPMENT, description="Deployment environment")
    debug: bool = Field(False, description="Debug mode")

    # Logging
    log_level: LogLevel = Field(LogLevel.INFO, description="Log level")
    log_format: str = Field("json", description="Log format (json or console)")

    class BillingSettings(BaseModel):
        """Subscription and credit ledger configuration."""

        default_currency: str = Field("EUR", description="Default ISO 4217 currency code")
        default_locale: str = Field("en_US", description="Locale used to format amounts")
        grace_period_days: int = Field(
            7, ge=1, description="Days a past_due subscription has before cancellation"
        )
        default_trial_days: int = Field(14, ge=1, description="Trial length when none is given")
        pending_action_max_age_seconds: int = Field(
            3600,
            gt=0,
            description="Age after which a pending action is reported as stale",
        )

        @field_validator("default_currency")
        @classmethod
        def validate_currency(cls, v: str) -> str:
            """Validate currency code against ISO 4217."""
            try:
                return get_currency(v.upper()).code
            except CurrencyDoesNotExist:
                raise ValueError(f"Invalid currency code: {v}")

    billing: BillingSettings = Field(default_factory=BillingSettings)

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log renderer name."""
        v = v.lower()
        if v not in {"json", "console"}:
            raise ValueError("log_format must be 'json' or 'console'")
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_testing(self) -> bool:
        """Check if running in test mode."""
        return self.environment == Environment.TEST


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get global settings instance (singleton)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (mainly for testing)."""
    global _settings
    _settings = None


# Convenience export
settings = get_settings()
