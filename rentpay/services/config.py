"""Application configuration from environment variables.

Values are read from OS environment variables and an optional ``.env`` file.
"""

from decimal import Decimal
from typing import Optional

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        default="sqlite:///./rentpay.db",
        description="SQLAlchemy connection string",
    )
    database_echo: bool = Field(default=False, description="Log SQL queries")

    # Payment gateway (Razorpay-compatible)
    razorpay_key_id: str = Field(default="", description="Public key id returned to checkout")
    razorpay_key_secret: str = Field(default="", description="Secret used for signatures")
    razorpay_webhook_secret: str = Field(default="", description="Webhook signing secret")
    razorpay_api_url: str = Field(default="https://api.razorpay.com")
    gateway_timeout_seconds: float = Field(default=10.0, gt=0)
    landlord_linked_account_id: str | None = Field(
        default=None, description="Linked account receiving route transfers"
    )
    platform_fee_percent: Decimal = Field(default=Decimal("5"), ge=0, le=100)

    # Billing
    currency: str = Field(default="INR")
    daily_late_fee_rate: Decimal = Field(
        default=Decimal("50"), ge=0, description="Late fee charged per day overdue"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str = Field(default="logs/server.log")

    # API
    api_title: str = Field(default="RentPay API", description="API title")
    api_version: str = Field(default="0.1.0", description="API version")


# Lazy loader so the environment is read after .env has been loaded
_settings_instance: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings_instance
    _settings_instance = None


__all__ = ["Settings", "get_settings", "reset_settings"]
