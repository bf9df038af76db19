"""
Application configuration.

All configuration is loaded from environment variables.
Never hardcode secrets or connection strings in code.
"""

import os
from decimal import Decimal
from functools import lru_cache

from dotenv import load_dotenv

# Load .env file into environment variables
load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Tuition Settlement Service"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    # Database
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "postgresql://localhost:5432/tuition_settlement"
    )

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Payment gateway
    STRIPE_SECRET_KEY: str | None = os.getenv("STRIPE_SECRET_KEY") or None
    # Without a webhook secret, callbacks are accepted unverified.
    # Never leave this unset in production.
    STRIPE_WEBHOOK_SECRET: str | None = os.getenv("STRIPE_WEBHOOK_SECRET") or None

    # Currency
    # Tuition prices are quoted in the domestic currency; the gateway
    # charges in GATEWAY_CURRENCY. One fixed rate (domestic units per
    # gateway unit) converts between them.
    DOMESTIC_CURRENCY: str = os.getenv("DOMESTIC_CURRENCY", "BDT")
    GATEWAY_CURRENCY: str = os.getenv("GATEWAY_CURRENCY", "usd")
    CONVERSION_RATE: Decimal = Decimal(os.getenv("CONVERSION_RATE", "110"))


@lru_cache()
def get_settings() -> Settings:
    """
    Return cached settings instance.

    Using lru_cache means the Settings object is created once
    and reused for all subsequent calls. This avoids reading
    environment variables repeatedly.
    """
    return Settings()
