"""
Configuration management for the Studio Ledger.

This module handles loading and validating environment variables.
"""

import os
from decimal import Decimal, InvalidOperation

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _decimal_env(key: str, default: str) -> Decimal:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return Decimal(default)
    try:
        return Decimal(value.strip())
    except InvalidOperation:
        return Decimal(default)


class Config:
    """Configuration class with environment variables."""

    # Database
    DB_PATH: str = os.getenv("DB_PATH", "data/studio_ledger.db")

    # Paths
    EXPORT_DIR: str = os.getenv("EXPORT_DIR", "data/exports")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Defaults used when seeding the settings singleton
    DEFAULT_TAX_RATE: Decimal = _decimal_env("DEFAULT_TAX_RATE", "6")
    DEFAULT_FUND_CONTRIBUTION_RATE: Decimal = _decimal_env(
        "DEFAULT_FUND_CONTRIBUTION_RATE", "10"
    )
    DEFAULT_FUND_LIMIT: Decimal = _decimal_env("DEFAULT_FUND_LIMIT", "500000")

    # Display
    CURRENCY_SYMBOL: str = os.getenv("CURRENCY_SYMBOL", "₽")

    @classmethod
    def validate(cls) -> None:
        """
        Validate that required configuration is present.

        Raises:
            ValueError: If required configuration is missing or out of range.
        """
        if not cls.DB_PATH:
            raise ValueError("DB_PATH must be configured")

        for name in ("DEFAULT_TAX_RATE", "DEFAULT_FUND_CONTRIBUTION_RATE"):
            rate = getattr(cls, name)
            if rate < 0 or rate > 100:
                raise ValueError(f"{name} must be between 0 and 100")

        if cls.DEFAULT_FUND_LIMIT < 0:
            raise ValueError("DEFAULT_FUND_LIMIT must not be negative")
