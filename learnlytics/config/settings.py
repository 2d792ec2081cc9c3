"""
Settings & Feature Flags

Centralized configuration for the analytics engine.
Everything is loaded from environment variables (a local .env file is
honoured when present).

Thresholds used by the rule engines are NOT settings: they live as named
constants next to the code that applies them.
"""
import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def get_bool_env(key: str, default: bool = False) -> bool:
    """Get a boolean value from environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ('true', '1', 'yes', 'on', 'enabled')


def get_float_env(key: str, default: float) -> float:
    """Get a float value from environment variable, falling back on bad input."""
    raw: Optional[str] = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


class Settings:
    """
    Runtime settings for the analytics engine.

    To add a new setting:
    1. Add it here as a class attribute
    2. Load it from an environment variable
    3. Read it through the module-level ``settings`` instance
    """

    # Natural-language insight service
    INSIGHT_SERVICE_URL: str = os.getenv('INSIGHT_SERVICE_URL', '')
    INSIGHT_SERVICE_API_KEY: str = os.getenv('INSIGHT_SERVICE_API_KEY', '')
    INSIGHT_SERVICE_TIMEOUT_SECONDS: float = get_float_env('INSIGHT_SERVICE_TIMEOUT_SECONDS', 15.0)

    # Feature flags
    FEATURE_EXTERNAL_INSIGHTS: bool = get_bool_env('FEATURE_EXTERNAL_INSIGHTS', True)
    FEATURE_DETAILED_SUMMARY: bool = get_bool_env('FEATURE_DETAILED_SUMMARY', True)

    # HTTP app
    LOG_LEVEL: str = os.getenv('LOG_LEVEL', 'INFO').upper()
    ALLOWED_ORIGINS: str = os.getenv('ALLOWED_ORIGINS', '')

    @classmethod
    def external_insights_enabled(cls) -> bool:
        """External generation needs both the flag and an endpoint."""
        return cls.FEATURE_EXTERNAL_INSIGHTS and bool(cls.INSIGHT_SERVICE_URL)

    @classmethod
    def is_enabled(cls, flag_name: str) -> bool:
        """Check if a feature flag is enabled by name."""
        return getattr(cls, flag_name, False)

    @classmethod
    def get_all_flags(cls) -> dict:
        """Get all feature flags as a dictionary."""
        return {
            key: value
            for key, value in vars(cls).items()
            if key.startswith('FEATURE_') and isinstance(value, bool)
        }


# Singleton instance for easy importing
settings = Settings()
