"""
Application configuration via pydantic-settings.
All config read from environment variables (or a local .env file).

The provider credentials are required: a missing VISUAL_CROSSING_API_KEY or
VISUAL_CROSSING_API_URL fails Settings() and therefore process startup.
"""

import logging

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

# 12 hours
DEFAULT_CACHE_EXPIRATION_S = 43200


class Settings(BaseSettings):
    # App
    app_name: str = "weather-proxy"
    app_version: str = "0.1.0"
    environment: str = Field(default="development", pattern=r"^(development|staging|production)$")
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=8080, ge=1, le=65535)

    # Visual Crossing
    visual_crossing_api_key: str = Field(min_length=1)
    visual_crossing_api_url: str = Field(min_length=1)
    weather_api_timeout_s: float = Field(default=10.0, gt=0)

    # Redis
    redis_url: str = "redis://localhost:6379/0"
    redis_timeout_s: float = Field(default=5.0, gt=0)

    # Cache
    cache_expiration: int = DEFAULT_CACHE_EXPIRATION_S
    weather_coalesce_misses: bool = False

    # Rate Limiting (per client, sliding window)
    rate_limit_enabled: bool = True
    rate_limit_requests: int = Field(default=1, ge=1)
    rate_limit_window_s: float = Field(default=1.0, gt=0)

    # Sentry
    sentry_dsn: str = ""
    sentry_traces_sample_rate: float = Field(default=0.1, ge=0.0, le=1.0)

    model_config = {"env_prefix": "", "env_file": ".env", "extra": "ignore"}

    @field_validator("redis_url", mode="before")
    @classmethod
    def _ensure_redis_scheme(cls, value):
        """Accept a bare host:port as well as a full redis:// URL."""
        if isinstance(value, str) and value and "://" not in value:
            return f"redis://{value}"
        return value

    @field_validator("cache_expiration", mode="before")
    @classmethod
    def _fallback_cache_expiration(cls, value):
        if value is None or value == "":
            return DEFAULT_CACHE_EXPIRATION_S
        try:
            seconds = int(value)
        except (TypeError, ValueError):
            logger.warning(
                "Invalid CACHE_EXPIRATION %r, defaulting to %d seconds",
                value,
                DEFAULT_CACHE_EXPIRATION_S,
            )
            return DEFAULT_CACHE_EXPIRATION_S
        if seconds <= 0:
            logger.warning(
                "Non-positive CACHE_EXPIRATION %d, defaulting to %d seconds",
                seconds,
                DEFAULT_CACHE_EXPIRATION_S,
            )
            return DEFAULT_CACHE_EXPIRATION_S
        return seconds


def get_settings() -> Settings:
    """Build settings from the environment. Raises pydantic.ValidationError if incomplete."""
    return Settings()
