# src/marketsync/config/settings.py
"""
Settings - Pydantic-based Configuration Management

Provides centralized configuration management using Pydantic Settings.
Provider credentials, timeouts, refresh cadences and cache location are
all read from environment variables (or a .env file).

Files that USE this module:
- marketsync.app (loads settings for logging and wiring)
- marketsync.adapters.providers.* (API keys, base URLs, timeouts)
- marketsync.adapters.persistence.file_store (cache directory)
- marketsync.application.* (TTLs and refresh intervals)

Files that this module USES:
- marketsync.shared.validators (validation functions for settings)
"""

from __future__ import annotations  # Enable postponed evaluation of annotations

from datetime import timedelta  # Durations for TTLs and intervals
from pathlib import Path  # Object-oriented filesystem paths
from typing import Optional  # Type hints for optional values

from pydantic import Field, field_validator  # Data validation and field configuration
from pydantic_settings import BaseSettings, SettingsConfigDict  # Settings management with Pydantic

from marketsync.shared.validators import validate_api_key, validate_log_level


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- API Providers ---
    coingecko_key: str = Field(default="", alias="COINGECKO_API_KEY")  # Optional demo key
    coingecko_base_url: str = Field(
        default="https://api.coingecko.com/api/v3", alias="COINGECKO_BASE_URL"
    )
    exchangerate_key: str = Field(default="", alias="EXCHANGERATE_API_KEY")
    exchangerate_base_url: str = Field(
        default="https://v6.exchangerate-api.com/v6", alias="EXCHANGERATE_BASE_URL"
    )

    # --- HTTP Timeouts (seconds) ---
    price_timeout_seconds: int = Field(default=10, alias="PRICE_TIMEOUT_SECONDS", ge=1, le=60)
    rates_timeout_seconds: int = Field(default=10, alias="RATES_TIMEOUT_SECONDS", ge=1, le=60)
    history_timeout_seconds: int = Field(default=15, alias="HISTORY_TIMEOUT_SECONDS", ge=1, le=60)

    # --- Price cadence ---
    price_interval_seconds: int = Field(default=30, alias="PRICE_INTERVAL_SECONDS", ge=1)
    price_visibility_ttl_seconds: int = Field(default=120, alias="PRICE_VISIBILITY_TTL_SECONDS", ge=1)

    # --- Rates cadence ---
    rates_ttl_seconds: int = Field(default=90, alias="RATES_TTL_SECONDS", ge=1)
    rates_interval_seconds: int = Field(default=90, alias="RATES_INTERVAL_SECONDS", ge=1)

    # --- History cadence ---
    history_interval_minutes: int = Field(default=30, alias="HISTORY_INTERVAL_MINUTES", ge=1, le=1440)
    history_ttl_minutes: int = Field(default=30, alias="HISTORY_TTL_MINUTES", ge=1, le=1440)
    history_days: int = Field(default=7, alias="HISTORY_DAYS", ge=1, le=365)

    # --- Fallback series ---
    fallback_base_price: int = Field(default=97000, alias="FALLBACK_BASE_PRICE", gt=0)
    fallback_jitter: int = Field(default=4000, alias="FALLBACK_JITTER", ge=0)

    # --- Persistence ---
    cache_dir: Path = Field(default=Path("./data/cache"), alias="CACHE_DIR")

    # --- Logging ---
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_file: Optional[str] = Field(default=None, alias="LOG_FILE")
    log_dir: Optional[str] = Field(default=None, alias="LOG_DIR")
    log_max_bytes: int = Field(default=10 * 1024 * 1024, alias="LOG_MAX_BYTES")  # 10MB
    log_backup_count: int = Field(default=5, alias="LOG_BACKUP_COUNT")

    @property
    def rates_ttl(self) -> timedelta:
        return timedelta(seconds=self.rates_ttl_seconds)

    @property
    def history_ttl(self) -> timedelta:
        return timedelta(minutes=self.history_ttl_minutes)

    @property
    def price_visibility_ttl(self) -> timedelta:
        return timedelta(seconds=self.price_visibility_ttl_seconds)

    @property
    def history_interval_seconds(self) -> int:
        return self.history_interval_minutes * 60

    @field_validator("coingecko_key", "exchangerate_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        """Validate API key format (empty means not configured)."""
        if v and not validate_api_key(v):
            raise ValueError("Invalid API key format")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize the log level name."""
        if not validate_log_level(v):
            raise ValueError("LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL")
        return v.upper()


# Global settings instance
settings = Settings()
