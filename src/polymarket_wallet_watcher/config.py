"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
Polymarket Wallet Watcher application, loading and validating
environment variables at startup.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_FILE = ".env"
_ENV_FILE_ENCODING = "utf-8"


class PolymarketSettings(BaseSettings):
    """Polymarket Data API settings."""

    model_config = SettingsConfigDict(env_prefix="POLYMARKET_", extra="ignore")

    data_api_url: str = Field(
        default="https://data-api.polymarket.com",
        alias="POLYMARKET_DATA_API_URL",
        description="Data API base URL serving per-wallet trade history",
    )
    trades_limit: int = Field(
        default=50,
        alias="POLYMARKET_TRADES_LIMIT",
        description="Number of most recent trades fetched per wallet poll",
        ge=1,
        le=1000,
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        alias="POLYMARKET_REQUEST_TIMEOUT_SECONDS",
        description="HTTP timeout for a single Data API request",
        gt=0,
    )
    requests_per_second: float = Field(
        default=10.0,
        alias="POLYMARKET_REQUESTS_PER_SECOND",
        description="Client-side rate limit for Data API requests",
        gt=0,
    )
    max_retries: int = Field(
        default=2,
        alias="POLYMARKET_MAX_RETRIES",
        description="Retry attempts for transient Data API failures",
        ge=0,
        le=10,
    )

    @field_validator("data_api_url")
    @classmethod
    def validate_data_api_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("POLYMARKET_DATA_API_URL must be an HTTP(S) endpoint")
        return v.rstrip("/")


class MonitorSettings(BaseSettings):
    """Wallet polling loop settings."""

    model_config = SettingsConfigDict(env_prefix="MONITOR_", extra="ignore")

    poll_interval_seconds: float = Field(
        default=1.0,
        alias="MONITOR_POLL_INTERVAL_SECONDS",
        description="Delay between two polls of every tracked wallet",
        gt=0,
    )
    max_concurrent_polls: int = Field(
        default=8,
        alias="MONITOR_MAX_CONCURRENT_POLLS",
        description="Upper bound on wallets fetched in parallel within one tick",
        ge=1,
        le=256,
    )
    shutdown_grace_seconds: float = Field(
        default=5.0,
        alias="MONITOR_SHUTDOWN_GRACE_SECONDS",
        description="How long pending alert deliveries may run after stop()",
        ge=0,
    )


class TelegramSettings(BaseSettings):
    """Telegram notification settings."""

    model_config = SettingsConfigDict(env_prefix="TELEGRAM_", extra="ignore")

    bot_token: SecretStr | None = Field(
        default=None,
        alias="TELEGRAM_BOT_TOKEN",
        description="Telegram bot token used to deliver alerts",
    )
    api_url: str = Field(
        default="https://api.telegram.org",
        alias="TELEGRAM_API_URL",
        description="Telegram Bot API base URL",
    )

    @property
    def enabled(self) -> bool:
        """Check if Telegram notifications are enabled."""
        return self.bot_token is not None


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files.

    Example:
        ```python
        from polymarket_wallet_watcher.config import get_settings

        settings = get_settings()
        print(settings.monitor.poll_interval_seconds)
        print(settings.log_level)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding=_ENV_FILE_ENCODING,
        extra="ignore",
    )

    # NOTE: Each nested BaseSettings must be given the same env_file, otherwise it
    # will only read from the process environment (and ignore `.env`).
    polymarket: PolymarketSettings = Field(
        default_factory=lambda: PolymarketSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    monitor: MonitorSettings = Field(
        default_factory=lambda: MonitorSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    telegram: TelegramSettings = Field(
        default_factory=lambda: TelegramSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )

    # Application settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    dry_run: bool = Field(
        default=False,
        alias="DRY_RUN",
        description="Log alerts instead of delivering them",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "polymarket": {
                "data_api_url": self.polymarket.data_api_url,
                "trades_limit": str(self.polymarket.trades_limit),
                "requests_per_second": str(self.polymarket.requests_per_second),
                "max_retries": str(self.polymarket.max_retries),
            },
            "monitor": {
                "poll_interval_seconds": str(self.monitor.poll_interval_seconds),
                "max_concurrent_polls": str(self.monitor.max_concurrent_polls),
                "shutdown_grace_seconds": str(self.monitor.shutdown_grace_seconds),
            },
            "telegram_bot_token": "(set)" if self.telegram.bot_token else "(not set)",
            "telegram_enabled": str(self.telegram.enabled),
            "log_level": self.log_level,
            "dry_run": str(self.dry_run),
        }

    def validate_requirements(self) -> None:
        """Refuse to run when alerts could never be delivered."""
        if not self.dry_run and not self.telegram.enabled:
            raise ValueError("TELEGRAM_BOT_TOKEN is required unless DRY_RUN is enabled")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Uses LRU cache to ensure settings are loaded only once and
    reused across the application.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If environment variables have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
