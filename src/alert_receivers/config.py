"""Configuration management service with Pydantic Settings.

This module provides process-level settings for the alert receivers,
loading and validating environment variables at startup. Per-receiver
settings (webhook URL, templates) live with each receiver.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables and an optional .env
    file in the working directory, both read by pydantic-settings.

    Example:
        ```python
        from alert_receivers.config import get_settings

        settings = get_settings()
        print(settings.external_url)
        print(settings.log_level)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    external_url: str = Field(
        default="http://localhost:3000/",
        alias="EXTERNAL_URL",
        description="Base URL of the alerting UI used in notification links",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    webhook_timeout: float = Field(
        default=10.0,
        alias="WEBHOOK_TIMEOUT",
        description="HTTP timeout in seconds for webhook delivery",
        gt=0,
    )
    dry_run: bool = Field(
        default=False,
        alias="DRY_RUN",
        description="Render notifications without sending them",
    )

    @field_validator("external_url")
    @classmethod
    def validate_external_url(cls, v: str) -> str:
        """Validate external URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("EXTERNAL_URL must be an HTTP(S) URL")
        return v

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def summary(self) -> dict[str, str]:
        """Get a printable summary of the settings."""
        return {
            "external_url": self.external_url,
            "log_level": self.log_level,
            "webhook_timeout": str(self.webhook_timeout),
            "dry_run": str(self.dry_run),
        }


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
