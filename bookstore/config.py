"""Configuration loading for the bookstore catalog.

This module provides centralized configuration management:
- Load settings from environment variables and .env files
- Validate configuration using pydantic
- Provide typed access to all settings
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment.

    Uses pydantic-settings for environment variable handling with
    .env file support via python-dotenv.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Catalog store configuration
    store_backend: Literal["sqlite", "postgresql"] = Field(
        default="sqlite",
        description="Catalog store backend type",
    )
    store_sqlite_path: str = Field(
        default="./data/bookstore.db",
        description="SQLite database file path",
    )
    database_url: str = Field(
        default="",
        description="PostgreSQL connection URL",
    )
    store_pool_size: int = Field(
        default=5,
        description="Number of pooled store connections",
    )
    store_busy_timeout_seconds: float = Field(
        default=5.0,
        description="How long SQLite waits for the write lock",
    )

    # Fulfillment configuration
    fulfillment_timeout_seconds: float | None = Field(
        default=30.0,
        description="Upper bound on one order transaction (unset to disable)",
    )

    # Logging configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Log level",
    )
    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Log format",
    )

    # Run mode
    run_mode: Literal["demo", "cli"] = Field(
        default="cli",
        description="Run mode",
    )

    # Development
    debug: bool = Field(
        default=False,
        description="Enable debug mode with verbose logging",
    )

    @field_validator("store_pool_size")
    @classmethod
    def validate_pool_size(cls, v: int) -> int:
        """Ensure pool size is positive."""
        if v <= 0:
            raise ValueError("store_pool_size must be positive")
        return v

    @field_validator("store_busy_timeout_seconds")
    @classmethod
    def validate_busy_timeout(cls, v: float) -> float:
        """Ensure busy timeout is non-negative."""
        if v < 0:
            raise ValueError("store_busy_timeout_seconds must be non-negative")
        return v

    @field_validator("fulfillment_timeout_seconds")
    @classmethod
    def validate_fulfillment_timeout(cls, v: float | None) -> float | None:
        """Ensure the fulfillment timeout, when set, is positive."""
        if v is not None and v <= 0:
            raise ValueError("fulfillment_timeout_seconds must be positive")
        return v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Accept only PostgreSQL URLs."""
        if v and not v.startswith(("postgresql://", "postgres://")):
            raise ValueError("database_url must be a postgresql:// URL")
        return v


def load_settings(env_file: str | None = None) -> Settings:
    """Load application settings from environment.

    Args:
        env_file: Optional path to .env file. If not provided,
                 uses the default .env in the current directory.

    Returns:
        Validated Settings instance.

    Raises:
        ValidationError: If settings validation fails.
    """
    if env_file:
        return Settings(_env_file=env_file)  # type: ignore[call-arg]
    return Settings()


__all__ = ["Settings", "load_settings"]
