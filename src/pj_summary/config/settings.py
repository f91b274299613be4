"""Configuration settings for the PJ summary service."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Flat settings read from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage API
    storage_api_url: str = Field(
        default="http://localhost:5000", validation_alias="STORAGE_API_URL"
    )
    storage_api_token: SecretStr | None = Field(
        default=None, validation_alias="STORAGE_API_TOKEN"
    )
    storage_timeout: float = Field(default=30.0, validation_alias="STORAGE_TIMEOUT")
    storage_max_retries: int = Field(default=3, validation_alias="STORAGE_MAX_RETRIES")

    # Snapshot refresh job (hourly, like the platform cron)
    snapshot_refresh_interval_seconds: float = Field(
        default=3600.0, validation_alias="SNAPSHOT_REFRESH_INTERVAL_SECONDS"
    )
    snapshot_refresh_concurrency: int = Field(
        default=4, ge=1, validation_alias="SNAPSHOT_REFRESH_CONCURRENCY"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", validation_alias="LOG_FORMAT"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
