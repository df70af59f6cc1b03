# src/dam_client/config/settings.py
import logging
from pathlib import Path
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


DEFAULT_TOKEN_STORE_PATH = Path.home() / ".config" / "dam-client" / "tokens.json"


class Settings(BaseSettings):
    """
    Single source of truth for all client settings.

    Configuration precedence:
    1. Environment variables prefixed with ``DAM_`` (highest priority)
    2. .env file (if exists)
    3. Default values in this class (lowest priority)

    Usage:
        from dam_client.config.settings import get_settings
        settings = get_settings()
        base_url = settings.api_base_url
    """

    # API Settings
    api_base_url: str = Field(
        default="http://localhost:8000",
        description="Base URL of the DAM REST API"
    )

    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Timeout in seconds for API requests"
    )

    # Upload Settings
    upload_timeout: Optional[float] = Field(
        default=None,
        description="Timeout in seconds for the direct storage PUT (None = transport default)"
    )

    upload_chunk_size: int = Field(
        default=64 * 1024,
        gt=0,
        description="Bytes read per chunk while streaming an upload"
    )

    upload_max_workers: int = Field(
        default=4,
        ge=1,
        description="Number of concurrent transfers for bulk uploads"
    )

    # Credentials
    token_store_path: Path = Field(
        default=DEFAULT_TOKEN_STORE_PATH,
        description="File holding the access and refresh tokens"
    )

    # Query cache
    cache_ttl_seconds: Optional[float] = Field(
        default=60.0,
        description="Lifetime of cached query results (None = until invalidated)"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Endpoint paths always start with '/', so the base must not end with one."""
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one the logging module knows."""
        level = v.upper()
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if level not in valid_levels:
            raise ValueError(f"Invalid log_level: {v}. Must be one of {valid_levels}")
        return level

    model_config = SettingsConfigDict(
        env_prefix="DAM_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one Settings instance per process.
    """
    return Settings()


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure root logging from settings."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
