"""
Offline cache configuration using Pydantic Settings.
Loads configuration from environment variables with validation.
"""
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Offline cache settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CHAT_CACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    debug: bool = Field(default=False, description="Debug mode (echo SQL statements)")

    # Storage backend
    storage_backend: Literal["kv", "sql", "object"] = Field(
        default="sql",
        description="Active storage driver: kv (Redis), sql (relational) or object (ORM object store)"
    )
    key_prefix: str = Field(default="chatcache", description="Namespace prefix for key-value entries")

    # Redis
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")
    redis_password: str = Field(default="", description="Redis password")

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///chat_cache.db",
        description="Async SQLAlchemy URL for the sql and object backends"
    )

    # Schema
    schema_version: int = Field(default=2, ge=1, description="Target schema version; a mismatch wipes the cache")

    # Pagination
    message_page_size: int = Field(default=100, ge=1, description="Messages hydrated per channel / per page")
    query_channels_limit: int = Field(default=30, ge=1, description="Channels requested per remote page")

    # Remote query retry
    query_retry_attempts: int = Field(default=3, ge=0, description="Retries after a failed remote channel query")
    query_retry_delay: float = Field(default=2.0, ge=0, description="Fixed delay between retries in seconds")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="text", description="Log format: json or text")

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Upper-case the configured logging level."""
        return v.strip().upper()


# Global settings instance
settings = Settings()
