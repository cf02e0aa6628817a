"""Typed settings configuration - single source of truth."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str | None = None

    # Job queue (Redis list when configured, SQL outbox otherwise)
    redis_url: str | None = None
    job_queue_name: str = "chatbot:jobs"

    # Pagination bounds
    page_default_limit: int = 50
    page_min_limit: int = 1
    page_max_limit: int = 200

    # Logging
    log_level: str = "INFO"
    log_json: bool = True


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
