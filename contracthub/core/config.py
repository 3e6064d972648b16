"""Runtime settings for the version compatibility service."""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # Web settings
    CORS_ORIGINS: list[str] = ["*"]
    ALLOWED_HOSTS: list[str] = ["*"]

    # Caller identity
    TENANT_HEADER: str = "x-tenant-id"
    USER_HEADER: str = "x-user-id"

    # Migration job store backend (memory|redis)
    MIGRATION_JOB_BACKEND: str = "memory"
    MIGRATION_JOB_KEY_PREFIX: str = "contracthub:migrations"
    REDIS_URL: str = "redis://localhost:6379/0"

    # Impact tiers on affected request volume (strictly greater than)
    IMPACT_MEDIUM_THRESHOLD: int = 100
    IMPACT_HIGH_THRESHOLD: int = 1000

    API_DOCS_BASE_URL: str = "https://docs.contracthub.io/api"

    model_config = {
        "env_file": ".env",
        "case_sensitive": False,
    }


_settings_cache: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = Settings()
    return _settings_cache


def reset_settings() -> None:
    global _settings_cache
    _settings_cache = None
