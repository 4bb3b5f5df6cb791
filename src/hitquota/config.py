"""Configuration management using Pydantic Settings."""

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="HITQUOTA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite:///hitquota.db"

    # Cache (in-process fallback when unset); URL may carry a password
    redis_url: SecretStr | None = None
    redis_socket_timeout_seconds: float = 0.5
    cache_key_prefix: str = "hitquota"
    cache_populate_retries: int = Field(default=2, ge=0)

    # Periods
    default_timezone: str = "UTC"
    count_upper_bound: bool = True

    # Enforcement
    monthly_hit_limit: int = Field(default=1000, ge=0)


settings = Settings()
