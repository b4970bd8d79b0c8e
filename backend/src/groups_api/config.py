"""Application configuration."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, PostgresDsn, RedisDsn, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Groups API"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"

    # Database (required - no default for security)
    database_url: PostgresDsn = Field(
        description="PostgreSQL connection URL. Must be set via environment variable."
    )
    database_pool_size: int = 5
    database_max_overflow: int = 10

    # Redis - edge cache (shared across instances)
    redis_url: RedisDsn | None = Field(default="redis://localhost:6379")
    # Durable cache for long-lived aggregates (defaults to redis_url, database 2)
    durable_cache_url: RedisDsn | None = None

    # Cache TTL settings (in seconds)
    cache_ttl_categories: int = 3600  # 1 hour
    cache_ttl_member_ids: int = 300  # 5 minutes
    cache_ttl_user_permissions: int = 300  # 5 minutes
    cache_ttl_auto_invite_groups: int = 300  # 5 minutes

    # Recruitment
    invitation_ttl_days: int = 7
    invite_code_min_days: int = 1
    invite_code_max_days: int = 30
    invite_code_generation_attempts: int = 10

    # Fan-out width for batched lookups
    fanout_concurrency: int = Field(default=10, ge=1)

    # Character lookup collaborator (core service)
    character_service_url: str = "http://localhost:8787"
    character_service_timeout: float = 10.0

    # Background jobs
    derived_sync_interval_minutes: int = 15
    invitation_expiry_interval_minutes: int = 60

    @model_validator(mode="after")
    def validate_settings(self) -> "Settings":
        """Validate settings for deployment requirements."""
        if self.environment == "production" and self.debug:
            raise ValueError("DEBUG mode cannot be enabled in production environment.")

        url = str(self.database_url)
        if not url.startswith(("postgresql://", "postgres://")):
            raise ValueError(
                "DATABASE_URL must be a PostgreSQL URL starting with 'postgresql://' or 'postgres://'"
            )

        if self.invite_code_min_days > self.invite_code_max_days:
            raise ValueError("INVITE_CODE_MIN_DAYS must not exceed INVITE_CODE_MAX_DAYS")

        return self

    @property
    def async_database_url(self) -> str:
        """Get async database URL for SQLAlchemy with asyncpg.

        Converts sslmode parameter to ssl for asyncpg compatibility.
        """
        url = str(self.database_url)
        url = url.replace("postgresql://", "postgresql+asyncpg://")
        url = url.replace("postgres://", "postgresql+asyncpg://")
        url = url.replace("sslmode=", "ssl=")
        return url

    @property
    def durable_cache_url_resolved(self) -> str | None:
        """Get the durable cache URL, falling back to redis_url on database 2."""
        if self.durable_cache_url:
            return str(self.durable_cache_url)
        if not self.redis_url:
            return None
        return _with_database(str(self.redis_url), 2)


def _with_database(redis_url: str, db: int) -> str:
    """Point a Redis URL at a specific logical database."""
    base, _, tail = redis_url.rstrip("/").rpartition("/")
    if "://" not in base or not tail.isdigit():
        return f"{redis_url.rstrip('/')}/{db}"
    return f"{base}/{db}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
