"""Application configuration management."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------
    app_name: str = "restock-notifier"
    app_env: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # API Settings
    # -------------------------------------------------------------------------
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_workers: int = 4
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # Public base URL of this service, used to build tracking beacon links
    app_url: str = "http://localhost:8000"

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    @field_validator("app_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    # -------------------------------------------------------------------------
    # Shopify Integration
    # -------------------------------------------------------------------------
    shopify_api_secret: str = ""

    # -------------------------------------------------------------------------
    # PostgreSQL Database
    # -------------------------------------------------------------------------
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "restock"
    postgres_password: str = ""
    postgres_db: str = "restock_notifier"

    db_pool_size: int = 10
    db_max_overflow: int = 20
    db_pool_recycle: int = 1800

    # Full async DSN override (e.g. sqlite+aiosqlite:///./dev.db)
    database_dsn: str = ""

    @property
    def database_url(self) -> str:
        """Construct async database connection URL."""
        if self.database_dsn:
            return self.database_dsn
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def database_url_sync(self) -> str:
        """Construct synchronous PostgreSQL connection URL (for Alembic)."""
        if self.database_dsn:
            return self.database_dsn.replace("+asyncpg", "").replace("+aiosqlite", "")
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # -------------------------------------------------------------------------
    # Redis
    # -------------------------------------------------------------------------
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str = ""
    redis_db: int = 0

    @property
    def redis_url(self) -> str:
        """Construct Redis connection URL."""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # -------------------------------------------------------------------------
    # Celery
    # -------------------------------------------------------------------------
    celery_broker_url: str = ""
    celery_result_backend: str = ""

    # Hand restock dispatch to the email worker instead of running it inline
    dispatch_via_worker: bool = False

    @property
    def celery_broker(self) -> str:
        """Get Celery broker URL, defaulting to Redis URL."""
        return self.celery_broker_url or self.redis_url

    @property
    def celery_backend(self) -> str:
        """Get Celery result backend URL, defaulting to Redis URL."""
        return self.celery_result_backend or self.redis_url

    # -------------------------------------------------------------------------
    # Email Service
    # -------------------------------------------------------------------------
    email_service: Literal["mock", "resend"] = "mock"
    email_from_address: str = "alerts@restock-notifier.dev"
    email_from_name: str = "Restock Alert"
    resend_api_key: str = ""
    resend_api_url: str = "https://api.resend.com/emails"
    mock_email_storage_path: str = "/tmp/restock_mock_emails"
    email_send_timeout_seconds: float = 15.0

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------
    dispatch_concurrency: int = 10

    # -------------------------------------------------------------------------
    # Price Drop Alerts
    # -------------------------------------------------------------------------
    price_drop_alerts_enabled: bool = True
    price_drop_threshold_percent: float = 5.0

    # -------------------------------------------------------------------------
    # Security
    # -------------------------------------------------------------------------
    admin_api_key: str = ""
    api_key_header: str = "X-API-Key"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
