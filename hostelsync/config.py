"""Centralized application configuration using Pydantic settings."""
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven configuration shared across services."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    environment: str = Field(
        default="production",
        description="Deployment environment. Error details are only exposed in 'development'.",
    )
    database_url: str = Field(
        default="sqlite:///./hostelsync.db",
        description="SQLAlchemy database URL. Defaults to local SQLite for development.",
    )
    run_db_migrations: bool = Field(
        default=False,
        description="Whether this service should create/update database tables on startup.",
    )
    jwt_secret: str = Field(default="super-secret", description="JWT signing secret")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    access_token_expire_minutes: int = Field(default=60 * 24, description="Token lifetime in minutes")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"], description="Allowed CORS origins")
    default_rate_limit: str = Field(default="60/minute", description="Global rate limiting rule")
    rate_limiting_enabled: bool = Field(default=True, description="Toggle to disable SlowAPI limits (useful in tests)")
    menu_cache_ttl: int = Field(default=60, description="TTL (s) for the cached current-week menu")

    log_dir: str = Field(default="logs", description="Directory for per-service audit logs")
    export_dir: str = Field(default="exports", description="Transient directory for CSV exports")
    upload_dir: str = Field(default="uploads", description="Transient directory for CSV uploads")
    max_import_bytes: int = Field(default=2 * 1024 * 1024, description="Largest accepted CSV upload")
    max_recurrence_days: int = Field(default=366, description="Longest range a recurring menu may span")

    auth_service_port: int = 8001
    mess_service_port: int = 8002
    transport_service_port: int = 8003
    water_service_port: int = 8004
    network_service_port: int = 8005
    cleaning_service_port: int = 8006
    admin_service_port: int = 8007

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of the Settings object."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the cached Settings instance (useful for tests)."""

    get_settings.cache_clear()
