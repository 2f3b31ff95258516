"""
Configuration management for FleetOps Core.

Uses pydantic-settings for type-safe configuration with environment variable support.
"""

from functools import lru_cache
from typing import Literal

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
    app_name: str = "FleetOps Core"
    app_env: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: str = "INFO"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Hosted backend (REST, auth and RPC endpoints)
    backend_url: str = "http://localhost:54321"
    backend_anon_key: str = ""
    backend_service_key: str = ""
    backend_schema: str = "public"
    backend_timeout_seconds: float = 15.0

    # Redis (change feed and query cache)
    redis_url: str = "redis://localhost:6379"
    realtime_channel_prefix: str = "realtime"
    realtime_retry_seconds: float = 1.0
    realtime_retry_max_seconds: float = 30.0
    query_cache_prefix: str = "query"
    invalidation_channel: str = "cache:invalidate"

    # Session timeout
    session_timeout_minutes: float = 30.0
    session_warning_minutes: float = 5.0
    login_path: str = "/login"

    # Auto-sync
    auto_sync_enabled: bool = True
    sync_delay_ms: int = 1000
    sync_policy: Literal["overlap", "debounce"] = "overlap"
    initial_sync_on_startup: bool = True

    # Document alerting
    alert_renewal_window_days: int = 30
    alert_urgent_window_days: int = 7

    # Observability
    enable_tracing: bool = True
    otel_exporter_otlp_endpoint: str = ""
    otel_service_name: str = "fleetops-core"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def session_timeout_seconds(self) -> float:
        return self.session_timeout_minutes * 60

    @property
    def session_warning_seconds(self) -> float:
        return self.session_warning_minutes * 60

    @property
    def sync_delay_seconds(self) -> float:
        return self.sync_delay_ms / 1000


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience export
settings = get_settings()
