"""
Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # ==========================================================================
    # Environment
    # ==========================================================================

    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # ==========================================================================
    # Client
    # ==========================================================================

    api_base_url: str = "http://localhost:8080"
    session_path: str = "/session"

    # Seconds; unset means the transport never times out
    request_timeout: float | None = None

    # ==========================================================================
    # Dev Server
    # ==========================================================================

    api_host: str = "0.0.0.0"
    api_port: int = 8080
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    session_cookie_name: str = "session_token"
    session_ttl_seconds: int = 7 * 24 * 60 * 60
    context_ttl_seconds: int = 7 * 24 * 60 * 60
    cookie_secure: bool = False

    # Requests per minute, per client address
    rate_limiting_enabled: bool = False
    session_rate_limit: int = 5
    api_rate_limit: int = 30

    # Only "mock" ships with the package
    engine: str = "mock"
    mock_delay_seconds: float = 0.0

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
