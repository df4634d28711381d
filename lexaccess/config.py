"""
Application configuration.

Loads settings from environment variables with sensible defaults.
The JWT signing key has no default: it must be provided.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # ==========================================================================
    # Environment
    # ==========================================================================

    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # ==========================================================================
    # API Server
    # ==========================================================================

    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: str = "http://localhost:3000"

    # ==========================================================================
    # Database
    # ==========================================================================

    database_url: str = "sqlite+aiosqlite:///./lexaccess.db"
    database_echo: bool = False

    # ==========================================================================
    # Authentication
    # ==========================================================================

    jwt_secret_key: str = ""
    jwt_algorithm: str = "HS256"
    session_token_expire_days: int = 7
    auth_cookie_name: str = "auth-token"
    bcrypt_rounds: int = 12

    # ==========================================================================
    # Access control
    # ==========================================================================

    access_grant_hours: int = 24
    sign_in_path: str = "/auth"
    verification_path: str = "/vkyc"
    route_policy_path: str = ""  # empty = bundled lexaccess/gate/routes.yaml

    # Shared with the payment service; grants are only written by callers presenting it
    payment_webhook_secret: str = ""
    payment_webhook_header: str = "X-Payment-Token"

    # ==========================================================================
    # Optional Services
    # ==========================================================================

    sentry_dsn: str = ""

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def session_max_age_seconds(self) -> int:
        return self.session_token_expire_days * 24 * 60 * 60


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(settings: Settings) -> None:
    """Set the root log level and format once at startup."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
