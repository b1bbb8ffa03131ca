"""
Core configuration settings for the FastAPI application.
"""

import json
import logging
from typing import List, Optional, Union

from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when a required setting is missing at the point it is needed."""

    def __init__(self, setting: str, message: Optional[str] = None):
        super().__init__(message or f"{setting} is not set.")
        self.setting = setting


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    API_PREFIX: str = "/api"
    PROJECT_NAME: str = "NAY'S CAKE API"
    ENVIRONMENT: str = "development"  # staging, production, development
    DEBUG: bool = False

    # Database connection string (e.g. the Supabase Postgres URI).
    # Optional at import time; checked when a session is first requested.
    DATABASE_URL: Optional[str] = None

    # Database Pool Configuration
    DATABASE_POOL_SIZE: int = 5
    DATABASE_POOL_RECYCLE: int = 300

    # CORS
    BACKEND_CORS_ORIGINS: List[AnyHttpUrl] = []

    # Legacy user store
    # "database": call the stored authentication function (pgcrypto crypt)
    # "passlib": verify the stored crypt hash in-process
    LEGACY_AUTH_MODE: str = "database"
    LEGACY_AUTH_FUNCTION: str = "authenticate_user"
    PLACEHOLDER_EMAIL_DOMAIN: str = "placeholder.local"

    # New auth provider (better-auth style HTTP API)
    AUTH_PROVIDER_URL: Optional[str] = None  # e.g. https://nayscake.app/api/auth
    AUTH_PROVIDER_API_KEY: Optional[str] = None
    AUTH_PROVIDER_TIMEOUT: int = 10

    # Login flow client
    MIGRATION_ENDPOINT_URL: str = "http://localhost:8000/api/migrate-user"
    SESSION_MAX_AGE_SECONDS: int = 7 * 24 * 60 * 60

    # Redis (session cache backend)
    REDIS_URL: Optional[str] = None  # e.g., redis://host:6379

    # Logging Configuration
    LOG_LEVEL: str = "INFO"

    # OpenTelemetry
    OTEL_ENABLED: bool = False
    OTEL_METRICS_ENABLED: bool = False
    OTEL_SERVICE_NAME: Optional[str] = None
    OTEL_EXPORTER_OTLP_ENDPOINT: Optional[str] = None
    OTEL_EXPORTER_OTLP_HEADERS: Optional[str] = None

    @property
    def auth_provider_enabled(self) -> bool:
        return bool(self.AUTH_PROVIDER_URL)

    def require_database_url(self) -> str:
        """Return DATABASE_URL or raise ConfigurationError when it is unset."""
        if not self.DATABASE_URL:
            logger.error("DATABASE_URL is required but not configured")
            raise ConfigurationError("DATABASE_URL")
        return self.DATABASE_URL

    @field_validator("LEGACY_AUTH_MODE")
    @classmethod
    def validate_legacy_auth_mode(cls, v: str) -> str:
        mode = v.strip().lower()
        if mode not in ("database", "passlib"):
            raise ValueError(f"Unsupported LEGACY_AUTH_MODE: {v}")
        return mode

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        """Parse CORS origins from environment variable."""
        if isinstance(v, str):
            if not v:
                return []
            if v.startswith("["):
                try:
                    data = json.loads(v)
                except json.JSONDecodeError as exc:  # pragma: no cover - guard rail
                    logger.warning(
                        "Failed to decode BACKEND_CORS_ORIGINS JSON: %s", exc
                    )
                    return []
                if isinstance(data, list):
                    return [str(i).strip() for i in data]
                return data
            return [i.strip() for i in v.split(",") if i.strip()]
        if isinstance(v, list):
            return v
        raise ValueError(v)

    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env")


settings = Settings()
