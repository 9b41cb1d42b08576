"""Application configuration and settings management.

This module defines the application settings loaded from environment
variables and provides a helper for accessing the cached settings
object. Settings are validated once, when first requested, and are
immutable afterwards.
"""

from functools import lru_cache
from typing import List, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables.

    Attributes:
        APP_NAME: Public name of the service.
        APP_VERSION: Version string reported by the API.
        APP_DESCRIPTION: Short description reported by the root endpoint.
        ENVIRONMENT: Deployment environment; ``production`` hides
            internal error details from clients.
        DATABASE_URL: Database connection string.
        SECRET_KEY: Secret key used for JWT signing. Required.
        ALGORITHM: Algorithm used to encode JWT tokens.
        ACCESS_TOKEN_EXPIRE_MINUTES: Access token lifetime in minutes.
        BCRYPT_ROUNDS: Cost factor for password hashing.
        ALLOWED_ORIGINS: Allowed origins for CORS.
        REDIS_URL: Redis connection URL for rate limiting. Empty value
            selects the in-process backend.
        RATE_LIMIT_TIMES: Requests allowed per window on auth endpoints.
        RATE_LIMIT_SECONDS: Rate limit window length in seconds.
        LOG_LEVEL: Root logging level.
        LOG_FILE: Optional path of a log file.
        HOST: Bind address used by ``python main.py``.
        PORT: Port used by ``python main.py``.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", frozen=True)

    APP_NAME: str = "Telecom Plus S.A.S."
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = (
        "Sistema de gestión de contratos y servicios de telecomunicaciones"
    )
    ENVIRONMENT: Literal["development", "production", "test"] = "development"
    DATABASE_URL: str = "sqlite:///./telecom.db"
    SECRET_KEY: str = Field(min_length=32)
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60 * 24 * 7, gt=0)
    BCRYPT_ROUNDS: int = Field(default=12, ge=4, le=31)
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]
    REDIS_URL: str | None = "redis://localhost:6379"
    RATE_LIMIT_TIMES: int = Field(default=100, gt=0)
    RATE_LIMIT_SECONDS: int = Field(default=900, gt=0)
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str | None = None
    HOST: str = "0.0.0.0"
    PORT: int = Field(default=3000, ge=1, le=65535)

    @field_validator("LOG_LEVEL")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.upper()

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    def summary(self) -> dict:
        """Return the configuration without secrets, for diagnostics."""
        return self.model_dump(exclude={"SECRET_KEY", "DATABASE_URL", "REDIS_URL"})


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings.

    The settings object is cached to prevent reloading environment
    variables multiple times during application lifetime. A missing or
    malformed value raises ``pydantic.ValidationError`` here, which the
    application entry point treats as fatal.
    """

    return Settings()
