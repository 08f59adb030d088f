"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


_DISABLED_MATCHER_VALUES = {"", "false", "0", "none", "off"}


def _build_rate_limit_settings() -> "RateLimitSettings":
    """Build rate limit settings from environment.

    BaseSettings populates fields from environment variables; static type
    checkers still see them as constructor arguments, hence the ignore.
    """

    return RateLimitSettings()  # type: ignore[call-arg]


def _build_redis_settings() -> "RedisSettings":
    return RedisSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class RateLimitSettings(BaseSettings):
    """Admission control configuration.

    These values are translated into immutable limiter options once, at
    startup. Invalid combinations are rejected there, not per request.
    """

    enabled: bool = Field(
        True,
        description="Enable the global rate limit middleware",
    )
    backend: str = Field(
        "redis",
        description="Counter store backend (redis or memory)",
    )
    request_limit: int = Field(
        60,
        description="Maximum number of requests allowed per window",
        ge=1,
    )
    time_window: float = Field(
        60,
        description="Window length in seconds",
        gt=0,
    )
    enforce_request_spreading: bool = Field(
        False,
        description="Allow one request per time_window / request_limit seconds",
    )
    id_matcher: str | None = Field(
        r"[a-z0-9]{24}$",
        description="Regex replacing resource ids in keys; empty or 'false' disables it",
    )
    id_value: str = Field(
        ":id",
        description="Placeholder substituted for ids matched by id_matcher",
    )
    key_prefix: str = Field(
        "RL",
        description="Namespace prepended to every counter key",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )

    @field_validator("id_matcher", mode="before")
    @classmethod
    def _disable_id_matcher(cls, value: object) -> object:
        if value is None or value is False:
            return None
        if isinstance(value, str) and value.strip().lower() in _DISABLED_MATCHER_VALUES:
            return None
        return value


class RedisSettings(BaseSettings):
    """Connection settings for the shared counter store."""

    url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection URL",
    )
    socket_timeout_seconds: float = Field(
        1.0,
        description="Timeout for individual Redis commands",
        gt=0,
    )
    socket_connect_timeout_seconds: float = Field(
        1.0,
        description="Timeout for establishing the Redis connection",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated log files to keep", ge=0)

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)
    redis: RedisSettings = Field(default_factory=_build_redis_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()
