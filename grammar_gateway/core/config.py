"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

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


# Nested BaseSettings don't inherit env_file, so populate os.environ up front
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class StoreFailurePolicy(str, Enum):
    """What the limiter does when the window store cannot be reached."""

    OPEN = "open"
    CLOSED = "closed"
    ERROR = "error"


def _build_llm_settings() -> "LLMSettings":
    """Build LLM settings from environment.

    Static type checkers treat required fields as constructor arguments,
    which is not how BaseSettings is intended to be used.
    """

    return LLMSettings()  # type: ignore[call-arg]


def _build_app_settings() -> "AppSettings":
    return AppSettings()  # type: ignore[call-arg]


def _build_redis_settings() -> "RedisSettings":
    return RedisSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class LLMSettings(BaseSettings):
    """Upstream analysis service configuration.

    The API key is not required at startup: only the grammar route needs it,
    and the client is created on first use.
    """

    provider: str = Field(
        "openai",
        description="LLM provider name (only 'openai' is supported)",
    )
    model: str = Field(
        "gpt-4.1-mini",
        description="Model used to count errors in the submitted text",
    )
    api_key: str | None = Field(
        None,
        description="API key for the upstream analysis service",
    )
    base_url: str | None = Field(
        None,
        description="Custom API endpoint (proxies, compatible gateways)",
    )
    timeout_seconds: float = Field(
        20.0,
        description="Per-call HTTP timeout passed to the SDK",
        gt=0,
    )
    max_output_tokens: int = Field(
        50,
        description="Output token budget; the upstream only ever answers with a tiny JSON object",
        ge=16,
    )

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    max_text_chars: int = Field(
        4000,
        description="Maximum length of the text submitted for analysis",
        ge=1,
    )
    upstream_deadline_seconds: float = Field(
        25.0,
        description="Overall deadline for the upstream call made on behalf of one inbound request",
        gt=0,
    )
    disconnect_poll_seconds: float = Field(
        0.5,
        description="How often to check whether the inbound client went away",
        gt=0,
    )

    grammar_path: str = Field("/api/grammar", description="Path of the analysis route")
    hello_path: str = Field("/api/hello", description="Path of the greeting route")
    greeting_text: str = Field(
        "Кот, скушай сосисочку 🌭",
        description="Body returned by the greeting route",
    )
    greeting_throttled_text: str = Field(
        "Слишком много запросов. Попробуй позже.",
        description="Plain text body returned when the greeting route is throttled",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable per-client rate limiting",
    )
    analyze_rate_limit_requests: int = Field(
        30,
        description="Maximum requests per window on the analysis route (per client)",
        ge=1,
    )
    analyze_rate_limit_window_seconds: int = Field(
        600,
        description="Sliding window size for the analysis route",
        ge=1,
    )
    greeting_rate_limit_requests: int = Field(
        60,
        description="Maximum requests per window on the greeting route (per client)",
        ge=1,
    )
    greeting_rate_limit_window_seconds: int = Field(
        600,
        description="Sliding window size for the greeting route",
        ge=1,
    )
    rate_limit_store_failure_policy: StoreFailurePolicy = Field(
        StoreFailurePolicy.CLOSED,
        description="open: allow, closed: deny, error: respond 500 when the window store is down",
    )
    rate_limit_include_retry_after: bool = Field(
        True,
        description="Include Retry-After header when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class RedisSettings(BaseSettings):
    """Shared window store configuration."""

    backend: str = Field(
        "redis",
        description="Window store backend: 'redis' (shared) or 'memory' (single process)",
    )
    url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection URL",
    )
    key_prefix: str = Field(
        "ratelimit:",
        description="Prefix applied to every window key",
    )
    socket_timeout_seconds: float = Field(
        2.0,
        description="Socket timeout for store round trips",
        gt=0,
    )
    connect_timeout_seconds: float = Field(
        2.0,
        description="Connection timeout for the store",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="json or plain")
    output: str = Field("stdout", description="stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(10_485_760, description="Rotate after this many bytes (0 disables rotation)")
    backup_count: int = Field(5, description="Rotated files to keep")
    request_id_header: str = Field("X-Request-ID", description="Correlation header name")

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
    llm: LLMSettings = Field(default_factory=_build_llm_settings)
    app: AppSettings = Field(default_factory=_build_app_settings)
    redis: RedisSettings = Field(default_factory=_build_redis_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()
