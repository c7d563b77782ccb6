"""
Centralized settings configuration using Pydantic BaseSettings.

All environment variables are defined here with types, defaults, and
validation. Variables use the ``WEBHOOK_`` prefix, e.g. ``WEBHOOK_SERVER_PORT``.

Usage:
    from backend.settings import get_settings, Settings

    settings = get_settings()
    config = settings.listener_config()
    print(config.port)

The listener itself never reads settings: it consumes the immutable
``ListenerConfig`` snapshot, which the host replaces via
``CaptureListener.update_config()`` when settings change.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PORT = 3000
DEFAULT_RESPONSE_CODE = 201
DEFAULT_MAX_REQUESTS = 100
DEFAULT_MAX_BODY_BYTES = 10 * 1024 * 1024


class ListenerConfig(BaseModel):
    """
    Immutable response/behaviour configuration for the capture listener.

    Each request reads the listener's current ListenerConfig once, so a
    config swap never affects requests already in flight.
    """

    port: int = Field(default=DEFAULT_PORT, ge=1024, le=65535)
    auto_find_port: bool = Field(
        default=True,
        description="Search upward for a free port if the preferred one is in use",
    )
    response_code: int = Field(default=DEFAULT_RESPONSE_CODE, ge=200, le=299)
    response_headers: Dict[str, str] = Field(default_factory=dict)
    response_body: str = Field(default="")
    max_requests: int = Field(default=DEFAULT_MAX_REQUESTS, ge=1, le=10000)
    max_body_bytes: int = Field(default=DEFAULT_MAX_BODY_BYTES, ge=1)

    model_config = {
        "frozen": True,
    }


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="WEBHOOK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Core Environment
    # -------------------------------------------------------------------------
    environment: str = Field(
        default="development",
        description="Runtime environment: development, staging, production, test",
    )
    log_level: str = Field(
        default="INFO",
        description="Root logging level used by the CLI",
    )

    # -------------------------------------------------------------------------
    # Capture Listener
    # -------------------------------------------------------------------------
    server_port: int = Field(
        default=DEFAULT_PORT,
        ge=1024,
        le=65535,
        description="Preferred loopback port for the capture listener",
    )
    auto_find_port: bool = Field(
        default=True,
        description="Try the next ports when the preferred one is in use",
    )
    response_code: int = Field(
        default=DEFAULT_RESPONSE_CODE,
        ge=200,
        le=299,
        description="Status code returned for captured requests",
    )
    response_headers: Dict[str, str] = Field(
        default_factory=dict,
        description="Headers returned for captured requests (JSON object in env)",
    )
    response_body: str = Field(
        default="",
        description="Body returned for captured requests",
    )
    max_body_bytes: int = Field(
        default=DEFAULT_MAX_BODY_BYTES,
        ge=1,
        description="Largest request body accepted; larger bodies get 413",
    )
    shutdown_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Seconds to wait for in-flight connections on stop",
    )

    # -------------------------------------------------------------------------
    # Storage
    # -------------------------------------------------------------------------
    max_requests: int = Field(
        default=DEFAULT_MAX_REQUESTS,
        ge=1,
        le=10000,
        description="Maximum number of captured requests retained",
    )
    storage_dir: Path = Field(
        default=Path(".webhook-toolkit"),
        description="Directory holding webhook-requests.json",
    )

    # -------------------------------------------------------------------------
    # Observability - Sentry
    # -------------------------------------------------------------------------
    sentry_dsn: Optional[str] = Field(
        default=None,
        description="Sentry DSN for error tracking",
    )

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is a valid value."""
        valid_environments = {"development", "staging", "production", "test"}
        if v.lower() not in valid_environments:
            raise ValueError(
                f"Invalid environment '{v}'. Must be one of: {valid_environments}"
            )
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level '{v}'. Must be one of: {valid_levels}")
        return v.upper()

    # -------------------------------------------------------------------------
    # Helper Properties
    # -------------------------------------------------------------------------
    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_test(self) -> bool:
        """Check if running in test environment."""
        return self.environment == "test"

    def listener_config(self) -> ListenerConfig:
        """Snapshot the listener-facing part of the settings."""
        return ListenerConfig(
            port=self.server_port,
            auto_find_port=self.auto_find_port,
            response_code=self.response_code,
            response_headers=dict(self.response_headers),
            response_body=self.response_body,
            max_requests=self.max_requests,
            max_body_bytes=self.max_body_bytes,
        )


def format_configuration(config: ListenerConfig) -> str:
    """Render a configuration for display, one setting per line."""
    return "\n".join(
        [
            f"Server Port: {config.port}",
            f"Auto Find Port: {str(config.auto_find_port).lower()}",
            f"Response Code: {config.response_code}",
            f"Response Headers: {json.dumps(config.response_headers)}",
            f'Response Body: "{config.response_body}"',
            f"Max Requests: {config.max_requests}",
        ]
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    For testing, you can clear the cache with get_settings.cache_clear().

    Returns:
        Settings: Application settings instance
    """
    return Settings()
