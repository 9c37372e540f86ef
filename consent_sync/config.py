"""
Consent Sync Configuration Management

Centralized configuration using Pydantic Settings for type-safe environment
variable loading with validation. Every field can be overridden with a
CONSENT_SYNC_-prefixed environment variable or a local .env file.
"""

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from consent_sync import __version__

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_RATE = 1
DEFAULT_BASE_URL = "https://cdn.privacy-mgmt.com"


class Settings(BaseSettings):
    """Library settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CONSENT_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ═══════════════════════════════════════════════════════════════
    # APPLICATION
    # ═══════════════════════════════════════════════════════════════
    app_env: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Environment"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    json_logs: bool = Field(default=False, description="Render logs as JSON")
    sdk_version: str = Field(default=__version__, description="Version reported with error metrics")

    # ═══════════════════════════════════════════════════════════════
    # CONSENT SERVICE
    # ═══════════════════════════════════════════════════════════════
    base_url: str = Field(default=DEFAULT_BASE_URL, description="Consent service root URL")
    campaign_env: Literal["prod", "stage"] = Field(
        default="prod", description="Value of the env query parameter"
    )
    request_timeout_seconds: float = Field(
        default=10.0, gt=0, description="HTTP request timeout"
    )
    call_timeout_seconds: float | None = Field(
        default=None, gt=0, description="Coordinator-level timeout per remote call"
    )

    # ═══════════════════════════════════════════════════════════════
    # TELEMETRY
    # ═══════════════════════════════════════════════════════════════
    sample_rate: int = Field(
        default=DEFAULT_SAMPLE_RATE, ge=1, le=100,
        description="Percentage of sessions sending the page-view ping"
    )

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must be an http(s) URL")
        if v.startswith("http://"):
            logger.warning("base_url_insecure: consent traffic will not be encrypted")
        return v.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Singleton settings instance
settings = get_settings()
