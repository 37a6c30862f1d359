"""
Multigov Configuration Management

Centralized configuration using Pydantic Settings for type-safe environment
variable loading with validation. All variables use the ``MULTIGOV_`` prefix.
"""

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="MULTIGOV_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ═══════════════════════════════════════════════════════════════
    # APPLICATION
    # ═══════════════════════════════════════════════════════════════
    app_name: str = Field(default="multigov", description="Application name")
    app_env: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Environment"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    log_json: bool = Field(default=False, description="Render logs as JSON")

    # ═══════════════════════════════════════════════════════════════
    # API
    # ═══════════════════════════════════════════════════════════════
    api_host: str = Field(default="127.0.0.1", description="HTTP bind host")
    api_port: int = Field(default=8000, ge=1, le=65535, description="HTTP port")

    # ═══════════════════════════════════════════════════════════════
    # COUNTING
    # ═══════════════════════════════════════════════════════════════
    max_options: int | None = Field(
        default=None,
        description="Upper bound on options per proposal (None = unbounded)",
    )
    allow_packed_coefficients: bool = Field(
        default=True,
        description="Accept the single 32-byte coefficient block for <= 8 options",
    )
    enforce_boundaries_at_propose: bool = Field(
        default=True,
        description="Reject proposals whose boundaries exceed the action list",
    )

    @field_validator("max_options")
    @classmethod
    def validate_max_options(cls, v: int | None) -> int | None:
        if v is not None and v < 2:
            raise ValueError("max_options must be at least 2 when set")
        return v

    @model_validator(mode="after")
    def warn_deferred_boundary_checks(self) -> "Settings":
        if self.app_env == "production" and not self.enforce_boundaries_at_propose:
            logger.warning(
                "boundary_checks_deferred: proposals with out-of-range option boundaries "
                "will be accepted and only fail at execution"
            )
        return self

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Singleton settings instance
settings = get_settings()
