"""Middleware configuration using Pydantic Settings."""

import logging
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Mirrors negotiate.core.logging.TRACE; kept here to avoid a circular import
_TRACE_LEVEL_NAME = "TRACE"


class Settings(BaseSettings):
    """Process-wide settings loaded from NEGOTIATE_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="NEGOTIATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Diagnostics
    trace: bool = Field(
        default=False,
        description="Emit TRACE-level diagnostics naming the rule that selected each format",
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_json: bool = Field(
        default=False,
        description="Format console log records as JSON",
    )
    log_file_path: str | None = Field(
        default=None,
        description="Path for rotating log file (disabled when unset)",
    )
    log_file_max_bytes: int = Field(
        default=10485760,  # 10MB
        description="Maximum size of each log file in bytes",
        ge=1024,
    )
    log_file_backup_count: int = Field(
        default=7,
        description="Number of backup log files to keep",
        ge=0,
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level name."""
        level = v.strip().upper()
        if level != _TRACE_LEVEL_NAME and not isinstance(
            logging.getLevelName(level), int
        ):
            raise ValueError(f"Invalid log level: {v}")
        return level


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
