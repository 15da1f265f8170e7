"""
Configuration — typed, validated settings loaded from environment/.env.

Uses pydantic-settings to:
  - Load from environment variables (12-factor app)
  - Fall back to .env file
  - Validate types and constraints at startup

Architecture: Only AppSettings is a BaseSettings instance. Sub-settings are plain
BaseModel classes populated by AppSettings via env_nested_delimiter="__", so the env
var FETCH__TIMEOUT_SECONDS maps to fetch.timeout_seconds, API__PORT to api.port, etc.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the .env file relative to the project root (two levels above this file),
# so settings load correctly regardless of the working directory at runtime.
_ENV_FILE = Path(__file__).parent.parent.parent / ".env"


class FetchSettings(BaseModel):
    """
    Retry/timeout policy for remote certificate fetches.

    Only "no certificate presented" failures are retried; every attempt gets
    its own timeout, and attempts are separated by a fixed delay.
    """

    port: int = Field(default=443, ge=1, le=65535, description="Default TLS port")
    timeout_seconds: float = Field(default=10.0, gt=0, description="Per-attempt timeout")
    max_attempts: int = Field(default=3, ge=1, description="Total attempts per fetch")
    retry_delay_seconds: float = Field(
        default=1.0, ge=0, description="Fixed delay between attempts"
    )


class ApiSettings(BaseModel):
    """HTTP API listener and upload limits."""

    host: str = Field(default="0.0.0.0", description="Bind address for Uvicorn")
    port: int = Field(default=8000, ge=1, le=65535, description="Bind port for Uvicorn")
    max_upload_bytes: int = Field(
        default=65_536, ge=1, description="Largest certificate file accepted for decoding"
    )


class AppSettings(BaseSettings):
    """
    Root application settings — aggregates all sub-settings.

    Load order (highest priority first):
      1. Environment variables
      2. .env file
      3. Default values
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    fetch: FetchSettings = Field(default_factory=lambda: FetchSettings())
    api: ApiSettings = Field(default_factory=lambda: ApiSettings())

    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Reject names the logging module does not know."""
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value!r}")
        return level
