"""
Type-safe configuration for the automation engine using Pydantic Settings.

Values load from environment variables (prefixed ``AUTOMATION_``) and an
optional ``.env`` file.

Usage:
    from shared.config import config

    timeout = config.handshake_timeout_seconds
"""
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AutomationConfig(BaseSettings):
    """
    Central configuration for the automation engine.

    Every entry point also accepts explicit overrides, so tests never depend on
    the process environment.
    """
    model_config = SettingsConfigDict(
        env_prefix="AUTOMATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ============================================================================
    # Logging
    # ============================================================================

    log_level: str = Field(default="INFO", description="Log level for engine loggers")

    # ============================================================================
    # Execution
    # ============================================================================

    handshake_timeout_seconds: Optional[float] = Field(
        default=None,
        description="How long a trigger block waits for its handshake. None waits forever.",
    )
    run_timeout_seconds: Optional[float] = Field(
        default=None,
        description="Upper bound for a whole workflow run. None disables the run timeout.",
    )

    # ============================================================================
    # Block defaults
    # ============================================================================

    payment_description: str = Field(
        default="Automation payment request",
        description="Description attached to invoices created by payment request blocks",
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log level '{value}'")
        return normalized

    @field_validator("handshake_timeout_seconds", "run_timeout_seconds")
    @classmethod
    def _positive_timeout(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value <= 0:
            raise ValueError("timeouts must be positive")
        return value


# ============================================================================
# Global Config Instance
# ============================================================================

config = AutomationConfig()
