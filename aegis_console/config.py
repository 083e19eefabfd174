"""Configuration management for the console."""

from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MIN_POLL_INTERVAL_MS = 100


class ConsoleSettings(BaseSettings):
    """Console settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="AEGIS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    backend_url: str = "http://localhost:8000"
    request_timeout: float = 5.0  # seconds

    traffic_poll_interval_ms: int = 1000
    log_poll_interval_ms: int = 2000

    # Scan request defaults
    scan_target: str = "auto"
    scan_start_port: int = 1
    scan_end_port: int = 1000
    scan_on_start: bool = False

    log_level: str = "INFO"
    summary_interval: int = 5  # seconds

    @field_validator("backend_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("traffic_poll_interval_ms", "log_poll_interval_ms")
    @classmethod
    def _clamp_interval(cls, value: int) -> int:
        return max(value, MIN_POLL_INTERVAL_MS)


def load_config() -> ConsoleSettings:
    """Load configuration from environment variables."""
    return ConsoleSettings()
