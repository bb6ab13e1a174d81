"""Configuration management for Repwatch MCP."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RepwatchSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    tracker_base_url: str = Field(
        default="http://localhost:8000", validation_alias="TRACKER_BASE_URL"
    )
    health_timeout: float = Field(default=5.0, validation_alias="TRACKER_HEALTH_TIMEOUT")
    reset_timeout: float = Field(default=5.0, validation_alias="TRACKER_RESET_TIMEOUT")
    status_timeout: float = Field(default=5.0, validation_alias="TRACKER_STATUS_TIMEOUT")
    settle_delay: float = Field(default=0.3, validation_alias="TRACKER_SETTLE_DELAY")
    poll_interval: float = Field(default=1.5, validation_alias="TRACKER_POLL_INTERVAL")
    tick_interval: float = Field(default=1.0, validation_alias="TRACKER_TICK_INTERVAL")
    status_alert_threshold: int = Field(
        default=5, validation_alias="REPWATCH_STATUS_ALERT_THRESHOLD"
    )
    chroma_persist_path: Path = Field(
        default=Path("./storage/chroma"), validation_alias="CHROMA_PERSIST_PATH"
    )
    exercise_paths: tuple[Path, ...] = Field(
        default=(Path("exercises"),), validation_alias="REPWATCH_EXERCISE_PATHS"
    )
    user_id: str = Field(default="local", validation_alias="REPWATCH_USER_ID")
    log_level: str = Field(default="INFO", validation_alias="REPWATCH_LOG_LEVEL")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "REPWATCH_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("tracker_base_url")
    @classmethod
    def _strip_base_url(cls, value: str) -> str:
        normalized = value.strip().rstrip("/")
        if not normalized:
            raise ValueError("TRACKER_BASE_URL must not be empty")
        return normalized

    @field_validator("health_timeout", "reset_timeout", "status_timeout", "poll_interval", "tick_interval")
    @classmethod
    def _require_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Tracker timeouts and intervals must be > 0")
        return value

    @field_validator("settle_delay")
    @classmethod
    def _validate_settle_delay(cls, value: float) -> float:
        if value < 0:
            raise ValueError("TRACKER_SETTLE_DELAY must be >= 0")
        return value

    @field_validator("exercise_paths", mode="before")
    @classmethod
    def _parse_exercise_paths(cls, value):
        if value is None or value == "":
            return (Path("exercises"),)
        if isinstance(value, (list, tuple)):
            return tuple(Path(str(item)) for item in value)
        if isinstance(value, str):
            parts = [part.strip() for part in value.split(os.pathsep) if part.strip()]
            return tuple(Path(part) for part in parts) or (Path("exercises"),)
        raise TypeError(
            "REPWATCH_EXERCISE_PATHS must be a list of paths or a path-separated string"
        )

    @field_validator("status_alert_threshold")
    @classmethod
    def _validate_status_alert_threshold(cls, value: int) -> int:
        if value < 1:
            raise ValueError("REPWATCH_STATUS_ALERT_THRESHOLD must be >= 1")
        return value


@lru_cache(maxsize=1)
def get_settings() -> RepwatchSettings:
    """Return cached settings instance."""

    settings = RepwatchSettings()
    settings.chroma_persist_path = settings.chroma_persist_path.expanduser().resolve()
    settings.exercise_paths = tuple(path.expanduser().resolve() for path in settings.exercise_paths)
    return settings


__all__ = ["RepwatchSettings", "get_settings"]
