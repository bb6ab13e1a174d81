"""Exercise catalog models."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from ..session import SessionConfig


class ExerciseDefinition(BaseModel):
    """A suggested exercise that can be tracked live."""

    id: str = Field(..., description="Unique identifier for the exercise.")
    name: str = Field(..., description="Display name, also stored with history records.")
    type: str = Field(default="strength", description="Exercise category such as strength or core.")
    description: str = Field(default="", description="Short human-friendly description.")
    difficulty: Literal["beginner", "intermediate", "advanced"] = Field(
        default="beginner",
        description="Suggested difficulty level.",
    )
    duration_minutes: int = Field(
        default=10,
        description="Suggested session length in minutes.",
    )
    calories_per_minute: float = Field(
        default=0.0,
        description="Calorie-burn rate used to derive calories from tracked duration.",
    )
    assigned_reps: int = Field(
        default=10,
        description="Default repetition target when starting a session.",
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Arbitrary metadata for filtering or display.",
    )

    @field_validator("id")
    @classmethod
    def _normalize_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Exercise id must not be empty")
        return normalized

    @field_validator("difficulty", mode="before")
    @classmethod
    def _lower_difficulty(cls, value: Any):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("duration_minutes", "assigned_reps")
    @classmethod
    def _require_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("Exercise duration and assigned reps must be positive")
        return value

    @field_validator("calories_per_minute")
    @classmethod
    def _validate_calorie_rate(cls, value: float) -> float:
        if value < 0:
            raise ValueError("calories_per_minute must be >= 0")
        return value

    def to_session_config(self, assigned_reps: int | None = None) -> SessionConfig:
        return SessionConfig(
            exercise_id=self.id,
            exercise_name=self.name,
            assigned_reps=assigned_reps if assigned_reps is not None else self.assigned_reps,
            calories_per_minute=self.calories_per_minute,
        )


__all__ = ["ExerciseDefinition"]
