"""Session models for live exercise tracking."""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SessionConfig(BaseModel):
    """Caller-supplied settings for one exercise session."""

    model_config = ConfigDict(frozen=True)

    exercise_id: str = Field(..., description="Stable identifier of the exercise being tracked.")
    exercise_name: str = Field(..., description="Display name stored with the history record.")
    assigned_reps: int = Field(..., description="Target repetition count for the session.")
    calories_per_minute: float = Field(
        default=0.0,
        description="Calorie-burn rate used to derive calories from the session duration.",
    )

    @field_validator("exercise_id", "exercise_name")
    @classmethod
    def _require_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Exercise id and name must not be empty")
        return normalized

    @field_validator("assigned_reps")
    @classmethod
    def _validate_assigned_reps(cls, value: int) -> int:
        if value < 1:
            raise ValueError("assigned_reps must be a positive integer")
        return value

    @field_validator("calories_per_minute")
    @classmethod
    def _validate_calorie_rate(cls, value: float) -> float:
        if value < 0:
            raise ValueError("calories_per_minute must be >= 0")
        return value


class SessionPhase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    STOPPED = "stopped"


@dataclass(slots=True)
class SessionState:
    """Mutable state for a single start attempt.

    A fresh instance is created on every ``start`` so counters never leak
    between attempts.
    """

    phase: SessionPhase = SessionPhase.IDLE
    observed_reps: int = 0
    elapsed_seconds: int = 0
    is_saved: bool = False
    starting: bool = False
    consecutive_failures: int = 0
    _save_lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def claim_save(self) -> bool:
        """Flip ``is_saved`` from False to True; return whether this caller won."""

        with self._save_lock:
            if self.is_saved:
                return False
            self.is_saved = True
            return True


def compute_calories(duration_seconds: int, calories_per_minute: float) -> int:
    """Calories burned over ``duration_seconds``, rounded half up."""

    return int(math.floor(duration_seconds / 60 * calories_per_minute + 0.5))


@dataclass(slots=True, frozen=True)
class SessionRecord:
    """Finalized session handed to the persistence service."""

    exercise_id: str
    exercise_name: str
    reps: int
    duration_seconds: int
    calories: int
    user_id: str | None
    completed_at: datetime

    @classmethod
    def build(
        cls,
        config: SessionConfig,
        *,
        reps: int,
        duration_seconds: int,
        user_id: str | None,
        completed_at: datetime,
    ) -> "SessionRecord":
        return cls(
            exercise_id=config.exercise_id,
            exercise_name=config.exercise_name,
            reps=reps,
            duration_seconds=duration_seconds,
            calories=compute_calories(duration_seconds, config.calories_per_minute),
            user_id=user_id,
            completed_at=completed_at,
        )

    def to_payload(self) -> dict[str, object]:
        return {
            "user_id": self.user_id,
            "exercise_id": self.exercise_id,
            "exercise_name": self.exercise_name,
            "reps": self.reps,
            "duration_seconds": self.duration_seconds,
            "calories": self.calories,
            "completed_at": self.completed_at.isoformat(),
        }


@dataclass(slots=True, frozen=True)
class SessionSnapshot:
    """Read-only view of a tracker for rendering or polling callers."""

    exercise_id: str
    phase: SessionPhase
    observed_reps: int
    elapsed_seconds: int
    assigned_reps: int
    is_saved: bool
    starting: bool
    consecutive_failures: int

    @property
    def remaining_reps(self) -> int:
        return max(self.assigned_reps - self.observed_reps, 0)

    @property
    def progress(self) -> float:
        return min(self.observed_reps / self.assigned_reps, 1.0)

    def to_dict(self) -> dict[str, object]:
        return {
            "exercise_id": self.exercise_id,
            "phase": self.phase.value,
            "observed_reps": self.observed_reps,
            "assigned_reps": self.assigned_reps,
            "remaining_reps": self.remaining_reps,
            "elapsed_seconds": self.elapsed_seconds,
            "progress": round(self.progress, 3),
            "is_saved": self.is_saved,
            "starting": self.starting,
            "consecutive_failures": self.consecutive_failures,
        }


@dataclass(slots=True, frozen=True)
class StartFailed:
    reason: str
    message: str


@dataclass(slots=True, frozen=True)
class SessionCompleted:
    record: SessionRecord
    saved: bool
    error: str | None = None


@dataclass(slots=True, frozen=True)
class SessionStopped:
    reps: int
    assigned_reps: int
    elapsed_seconds: int


SessionEvent = StartFailed | SessionCompleted | SessionStopped


def describe_event(event: SessionEvent) -> dict[str, object]:
    """Serialize a tracker notification for logs and tool responses."""

    if isinstance(event, StartFailed):
        return {"event": "start_failed", "reason": event.reason, "message": event.message}
    if isinstance(event, SessionCompleted):
        return {
            "event": "completed",
            "saved": event.saved,
            "error": event.error,
            "record": event.record.to_payload(),
        }
    return {
        "event": "stopped",
        "reps": event.reps,
        "assigned_reps": event.assigned_reps,
        "elapsed_seconds": event.elapsed_seconds,
    }


__all__ = [
    "SessionCompleted",
    "SessionConfig",
    "SessionEvent",
    "SessionPhase",
    "SessionRecord",
    "SessionSnapshot",
    "SessionState",
    "SessionStopped",
    "StartFailed",
    "compute_calories",
    "describe_event",
]
