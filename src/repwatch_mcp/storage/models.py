"""Data models for persisted exercise history."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True)
class HistoryEntry:
    entry_id: str
    user_id: str | None
    exercise_id: str
    exercise_name: str
    reps: int
    duration_seconds: int
    calories: int
    completed_at: datetime

    def to_dict(self) -> dict[str, object]:
        return {
            "entry_id": self.entry_id,
            "user_id": self.user_id,
            "exercise_id": self.exercise_id,
            "exercise_name": self.exercise_name,
            "reps": self.reps,
            "duration_seconds": self.duration_seconds,
            "calories": self.calories,
            "completed_at": self.completed_at.isoformat(),
        }


@dataclass(slots=True)
class ExerciseTotals:
    exercise_id: str
    exercise_name: str
    sessions: int = 0
    reps: int = 0
    duration_seconds: int = 0
    calories: int = 0


@dataclass(slots=True)
class HistorySummary:
    sessions: int
    reps: int
    duration_seconds: int
    calories: int
    by_exercise: dict[str, ExerciseTotals]

    def to_dict(self) -> dict[str, object]:
        return {
            "sessions": self.sessions,
            "reps": self.reps,
            "duration_seconds": self.duration_seconds,
            "calories": self.calories,
            "by_exercise": {
                exercise_id: {
                    "exercise_name": totals.exercise_name,
                    "sessions": totals.sessions,
                    "reps": totals.reps,
                    "duration_seconds": totals.duration_seconds,
                    "calories": totals.calories,
                }
                for exercise_id, totals in self.by_exercise.items()
            },
        }


__all__ = ["ExerciseTotals", "HistoryEntry", "HistorySummary"]
