"""Storage abstractions for Repwatch MCP."""

from .chroma import HistoryStore, HistoryUnavailableError
from .models import ExerciseTotals, HistoryEntry, HistorySummary

__all__ = [
    "ExerciseTotals",
    "HistoryEntry",
    "HistoryStore",
    "HistorySummary",
    "HistoryUnavailableError",
]
