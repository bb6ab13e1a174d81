"""Chroma-based exercise history persistence."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Protocol

from ..session import SessionRecord
from .models import ExerciseTotals, HistoryEntry, HistorySummary

logger = logging.getLogger(__name__)


class HistoryUnavailableError(RuntimeError):
    """Raised when the Chroma client cannot be constructed."""


class CollectionProtocol(Protocol):
    """Protocol for the minimal Chroma collection API used by the history store."""

    def add(
        self,
        *,
        documents: Iterable[str],
        metadatas: Iterable[dict[str, Any]],
        ids: Iterable[str],
    ) -> None:
        ...

    def get(
        self,
        *,
        ids: Iterable[str] | None = None,
        where: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> dict[str, list[Any]]:
        ...


class ClientProtocol(Protocol):
    """Protocol for the minimal Chroma client API used by the history store."""

    def get_or_create_collection(self, name: str) -> CollectionProtocol:
        ...


def _build_where(filters: dict[str, Any]) -> dict[str, Any] | None:
    clauses = [{key: value} for key, value in filters.items() if value is not None]
    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


class HistoryStore:
    """Persist completed exercise sessions via ChromaDB."""

    def __init__(
        self,
        path: Path,
        *,
        collection_name: str = "exercise_history",
        client_factory: Callable[[], ClientProtocol] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._path = Path(path)
        self._collection_name = collection_name
        self._client_factory = client_factory or self._default_client_factory
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._client: ClientProtocol | None = None
        self._collection: CollectionProtocol | None = None

    def _default_client_factory(self) -> ClientProtocol:
        try:
            import chromadb
        except ImportError as exc:  # pragma: no cover - depends on environment
            raise HistoryUnavailableError(
                "chromadb package is not installed; install repwatch-mcp with its dependencies"
            ) from exc

        return chromadb.PersistentClient(path=str(self._path))

    def _ensure_collection(self) -> CollectionProtocol:
        if self._collection is None:
            client = self._client or self._client_factory()
            self._client = client
            self._collection = client.get_or_create_collection(self._collection_name)
        return self._collection

    def ping(self) -> bool:
        """Verify that the underlying collection can be obtained."""

        self._ensure_collection()
        return True

    def save_record(self, record: SessionRecord) -> HistoryEntry:
        """Store one finalized session and return the persisted entry."""

        collection = self._ensure_collection()
        entry_id = f"{record.exercise_id}:{uuid.uuid4().hex}"
        completed_at = record.completed_at

        metadata: dict[str, Any] = {
            "exercise_id": record.exercise_id,
            "exercise_name": record.exercise_name,
            "reps": record.reps,
            "duration_seconds": record.duration_seconds,
            "calories": record.calories,
            "completed_at": completed_at.isoformat(),
        }
        if record.user_id is not None:
            metadata["user_id"] = record.user_id

        collection.add(
            documents=[json.dumps(record.to_payload())],
            metadatas=[metadata],
            ids=[entry_id],
        )
        logger.debug("Stored exercise history entry", extra={"entry_id": entry_id})

        return HistoryEntry(
            entry_id=entry_id,
            user_id=record.user_id,
            exercise_id=record.exercise_id,
            exercise_name=record.exercise_name,
            reps=record.reps,
            duration_seconds=record.duration_seconds,
            calories=record.calories,
            completed_at=completed_at,
        )

    def _convert_result(self, result: dict[str, list[Any]]) -> list[HistoryEntry]:
        entries: list[HistoryEntry] = []
        ids = result.get("ids", [])
        metadatas = result.get("metadatas", [])
        for entry_id, metadata in zip(ids, metadatas):
            completed_raw = metadata.get("completed_at")
            completed_at = (
                datetime.fromisoformat(completed_raw)
                if isinstance(completed_raw, str)
                else self._clock()
            )
            entries.append(
                HistoryEntry(
                    entry_id=entry_id,
                    user_id=metadata.get("user_id"),
                    exercise_id=metadata.get("exercise_id", ""),
                    exercise_name=metadata.get("exercise_name", ""),
                    reps=int(metadata.get("reps", 0)),
                    duration_seconds=int(metadata.get("duration_seconds", 0)),
                    calories=int(metadata.get("calories", 0)),
                    completed_at=completed_at,
                )
            )
        return entries

    def list_history(
        self,
        *,
        user_id: str | None = None,
        exercise_id: str | None = None,
        limit: int | None = None,
    ) -> list[HistoryEntry]:
        """Return stored sessions, most recently completed first."""

        if limit is not None and limit < 1:
            raise ValueError("limit must be a positive integer")

        collection = self._ensure_collection()
        result = collection.get(where=_build_where({"user_id": user_id, "exercise_id": exercise_id}))
        entries = self._convert_result(result)
        entries.sort(key=lambda entry: entry.completed_at, reverse=True)
        return entries if limit is None else entries[:limit]

    def summarize(self, *, user_id: str | None = None) -> HistorySummary:
        entries = self.list_history(user_id=user_id)
        by_exercise: dict[str, ExerciseTotals] = {}
        for entry in entries:
            totals = by_exercise.setdefault(
                entry.exercise_id,
                ExerciseTotals(exercise_id=entry.exercise_id, exercise_name=entry.exercise_name),
            )
            totals.sessions += 1
            totals.reps += entry.reps
            totals.duration_seconds += entry.duration_seconds
            totals.calories += entry.calories

        return HistorySummary(
            sessions=len(entries),
            reps=sum(entry.reps for entry in entries),
            duration_seconds=sum(entry.duration_seconds for entry in entries),
            calories=sum(entry.calories for entry in entries),
            by_exercise=by_exercise,
        )


__all__ = ["HistoryStore", "HistoryUnavailableError"]
