"""Tool registration for Repwatch MCP."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from fastmcp import Context, FastMCP

from ..catalog import CatalogLoadError, ExerciseCatalog
from ..config import RepwatchSettings
from ..session import (
    SessionEvent,
    SessionPhase,
    SessionTracker,
    TrackerTimings,
    describe_event,
)
from ..storage import HistoryStore
from ..tracking import TrackingClient, TrackingError

_EVENT_HISTORY_LIMIT = 20


@dataclass(slots=True)
class ToolHandles:
    list_exercises: Any
    start_exercise: Any
    stop_exercise: Any
    exercise_status: Any
    exercise_history: Any
    session_state: dict[str, Any]


def register_tools(
    server: FastMCP,
    *,
    catalog: ExerciseCatalog,
    settings: RepwatchSettings,
    tracking_client: TrackingClient | None,
    history_store: HistoryStore | None,
) -> ToolHandles:
    """Register Repwatch's MCP tools on the server."""

    session_state: dict[str, Any] = {"tracker": None, "events": []}
    timings = TrackerTimings.from_settings(settings)

    def _record_event(event: SessionEvent) -> None:
        events: list[dict[str, Any]] = session_state["events"]
        events.append(describe_event(event))
        del events[:-_EVENT_HISTORY_LIMIT]

    def _current_tracker() -> SessionTracker | None:
        return session_state["tracker"]

    def _list_exercises(context: Context | None = None) -> list[dict[str, Any]]:
        """List exercises that can be tracked live."""

        exercises = catalog.load_all()
        listing = [
            {
                "id": exercise.id,
                "name": exercise.name,
                "type": exercise.type,
                "description": exercise.description,
                "difficulty": exercise.difficulty,
                "duration_minutes": exercise.duration_minutes,
                "calories_per_minute": exercise.calories_per_minute,
                "assigned_reps": exercise.assigned_reps,
            }
            for exercise in exercises.values()
        ]

        _emit_log(context, "debug", "Listing exercises", extra={"count": len(listing)})

        return listing

    async def _start_exercise(
        exercise_id: str,
        assigned_reps: int | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Reset the tracker and begin a live session for an exercise."""

        if tracking_client is None:
            raise RuntimeError("Tracking client is unavailable; cannot start an exercise")

        try:
            exercise = catalog.get(exercise_id)
        except CatalogLoadError as exc:
            raise ValueError(str(exc)) from exc

        current = _current_tracker()
        if current is not None:
            snapshot = current.snapshot()
            if snapshot.phase is SessionPhase.RUNNING or snapshot.starting:
                raise ValueError(
                    f"Exercise '{snapshot.exercise_id}' is already in progress; stop it before starting another"
                )
            await current.close()

        config = exercise.to_session_config(assigned_reps)
        tracker = SessionTracker(
            config,
            tracking_client,
            history_store,
            user_id=settings.user_id,
            timings=timings,
            listener=_record_event,
        )
        session_state["tracker"] = tracker

        try:
            snapshot = await tracker.start()
        except TrackingError as exc:
            _emit_log(
                context,
                "warning",
                "Exercise start failed",
                extra={"exercise_id": exercise.id, "reason": exc.reason},
            )
            return {
                "started": False,
                "exercise_id": exercise.id,
                "reason": exc.reason,
                "message": str(exc),
            }

        _emit_log(
            context,
            "info",
            "Exercise started",
            extra={"exercise_id": exercise.id, "assigned_reps": config.assigned_reps},
        )
        return {
            "started": True,
            "exercise_name": exercise.name,
            "feed_url": tracker.feed_url,
            "session": snapshot.to_dict(),
        }

    async def _stop_exercise(context: Context | None = None) -> dict[str, Any]:
        """Stop the active session, saving it when the target was reached."""

        tracker = _current_tracker()
        if tracker is None:
            raise ValueError("No exercise session has been started")

        outcome = await tracker.stop()
        snapshot = tracker.snapshot()
        if outcome is None:
            return {
                "stopped": False,
                "message": f"Exercise session is not running (phase: {snapshot.phase.value})",
                "session": snapshot.to_dict(),
            }

        _emit_log(
            context,
            "info",
            "Exercise stopped",
            extra={"exercise_id": snapshot.exercise_id, "phase": snapshot.phase.value},
        )
        return {
            "stopped": True,
            "outcome": describe_event(outcome),
            "session": snapshot.to_dict(),
        }

    async def _exercise_status(
        refresh: bool = False,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Return progress for the active session, optionally polling the tracker first."""

        tracker = _current_tracker()
        if tracker is None:
            return {"active": False, "events": list(session_state["events"])[-5:]}

        if refresh:
            snapshot = await tracker.reconcile_once()
        else:
            snapshot = tracker.snapshot()

        _emit_log(
            context,
            "debug",
            "Exercise status",
            extra={"exercise_id": snapshot.exercise_id, "phase": snapshot.phase.value},
        )
        return {
            "active": snapshot.phase is SessionPhase.RUNNING,
            "exercise_name": tracker.config.exercise_name,
            "feed_url": tracker.feed_url,
            "session": snapshot.to_dict(),
            "events": list(session_state["events"])[-5:],
        }

    def _exercise_history(
        limit: int = 20,
        exercise_id: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """List saved sessions for the configured user, newest first."""

        if limit < 1:
            raise ValueError("limit must be at least 1")
        if history_store is None:
            raise RuntimeError("History store is unavailable; enable persistence before using this tool")

        entries = history_store.list_history(
            user_id=settings.user_id,
            exercise_id=exercise_id,
            limit=limit,
        )
        _emit_log(
            context,
            "debug",
            "Exercise history",
            extra={"user_id": settings.user_id, "results": len(entries)},
        )
        return {"user_id": settings.user_id, "entries": [entry.to_dict() for entry in entries]}

    tool_list = server.tool(
        name="list_exercises",
        description="List exercises available for live tracking with their default rep targets.",
    )(_list_exercises)

    tool_start = server.tool(
        name="start_exercise",
        description=(
            "Reset the pose tracker and start a live exercise session. Optionally override "
            "the assigned repetition target. Returns the session snapshot and live feed URL."
        ),
    )(_start_exercise)

    tool_stop = server.tool(
        name="stop_exercise",
        description="Stop the active exercise session; completed sessions are saved to history.",
    )(_stop_exercise)

    tool_status = server.tool(
        name="exercise_status",
        description="Fetch reps, duration and phase for the active session (refresh=true polls the tracker).",
    )(_exercise_status)

    tool_history = server.tool(
        name="exercise_history",
        description="List completed exercise sessions, newest first.",
    )(_exercise_history)

    return ToolHandles(
        list_exercises=tool_list,
        start_exercise=tool_start,
        stop_exercise=tool_stop,
        exercise_status=tool_status,
        exercise_history=tool_history,
        session_state=session_state,
    )


__all__ = ["register_tools", "ToolHandles"]

logger = logging.getLogger(__name__)


def _emit_log(
    context: Context | None,
    level: str,
    message: str,
    *,
    extra: dict[str, Any] | None = None,
) -> None:
    """Best-effort logging that prefers the MCP context logger when available."""

    payload = extra or {}

    if context is not None:
        ctx_logger = getattr(context, "logger", None)
        if ctx_logger is not None:
            log_method = getattr(ctx_logger, level, None)
            if callable(log_method):
                log_method(message, extra=payload)
                return

    fallback = getattr(logger, level, logger.info)
    fallback(message, extra=payload)
