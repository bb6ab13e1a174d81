from __future__ import annotations

import asyncio
from datetime import datetime
from pathlib import Path
import textwrap

import pytest

from repwatch_mcp.catalog import ExerciseCatalog
from repwatch_mcp.config import RepwatchSettings
from repwatch_mcp.session import SessionRecord
from repwatch_mcp.storage import HistoryEntry
from repwatch_mcp.tools import register_tools
from repwatch_mcp.tracking import FakeTrackingClient, ServiceUnavailable


class StubTool:
    def __init__(self, fn, name):
        self.fn = fn
        self.name = name


class StubServer:
    def __init__(self) -> None:
        self._tools: dict[str, StubTool] = {}

    def tool(self, *args, **kwargs):
        provided_name = None
        if args and isinstance(args[0], str):
            provided_name = args[0]
        provided_name = kwargs.get("name", provided_name)

        def decorator(fn):
            tool_name = provided_name or fn.__name__
            tool = StubTool(fn, tool_name)
            self._tools[tool_name] = tool
            return tool

        return decorator


class StubHistoryStore:
    def __init__(self) -> None:
        self.records = []

    def save_record(self, record):
        self.records.append(record)
        return record

    def list_history(self, *, user_id=None, exercise_id=None, limit=None):
        entries = [
            HistoryEntry(
                entry_id=f"{record.exercise_id}:{index}",
                user_id=record.user_id,
                exercise_id=record.exercise_id,
                exercise_name=record.exercise_name,
                reps=record.reps,
                duration_seconds=record.duration_seconds,
                calories=record.calories,
                completed_at=record.completed_at,
            )
            for index, record in enumerate(self.records)
            if (user_id is None or record.user_id == user_id)
            and (exercise_id is None or record.exercise_id == exercise_id)
        ]
        entries.sort(key=lambda entry: entry.completed_at, reverse=True)
        return entries[:limit] if limit else entries


def make_catalog(tmp_path: Path) -> ExerciseCatalog:
    (tmp_path / "push_ups.yaml").write_text(
        textwrap.dedent(
            """
            id: push-ups
            name: Push Ups
            type: strength
            description: Upper body strength exercise
            calories_per_minute: 50
            assigned_reps: 3
            """
        ),
        encoding="utf-8",
    )
    return ExerciseCatalog([tmp_path])


def make_settings() -> RepwatchSettings:
    settings = RepwatchSettings()
    settings.settle_delay = 0.0
    settings.poll_interval = 3600.0
    settings.tick_interval = 3600.0
    settings.user_id = "tester"
    return settings


def make_handles(tmp_path: Path, client, store=None):
    server = StubServer()
    handles = register_tools(
        server,  # type: ignore[arg-type]
        catalog=make_catalog(tmp_path),
        settings=make_settings(),
        tracking_client=client,
        history_store=store,
    )
    return server, handles


def test_register_tools_exposes_expected_names(tmp_path: Path) -> None:
    server, _ = make_handles(tmp_path, FakeTrackingClient())

    assert set(server._tools) == {
        "list_exercises",
        "start_exercise",
        "stop_exercise",
        "exercise_status",
        "exercise_history",
    }


def test_list_exercises(tmp_path: Path) -> None:
    _, handles = make_handles(tmp_path, FakeTrackingClient())

    listing = handles.list_exercises.fn()

    assert listing == [
        {
            "id": "push-ups",
            "name": "Push Ups",
            "type": "strength",
            "description": "Upper body strength exercise",
            "difficulty": "beginner",
            "duration_minutes": 10,
            "calories_per_minute": 50.0,
            "assigned_reps": 3,
        }
    ]


def test_start_and_complete_exercise_flow(tmp_path: Path) -> None:
    client = FakeTrackingClient([0, 2, 3])
    store = StubHistoryStore()
    _, handles = make_handles(tmp_path, client, store)

    async def scenario():
        started = await handles.start_exercise.fn("push-ups")
        tracker = handles.session_state["tracker"]
        for _ in range(30):
            tracker._tick(tracker._state)
        progress = await handles.exercise_status.fn(refresh=True)
        finished = await handles.exercise_status.fn(refresh=True)
        stopped = await handles.stop_exercise.fn()
        await tracker.close()
        return started, progress, finished, stopped

    started, progress, finished, stopped = asyncio.run(scenario())

    assert started["started"] is True
    assert started["feed_url"] == "http://tracker.test/video_feed"
    assert started["session"]["phase"] == "running"
    assert progress["active"] is True
    assert progress["session"]["observed_reps"] == 2
    assert progress["session"]["remaining_reps"] == 1
    assert finished["active"] is False
    assert finished["session"]["phase"] == "completed"
    assert finished["events"][-1]["event"] == "completed"
    assert finished["events"][-1]["record"]["calories"] == 25
    assert stopped["stopped"] is False
    assert len(store.records) == 1
    assert store.records[0].user_id == "tester"

    history = handles.exercise_history.fn()
    assert history["user_id"] == "tester"
    assert history["entries"][0]["reps"] == 3


def test_start_failure_is_returned(tmp_path: Path) -> None:
    client = FakeTrackingClient(health_error=ServiceUnavailable("Cannot connect to tracking service"))
    _, handles = make_handles(tmp_path, client)

    result = asyncio.run(handles.start_exercise.fn("push-ups"))

    assert result == {
        "started": False,
        "exercise_id": "push-ups",
        "reason": "service_unavailable",
        "message": "Cannot connect to tracking service",
    }
    assert handles.session_state["events"][-1]["event"] == "start_failed"


def test_start_rejects_unknown_exercise(tmp_path: Path) -> None:
    _, handles = make_handles(tmp_path, FakeTrackingClient())

    with pytest.raises(ValueError):
        asyncio.run(handles.start_exercise.fn("burpees"))


def test_start_rejects_second_running_session(tmp_path: Path) -> None:
    client = FakeTrackingClient([0])
    _, handles = make_handles(tmp_path, client)

    async def scenario():
        await handles.start_exercise.fn("push-ups", assigned_reps=5)
        try:
            with pytest.raises(ValueError):
                await handles.start_exercise.fn("push-ups")
        finally:
            await handles.session_state["tracker"].close()

    asyncio.run(scenario())
    assert client.call_names == ["health", "reset", "status"]


def test_stop_partial_session(tmp_path: Path) -> None:
    client = FakeTrackingClient([0, 1])
    store = StubHistoryStore()
    _, handles = make_handles(tmp_path, client, store)

    async def scenario():
        await handles.start_exercise.fn("push-ups")
        await handles.exercise_status.fn(refresh=True)
        result = await handles.stop_exercise.fn()
        again = await handles.stop_exercise.fn()
        await handles.session_state["tracker"].close()
        return result, again

    result, again = asyncio.run(scenario())

    assert result["stopped"] is True
    assert result["outcome"] == {"event": "stopped", "reps": 1, "assigned_reps": 3, "elapsed_seconds": 0}
    assert result["session"]["phase"] == "stopped"
    assert again["stopped"] is False
    assert store.records == []


def test_status_without_session(tmp_path: Path) -> None:
    _, handles = make_handles(tmp_path, FakeTrackingClient())

    assert asyncio.run(handles.exercise_status.fn()) == {"active": False, "events": []}
    with pytest.raises(ValueError):
        asyncio.run(handles.stop_exercise.fn())


def test_history_requires_store(tmp_path: Path) -> None:
    _, handles = make_handles(tmp_path, FakeTrackingClient())

    with pytest.raises(RuntimeError):
        handles.exercise_history.fn()


def test_history_filters_by_exercise(tmp_path: Path) -> None:
    store = StubHistoryStore()
    _, handles = make_handles(tmp_path, FakeTrackingClient(), store)

    for exercise_id, minute in (("push-ups", 1), ("planks", 2)):
        store.records.append(
            SessionRecord(
                exercise_id=exercise_id,
                exercise_name=exercise_id,
                reps=10,
                duration_seconds=60,
                calories=30,
                user_id="tester",
                completed_at=datetime(2025, 1, 1, 8, minute),
            )
        )

    result = handles.exercise_history.fn(exercise_id="planks")

    assert [entry["exercise_id"] for entry in result["entries"]] == ["planks"]


def test_history_rejects_non_positive_limit(tmp_path: Path) -> None:
    store = StubHistoryStore()
    _, handles = make_handles(tmp_path, FakeTrackingClient(), store)

    with pytest.raises(ValueError):
        handles.exercise_history.fn(limit=0)
