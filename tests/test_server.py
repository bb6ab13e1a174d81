from __future__ import annotations

import json
import textwrap
from pathlib import Path

from repwatch_mcp.config import RepwatchSettings
from repwatch_mcp.server import create_server
from repwatch_mcp.storage import HistoryUnavailableError
from repwatch_mcp.tracking import FakeTrackingClient


class StubFastMCP:
    def __init__(self, *args, **kwargs):
        self.kwargs = kwargs
        self.tools: dict[str, object] = {}

    def resource(self, *args, **kwargs):
        def decorator(fn):
            name = kwargs.get("name") or (args[0] if args else fn.__name__)
            setattr(self, name, fn)
            return fn

        return decorator

    def tool(self, *args, **kwargs):
        def decorator(fn):
            self.tools[kwargs.get("name", fn.__name__)] = fn
            return fn

        return decorator

    def run(self):  # pragma: no cover - not used in tests
        return None


class StubHistoryStore:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error

    def ping(self) -> bool:
        if self.error is not None:
            raise self.error
        return True


def make_settings(tmp_path: Path) -> RepwatchSettings:
    exercises = tmp_path / "exercises"
    exercises.mkdir()
    (exercises / "planks.yaml").write_text(
        textwrap.dedent(
            """
            id: planks
            name: Planks
            type: core
            calories_per_minute: 30
            """
        ),
        encoding="utf-8",
    )
    settings = RepwatchSettings()
    settings.exercise_paths = (exercises,)
    settings.chroma_persist_path = tmp_path / "chroma"
    return settings


def test_create_server_status_resource(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr("repwatch_mcp.server.FastMCP", StubFastMCP)
    settings = make_settings(tmp_path)

    server = create_server(settings, tracking_client=FakeTrackingClient(), history_store=StubHistoryStore())

    assert server.kwargs["name"] == "Repwatch MCP"
    assert set(server.tools) >= {"start_exercise", "stop_exercise", "exercise_status"}
    assert getattr(server, "history_metadata")["available"] is True

    payload = json.loads(server.repwatch_status(None))
    assert payload["catalog"] == {"count": 1, "ids": ["planks"], "error": None}
    assert payload["tracker"]["feed_url"] == "http://tracker.test/video_feed"
    assert payload["storage"]["history"]["available"] is True
    assert payload["session"] is None


def test_create_server_tolerates_missing_history(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr("repwatch_mcp.server.FastMCP", StubFastMCP)
    settings = make_settings(tmp_path)

    server = create_server(
        settings,
        tracking_client=FakeTrackingClient(),
        history_store=StubHistoryStore(HistoryUnavailableError("chromadb missing")),
    )

    assert getattr(server, "history_store") is None
    metadata = getattr(server, "history_metadata")
    assert metadata["available"] is False
    assert metadata["error"] == "chromadb missing"


def test_create_server_builds_default_client(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr("repwatch_mcp.server.FastMCP", StubFastMCP)
    settings = make_settings(tmp_path)
    settings.tracker_base_url = "http://pose.local:9000"

    server = create_server(settings, history_store=StubHistoryStore())

    assert getattr(server, "tracking_client").feed_url == "http://pose.local:9000/video_feed"
