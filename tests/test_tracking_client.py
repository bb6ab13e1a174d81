from __future__ import annotations

import asyncio
from typing import Any

import pytest
import requests

from repwatch_mcp.tracking import (
    FakeTrackingClient,
    ResetFailed,
    ServiceUnavailable,
    StatusQueryFailed,
    TrackingClient,
)
from repwatch_mcp.tracking.utils import join_url, parse_reps


class StubResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, *, invalid_json: bool = False) -> None:
        self.status_code = status_code
        self._payload = payload
        self._invalid_json = invalid_json

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        if self._invalid_json:
            raise ValueError("Expecting value")
        return self._payload


class StubSession:
    def __init__(self, *responses: StubResponse | Exception) -> None:
        self._responses = list(responses)
        self.requests: list[dict[str, Any]] = []

    def request(self, method, url, headers=None, timeout=None):
        self.requests.append({"method": method, "url": url, "headers": headers, "timeout": timeout})
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def make_client(*responses: StubResponse | Exception) -> tuple[TrackingClient, StubSession]:
    session = StubSession(*responses)
    return TrackingClient("http://tracker.local:8000/", session=session), session  # type: ignore[arg-type]


def test_health_probes_root() -> None:
    client, session = make_client(StubResponse(200))

    asyncio.run(client.health(timeout=5.0))

    assert session.requests == [
        {"method": "GET", "url": "http://tracker.local:8000/", "headers": None, "timeout": 5.0}
    ]


@pytest.mark.parametrize(
    "response",
    [StubResponse(503), requests.ConnectionError("refused"), requests.Timeout("timed out")],
)
def test_health_failures_raise_service_unavailable(response) -> None:
    client, _ = make_client(response)

    with pytest.raises(ServiceUnavailable) as excinfo:
        asyncio.run(client.health(timeout=5.0))

    assert excinfo.value.reason == "service_unavailable"
    assert "http://tracker.local:8000" in str(excinfo.value)


def test_reset_posts_json() -> None:
    client, session = make_client(StubResponse(200, {"message": "reset"}))

    asyncio.run(client.reset(timeout=4.0))

    request = session.requests[0]
    assert request["method"] == "POST"
    assert request["url"] == "http://tracker.local:8000/reset"
    assert request["headers"] == {"Content-Type": "application/json"}
    assert request["timeout"] == 4.0


@pytest.mark.parametrize("response", [StubResponse(500), requests.Timeout("timed out")])
def test_reset_failures_raise_reset_failed(response) -> None:
    client, _ = make_client(response)

    with pytest.raises(ResetFailed):
        asyncio.run(client.reset(timeout=5.0))


def test_status_parses_reps() -> None:
    client, session = make_client(StubResponse(200, {"reps": 7, "stage": "down"}))

    status = asyncio.run(client.status(timeout=5.0))

    assert status.reps == 7
    assert status.payload["stage"] == "down"
    assert session.requests[0]["url"] == "http://tracker.local:8000/exercise_status"


def test_status_missing_reps_counts_as_zero() -> None:
    client, _ = make_client(StubResponse(200, {"reps": None}))

    assert asyncio.run(client.status(timeout=5.0)).reps == 0


@pytest.mark.parametrize(
    "response",
    [
        StubResponse(502),
        StubResponse(200, invalid_json=True),
        StubResponse(200, [1, 2]),
        StubResponse(200, {"reps": -1}),
        requests.ConnectionError("reset by peer"),
    ],
)
def test_status_failures_raise_status_query_failed(response) -> None:
    client, _ = make_client(response)

    with pytest.raises(StatusQueryFailed) as excinfo:
        asyncio.run(client.status(timeout=5.0))

    assert excinfo.value.reason == "status_query_failed"


def test_feed_url() -> None:
    client, _ = make_client()
    assert client.feed_url == "http://tracker.local:8000/video_feed"


def test_parse_reps_accepts_integral_values() -> None:
    assert parse_reps(3) == 3
    assert parse_reps(4.0) == 4
    assert parse_reps(None) == 0
    for bad in ("3", 2.5, True, -2):
        with pytest.raises(ValueError):
            parse_reps(bad)


def test_join_url() -> None:
    assert join_url("http://host/", "/reset") == "http://host/reset"


def test_fake_tracking_client_replays_script() -> None:
    fake = FakeTrackingClient([1, StatusQueryFailed("down"), 5])

    async def scenario():
        first = await fake.status(timeout=1.0)
        with pytest.raises(StatusQueryFailed):
            await fake.status(timeout=1.0)
        third = await fake.status(timeout=1.0)
        fourth = await fake.status(timeout=1.0)
        return first.reps, third.reps, fourth.reps

    assert asyncio.run(scenario()) == (1, 5, 5)
    assert fake.call_names == ["status"] * 4
