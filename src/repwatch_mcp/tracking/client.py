"""Async client for the remote pose-tracking service."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

import requests

from .utils import join_url, parse_reps

logger = logging.getLogger(__name__)


class TrackingError(RuntimeError):
    """Base class for tracking service errors."""

    reason = "tracking_error"


class ServiceUnavailable(TrackingError):
    """Raised when the liveness probe fails or times out."""

    reason = "service_unavailable"


class ResetFailed(TrackingError):
    """Raised when the tracker rejects or times out on a reset."""

    reason = "reset_failed"


class StatusQueryFailed(TrackingError):
    """Raised when the repetition status cannot be read."""

    reason = "status_query_failed"


@dataclass(slots=True)
class TrackingStatus:
    """Holds one status reading from the tracker."""

    reps: int
    payload: dict[str, Any] = field(default_factory=dict)


class TrackingClient:
    """Talk to the tracking service over HTTP without blocking the event loop."""

    def __init__(self, base_url: str, *, session: requests.Session | None = None) -> None:
        self._base_url = base_url.rstrip("/")
        self._session = session or requests.Session()

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def feed_url(self) -> str:
        """URL of the live annotated video stream. Displayed, never parsed."""

        return join_url(self._base_url, "/video_feed")

    async def health(self, *, timeout: float) -> None:
        try:
            response = await asyncio.to_thread(self._request, "GET", "/", timeout)
        except requests.RequestException as exc:
            raise ServiceUnavailable(
                f"Cannot connect to tracking service at {self._base_url}: {exc}"
            ) from exc
        if not response.ok:
            raise ServiceUnavailable(
                f"Tracking service at {self._base_url} is not responding (HTTP {response.status_code})"
            )

    async def reset(self, *, timeout: float) -> None:
        try:
            response = await asyncio.to_thread(self._request, "POST", "/reset", timeout)
        except requests.RequestException as exc:
            raise ResetFailed(f"Reset request failed: {exc}") from exc
        if not response.ok:
            raise ResetFailed(f"Reset failed: HTTP {response.status_code}")

    async def status(self, *, timeout: float) -> TrackingStatus:
        try:
            response = await asyncio.to_thread(self._request, "GET", "/exercise_status", timeout)
        except requests.RequestException as exc:
            raise StatusQueryFailed(f"Cannot get exercise status: {exc}") from exc
        if not response.ok:
            raise StatusQueryFailed(f"Cannot get exercise status: HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise StatusQueryFailed("Exercise status response is not valid JSON") from exc
        if not isinstance(payload, dict):
            raise StatusQueryFailed("Exercise status response must be a JSON object")

        try:
            reps = parse_reps(payload.get("reps"))
        except ValueError as exc:
            raise StatusQueryFailed(str(exc)) from exc
        return TrackingStatus(reps=reps, payload=payload)

    def _request(self, method: str, path: str, timeout: float) -> requests.Response:
        url = join_url(self._base_url, path)
        headers = {"Content-Type": "application/json"} if method == "POST" else None
        logger.debug("Tracking request", extra={"method": method, "url": url})
        return self._session.request(method, url, headers=headers, timeout=timeout)


class FakeTrackingClient(TrackingClient):
    """Test double that replays scripted tracker responses.

    ``statuses`` items are either rep counts or exceptions to raise. Once the
    script runs out the last successful count is repeated.
    """

    def __init__(  # type: ignore[override]
        self,
        statuses: Iterable[int | Exception] | None = None,
        *,
        health_error: Exception | None = None,
        reset_error: Exception | None = None,
        base_url: str = "http://tracker.test",
    ) -> None:
        self._base_url = base_url
        self._statuses = list(statuses or [])
        self._health_error = health_error
        self._reset_error = reset_error
        self._last_reps = 0
        self._calls: list[tuple[str, float]] = []

    async def health(self, *, timeout: float) -> None:  # type: ignore[override]
        self._calls.append(("health", timeout))
        if self._health_error is not None:
            raise self._health_error

    async def reset(self, *, timeout: float) -> None:  # type: ignore[override]
        self._calls.append(("reset", timeout))
        if self._reset_error is not None:
            raise self._reset_error
        self._last_reps = 0

    async def status(self, *, timeout: float) -> TrackingStatus:  # type: ignore[override]
        self._calls.append(("status", timeout))
        if self._statuses:
            item = self._statuses.pop(0)
            if isinstance(item, Exception):
                raise item
            self._last_reps = item
        return TrackingStatus(reps=self._last_reps, payload={"reps": self._last_reps})

    def queue(self, *items: int | Exception) -> None:
        self._statuses.extend(items)

    @property
    def calls(self) -> list[tuple[str, float]]:
        return self._calls

    @property
    def call_names(self) -> list[str]:
        return [name for name, _ in self._calls]
