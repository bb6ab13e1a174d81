"""Live exercise session tracker.

The tracker owns one exercise session lifecycle (idle -> running ->
completed/stopped). While running it drives two independent asyncio tasks:

* a local clock that adds one second to ``elapsed_seconds`` per tick, and
* a reconciliation poller that adopts the tracking service's repetition count
  and finalizes the session once the target is reached.

Both tasks receive the attempt's ``SessionState`` explicitly and re-check that
it is still current and running before every mutation, so nothing changes after
``stop``/``close`` return.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Protocol

from ..config import RepwatchSettings
from ..tracking import TrackingClient, TrackingError
from .models import (
    SessionCompleted,
    SessionConfig,
    SessionEvent,
    SessionPhase,
    SessionRecord,
    SessionSnapshot,
    SessionState,
    SessionStopped,
    StartFailed,
)

logger = logging.getLogger(__name__)


class SessionTrackerError(RuntimeError):
    """Base class for session tracker errors."""


class SessionStateError(SessionTrackerError):
    """Raised when an operation is not valid for the current phase."""


class StartCancelled(SessionTrackerError):
    """Raised by a start attempt that was superseded or torn down mid-setup."""


class PersistenceFailed(SessionTrackerError):
    """Raised when a completed session record could not be stored."""


class PersistenceService(Protocol):
    """Minimal persistence API the tracker needs."""

    def save_record(self, record: SessionRecord) -> Any:
        ...


@dataclass(slots=True, frozen=True)
class TrackerTimings:
    """Timeouts and cadences (seconds) used by the tracker."""

    health_timeout: float = 5.0
    reset_timeout: float = 5.0
    status_timeout: float = 5.0
    settle_delay: float = 0.3
    poll_interval: float = 1.5
    tick_interval: float = 1.0
    status_alert_threshold: int = 5

    @classmethod
    def from_settings(cls, settings: RepwatchSettings) -> "TrackerTimings":
        return cls(
            health_timeout=settings.health_timeout,
            reset_timeout=settings.reset_timeout,
            status_timeout=settings.status_timeout,
            settle_delay=settings.settle_delay,
            poll_interval=settings.poll_interval,
            tick_interval=settings.tick_interval,
            status_alert_threshold=settings.status_alert_threshold,
        )


class SessionTracker:
    """Run one exercise session against the tracking service."""

    def __init__(
        self,
        config: SessionConfig,
        client: TrackingClient,
        persistence: PersistenceService | None = None,
        *,
        user_id: str | None = None,
        timings: TrackerTimings | None = None,
        listener: Callable[[SessionEvent], None] | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config
        self._client = client
        self._persistence = persistence
        self._user_id = user_id
        self._timings = timings or TrackerTimings()
        self._listener = listener
        self._sleep = sleep or asyncio.sleep
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._state = SessionState()
        self._attempt = 0
        self._closed = False
        self._clock_task: asyncio.Task[None] | None = None
        self._poll_task: asyncio.Task[None] | None = None
        self._reconcile_lock = asyncio.Lock()
        self._last_event: SessionEvent | None = None

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def phase(self) -> SessionPhase:
        return self._state.phase

    @property
    def feed_url(self) -> str:
        return self._client.feed_url

    @property
    def last_event(self) -> SessionEvent | None:
        return self._last_event

    def snapshot(self) -> SessionSnapshot:
        state = self._state
        return SessionSnapshot(
            exercise_id=self._config.exercise_id,
            phase=state.phase,
            observed_reps=state.observed_reps,
            elapsed_seconds=state.elapsed_seconds,
            assigned_reps=self._config.assigned_reps,
            is_saved=state.is_saved,
            starting=state.starting,
            consecutive_failures=state.consecutive_failures,
        )

    async def start(self) -> SessionSnapshot:
        """Prepare the tracking service and begin a fresh session attempt.

        Raises ``ServiceUnavailable``, ``ResetFailed`` or ``StatusQueryFailed``
        when setup fails; the phase stays idle and nothing is retried.
        """

        if self._closed:
            raise SessionStateError("Tracker has been closed")
        if self._state.phase is SessionPhase.RUNNING:
            raise SessionStateError("A session is already running; stop it before starting again")

        self._attempt += 1
        attempt = self._attempt
        self._cancel_tasks()
        state = SessionState(starting=True)
        self._state = state

        logger.info(
            "Starting exercise session",
            extra={
                "exercise_id": self._config.exercise_id,
                "assigned_reps": self._config.assigned_reps,
                "attempt": attempt,
            },
        )

        try:
            await self._client.health(timeout=self._timings.health_timeout)
            self._ensure_current(attempt)
            await self._client.reset(timeout=self._timings.reset_timeout)
            self._ensure_current(attempt)
            status = await self._client.status(timeout=self._timings.status_timeout)
            self._ensure_current(attempt)
            state.observed_reps = status.reps
            await self._sleep(self._timings.settle_delay)
            self._ensure_current(attempt)
        except TrackingError as exc:
            state.starting = False
            if attempt != self._attempt:
                raise StartCancelled("Start attempt was superseded") from exc
            logger.warning(
                "Exercise session failed to start",
                extra={"exercise_id": self._config.exercise_id, "reason": exc.reason, "error": str(exc)},
            )
            self._notify(StartFailed(reason=exc.reason, message=str(exc)))
            raise
        except (StartCancelled, asyncio.CancelledError):
            state.starting = False
            raise

        state.starting = False
        state.phase = SessionPhase.RUNNING
        self._clock_task = asyncio.create_task(self._run_clock(state))
        self._poll_task = asyncio.create_task(self._run_reconciliation(state))

        logger.info(
            "Exercise session running",
            extra={"exercise_id": self._config.exercise_id, "observed_reps": state.observed_reps},
        )
        return self.snapshot()

    async def stop(self) -> SessionCompleted | SessionStopped | None:
        """Stop a running session; a no-op returning None otherwise."""

        state = self._state
        if state.phase is not SessionPhase.RUNNING:
            return None

        self._cancel_tasks()
        if state.observed_reps >= self._config.assigned_reps:
            return await self._finalize(state, state.observed_reps)

        state.phase = SessionPhase.STOPPED
        event = SessionStopped(
            reps=state.observed_reps,
            assigned_reps=self._config.assigned_reps,
            elapsed_seconds=state.elapsed_seconds,
        )
        logger.info(
            "Exercise session stopped before target",
            extra={
                "exercise_id": self._config.exercise_id,
                "reps": event.reps,
                "assigned_reps": event.assigned_reps,
            },
        )
        self._notify(event)
        return event

    async def reconcile_once(self) -> SessionSnapshot:
        """Run a single reconciliation step immediately if the session is running."""

        state = self._state
        if self._is_live(state):
            await self._reconcile(state)
        return self.snapshot()

    async def close(self) -> None:
        """Tear the tracker down, cancelling any setup or periodic work."""

        self._closed = True
        self._attempt += 1
        state = self._state
        state.starting = False
        if state.phase is SessionPhase.RUNNING:
            state.phase = SessionPhase.STOPPED

        current = asyncio.current_task()
        pending = [
            task
            for task in (self._clock_task, self._poll_task)
            if task is not None and task is not current
        ]
        self._cancel_tasks()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def __aenter__(self) -> "SessionTracker":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _ensure_current(self, attempt: int) -> None:
        if attempt != self._attempt or self._closed:
            raise StartCancelled("Start attempt was superseded")

    def _is_live(self, state: SessionState) -> bool:
        return state is self._state and state.phase is SessionPhase.RUNNING

    def _cancel_tasks(self) -> None:
        current = asyncio.current_task()
        for task in (self._clock_task, self._poll_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._clock_task = None
        self._poll_task = None

    def _tick(self, state: SessionState) -> bool:
        if not self._is_live(state):
            return False
        state.elapsed_seconds += 1
        return True

    async def _run_clock(self, state: SessionState) -> None:
        while True:
            await self._sleep(self._timings.tick_interval)
            if not self._tick(state):
                return

    async def _run_reconciliation(self, state: SessionState) -> None:
        while True:
            await self._sleep(self._timings.poll_interval)
            if not self._is_live(state):
                return
            await self._reconcile(state)

    async def _reconcile(self, state: SessionState) -> None:
        async with self._reconcile_lock:
            if not self._is_live(state):
                return
            try:
                status = await self._client.status(timeout=self._timings.status_timeout)
            except TrackingError as exc:
                self._record_poll_failure(state, exc)
                return
            except Exception as exc:
                logger.exception(
                    "Unexpected error while polling tracker status",
                    extra={"exercise_id": self._config.exercise_id},
                )
                self._record_poll_failure(state, exc)
                return

            # stop() may have run while the query was in flight
            if not self._is_live(state):
                return

            state.observed_reps = max(state.observed_reps, status.reps)
            state.consecutive_failures = 0
            logger.debug(
                "Reconciled repetition count",
                extra={"exercise_id": self._config.exercise_id, "reps": status.reps},
            )
            if state.observed_reps >= self._config.assigned_reps and not state.is_saved:
                await self._finalize(state, state.observed_reps)

    def _record_poll_failure(self, state: SessionState, exc: Exception) -> None:
        if not self._is_live(state):
            return
        state.consecutive_failures += 1
        failures = state.consecutive_failures
        threshold = self._timings.status_alert_threshold
        log = logger.error if failures % threshold == 0 else logger.warning
        log(
            "Tracker status poll failed",
            extra={
                "exercise_id": self._config.exercise_id,
                "consecutive_failures": failures,
                "threshold": threshold,
                "error": str(exc),
            },
        )

    async def _finalize(self, state: SessionState, final_reps: int) -> SessionCompleted | None:
        if final_reps < self._config.assigned_reps:
            return None
        if not state.claim_save():
            return None

        self._cancel_tasks()
        state.phase = SessionPhase.COMPLETED
        record = SessionRecord.build(
            self._config,
            reps=final_reps,
            duration_seconds=state.elapsed_seconds,
            user_id=self._user_id,
            completed_at=self._clock(),
        )
        logger.info(
            "Exercise session completed",
            extra={
                "exercise_id": record.exercise_id,
                "reps": record.reps,
                "duration_seconds": record.duration_seconds,
                "calories": record.calories,
            },
        )

        try:
            await self._persist(record)
        except PersistenceFailed as exc:
            logger.error(
                "Exercise session was not saved",
                extra={"exercise_id": record.exercise_id, "error": str(exc)},
            )
            event = SessionCompleted(record=record, saved=False, error=str(exc))
        else:
            event = SessionCompleted(record=record, saved=True)

        self._notify(event)
        return event

    async def _persist(self, record: SessionRecord) -> None:
        if self._persistence is None:
            raise PersistenceFailed("No persistence service configured")
        try:
            await asyncio.to_thread(self._persistence.save_record, record)
        except Exception as exc:
            raise PersistenceFailed(f"Could not save exercise session: {exc}") from exc

    def _notify(self, event: SessionEvent) -> None:
        self._last_event = event
        if self._listener is None:
            return
        try:
            self._listener(event)
        except Exception:
            logger.exception("Session listener raised", extra={"exercise_id": self._config.exercise_id})


__all__ = [
    "PersistenceFailed",
    "PersistenceService",
    "SessionStateError",
    "SessionTracker",
    "SessionTrackerError",
    "StartCancelled",
    "TrackerTimings",
]
