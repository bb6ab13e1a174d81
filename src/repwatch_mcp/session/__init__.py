"""Exercise session models and tracker exports."""

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
    compute_calories,
    describe_event,
)
from .tracker import (
    PersistenceFailed,
    PersistenceService,
    SessionStateError,
    SessionTracker,
    SessionTrackerError,
    StartCancelled,
    TrackerTimings,
)

__all__ = [
    "PersistenceFailed",
    "PersistenceService",
    "SessionCompleted",
    "SessionConfig",
    "SessionEvent",
    "SessionPhase",
    "SessionRecord",
    "SessionSnapshot",
    "SessionState",
    "SessionStateError",
    "SessionStopped",
    "SessionTracker",
    "SessionTrackerError",
    "StartCancelled",
    "StartFailed",
    "TrackerTimings",
    "compute_calories",
    "describe_event",
]
