"""Tracking service client utilities."""

from .client import (
    FakeTrackingClient,
    ResetFailed,
    ServiceUnavailable,
    StatusQueryFailed,
    TrackingClient,
    TrackingError,
    TrackingStatus,
)

__all__ = [
    "FakeTrackingClient",
    "ResetFailed",
    "ServiceUnavailable",
    "StatusQueryFailed",
    "TrackingClient",
    "TrackingError",
    "TrackingStatus",
]
