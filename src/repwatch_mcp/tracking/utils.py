"""Utility helpers for the tracking client."""

from __future__ import annotations

from typing import Any


def join_url(base_url: str, path: str) -> str:
    """Join a base URL and an absolute endpoint path."""

    return base_url.rstrip("/") + "/" + path.lstrip("/")


def parse_reps(value: Any) -> int:
    """Coerce the tracker's ``reps`` field into a non-negative integer.

    A missing or null value counts as zero.
    """

    if value is None:
        return 0
    if isinstance(value, bool):
        raise ValueError(f"Invalid repetition count: {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"Invalid repetition count: {value!r}")
        value = int(value)
    if not isinstance(value, int):
        raise ValueError(f"Invalid repetition count: {value!r}")
    if value < 0:
        raise ValueError(f"Repetition count must be >= 0, got {value}")
    return value
