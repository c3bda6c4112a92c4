"""
core/clock.py -- Single time source for every expiry computation.

Session token expiry, reset token expiry, blacklist purging and last-login
stamps all read the time through a Clock instance handed to the service that
needs it. Production code uses SystemClock; tests pass a frozen clock so
boundary cases (expiry exactly at "now") are deterministic.

All datetimes returned are timezone-aware UTC.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    """Serialize a datetime as fixed-width ISO 8601 UTC.

    timespec="microseconds" keeps every stored timestamp the same width so
    string comparison in SQL matches chronological order. Naive datetimes are
    assumed to already be UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_iso(value: str) -> datetime:
    """Parse a timestamp written by to_iso() back into an aware datetime."""
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
