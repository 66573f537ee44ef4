"""
Injectable time source.

Ledger code never calls ``datetime.now()`` directly so pending-entry expiry
and movement timestamps can be driven deterministically in tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


class Clock:
    """Production clock returning timezone-aware UTC time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FrozenClock(Clock):
    """
    Test clock with controlled time.

    Starts at ``start`` (or the current time) and only moves on ``advance``.
    """

    def __init__(self, start: Optional[datetime] = None):
        self._now = as_utc(start) if start else datetime.now(timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, **delta) -> datetime:
        self._now = self._now + timedelta(**delta)
        return self._now


def as_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC (SQLite hands back naive values)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


system_clock = Clock()
