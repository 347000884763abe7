"""
Clock helpers.

Every service takes a ``clock`` callable so tests can freeze "now".
SQLite hands back naive datetimes even for ``DateTime(timezone=True)``
columns; ``ensure_utc`` normalises them before any comparison.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]

SECONDS_PER_DAY = 86400


def utc_now() -> datetime:
    """Default clock."""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def days_since(value: datetime, now: datetime) -> int:
    """Whole days elapsed between ``value`` and ``now`` (floored)."""
    delta = ensure_utc(now) - ensure_utc(value)
    return int(delta.total_seconds() // SECONDS_PER_DAY)


def month_key(value: datetime) -> str:
    """``YYYY-MM`` bucket key."""
    return ensure_utc(value).strftime("%Y-%m")


__all__ = ["Clock", "utc_now", "ensure_utc", "days_since", "month_key"]
