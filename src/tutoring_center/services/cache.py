"""Timestamped cache used by session validation."""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Generic, TypeVar

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """Cached value with the time it was stored."""

    value: T
    stored_at: datetime


class TimestampedCache(Generic[T]):
    """Single-slot cache whose readers choose the acceptable age.

    The last entry is kept after it goes stale so callers can fall back to it.
    """

    def __init__(self, now: Callable[[], datetime] = _utcnow) -> None:
        self._now = now
        self._entry: CacheEntry[T] | None = None

    def get(self, max_age_seconds: float) -> T | None:
        """Return the cached value if it is younger than max_age_seconds."""
        entry = self._entry
        if entry is None:
            return None
        if self._now() - entry.stored_at >= timedelta(seconds=max_age_seconds):
            return None
        return entry.value

    def peek(self) -> T | None:
        """Return the last stored value regardless of age."""
        return self._entry.value if self._entry else None

    def set(self, value: T) -> None:
        """Store a value stamped with the current time."""
        self._entry = CacheEntry(value=value, stored_at=self._now())

    def clear(self) -> None:
        """Drop the cached value."""
        self._entry = None
