from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Generic, TypeVar

T = TypeVar("T")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CachedEntry(Generic[T]):
    value: T
    source: str
    expires_at: datetime

    def is_live(self, now: datetime) -> bool:
        return now < self.expires_at


class TtlCache(Generic[T]):
    """In-memory map of key -> entry; an expired entry is a miss, never a value.

    Each resolver owns one instance. Writes are last-writer-wins.
    """

    def __init__(self, *, default_ttl: timedelta, clock: Clock = utc_now) -> None:
        if default_ttl <= timedelta(0):
            msg = "default_ttl must be positive"
            raise ValueError(msg)
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, CachedEntry[T]] = {}

    def get(self, key: str) -> CachedEntry[T] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not entry.is_live(self._clock()):
            del self._entries[key]
            return None
        return entry

    def put(self, key: str, value: T, *, source: str, ttl: timedelta | None = None) -> CachedEntry[T]:
        lifetime = ttl if ttl is not None and ttl > timedelta(0) else self.default_ttl
        entry = CachedEntry(value=value, source=source, expires_at=self._clock() + lifetime)
        self._entries[key] = entry
        return entry

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["CachedEntry", "Clock", "TtlCache", "utc_now"]
