from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

DEFAULT_NOW = datetime(2024, 1, 8, 15, 30, tzinfo=timezone.utc)


@dataclass
class FakeUtcClock:
    """Wall clock for caches and resolvers; only moves when told to."""

    now: datetime = DEFAULT_NOW

    def __call__(self) -> datetime:
        return self.now

    def advance(self, *, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@dataclass
class FakeMonotonic:
    """Monotonic clock plus a matching ``sleep`` that advances it instead of waiting."""

    now: float = 1000.0
    sleeps: list[float] = field(default_factory=list)

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


async def run_inline(call: Callable[[], Any]) -> Any:
    return call()
