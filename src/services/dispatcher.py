from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Monotonic = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]
BlockingRunner = Callable[[Callable[[], Any]], Awaitable[Any]]


async def _run_in_thread(call: Callable[[], Any]) -> Any:
    return await asyncio.to_thread(call)


@dataclass
class _PendingCall:
    call: Callable[[], Any]
    future: asyncio.Future[Any]


@dataclass
class _ProviderLane:
    provider_id: str
    interval: float
    pending: deque[_PendingCall] = field(default_factory=deque)
    last_request_at: float | None = None
    drainer: asyncio.Task[None] | None = None

    @property
    def is_draining(self) -> bool:
        return self.drainer is not None and not self.drainer.done()


class RateLimitedDispatcher:
    """Serializes outbound calls per provider to stay inside a requests-per-minute budget.

    Each provider has its own FIFO lane with a single in-flight slot; lanes
    drain independently. Blocking HTTP calls run in a worker thread while all
    queue bookkeeping stays on the event loop. Queues are in-memory only.
    """

    def __init__(
        self,
        *,
        clock: Monotonic = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
        run_blocking: BlockingRunner = _run_in_thread,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self._run_blocking = run_blocking
        self._lanes: dict[str, _ProviderLane] = {}

    def register(self, provider_id: str, *, requests_per_minute: int) -> None:
        if requests_per_minute <= 0:
            msg = "requests_per_minute must be > 0"
            raise ValueError(msg)
        interval = 60.0 / requests_per_minute
        lane = self._lanes.get(provider_id)
        if lane is None:
            self._lanes[provider_id] = _ProviderLane(provider_id=provider_id, interval=interval)
        else:
            lane.interval = interval

    async def enqueue(self, provider_id: str, call: Callable[[], T]) -> T:
        """Queue ``call`` behind earlier requests to the same provider and await its result.

        A failing call resolves only its own caller with the exception. A
        caller that stops waiting does not withdraw the call; it still runs.
        """
        lane = self._lane(provider_id)
        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        lane.pending.append(_PendingCall(call=call, future=future))
        if not lane.is_draining:
            lane.drainer = asyncio.create_task(self._drain(lane), name=f"dispatcher-{provider_id}")
        return await asyncio.shield(future)

    def status(self) -> dict[str, dict[str, Any]]:
        return {
            provider_id: {
                "queue_length": len(lane.pending),
                "is_draining": lane.is_draining,
                "last_request_at": lane.last_request_at,
                "interval_seconds": lane.interval,
            }
            for provider_id, lane in self._lanes.items()
        }

    def _lane(self, provider_id: str) -> _ProviderLane:
        try:
            return self._lanes[provider_id]
        except KeyError as exc:
            msg = f"Provider {provider_id!r} is not registered with the dispatcher"
            raise ValueError(msg) from exc

    async def _drain(self, lane: _ProviderLane) -> None:
        while lane.pending:
            if lane.last_request_at is not None:
                elapsed = self._clock() - lane.last_request_at
                if elapsed < lane.interval:
                    wait = lane.interval - elapsed
                    logger.debug("Waiting %.3fs before next %s request", wait, lane.provider_id)
                    await self._sleep(wait)

            item = lane.pending.popleft()
            lane.last_request_at = self._clock()
            try:
                result = await self._run_blocking(item.call)
            except Exception as exc:
                if not item.future.done():
                    item.future.set_exception(exc)
            else:
                if not item.future.done():
                    item.future.set_result(result)


__all__ = ["RateLimitedDispatcher"]
