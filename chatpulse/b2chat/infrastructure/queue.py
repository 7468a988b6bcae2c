"""
Rate-Limited Request Queue
==========================

Admission control for outbound B2Chat API calls.

Work items run strictly one at a time in FIFO order. A rolling per-second
ceiling makes the drain loop sleep out the rest of the current second, and
a rolling per-day ceiling stops the loop until the day window ends.

All counters live in a RateLimiterState owned by one queue instance and are
only touched by the drain task, so no lock is needed on the single-threaded
event loop. Multiple processes each get their own budget; sharing a budget
across processes needs an external counter store.
"""

import asyncio
import time
from collections import deque
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Awaitable, Callable, Deque, Optional, TypeVar

from chatpulse.config import settings
from chatpulse.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

SECOND = 1.0
DAY = 24 * 60 * 60.0


@dataclass
class RateLimiterState:
    """Rolling request counters for one queue."""
    day_start_time: float
    requests_this_second: int = 0
    requests_today: int = 0
    last_request_time: Optional[float] = None

    def reset_second(self) -> None:
        self.requests_this_second = 0

    def reset_day(self, now: float) -> None:
        self.requests_today = 0
        self.day_start_time = now

    def record_request(self, now: float) -> None:
        self.requests_this_second += 1
        self.requests_today += 1
        self.last_request_time = now


@dataclass
class QueueItem:
    """An enqueued operation and the future its caller is waiting on."""
    fn: Callable[[], Awaitable[Any]]
    future: "asyncio.Future[Any]"
    enqueued_at: float


@dataclass(frozen=True)
class QueueStats:
    """Point-in-time snapshot of a queue."""
    queue_length: int
    requests_this_second: int
    requests_today: int
    max_requests_per_second: int
    max_requests_per_day: int

    def to_dict(self) -> dict:
        return {
            "queue_length": self.queue_length,
            "requests_this_second": self.requests_this_second,
            "requests_today": self.requests_today,
            "max_requests_per_second": self.max_requests_per_second,
            "max_requests_per_day": self.max_requests_per_day,
        }


class RateLimitedQueue:
    """
    FIFO queue that throttles async operations to per-second and per-day
    ceilings.

    Usage:
        queue = RateLimitedQueue(max_requests_per_second=5)
        page = await queue.add(lambda: client.get_chats(page=1))

    The queue offers no priority, cancellation or timeout. A caller may wrap
    the returned future in asyncio.wait_for, but the operation still runs
    when its turn comes. Retries belong to the caller as well.
    """

    def __init__(
        self,
        max_requests_per_second: int = 5,
        max_requests_per_day: int = 10000
    ):
        if max_requests_per_second < 1 or max_requests_per_day < 1:
            raise ValueError("rate limits must be positive")

        self.max_requests_per_second = max_requests_per_second
        self.max_requests_per_day = max_requests_per_day
        self._queue: Deque[QueueItem] = deque()
        self._processing = False
        self._state = RateLimiterState(day_start_time=self._now())
        self._drain_task: Optional["asyncio.Task[None]"] = None
        self._wakeup_handle: Optional[asyncio.TimerHandle] = None

    def add(self, fn: Callable[[], Awaitable[T]]) -> "asyncio.Future[T]":
        """
        Enqueue ``fn`` and return a future for its result.

        Must be called from a running event loop. The item is queued before
        this returns, so call order is service order.
        """
        loop = asyncio.get_running_loop()
        future: "asyncio.Future[T]" = loop.create_future()
        self._queue.append(QueueItem(fn=fn, future=future, enqueued_at=self._now()))
        self._start_draining(loop)
        return future

    def get_stats(self) -> QueueStats:
        """Snapshot of queue length and counters; no side effects."""
        return QueueStats(
            queue_length=len(self._queue),
            requests_this_second=self._state.requests_this_second,
            requests_today=self._state.requests_today,
            max_requests_per_second=self.max_requests_per_second,
            max_requests_per_day=self.max_requests_per_day,
        )

    @property
    def is_processing(self) -> bool:
        return self._processing

    async def join(self) -> None:
        """Wait for the current drain pass (if any) to finish."""
        if self._drain_task is not None:
            await asyncio.shield(self._drain_task)

    def close(self) -> None:
        """Cancel the pending end-of-day wake-up, if one is scheduled."""
        if self._wakeup_handle is not None:
            self._wakeup_handle.cancel()
            self._wakeup_handle = None

    # ========== Drain loop ==========

    def _start_draining(self, loop: asyncio.AbstractEventLoop) -> None:
        if self._processing or not self._queue:
            return
        # Flag is set before the task exists so concurrent add() calls
        # cannot start a second drain.
        self._processing = True
        self._drain_task = loop.create_task(self._process_queue())

    async def _process_queue(self) -> None:
        state = self._state
        try:
            while self._queue:
                now = self._now()
                if now - state.day_start_time > DAY:
                    state.reset_day(now)

                if state.requests_today >= self.max_requests_per_day:
                    logger.warning(
                        "Daily rate limit reached",
                        extra={
                            "requests_today": state.requests_today,
                            "queue_length": len(self._queue),
                        }
                    )
                    self._schedule_day_wakeup(now)
                    break

                since_last = (
                    now - state.last_request_time
                    if state.last_request_time is not None
                    else float("inf")
                )
                if since_last >= SECOND:
                    state.reset_second()

                if state.requests_this_second >= self.max_requests_per_second:
                    wait_time = max(0.0, SECOND - since_last)
                    logger.debug(
                        "Per-second rate limit reached, waiting",
                        extra={"wait_seconds": round(wait_time, 3)}
                    )
                    await self._sleep(wait_time)
                    state.reset_second()

                item = self._queue.popleft()
                try:
                    result = await item.fn()
                except asyncio.CancelledError:
                    if not item.future.done():
                        item.future.cancel()
                    current = asyncio.current_task()
                    if current is not None and current.cancelling():
                        raise
                    logger.warning(
                        "Queued operation was cancelled",
                        extra={"queue_length": len(self._queue)}
                    )
                    continue
                except Exception as e:
                    # Failed items do not consume quota
                    if not item.future.done():
                        item.future.set_exception(e)
                    continue

                if not item.future.done():
                    item.future.set_result(result)
                state.record_request(self._now())
        finally:
            self._processing = False

    def _schedule_day_wakeup(self, now: float) -> None:
        """Resume draining once the current day window has elapsed."""
        if self._wakeup_handle is not None:
            return
        loop = asyncio.get_running_loop()
        delay = max(0.0, DAY - (now - self._state.day_start_time)) + 0.001
        self._wakeup_handle = loop.call_later(delay, self._on_day_wakeup, loop)

    def _on_day_wakeup(self, loop: asyncio.AbstractEventLoop) -> None:
        self._wakeup_handle = None
        self._start_draining(loop)

    # ========== Time hooks ==========

    def _now(self) -> float:
        return time.monotonic()

    async def _sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


@lru_cache()
def get_rate_limited_queue() -> RateLimitedQueue:
    """Process-wide queue shared by every B2Chat caller."""
    return RateLimitedQueue(
        max_requests_per_second=settings.b2chat_max_requests_per_second,
        max_requests_per_day=settings.b2chat_max_requests_per_day,
    )
