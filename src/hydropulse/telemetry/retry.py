# src/hydropulse/telemetry/retry.py
"""Delayed re-delivery timers for failed telemetry events.

Each armed retry is an asyncio task that sleeps for the backoff delay and
then awaits its callback. Tasks are tracked by key (the event id) until
the callback has finished, so a shutdown can cancel every outstanding
timer, including a callback that is mid-delivery, and wait for them to
unwind instead of leaking them past the orchestrator's lifetime.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

logger = structlog.get_logger(__name__)

RetryCallback = Callable[[], Awaitable[None]]


class RetryScheduler:
    """Keyed one-shot timers backed by asyncio tasks.

    Arming a key that already has a timer replaces it. A timer stays
    tracked while its callback runs and removes itself afterwards. The
    callback may re-arm its own key (the next backoff step for the same
    event); the new timer takes the slot and the running one is not
    cancelled.

    Callback exceptions are logged and never propagate: retries run detached
    from any caller that could handle them.

    Example:
        scheduler = RetryScheduler()
        scheduler.arm(event.event_id, 2.0, lambda: orchestrator.process_event(event))
        ...
        await scheduler.cancel_all()
    """

    def __init__(self) -> None:
        self._timers: dict[str, asyncio.Task[None]] = {}

    def arm(self, key: str, delay_s: float, callback: RetryCallback) -> None:
        """Schedule callback to run after delay_s seconds.

        Must be called from a running event loop.

        Raises:
            ValueError: If delay_s is negative
        """
        if delay_s < 0:
            raise ValueError(f"delay_s must be >= 0, got {delay_s}")
        previous = self._timers.pop(key, None)
        if previous is not None and previous is not asyncio.current_task():
            previous.cancel()
        task = asyncio.get_running_loop().create_task(
            self._fire(key, delay_s, callback),
            name=f"hydropulse-retry-{key}",
        )
        self._timers[key] = task

    async def _fire(self, key: str, delay_s: float, callback: RetryCallback) -> None:
        try:
            await asyncio.sleep(delay_s)
            await callback()
        except Exception as e:
            logger.error(
                "Retry callback failed",
                retry_key=key,
                error=str(e),
                error_type=type(e).__name__,
            )
        finally:
            if self._timers.get(key) is asyncio.current_task():
                del self._timers[key]

    def cancel(self, key: str) -> bool:
        """Cancel the timer for key. Returns False if none was armed."""
        task = self._timers.pop(key, None)
        if task is None:
            return False
        task.cancel()
        return True

    async def cancel_all(self) -> None:
        """Cancel every armed or running timer and wait until all have unwound."""
        current = asyncio.current_task()
        tasks = [task for task in self._timers.values() if task is not current]
        self._timers.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.debug("Cancelled pending retries", count=len(tasks))

    @property
    def pending(self) -> int:
        """Number of timers that are still sleeping or running their callback."""
        return len(self._timers)

    def is_armed(self, key: str) -> bool:
        return key in self._timers

    async def wait_idle(self) -> None:
        """Wait until no timers are armed, including ones re-armed by callbacks."""
        while self._timers:
            await asyncio.gather(*list(self._timers.values()), return_exceptions=True)
