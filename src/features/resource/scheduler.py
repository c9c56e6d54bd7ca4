"""Delayed callbacks for access-token timers."""

import asyncio
import threading
from collections.abc import Callable
from typing import Protocol, runtime_checkable


@runtime_checkable
class TimerHandle(Protocol):
    """Handle to a scheduled callback."""

    def cancel(self) -> None:
        """Prevent the callback from running if it has not run yet."""
        ...


@runtime_checkable
class Scheduler(Protocol):
    """Schedules callbacks after a delay."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` after ``delay`` seconds."""
        ...


class ThreadingScheduler:
    """Scheduler backed by daemon ``threading.Timer`` threads."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> threading.Timer:
        """Run ``callback`` after ``delay`` seconds on a timer thread.

        Args:
            delay: Seconds to wait.
            callback: Callable to run.

        Returns:
            The started timer, which can be cancelled.
        """
        timer = threading.Timer(max(0.0, delay), callback)
        timer.daemon = True
        timer.start()
        return timer


class EventLoopScheduler:
    """Scheduler that runs callbacks on the caller's event loop.

    Timers scheduled from inside a running loop fire on that loop, between
    coroutine steps, so they never interleave with a preflight. Without a
    running loop the callback falls back to a timer thread.
    """

    def __init__(self, fallback: Scheduler | None = None) -> None:
        self._fallback = fallback or ThreadingScheduler()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` after ``delay`` seconds.

        Args:
            delay: Seconds to wait.
            callback: Callable to run.

        Returns:
            Cancellable handle for the loop timer or the fallback timer.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return self._fallback.call_later(delay, callback)
        return loop.call_later(max(0.0, delay), callback)
