"""
Clock and Timer Scheduling

Timers used by the session timeout manager and the auto-sync listener.
Components depend on the Scheduler protocol so tests can drive time
explicitly; AsyncioScheduler is the event-loop implementation.
"""

import asyncio
import inspect
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Protocol

from fleetops.observability.logger import get_logger

logger = get_logger(__name__, component="scheduler")

TimerCallback = Callable[[], Awaitable[Any] | None]


class TimerHandle:
    """Handle returned by set_timer; cancelling it prevents the callback."""

    def __init__(self, delay: float, name: str = "timer"):
        self.delay = delay
        self.name = name
        self.cancelled = False
        self.fired = False
        self._on_cancel: Callable[[], Any] | None = None

    def bind(self, on_cancel: Callable[[], Any]) -> None:
        self._on_cancel = on_cancel

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.fired)

    def cancel(self) -> None:
        if not self.active:
            return
        self.cancelled = True
        if self._on_cancel:
            self._on_cancel()

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "fired" if self.fired else "armed"
        return f"<TimerHandle({self.name}, delay={self.delay}s, {state})>"


class Scheduler(Protocol):
    """Clock and one-shot timer interface."""

    def now(self) -> datetime:
        ...

    def set_timer(self, delay: float, callback: TimerCallback, name: str = "timer") -> TimerHandle:
        ...

    def cancel_timer(self, handle: TimerHandle | None) -> None:
        ...


class AsyncioScheduler:
    """
    Scheduler backed by the running asyncio event loop.

    Coroutine callbacks are spawned as tasks and kept referenced until
    they finish, so a fired timer's job is never garbage collected
    mid-flight.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop
        self._tasks: set[asyncio.Task] = set()

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def set_timer(self, delay: float, callback: TimerCallback, name: str = "timer") -> TimerHandle:
        handle = TimerHandle(delay, name=name)
        loop_handle = self._get_loop().call_later(max(delay, 0), self._fire, handle, callback)
        handle.bind(loop_handle.cancel)
        return handle

    def cancel_timer(self, handle: TimerHandle | None) -> None:
        if handle is not None:
            handle.cancel()

    def _fire(self, handle: TimerHandle, callback: TimerCallback) -> None:
        if handle.cancelled:
            return
        handle.fired = True
        try:
            result = callback()
        except Exception as e:
            logger.error("Timer callback failed", timer=handle.name, error=str(e))
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._job_done)

    def _job_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Timer job failed", error=str(task.exception()))

    @property
    def pending_jobs(self) -> int:
        """Number of spawned timer jobs still running."""
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for spawned timer jobs to finish (used on shutdown)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
