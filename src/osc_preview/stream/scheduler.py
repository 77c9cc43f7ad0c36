"""
Restart Scheduler
=================

One-shot delayed tasks with explicit cancellation tokens.

When a preview connection ends on its own, the controller asks the
scheduler to run a restart after a fixed delay. ``cancel()`` guarantees
the restart never runs, even if its timer already fired and the callback
is sitting in the event loop's ready queue.

Design Rules:
    - At most one pending restart at a time; scheduling replaces it
    - The delay is fixed (no backoff)
    - A restart that has started running is no longer pending; cancel()
      does not interrupt it
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set


logger = logging.getLogger(__name__)


class DelayedTask:
    """
    Cancellable handle to one scheduled action.

    Attributes:
        cancelled: Whether cancel() has been called
        fired: Whether the action has started
    """

    def __init__(self) -> None:
        self.cancelled: bool = False
        self.fired: bool = False
        self._timer: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        """Whether the action may still run."""
        return not (self.cancelled or self.fired)

    def cancel(self) -> None:
        """Prevent the action from running."""
        self.cancelled = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


class RestartScheduler:
    """
    Schedules delayed restarts on the running event loop.

    Attributes:
        delay: Seconds between a drop and the restart
        restarts_fired: Number of restarts that actually ran

    Example:
        scheduler = RestartScheduler(delay=5.0)
        scheduler.schedule(lambda: preview.start(callback))
        ...
        scheduler.cancel()
    """

    def __init__(self, delay: float = 5.0) -> None:
        """
        Initialize scheduler.

        Args:
            delay: Fixed restart delay in seconds. Must be >= 0.
        """
        if delay < 0:
            raise ValueError("delay must be >= 0")

        self.delay = delay
        self.restarts_fired: int = 0
        self._pending: Optional[DelayedTask] = None
        self._running: Set["asyncio.Task[None]"] = set()

    @property
    def pending(self) -> bool:
        """Whether a restart is scheduled and has not started."""
        return self._pending is not None and self._pending.pending

    def schedule(self, action: Callable[[], Awaitable[None]]) -> DelayedTask:
        """
        Run ``action`` once after the delay.

        Replaces any restart that is still pending.

        Args:
            action: Coroutine function to run

        Returns:
            Handle for the scheduled restart
        """
        self.cancel()

        handle = DelayedTask()
        loop = asyncio.get_running_loop()
        handle._timer = loop.call_later(self.delay, self._fire, handle, action)
        self._pending = handle

        logger.info(f"Restart scheduled in {self.delay:.1f}s")
        return handle

    def cancel(self) -> None:
        """Cancel the pending restart, if any."""
        if self._pending is not None:
            if self._pending.pending:
                logger.debug("Pending restart cancelled")
            self._pending.cancel()
            self._pending = None

    def _fire(self, handle: DelayedTask, action: Callable[[], Awaitable[None]]) -> None:
        if handle.cancelled:
            return

        handle.fired = True
        handle._timer = None
        if self._pending is handle:
            self._pending = None

        self.restarts_fired += 1
        task = asyncio.get_running_loop().create_task(action(), name="live_preview_restart")
        self._running.add(task)
        task.add_done_callback(self._restart_done)

    def _restart_done(self, task: "asyncio.Task[None]") -> None:
        self._running.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Restart failed: {error!r}", exc_info=error)

    async def drain(self) -> None:
        """Wait for restarts that are already running."""
        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)
