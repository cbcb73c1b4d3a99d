"""
Cooperative scheduling on the asyncio event loop.

``Debouncer`` coalesces bursts of calls (search-as-you-type) into one
delayed call; ``FrameLoop`` drives a per-frame callback at a fixed rate.
Both run on the loop's single thread and take no locks.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

from notegraph.utils.logging import get_logger, log_error

logger = get_logger("scheduling")


class Debouncer:
    """Cancellable one-shot timer built on ``loop.call_later``.

    Each :meth:`schedule` replaces the pending call, so only the last one
    in a burst runs, ``delay`` seconds after it was scheduled.
    """

    def __init__(self, delay: float, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.delay = delay
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._callback: Optional[Callable[[], None]] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` after the delay, replacing any pending call.

        Without a running event loop the callback runs immediately.
        """
        self.cancel()
        loop = self._loop
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                callback()
                return
        self._callback = callback
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        """Drop the pending call, if any."""
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._callback = None

    def flush(self) -> None:
        """Run the pending call now instead of waiting."""
        if self._handle is None:
            return
        self._handle.cancel()
        self._fire()

    def _fire(self) -> None:
        callback = self._callback
        self._handle = None
        self._callback = None
        if callback is not None:
            callback()


class FrameLoop:
    """Calls ``on_frame`` roughly ``fps`` times per second on the event loop.

    A frame is skipped rather than nested if the previous one is still
    running, and an exception in ``on_frame`` is logged without stopping
    the loop.
    """

    def __init__(self, on_frame: Callable[[], object], fps: int = 60):
        if fps <= 0:
            raise ValueError("fps must be positive")
        self.on_frame = on_frame
        self.interval = 1.0 / fps
        self._task: Optional[asyncio.Task[None]] = None
        self._in_frame = False
        self.frames = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the loop on the running event loop (no-op if already started)."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        """Stop the loop and wait for the task to finish."""
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def cancel(self) -> None:
        """Stop the loop without waiting (for synchronous teardown)."""
        if self._task is not None:
            self._task.cancel()
        self._task = None

    def run_frame(self) -> bool:
        """Run one frame now; returns False if a frame is already running."""
        if self._in_frame:
            return False
        self._in_frame = True
        try:
            self.on_frame()
            self.frames += 1
        except Exception as e:
            log_error(logger, "Frame callback", e, {"frame": self.frames})
        finally:
            self._in_frame = False
        return True

    async def _run(self) -> None:
        while True:
            self.run_frame()
            await asyncio.sleep(self.interval)
