"""Periodic flush timer, one per logger."""

import asyncio
import contextlib
import logging
from collections.abc import Callable

from .config import Settings
from .errors import ConfigError

logger = logging.getLogger(__name__)


class FlushTimer:
    """
    Runs ``on_tick`` every ``interval`` milliseconds on the running event loop.

    The callback decides whether there is anything to flush; the timer only
    keeps time. At most one tick loop exists per timer.
    """

    def __init__(self, on_tick: Callable[[], None]):
        self._on_tick = on_tick
        self._task: asyncio.Task | None = None
        self._interval = 0

    @property
    def running(self) -> bool:
        return self._task is not None

    @property
    def interval(self) -> int:
        """Current interval in milliseconds, 0 when stopped."""
        return self._interval

    def start(self, interval: int) -> None:
        """Start ticking every ``interval`` ms, replacing any running loop."""
        if isinstance(interval, bool) or not isinstance(interval, int | float):
            raise ConfigError(f"Batch interval must be a number, found: {interval!r}", field="batch_interval")
        if interval <= 0:
            raise ConfigError(
                f"Batch interval must be a positive number, found: {interval}", field="batch_interval"
            )

        self.stop()
        self._interval = interval
        self._task = asyncio.get_running_loop().create_task(self._tick_loop(interval))
        logger.debug(f"Flush timer started ({interval}ms)")

    def stop(self) -> None:
        """Cancel the tick loop. Safe to call when already stopped."""
        if self._task is None:
            return
        self._task.cancel()
        self._task = None
        self._interval = 0
        logger.debug("Flush timer stopped")

    def reconcile(self, settings: Settings) -> None:
        """Start, restart or stop the timer to match ``settings``."""
        if settings.wants_timer:
            if not self.running or self._interval != settings.batch_interval:
                self.start(settings.batch_interval)
        elif self.running:
            self.stop()

    async def _tick_loop(self, interval: int) -> None:
        while True:
            await asyncio.sleep(interval / 1000)
            try:
                self._on_tick()
            except Exception:
                logger.exception("Flush timer tick failed")

    async def aclose(self) -> None:
        """Stop the timer and wait for the tick loop to finish."""
        task = self._task
        self.stop()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task
