"""
Fixed-period ticker on the asyncio event loop.

Ticks never overlap: the next sleep starts only after the callback returns.
"""

import asyncio
import contextlib
from collections.abc import Callable

import structlog

logger = structlog.get_logger(__name__)

# Return values are ignored; a returned coroutine is awaited.
TickCallback = Callable[[], object]


class Ticker:
    """Invokes ``callback`` every ``interval_seconds`` until stopped."""

    def __init__(self, callback: TickCallback, interval_seconds: float = 60.0) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.callback = callback
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None
        self.logger = logger.bind(component="ticker")

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the periodic loop. Must be called from a running event loop."""
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="kinwell-ticker")
        self.logger.info("ticker_started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish. Safe to call repeatedly."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        self.logger.info("ticker_stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                result = self.callback()
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                self.logger.exception("tick_failed", error=str(e))
