"""
Periodic scheduling for Live Recorder.
"""

import asyncio
import inspect
from typing import Callable, Optional, Set

from .logger import get_logger


class Ticker:
    """
    Independently cancellable periodic task.

    Every tick runs the callback as its own task, so a slow callback (for
    example one waiting on a batch download) never delays the next tick.
    ``cancel()`` stops future ticks only; callbacks already running finish
    on their own, which makes it safe to cancel from inside a callback.
    """

    def __init__(self, name: str):
        self.name = name
        self._loop_task: Optional[asyncio.Task] = None
        self._in_flight: Set[asyncio.Task] = set()
        self._logger = get_logger('scheduler')

    @property
    def active(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def on_tick(self, callback: Callable, interval: float) -> None:
        """Start calling ``callback`` every ``interval`` seconds."""
        if self.active:
            raise RuntimeError(f"Ticker '{self.name}' is already running")
        self._loop_task = asyncio.create_task(self._run(callback, interval))

    async def _run(self, callback: Callable, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            task = asyncio.create_task(self._invoke(callback))
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)

    async def _invoke(self, callback: Callable) -> None:
        try:
            result = callback()
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._logger.error(f"Tick callback '{self.name}' failed: {e}")

    def cancel(self) -> None:
        """Stop future ticks."""
        if self._loop_task and not self._loop_task.done():
            self._loop_task.cancel()
        self._loop_task = None

    async def wait_idle(self) -> None:
        """Wait until callbacks already started have finished."""
        current = asyncio.current_task()
        pending = [t for t in self._in_flight if t is not current]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
