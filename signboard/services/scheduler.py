import asyncio
import logging
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)


class Cancellable(Protocol):
    def cancel(self) -> object: ...


class AsyncioScheduler:
    """Timers on the running event loop; every handle returned supports cancel()."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)

    def call_every(self, interval: float, callback: Callable[[], None]) -> asyncio.Task:
        return asyncio.get_running_loop().create_task(self._repeat(interval, callback))

    async def _repeat(self, interval: float, callback: Callable[[], None]) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                callback()
            except Exception:
                logger.exception("Repeating task %r failed", callback)
