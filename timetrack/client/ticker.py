"""Cancellable once-a-second callbacks driving the local timer clock."""
import asyncio
import logging
from typing import Callable, Optional, Protocol

from timetrack.config import TICK_INTERVAL_SECONDS

logger = logging.getLogger(__name__)


class Ticker(Protocol):
    """Calls a callback periodically until cancelled."""

    @property
    def active(self) -> bool:
        ...

    def start(self, callback: Callable[[], None]) -> None:
        ...

    def cancel(self) -> None:
        ...


class AsyncioTicker:
    """Ticker backed by a task on the running event loop."""

    def __init__(self, interval: float = TICK_INTERVAL_SECONDS):
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, callback: Callable[[], None]) -> None:
        """Start ticking, replacing any previous schedule."""
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run(callback))

    def cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self, callback: Callable[[], None]) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                callback()
            except Exception:
                logger.exception("Tick callback failed")
