"""Client-side timer state machine.

Holds a local, optimistic copy of the timer. Every user action changes the
local state first and then calls the store in the background; the visible
clock never waits on the network. The store stays the source of truth: the
machine seeds itself from ``get_active()`` on mount and otherwise only counts
seconds locally.
"""
import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, Protocol

from timetrack.client.gateway import TimerGateway
from timetrack.client.notifications import (
    LoggingNotificationSink,
    NotificationKind,
    NotificationSink,
)
from timetrack.client.ticker import AsyncioTicker, Ticker
from timetrack.errors import ErrorKind, TimerError
from timetrack.models.result import StoreResult
from timetrack.models.time_entry import TimerStatus
from timetrack.utils.clock import format_elapsed

logger = logging.getLogger(__name__)


class InvalidTransition(ValueError):
    """Action not allowed from the current local state."""


class TimerListener(Protocol):
    """Observer of the local clock, e.g. the idle and hard cap policies."""

    def on_tick(self, machine: "TimerStateMachine", elapsed: int) -> None:
        ...

    def on_state_change(
        self,
        machine: "TimerStateMachine",
        previous: TimerStatus,
        current: TimerStatus,
    ) -> None:
        ...


class TimerStateMachine:
    """Local predictive clock: idle, running(base_elapsed) or paused(base_elapsed)."""

    def __init__(
        self,
        gateway: TimerGateway,
        notifier: Optional[NotificationSink] = None,
        ticker: Optional[Ticker] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.gateway = gateway
        self.notifier = notifier or LoggingNotificationSink()
        self.ticker = ticker or AsyncioTicker()
        self.clock = clock

        self.status = TimerStatus.IDLE
        self.base_elapsed = 0
        self.tick_started_at: Optional[float] = None
        self.project_id: Optional[str] = None
        self.task_id: Optional[str] = None
        self.description: Optional[str] = None

        self._listeners: list[TimerListener] = []
        self._pending: set[asyncio.Task] = set()
        # Bumped on every transition so late failures can tell they are stale
        self._episode = 0

    def add_listener(self, listener: TimerListener) -> None:
        self._listeners.append(listener)

    @property
    def elapsed_seconds(self) -> int:
        return self.base_elapsed

    @property
    def display_time(self) -> str:
        return format_elapsed(self.base_elapsed)

    @property
    def is_running(self) -> bool:
        return self.status is TimerStatus.RUNNING

    def _transition(self, status: TimerStatus, base_elapsed: int) -> None:
        previous = self.status
        self.status = status
        self.base_elapsed = base_elapsed
        self._episode += 1

        if status is TimerStatus.RUNNING:
            self.tick_started_at = self.clock()
            self.ticker.start(self.tick)
        else:
            self.tick_started_at = None
            self.ticker.cancel()

        if status is TimerStatus.IDLE:
            self.project_id = self.task_id = self.description = None

        logger.debug("Timer %s -> %s at %ss", previous.value, status.value, base_elapsed)
        for listener in list(self._listeners):
            listener.on_state_change(self, previous, status)

    async def hydrate(self) -> None:
        """Seed local state from the store, e.g. when the page mounts."""
        try:
            active = await self.gateway.get_active()
        except TimerError as e:
            logger.warning("Could not load active timer: %s", e)
            self.notifier.notify(NotificationKind.ERROR, f"Could not load timer: {e}")
            return

        if active.status is TimerStatus.IDLE or active.entry is None:
            self._transition(TimerStatus.IDLE, 0)
            return

        entry = active.entry
        self._transition(active.status, active.elapsed_seconds)
        self.project_id = entry.project_id
        self.task_id = entry.task_id
        self.description = entry.description

    def start(
        self,
        project_id: str,
        task_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> asyncio.Task:
        """
        Start tracking a project, replacing any running or paused session.

        Returns:
            Task completing with the store's StoreResult
        """
        self._transition(TimerStatus.RUNNING, 0)
        self.project_id = project_id
        self.task_id = task_id
        self.description = description
        return self._dispatch(
            "start",
            self.gateway.start(project_id, task_id, description),
            rollback_on_referential_error=True,
        )

    def pause(self) -> asyncio.Task:
        if self.status is not TimerStatus.RUNNING:
            raise InvalidTransition(f"Cannot pause while {self.status.value}")
        self._transition(TimerStatus.PAUSED, self.base_elapsed)
        return self._dispatch("pause", self.gateway.pause())

    def resume(self) -> asyncio.Task:
        if self.status is not TimerStatus.PAUSED:
            raise InvalidTransition(f"Cannot resume while {self.status.value}")
        self._transition(TimerStatus.RUNNING, self.base_elapsed)
        return self._dispatch("resume", self.gateway.resume())

    def stop(self) -> asyncio.Task:
        if self.status is TimerStatus.IDLE:
            raise InvalidTransition("Cannot stop while idle")
        self._transition(TimerStatus.IDLE, 0)
        return self._dispatch("stop", self.gateway.stop())

    def tick(self) -> None:
        """Advance the local clock by one second and inform listeners."""
        if self.status is not TimerStatus.RUNNING:
            return
        self.base_elapsed += 1
        for listener in list(self._listeners):
            listener.on_tick(self, self.base_elapsed)

    def _dispatch(
        self,
        action: str,
        call: Awaitable[StoreResult],
        rollback_on_referential_error: bool = False,
    ) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(
            self._complete(action, call, self._episode, rollback_on_referential_error)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _complete(
        self,
        action: str,
        call: Awaitable[StoreResult],
        episode: int,
        rollback_on_referential_error: bool,
    ) -> StoreResult:
        result = await call
        if result.ok:
            return result

        if (
            rollback_on_referential_error
            and result.error is ErrorKind.REFERENTIAL_ERROR
            and episode == self._episode
        ):
            logger.warning("Timer %s rejected, rolling back: %s", action, result.message)
            self._transition(TimerStatus.IDLE, 0)
        else:
            logger.warning("Timer %s failed, keeping local clock: %s", action, result.message)

        self.notifier.notify(
            NotificationKind.ERROR,
            f"Could not {action} timer: {result.message}",
        )
        return result

    async def drain(self) -> None:
        """Wait for in-flight store calls."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    def close(self) -> None:
        self.ticker.cancel()
