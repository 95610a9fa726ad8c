"""Auto-pause a running timer when the user walks away."""
import logging
from typing import Protocol

from timetrack.client.notifications import NotificationAction, NotificationKind, NotificationSink
from timetrack.client.state_machine import TimerStateMachine
from timetrack.config import IDLE_THRESHOLD_SECONDS
from timetrack.models.time_entry import TimerStatus

logger = logging.getLogger(__name__)


class IdleSignal(Protocol):
    """Host capability: how long since the last keyboard or mouse input."""

    def idle_seconds(self) -> float:
        ...


class IdleMonitor:
    """
    Pauses the timer once per idle episode.

    Idle time is only counted from the start of the current running episode,
    so an idle clock that was already high when the page loaded or the timer
    started does not pause immediately. Coming back never resumes on its own;
    the notification carries a "Resume" action instead.
    """

    def __init__(
        self,
        machine: TimerStateMachine,
        signal: IdleSignal,
        notifier: NotificationSink,
        threshold: float = IDLE_THRESHOLD_SECONDS,
    ):
        self.machine = machine
        self.signal = signal
        self.notifier = notifier
        self.threshold = threshold
        self._fired = False
        machine.add_listener(self)

    def on_state_change(self, machine, previous, current) -> None:
        self._fired = False

    def effective_idle_seconds(self) -> float:
        started_at = self.machine.tick_started_at
        if started_at is None:
            return 0.0
        since_start = self.machine.clock() - started_at
        return min(self.signal.idle_seconds(), since_start)

    def resume(self):
        """Resume from the notification; a no-op once the user has moved on."""
        if self.machine.status is not TimerStatus.PAUSED:
            logger.info("Resume ignored, timer is %s", self.machine.status.value)
            return None
        return self.machine.resume()

    def on_tick(self, machine, elapsed: int) -> None:
        if machine.status is not TimerStatus.RUNNING:
            return

        idle = self.effective_idle_seconds()
        if idle < self.threshold:
            self._fired = False
            return
        if self._fired:
            return

        logger.info("Idle for %ds, pausing timer", idle)
        machine.pause()
        self._fired = True
        self.notifier.notify(
            NotificationKind.IDLE_PAUSED,
            f"Timer paused after {int(self.threshold // 60)} minutes of inactivity",
            action=NotificationAction("Resume", self.resume),
        )
