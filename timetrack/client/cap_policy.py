"""Hourly reminders and the hard cap on a continuously running timer."""
import logging

from timetrack.client.notifications import NotificationKind, NotificationSink
from timetrack.client.state_machine import TimerStateMachine
from timetrack.config import HARD_CAP_SECONDS, REMINDER_INTERVAL_SECONDS
from timetrack.models.time_entry import TimerStatus
from timetrack.utils.clock import format_elapsed

logger = logging.getLogger(__name__)


class CapAndReminderPolicy:
    """
    Watches the ticking elapsed time of a running timer.

    One reminder per hour boundary; a forced stop once elapsed exceeds the
    hard cap. Both counters reset whenever a running episode begins or ends.
    """

    def __init__(
        self,
        machine: TimerStateMachine,
        notifier: NotificationSink,
        hard_cap: int = HARD_CAP_SECONDS,
        reminder_interval: int = REMINDER_INTERVAL_SECONDS,
    ):
        self.machine = machine
        self.notifier = notifier
        self.hard_cap = hard_cap
        self.reminder_interval = reminder_interval
        self.last_reminded = 0
        self.capped = False
        machine.add_listener(self)

    def on_state_change(self, machine, previous, current) -> None:
        self.last_reminded = 0
        self.capped = False

    def on_tick(self, machine, elapsed: int) -> None:
        if machine.status is not TimerStatus.RUNNING or self.capped:
            return

        if elapsed > self.hard_cap:
            logger.info("Timer passed %ss, stopping", self.hard_cap)
            machine.stop()
            self.capped = True
            self.notifier.notify(
                NotificationKind.HARD_CAP,
                f"Timer stopped automatically after {format_elapsed(self.hard_cap)}",
            )
            return

        interval = elapsed // self.reminder_interval
        if interval >= 1 and interval > self.last_reminded:
            self.last_reminded = interval
            self.notifier.notify(
                NotificationKind.REMINDER,
                f"Timer still running: {format_elapsed(interval * self.reminder_interval)}",
            )
