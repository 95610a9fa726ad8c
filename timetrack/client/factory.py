"""Wire a timer state machine together with its policies."""
from typing import NamedTuple, Optional

from timetrack.client.cap_policy import CapAndReminderPolicy
from timetrack.client.gateway import TimerGateway
from timetrack.client.idle_monitor import IdleMonitor, IdleSignal
from timetrack.client.notifications import LoggingNotificationSink, NotificationSink
from timetrack.client.state_machine import TimerStateMachine
from timetrack.client.ticker import Ticker


class NeverIdle:
    """Idle signal for hosts without input tracking."""

    def idle_seconds(self) -> float:
        return 0.0


class TimerClient(NamedTuple):
    machine: TimerStateMachine
    idle_monitor: IdleMonitor
    cap_policy: CapAndReminderPolicy


def create_timer(
    gateway: TimerGateway,
    notifier: Optional[NotificationSink] = None,
    idle_signal: Optional[IdleSignal] = None,
    ticker: Optional[Ticker] = None,
) -> TimerClient:
    """
    Build a state machine with the idle monitor and cap policy attached.

    Args:
        gateway: Route to the time entry store
        notifier: Where notifications go (defaults to the log)
        idle_signal: Host idle clock (defaults to never idle)
        ticker: Tick source (defaults to an asyncio ticker)

    Returns:
        The machine and its policies
    """
    notifier = notifier or LoggingNotificationSink()
    machine = TimerStateMachine(gateway, notifier=notifier, ticker=ticker)
    idle_monitor = IdleMonitor(machine, idle_signal or NeverIdle(), notifier)
    cap_policy = CapAndReminderPolicy(machine, notifier)
    return TimerClient(machine, idle_monitor, cap_policy)
