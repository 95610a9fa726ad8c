"""User notifications raised by the timer client and its policies."""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    ERROR = "error"
    REMINDER = "reminder"
    IDLE_PAUSED = "idle_paused"
    HARD_CAP = "hard_cap"


# Kinds that stay on screen until the user acts on them
PERSISTENT_KINDS = frozenset({NotificationKind.IDLE_PAUSED, NotificationKind.HARD_CAP})


@dataclass(frozen=True)
class NotificationAction:
    """A button offered with a notification, e.g. "Resume"."""

    label: str
    callback: Callable[[], Any]


@dataclass(frozen=True)
class Notification:
    kind: NotificationKind
    message: str
    action: Optional[NotificationAction] = None

    @property
    def persistent(self) -> bool:
        return self.kind in PERSISTENT_KINDS


class NotificationSink(Protocol):
    """Anything that can put a message in front of the user."""

    def notify(
        self,
        kind: NotificationKind,
        message: str,
        action: Optional[NotificationAction] = None,
    ) -> None:
        ...


class LoggingNotificationSink:
    """Sink that writes notifications to the log; used when no UI is attached."""

    def notify(
        self,
        kind: NotificationKind,
        message: str,
        action: Optional[NotificationAction] = None,
    ) -> None:
        notification = Notification(kind, message, action)
        level = logging.WARNING if kind is NotificationKind.ERROR else logging.INFO
        suffix = f" [{action.label}]" if action else ""
        logger.log(
            level,
            "%s%s: %s%s",
            kind.value,
            " (persistent)" if notification.persistent else "",
            message,
            suffix,
        )
