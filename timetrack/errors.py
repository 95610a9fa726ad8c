"""Error taxonomy for timer operations."""
from enum import Enum


class ErrorKind(str, Enum):
    """Machine-readable failure kinds shared by the API and its clients."""

    NO_ACTIVE_SESSION = "no_active_session"
    NO_PAUSED_SESSION = "no_paused_session"
    STORE_UNAVAILABLE = "store_unavailable"
    REFERENTIAL_ERROR = "referential_error"
    ENTRY_NOT_FOUND = "entry_not_found"


class TimerError(Exception):
    """Base class for expected timer failures."""

    kind: ErrorKind
    status_code: int = 400
    default_message = "Timer operation failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    @property
    def detail(self) -> dict:
        """Body used for HTTP error responses."""
        return {"code": self.kind.value, "message": str(self)}


class NoActiveSession(TimerError):
    """Pause or stop with nothing running (or, for stop, paused)."""

    kind = ErrorKind.NO_ACTIVE_SESSION
    status_code = 409
    default_message = "No active or paused timer found"


class NoPausedSession(TimerError):
    """Resume with nothing paused."""

    kind = ErrorKind.NO_PAUSED_SESSION
    status_code = 409
    default_message = "No paused timer found"


class StoreUnavailable(TimerError):
    """Persistence or transport failure."""

    kind = ErrorKind.STORE_UNAVAILABLE
    status_code = 503
    default_message = "Time entry store unavailable"


class ReferentialError(TimerError):
    """Project or task does not resolve."""

    kind = ErrorKind.REFERENTIAL_ERROR
    status_code = 404
    default_message = "Project not found"


class EntryNotFound(TimerError):
    kind = ErrorKind.ENTRY_NOT_FOUND
    status_code = 404
    default_message = "Time entry not found"


_ERRORS_BY_KIND = {
    cls.kind: cls
    for cls in (NoActiveSession, NoPausedSession, StoreUnavailable, ReferentialError, EntryNotFound)
}


def error_for_kind(kind: ErrorKind, message: str | None = None) -> TimerError:
    """Rebuild a TimerError from its kind, e.g. after crossing the wire."""
    return _ERRORS_BY_KIND[kind](message)
