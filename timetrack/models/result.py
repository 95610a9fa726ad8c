"""Result model returned by timer gateways."""
from typing import Optional

from pydantic import BaseModel

from timetrack.errors import ErrorKind, TimerError
from timetrack.models.time_entry import TimeEntry


class StoreResult(BaseModel):
    """Success or failure of a store operation, without raising."""

    ok: bool
    entry: Optional[TimeEntry] = None
    error: Optional[ErrorKind] = None
    message: str = ""

    @classmethod
    def success(cls, entry: Optional[TimeEntry] = None) -> "StoreResult":
        return cls(ok=True, entry=entry)

    @classmethod
    def failure(cls, error: TimerError) -> "StoreResult":
        return cls(ok=False, error=error.kind, message=str(error))
