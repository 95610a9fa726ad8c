"""Time entry model definitions."""
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from timetrack.utils.clock import elapsed_seconds


class TimeEntrySource(str, Enum):
    """Where a time entry came from."""

    MANUAL = "manual"
    TIMER = "timer"


class TimerStatus(str, Enum):
    """State of the system-wide timer."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


class TimeEntryBase(BaseModel):
    """Base time entry fields."""

    project_id: str
    task_id: Optional[str] = None
    description: Optional[str] = None


class TimerStart(TimeEntryBase):
    """Request model for starting a timer."""

    pass


class TimeEntryCreate(TimeEntryBase):
    """Manual time entry creation model.

    Manual entries are always closed: give ``end_time`` or
    ``duration_seconds`` and the other is derived.
    """

    start_time: datetime
    end_time: Optional[datetime] = None
    duration_seconds: Optional[int] = Field(default=None, ge=0)

    @field_validator("start_time", "end_time")
    @classmethod
    def as_naive_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        # Stored timestamps are naive UTC
        if v is not None and v.tzinfo is not None:
            return v.astimezone(timezone.utc).replace(tzinfo=None)
        return v

    @model_validator(mode="after")
    def fill_end_or_duration(self) -> "TimeEntryCreate":
        if self.end_time is None and self.duration_seconds is None:
            raise ValueError("end_time or duration_seconds is required")
        if self.end_time is not None and self.end_time < self.start_time:
            raise ValueError("end_time must not be before start_time")
        if self.end_time is None:
            self.end_time = self.start_time + timedelta(seconds=self.duration_seconds)
        elif self.duration_seconds is None:
            self.duration_seconds = elapsed_seconds(self.start_time, self.end_time)
        return self


class TimeEntry(TimeEntryBase):
    """Full time entry model with database fields."""

    id: str = Field(alias="_id", serialization_alias="id")
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    is_paused: bool = False
    source: TimeEntrySource = TimeEntrySource.TIMER
    created_at: datetime
    updated_at: datetime

    model_config = {"populate_by_name": True}

    @property
    def is_running(self) -> bool:
        return self.end_time is None

    def elapsed_at(self, now: datetime) -> int:
        """Seconds tracked by this entry as of ``now``."""
        if self.is_running:
            return elapsed_seconds(self.start_time, now)
        return self.duration_seconds or 0


class ActiveTimer(BaseModel):
    """Snapshot of the running or paused timer, as seen by the server."""

    status: TimerStatus
    entry: Optional[TimeEntry] = None
    elapsed_seconds: int = 0
    server_time: datetime
