"""Timer endpoints - time tracking operations."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from timetrack.database import get_database
from timetrack.errors import TimerError
from timetrack.models.time_entry import ActiveTimer, TimeEntry, TimeEntryCreate, TimerStart
from timetrack.services.time_entry_store import TimeEntryStore


router = APIRouter(prefix="/timers", tags=["timers"])


def _http_error(e: TimerError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.detail)


@router.post("/start", response_model=TimeEntry)
async def start_timer(
    timer_start: TimerStart,
    db=Depends(get_database),
):
    """
    Start a new timer.

    - Closes the running timer, if any
    - Project (and task) must exist
    """
    store = TimeEntryStore(db)
    try:
        return await store.start(
            project_id=timer_start.project_id,
            task_id=timer_start.task_id,
            description=timer_start.description,
        )
    except TimerError as e:
        raise _http_error(e)


@router.post("/stop", response_model=TimeEntry)
async def stop_timer(db=Depends(get_database)):
    """
    Stop the running timer, or finalize the paused one.

    - 409 if nothing is running or paused
    """
    store = TimeEntryStore(db)
    try:
        return await store.stop()
    except TimerError as e:
        raise _http_error(e)


@router.post("/pause", response_model=TimeEntry)
async def pause_timer(db=Depends(get_database)):
    """
    Pause the running timer.

    - 409 if no timer is running
    """
    store = TimeEntryStore(db)
    try:
        return await store.pause()
    except TimerError as e:
        raise _http_error(e)


@router.post("/resume", response_model=TimeEntry)
async def resume_timer(db=Depends(get_database)):
    """
    Resume the most recently paused timer.

    - 409 if no timer is paused
    """
    store = TimeEntryStore(db)
    try:
        return await store.resume()
    except TimerError as e:
        raise _http_error(e)


@router.get("/active", response_model=ActiveTimer)
async def get_active_timer(db=Depends(get_database)):
    """Get the running or paused timer, with server-computed elapsed seconds."""
    store = TimeEntryStore(db)
    try:
        return await store.get_active()
    except TimerError as e:
        raise _http_error(e)


@router.get("", response_model=list[TimeEntry])
async def list_entries(
    project_id: Optional[str] = Query(None),
    task_id: Optional[str] = Query(None),
    q: Optional[str] = Query(None),
    take: int = Query(100, ge=1, le=500),
    skip: int = Query(0, ge=0),
    db=Depends(get_database),
):
    """
    List time entries.

    - Optional filters: project_id, task_id, q (description search)
    - Results sorted by start_time descending (most recent first)
    """
    store = TimeEntryStore(db)
    try:
        return await store.list_entries(
            project_id=project_id,
            task_id=task_id,
            q=q,
            take=take,
            skip=skip,
        )
    except TimerError as e:
        raise _http_error(e)


@router.post("", response_model=TimeEntry, status_code=status.HTTP_201_CREATED)
async def log_time(
    entry_create: TimeEntryCreate,
    db=Depends(get_database),
):
    """
    Log a finished time entry by hand.

    - Project (and task) must exist
    - Duration is calculated if not provided
    """
    store = TimeEntryStore(db)
    try:
        return await store.log_time(entry_create)
    except TimerError as e:
        raise _http_error(e)


@router.get("/{entry_id}", response_model=TimeEntry)
async def get_entry(
    entry_id: str,
    db=Depends(get_database),
):
    """Get a specific time entry by ID."""
    store = TimeEntryStore(db)
    try:
        return await store.get_entry(entry_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TimerError as e:
        raise _http_error(e)
