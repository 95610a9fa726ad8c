"""Time entry store - durable timer state and the single-running-entry rule."""
import asyncio
import logging
import re
import weakref
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional, TypeVar

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from timetrack.config import settings
from timetrack.errors import (
    EntryNotFound,
    NoActiveSession,
    NoPausedSession,
    StoreUnavailable,
)
from timetrack.models.time_entry import (
    ActiveTimer,
    TimeEntry,
    TimeEntryCreate,
    TimeEntrySource,
    TimerStatus,
)
from timetrack.services.subject_registry import SubjectRegistry
from timetrack.utils.clock import Clock, elapsed_seconds, utcnow

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Singleton row every mutation writes first, so concurrent transactions conflict
ACTIVE_SESSION_ID = "active_session"

RUNNING_QUERY = {"end_time": None}
PAUSED_QUERY = {"is_paused": True}
MOST_RECENT_FIRST = [("end_time", DESCENDING)]

# Serializes store calls within one process, one lock per event loop
_process_locks: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Lock]" = (
    weakref.WeakKeyDictionary()
)


def _process_lock() -> asyncio.Lock:
    loop = asyncio.get_running_loop()
    lock = _process_locks.get(loop)
    if lock is None:
        lock = _process_locks[loop] = asyncio.Lock()
    return lock


class TimeEntryStore:
    """Service for the system-wide timer and its time entry log."""

    def __init__(self, db, clock: Clock = utcnow, use_transactions: Optional[bool] = None):
        """Initialize service with database connection."""
        self.db = db
        self.time_entries = db["time_entries"]
        self.timer_state = db["timer_state"]
        self.registry = SubjectRegistry(db)
        self.clock = clock
        if use_transactions is None:
            use_transactions = settings.mongodb_transactions
        self.use_transactions = use_transactions

    def _doc_to_entry(self, doc: dict) -> TimeEntry:
        """
        Convert database document to TimeEntry model.
        """
        return TimeEntry(
            _id=str(doc["_id"]),
            project_id=str(doc["project_id"]),
            task_id=str(doc["task_id"]) if doc.get("task_id") is not None else None,
            description=doc.get("description"),
            start_time=doc["start_time"],
            end_time=doc.get("end_time"),
            duration_seconds=doc.get("duration_seconds"),
            is_paused=doc.get("is_paused", False),
            source=doc.get("source", TimeEntrySource.TIMER.value),
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
        )

    async def _serialized(self, operation: Callable[..., Awaitable[T]]) -> T:
        """
        Run a read-then-mutate operation as one serialized unit.

        Args:
            operation: Coroutine function taking the Mongo session (or None)

        Returns:
            Whatever the operation returns

        Raises:
            StoreUnavailable: If the database fails
        """
        async def claim_and_run(session):
            await self.timer_state.find_one_and_update(
                {"_id": ACTIVE_SESSION_ID},
                {"$inc": {"version": 1}, "$set": {"updated_at": self.clock()}},
                upsert=True,
                session=session,
            )
            return await operation(session)

        async with _process_lock():
            try:
                if not self.use_transactions:
                    return await claim_and_run(None)
                async with await self.db.client.start_session() as session:
                    # Retries the whole callback on transient write conflicts
                    return await session.with_transaction(claim_and_run)
            except PyMongoError as e:
                logger.exception("Time entry store failed")
                raise StoreUnavailable(str(e)) from e

    async def _find_running(self, session=None) -> Optional[dict]:
        return await self.time_entries.find_one(RUNNING_QUERY, session=session)

    async def _find_paused(self, session=None) -> Optional[dict]:
        return await self.time_entries.find_one(
            PAUSED_QUERY,
            sort=MOST_RECENT_FIRST,
            session=session,
        )

    async def _close(
        self,
        doc: dict,
        now: datetime,
        paused: bool = False,
        session=None,
    ) -> dict:
        """
        Close a running entry at ``now``.

        The filter requires ``end_time`` to still be unset, so closing an
        entry somebody else already closed changes nothing.
        """
        update_doc = {
            "end_time": now,
            "duration_seconds": elapsed_seconds(doc["start_time"], now),
            "updated_at": now,
        }
        if paused:
            update_doc["is_paused"] = True

        closed = await self.time_entries.find_one_and_update(
            {"_id": doc["_id"], "end_time": None},
            {"$set": update_doc},
            return_document=True,
            session=session,
        )
        if closed is None:
            logger.warning("Time entry %s was already closed", doc["_id"])
            closed = await self.time_entries.find_one({"_id": doc["_id"]}, session=session)
        return closed

    async def start(
        self,
        project_id: str,
        task_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> TimeEntry:
        """
        Start a new timer, closing whatever is running.

        Args:
            project_id: Project ID
            task_id: Optional task ID
            description: Optional description

        Returns:
            Created time entry

        Raises:
            ReferentialError: If project or task doesn't exist
            StoreUnavailable: If the database fails
        """
        async def _start(session):
            await self.registry.validate(project_id, task_id, session=session)

            now = self.clock()
            running = await self._find_running(session)
            if running:
                await self._close(running, now, session=session)

            cleared = await self.time_entries.update_many(
                PAUSED_QUERY,
                {"$set": {"is_paused": False, "updated_at": now}},
                session=session,
            )
            if cleared.modified_count > 1:
                logger.warning("Finalized %d paused time entries", cleared.modified_count)

            entry_doc = {
                "project_id": project_id,
                "task_id": task_id,
                "description": description,
                "start_time": now,
                "end_time": None,
                "duration_seconds": None,
                "is_paused": False,
                "source": TimeEntrySource.TIMER.value,
                "created_at": now,
                "updated_at": now,
            }
            result = await self.time_entries.insert_one(entry_doc, session=session)
            entry_doc["_id"] = result.inserted_id
            return entry_doc

        doc = await self._serialized(_start)
        logger.info("Timer started: entry %s on project %s", doc["_id"], project_id)
        return self._doc_to_entry(doc)

    async def stop(self) -> TimeEntry:
        """
        Stop the running timer, or finalize the paused one.

        A paused entry keeps the duration it had when paused.

        Returns:
            The finalized time entry

        Raises:
            NoActiveSession: If nothing is running or paused
            StoreUnavailable: If the database fails
        """
        async def _stop(session):
            now = self.clock()
            running = await self._find_running(session)
            if running:
                return await self._close(running, now, session=session)

            paused = await self._find_paused(session)
            if not paused:
                raise NoActiveSession()
            return await self.time_entries.find_one_and_update(
                {"_id": paused["_id"]},
                {"$set": {"is_paused": False, "updated_at": now}},
                return_document=True,
                session=session,
            )

        doc = await self._serialized(_stop)
        logger.info("Timer stopped: entry %s at %ss", doc["_id"], doc.get("duration_seconds"))
        return self._doc_to_entry(doc)

    async def pause(self) -> TimeEntry:
        """
        Pause the running timer.

        Returns:
            The paused time entry with its duration so far

        Raises:
            NoActiveSession: If no timer is running
            StoreUnavailable: If the database fails
        """
        async def _pause(session):
            running = await self._find_running(session)
            if not running:
                raise NoActiveSession("No active timer found")
            return await self._close(running, self.clock(), paused=True, session=session)

        doc = await self._serialized(_pause)
        logger.info("Timer paused: entry %s at %ss", doc["_id"], doc.get("duration_seconds"))
        return self._doc_to_entry(doc)

    async def resume(self) -> TimeEntry:
        """
        Resume the most recently paused timer.

        The start time is moved back by the duration already tracked, so
        ``now - start_time`` keeps giving the total.

        Returns:
            The running time entry

        Raises:
            NoPausedSession: If nothing is paused
            StoreUnavailable: If the database fails
        """
        async def _resume(session):
            paused = await self._find_paused(session)
            if not paused:
                raise NoPausedSession()

            now = self.clock()
            running = await self._find_running(session)
            if running:
                await self._close(running, now, session=session)

            previous = paused.get("duration_seconds") or 0
            return await self.time_entries.find_one_and_update(
                {"_id": paused["_id"]},
                {"$set": {
                    "start_time": now - timedelta(seconds=previous),
                    "end_time": None,
                    "duration_seconds": None,
                    "is_paused": False,
                    "updated_at": now,
                }},
                return_document=True,
                session=session,
            )

        doc = await self._serialized(_resume)
        logger.info("Timer resumed: entry %s", doc["_id"])
        return self._doc_to_entry(doc)

    async def get_active(self) -> ActiveTimer:
        """
        Get the running timer, else the paused one.

        Returns:
            Snapshot with status, entry and server-computed elapsed seconds

        Raises:
            StoreUnavailable: If the database fails
        """
        now = self.clock()
        try:
            doc = await self._find_running()
            status = TimerStatus.RUNNING
            if not doc:
                doc = await self._find_paused()
                status = TimerStatus.PAUSED
        except PyMongoError as e:
            logger.exception("Time entry store failed")
            raise StoreUnavailable(str(e)) from e

        if not doc:
            return ActiveTimer(status=TimerStatus.IDLE, server_time=now)

        entry = self._doc_to_entry(doc)
        return ActiveTimer(
            status=status,
            entry=entry,
            elapsed_seconds=entry.elapsed_at(now),
            server_time=now,
        )

    async def get_entry(self, entry_id: str) -> TimeEntry:
        """
        Get a time entry by ID.

        Raises:
            ValueError: If the ID is malformed
            EntryNotFound: If entry not found
            StoreUnavailable: If the database fails
        """
        if not ObjectId.is_valid(entry_id):
            raise ValueError("Invalid entry ID format")

        try:
            doc = await self.time_entries.find_one({"_id": ObjectId(entry_id)})
        except PyMongoError as e:
            logger.exception("Time entry store failed")
            raise StoreUnavailable(str(e)) from e
        if not doc:
            raise EntryNotFound()
        return self._doc_to_entry(doc)

    async def list_entries(
        self,
        project_id: Optional[str] = None,
        task_id: Optional[str] = None,
        q: Optional[str] = None,
        take: int = 100,
        skip: int = 0,
    ) -> list[TimeEntry]:
        """
        List time entries with optional filtering.

        Args:
            project_id: Optional project filter
            task_id: Optional task filter
            q: Optional case-insensitive description search
            take: Page size
            skip: Entries to skip

        Returns:
            List of time entries, most recent start first

        Raises:
            StoreUnavailable: If the database fails
        """
        query = {}
        if project_id:
            query["project_id"] = project_id
        if task_id:
            query["task_id"] = task_id
        if q:
            query["description"] = {"$regex": re.escape(q), "$options": "i"}

        cursor = (
            self.time_entries.find(query)
            .sort("start_time", DESCENDING)
            .skip(skip)
            .limit(take)
        )
        try:
            entry_docs = await cursor.to_list(length=None)
        except PyMongoError as e:
            logger.exception("Time entry store failed")
            raise StoreUnavailable(str(e)) from e

        return [self._doc_to_entry(doc) for doc in entry_docs]

    async def log_time(self, entry_create: TimeEntryCreate) -> TimeEntry:
        """
        Record a manual, already finished time entry.

        Args:
            entry_create: Time entry creation data

        Returns:
            Created time entry

        Raises:
            ReferentialError: If project or task doesn't exist
            StoreUnavailable: If the database fails
        """
        try:
            await self.registry.validate(entry_create.project_id, entry_create.task_id)

            now = self.clock()
            entry_doc = {
                "project_id": entry_create.project_id,
                "task_id": entry_create.task_id,
                "description": entry_create.description,
                "start_time": entry_create.start_time,
                "end_time": entry_create.end_time,
                "duration_seconds": entry_create.duration_seconds,
                "is_paused": False,
                "source": TimeEntrySource.MANUAL.value,
                "created_at": now,
                "updated_at": now,
            }
            result = await self.time_entries.insert_one(entry_doc)
        except PyMongoError as e:
            logger.exception("Time entry store failed")
            raise StoreUnavailable(str(e)) from e

        entry_doc["_id"] = result.inserted_id
        return self._doc_to_entry(entry_doc)

    async def ensure_indexes(self) -> None:
        """Create the indexes the timer queries rely on."""
        await self.time_entries.create_index([("end_time", ASCENDING)])
        await self.time_entries.create_index([("is_paused", ASCENDING), ("end_time", DESCENDING)])
        await self.time_entries.create_index([("project_id", ASCENDING), ("start_time", DESCENDING)])
