"""Gateways from the timer client to the time entry store."""
import logging
from typing import Awaitable, Optional, Protocol

import httpx

from timetrack.errors import ErrorKind, StoreUnavailable, TimerError, error_for_kind
from timetrack.models.result import StoreResult
from timetrack.models.time_entry import ActiveTimer, TimeEntry
from timetrack.services.time_entry_store import TimeEntryStore

logger = logging.getLogger(__name__)


class TimerGateway(Protocol):
    """Store operations as seen by the client: results, not exceptions."""

    async def start(
        self,
        project_id: str,
        task_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> StoreResult:
        ...

    async def stop(self) -> StoreResult:
        ...

    async def pause(self) -> StoreResult:
        ...

    async def resume(self) -> StoreResult:
        ...

    async def get_active(self) -> ActiveTimer:
        """Raises TimerError when the store cannot be reached."""
        ...


async def _as_result(call: Awaitable[TimeEntry]) -> StoreResult:
    try:
        return StoreResult.success(await call)
    except TimerError as e:
        return StoreResult.failure(e)


class LocalTimerGateway:
    """Calls a TimeEntryStore in the same process."""

    def __init__(self, store: TimeEntryStore):
        self.store = store

    async def start(self, project_id, task_id=None, description=None) -> StoreResult:
        return await _as_result(self.store.start(project_id, task_id, description))

    async def stop(self) -> StoreResult:
        return await _as_result(self.store.stop())

    async def pause(self) -> StoreResult:
        return await _as_result(self.store.pause())

    async def resume(self) -> StoreResult:
        return await _as_result(self.store.resume())

    async def get_active(self) -> ActiveTimer:
        return await self.store.get_active()


class HttpTimerGateway:
    """Calls the /timers HTTP API."""

    def __init__(self, client: httpx.AsyncClient, prefix: str = "/timers"):
        self.client = client
        self.prefix = prefix

    def _error_from_response(self, response: httpx.Response) -> TimerError:
        try:
            detail = response.json().get("detail")
            return error_for_kind(ErrorKind(detail["code"]), detail.get("message"))
        except (ValueError, KeyError, TypeError, AttributeError):
            return StoreUnavailable(f"Unexpected response {response.status_code}")

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self.client.request(method, f"{self.prefix}{path}", **kwargs)
        except httpx.HTTPError as e:
            logger.warning("Timer API request failed: %s", e)
            raise StoreUnavailable(str(e)) from e
        if response.is_error:
            raise self._error_from_response(response)
        return response

    async def _post(self, path: str, json: Optional[dict] = None) -> StoreResult:
        try:
            response = await self._request("POST", path, json=json)
        except TimerError as e:
            return StoreResult.failure(e)
        return StoreResult.success(TimeEntry.model_validate(response.json()))

    async def start(self, project_id, task_id=None, description=None) -> StoreResult:
        return await self._post(
            "/start",
            json={"project_id": project_id, "task_id": task_id, "description": description},
        )

    async def stop(self) -> StoreResult:
        return await self._post("/stop")

    async def pause(self) -> StoreResult:
        return await self._post("/pause")

    async def resume(self) -> StoreResult:
        return await self._post("/resume")

    async def get_active(self) -> ActiveTimer:
        response = await self._request("GET", "/active")
        return ActiveTimer.model_validate(response.json())
