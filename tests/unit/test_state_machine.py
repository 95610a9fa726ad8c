"""Tests for TimerStateMachine."""
from unittest.mock import AsyncMock

import pytest

from timetrack.client.gateway import LocalTimerGateway
from timetrack.client.notifications import NotificationKind
from timetrack.client.state_machine import InvalidTransition, TimerStateMachine
from timetrack.errors import ErrorKind, ReferentialError, StoreUnavailable
from timetrack.models.result import StoreResult
from timetrack.models.time_entry import TimerStatus
from fakes import OTHER_PROJECT_ID, PROJECT_ID


class TransitionLog:
    def __init__(self):
        self.changes = []
        self.ticks = []

    def on_state_change(self, machine, previous, current):
        self.changes.append((previous, current))

    def on_tick(self, machine, elapsed):
        self.ticks.append(elapsed)


@pytest.fixture
def machine(store, notifier, ticker, mono):
    return TimerStateMachine(LocalTimerGateway(store), notifier=notifier, ticker=ticker, clock=mono)


@pytest.mark.asyncio
class TestMachineActions:
    """Tests for optimistic user actions."""

    async def test_start_is_optimistic(self, machine, ticker, store):
        """Test local state switches before the store answers."""
        task = machine.start(PROJECT_ID, description="Hero")

        assert machine.status == TimerStatus.RUNNING
        assert machine.project_id == PROJECT_ID
        assert machine.elapsed_seconds == 0
        assert ticker.active

        result = await task
        assert result.ok
        active = await store.get_active()
        assert active.entry.id == result.entry.id

    async def test_tick_only_while_running(self, machine, ticker):
        """Test the clock advances once per tick while running."""
        machine.tick()
        assert machine.elapsed_seconds == 0

        machine.start(PROJECT_ID)
        ticker.fire(65)
        assert machine.elapsed_seconds == 65
        assert machine.display_time == "00:01:05"

        machine.pause()
        assert not ticker.active
        machine.tick()
        assert machine.elapsed_seconds == 65
        await machine.drain()

    async def test_tick_started_at_marks_running_episode(self, machine, mono):
        """Test each running episode records when it began and others clear it."""
        assert machine.tick_started_at is None

        machine.start(PROJECT_ID)
        assert machine.tick_started_at == mono.now

        mono.advance(40)
        machine.pause()
        assert machine.tick_started_at is None

        mono.advance(20)
        machine.resume()
        assert machine.tick_started_at == mono.now
        await machine.drain()

    async def test_pause_resume_keeps_elapsed(self, machine, ticker, store, clock):
        """Test pause and resume continue from the same local elapsed time."""
        machine.start(PROJECT_ID)
        await machine.drain()
        clock.advance(30)
        ticker.fire(30)

        machine.pause()
        assert machine.status == TimerStatus.PAUSED
        assert machine.elapsed_seconds == 30
        await machine.drain()

        clock.advance(300)
        machine.resume()
        assert machine.status == TimerStatus.RUNNING
        assert machine.elapsed_seconds == 30
        ticker.fire(5)
        assert machine.elapsed_seconds == 35
        await machine.drain()

        active = await store.get_active()
        assert active.status == TimerStatus.RUNNING
        assert active.elapsed_seconds == 30

    async def test_stop_resets(self, machine, ticker, store):
        """Test stop returns to idle and clears the subject."""
        machine.start(PROJECT_ID)
        ticker.fire(3)

        machine.stop()

        assert machine.status == TimerStatus.IDLE
        assert machine.elapsed_seconds == 0
        assert machine.project_id is None
        assert not ticker.active
        await machine.drain()
        assert (await store.get_active()).status == TimerStatus.IDLE

    async def test_stop_from_paused(self, machine):
        """Test a paused timer can be stopped."""
        machine.start(PROJECT_ID)
        machine.pause()

        machine.stop()

        assert machine.status == TimerStatus.IDLE
        await machine.drain()

    async def test_restart_resets_elapsed(self, machine, ticker):
        """Test starting a new project while running starts from zero."""
        log = TransitionLog()
        machine.add_listener(log)
        machine.start(PROJECT_ID)
        ticker.fire(10)

        machine.start(OTHER_PROJECT_ID)

        assert machine.status == TimerStatus.RUNNING
        assert machine.elapsed_seconds == 0
        assert machine.project_id == OTHER_PROJECT_ID
        assert log.changes == [
            (TimerStatus.IDLE, TimerStatus.RUNNING),
            (TimerStatus.RUNNING, TimerStatus.RUNNING),
        ]
        await machine.drain()

    async def test_invalid_transitions(self, machine):
        """Test actions that make no sense locally are rejected."""
        with pytest.raises(InvalidTransition):
            machine.pause()
        with pytest.raises(InvalidTransition):
            machine.resume()
        with pytest.raises(InvalidTransition):
            machine.stop()

        machine.start(PROJECT_ID)
        with pytest.raises(InvalidTransition):
            machine.resume()
        await machine.drain()


@pytest.mark.asyncio
class TestMachineFailures:
    """Tests for store failures after optimistic updates."""

    async def test_referential_error_rolls_back_start(self, machine, notifier, ticker):
        """Test a start against an unknown project goes back to idle."""
        task = machine.start("nope")
        assert machine.status == TimerStatus.RUNNING

        result = await task

        assert result.error == ErrorKind.REFERENTIAL_ERROR
        assert machine.status == TimerStatus.IDLE
        assert machine.project_id is None
        assert not ticker.active
        errors = notifier.of_kind(NotificationKind.ERROR)
        assert len(errors) == 1
        assert not errors[0].persistent

    async def test_stale_start_failure_does_not_roll_back(self, machine, ticker):
        """Test a late start failure doesn't undo a newer transition."""
        machine.start("nope")
        machine.start(PROJECT_ID)

        await machine.drain()

        assert machine.status == TimerStatus.RUNNING
        assert machine.project_id == PROJECT_ID

    async def test_unavailable_start_keeps_running(self, notifier, ticker):
        """Test only referential errors roll back a start."""
        gateway = AsyncMock()
        gateway.start.return_value = StoreResult.failure(StoreUnavailable())
        machine = TimerStateMachine(gateway, notifier=notifier, ticker=ticker)

        await machine.start(PROJECT_ID)

        assert machine.status == TimerStatus.RUNNING
        assert len(notifier.of_kind(NotificationKind.ERROR)) == 1

    async def test_failed_pause_keeps_local_state(self, notifier, ticker):
        """Test pause failures surface as notifications only."""
        gateway = AsyncMock()
        gateway.start.return_value = StoreResult(ok=True)
        gateway.pause.return_value = StoreResult.failure(StoreUnavailable())
        machine = TimerStateMachine(gateway, notifier=notifier, ticker=ticker)
        machine.start(PROJECT_ID)
        ticker.fire(12)

        result = await machine.pause()

        assert not result.ok
        assert machine.status == TimerStatus.PAUSED
        assert machine.elapsed_seconds == 12
        assert "pause" in notifier.of_kind(NotificationKind.ERROR)[0].message

    async def test_failed_resume_and_stop_keep_local_state(self, notifier, ticker):
        """Test resume and stop failures don't roll back either."""
        gateway = AsyncMock()
        gateway.start.return_value = StoreResult(ok=True)
        gateway.pause.return_value = StoreResult(ok=True)
        gateway.resume.return_value = StoreResult.failure(StoreUnavailable())
        gateway.stop.return_value = StoreResult.failure(StoreUnavailable())
        machine = TimerStateMachine(gateway, notifier=notifier, ticker=ticker)
        machine.start(PROJECT_ID)
        machine.pause()

        await machine.resume()
        assert machine.status == TimerStatus.RUNNING

        await machine.stop()
        assert machine.status == TimerStatus.IDLE
        assert len(notifier.of_kind(NotificationKind.ERROR)) == 2


@pytest.mark.asyncio
class TestMachineHydrate:
    """Tests for seeding local state from the store."""

    async def test_hydrate_running(self, machine, store, clock, ticker):
        """Test a running entry seeds elapsed time and starts ticking."""
        await store.start(PROJECT_ID, description="Hero")
        clock.advance(125)

        await machine.hydrate()

        assert machine.status == TimerStatus.RUNNING
        assert machine.elapsed_seconds == 125
        assert machine.description == "Hero"
        assert ticker.active

    async def test_hydrate_paused(self, machine, store, clock, ticker):
        """Test a paused entry seeds its frozen duration without ticking."""
        await store.start(PROJECT_ID)
        clock.advance(400)
        await store.pause()
        clock.advance(999)

        await machine.hydrate()

        assert machine.status == TimerStatus.PAUSED
        assert machine.elapsed_seconds == 400
        assert not ticker.active

    async def test_hydrate_idle(self, machine, ticker):
        """Test nothing active leaves the machine idle."""
        await machine.hydrate()

        assert machine.status == TimerStatus.IDLE
        assert not ticker.active

    async def test_hydrate_failure(self, notifier, ticker):
        """Test an unreachable store leaves the machine idle with an error."""
        gateway = AsyncMock()
        gateway.get_active.side_effect = StoreUnavailable("connection refused")
        machine = TimerStateMachine(gateway, notifier=notifier, ticker=ticker)

        await machine.hydrate()

        assert machine.status == TimerStatus.IDLE
        assert "connection refused" in notifier.of_kind(NotificationKind.ERROR)[0].message

    async def test_rejected_start_against_store(self, store, notifier, ticker):
        """Test rollback after a real ReferentialError from the store."""
        machine = TimerStateMachine(LocalTimerGateway(store), notifier=notifier, ticker=ticker)

        result = await machine.start("proj-archived")

        assert result.error == ReferentialError.kind
        assert machine.status == TimerStatus.IDLE
