"""
Tests for delayed reminder delivery.
"""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from assistbot.services.scheduler import Reminder, Scheduler


@pytest.fixture
def deliver():
    return AsyncMock()


@pytest.fixture
def scheduler(deliver, clock):
    return Scheduler(deliver, clock=clock)


class TestScheduler:
    @pytest.mark.asyncio
    async def test_not_delivered_before_due(self, scheduler, deliver, clock):
        scheduler.schedule(Reminder(1, 1, "tea"), timedelta(minutes=5))
        clock.advance(minutes=4, seconds=59)
        assert await scheduler.run_due() == 0
        deliver.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delivered_once_due(self, scheduler, deliver, clock):
        reminder = Reminder(1, 1, "tea")
        scheduler.schedule(reminder, timedelta(minutes=5))
        clock.advance(minutes=5)
        assert await scheduler.run_due() == 1
        deliver.assert_awaited_once_with(reminder)
        assert scheduler.pending() == []
        assert await scheduler.run_due() == 0

    @pytest.mark.asyncio
    async def test_due_tasks_run_in_time_order(self, scheduler, deliver, clock):
        late = Reminder(1, 1, "late")
        early = Reminder(2, 2, "early")
        scheduler.schedule(late, timedelta(minutes=10))
        scheduler.schedule(early, timedelta(minutes=1))
        clock.advance(hours=1)
        await scheduler.run_due()
        assert [c.args[0] for c in deliver.await_args_list] == [early, late]

    @pytest.mark.asyncio
    async def test_delivery_failure_is_logged_not_raised(self, scheduler, deliver, clock):
        deliver.side_effect = [RuntimeError("blocked"), None]
        scheduler.schedule(Reminder(1, 1, "a"), timedelta(minutes=1))
        scheduler.schedule(Reminder(2, 2, "b"), timedelta(minutes=2))
        clock.advance(minutes=3)
        assert await scheduler.run_due() == 1
        assert deliver.await_count == 2

    @pytest.mark.asyncio
    async def test_run_stops(self, deliver, clock):
        scheduler = Scheduler(deliver, clock=clock, tick=0.01)
        scheduler.schedule(Reminder(1, 1, "now"), timedelta(0))
        scheduler.stop()
        await scheduler.run()
        deliver.assert_not_awaited()
