"""Delayed side effects (reminders) that run outside message dispatch."""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

MAX_REMINDER_MINUTES = 1440


@dataclass(frozen=True)
class Reminder:
    user_id: int
    chat_id: int
    text: str


@dataclass(frozen=True, order=True)
class ScheduledTask:
    due_at: datetime
    seq: int = field(compare=True)
    payload: Reminder = field(compare=False)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Scheduler:
    def __init__(
        self,
        deliver: Callable[[Reminder], Awaitable[None]],
        clock: Callable[[], datetime] = _utcnow,
        tick: float = 1.0,
    ) -> None:
        self._deliver = deliver
        self._clock = clock
        self._tick = tick
        self._queue: list[ScheduledTask] = []
        self._counter = itertools.count()
        self._stop = asyncio.Event()

    def schedule(self, payload: Reminder, delay: timedelta) -> ScheduledTask:
        task = ScheduledTask(self._clock() + delay, next(self._counter), payload)
        heapq.heappush(self._queue, task)
        logger.debug("Scheduled reminder for user %s at %s", payload.user_id, task.due_at)
        return task

    def pending(self) -> list[ScheduledTask]:
        return sorted(self._queue)

    async def run_due(self) -> int:
        """Deliver every task due at the current clock time. Returns the count delivered."""
        now = self._clock()
        due: list[ScheduledTask] = []
        while self._queue and self._queue[0].due_at <= now:
            due.append(heapq.heappop(self._queue))

        delivered = 0
        for task in due:
            try:
                await self._deliver(task.payload)
                delivered += 1
            except Exception:
                logger.exception("Failed to deliver reminder to user %s", task.payload.user_id)
        return delivered

    async def run(self) -> None:
        logger.info("Scheduler started")
        while not self._stop.is_set():
            await self.run_due()
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._tick)
            except asyncio.TimeoutError:
                continue
        logger.info("Scheduler stopped with %d pending tasks", len(self._queue))

    def stop(self) -> None:
        self._stop.set()
