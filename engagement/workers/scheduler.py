"""
Scheduler
Wall-clock cadences for recurring background tasks.

Task bodies are plain coroutines; the scheduler only decides when to call
them, so they can be invoked directly (tests, admin triggers) without
waiting for the timer.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, List, Optional

logger = logging.getLogger(__name__)


class Cadence(ABC):
    """When a recurring task becomes due."""

    @abstractmethod
    def next_run_after(self, moment: datetime) -> datetime:
        """First due time strictly after `moment`."""
        pass


class HourlyCadence(Cadence):
    """Every hour at a fixed minute."""

    def __init__(self, minute: int = 0):
        if not 0 <= minute <= 59:
            raise ValueError(f"minute must be 0-59, got {minute}")
        self.minute = minute

    def next_run_after(self, moment: datetime) -> datetime:
        candidate = moment.replace(minute=self.minute, second=0, microsecond=0)
        if candidate <= moment:
            candidate += timedelta(hours=1)
        return candidate

    def __repr__(self) -> str:
        return f"HourlyCadence(minute={self.minute})"


class DailyCadence(Cadence):
    """Every day at a fixed time of day."""

    def __init__(self, hour: int = 0, minute: int = 0):
        if not 0 <= hour <= 23:
            raise ValueError(f"hour must be 0-23, got {hour}")
        if not 0 <= minute <= 59:
            raise ValueError(f"minute must be 0-59, got {minute}")
        self.hour = hour
        self.minute = minute

    def next_run_after(self, moment: datetime) -> datetime:
        candidate = moment.replace(hour=self.hour, minute=self.minute, second=0, microsecond=0)
        if candidate <= moment:
            candidate += timedelta(days=1)
        return candidate

    def __repr__(self) -> str:
        return f"DailyCadence(hour={self.hour}, minute={self.minute})"


@dataclass
class ScheduledTask:
    """A coroutine body bound to a cadence."""
    name: str
    cadence: Cadence
    body: Callable[[], Awaitable[Any]]
    run_on_startup: bool = False

    next_run: Optional[datetime] = None
    last_run: Optional[datetime] = None
    runs: int = 0
    failures: int = 0
    last_error: Optional[str] = None

    async def run_once(self, now: datetime) -> Any:
        """Run the body now and schedule the next occurrence."""
        self.last_run = now
        self.next_run = self.cadence.next_run_after(now)
        self.runs += 1
        try:
            return await self.body()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failures += 1
            self.last_error = str(e)
            logger.error(f"Scheduled task '{self.name}' failed: {e}", exc_info=True)
            return None


class Scheduler:
    """
    Runs ScheduledTasks when they come due.

    The loop sleeps until the earliest due time, capped at
    MAX_SLEEP_SECONDS so that stop() and clock adjustments are noticed.
    """

    MAX_SLEEP_SECONDS = 30.0

    def __init__(
        self,
        clock: Callable[[], datetime],
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self._clock = clock
        self._sleep = sleep
        self.tasks: List[ScheduledTask] = []
        self.running = False

    def add(self, task: ScheduledTask) -> ScheduledTask:
        now = self._clock()
        task.next_run = now if task.run_on_startup else task.cadence.next_run_after(now)
        self.tasks.append(task)
        logger.info(f"Scheduled '{task.name}' ({task.cadence!r}), first run {task.next_run}")
        return task

    def get(self, name: str) -> ScheduledTask:
        for task in self.tasks:
            if task.name == name:
                return task
        raise KeyError(f"No scheduled task named '{name}'")

    async def run_pending(self) -> List[str]:
        """Run every task that is due now; returns the names run."""
        ran = []
        for task in self.tasks:
            now = self._clock()
            if task.next_run is not None and task.next_run <= now:
                logger.info(f"Running scheduled task '{task.name}'")
                await task.run_once(now)
                ran.append(task.name)
        return ran

    def seconds_until_next(self) -> float:
        pending = [t.next_run for t in self.tasks if t.next_run is not None]
        if not pending:
            return self.MAX_SLEEP_SECONDS
        delay = (min(pending) - self._clock()).total_seconds()
        return max(0.0, min(delay, self.MAX_SLEEP_SECONDS))

    async def run(self) -> None:
        """Loop until stop() is called."""
        self.running = True
        logger.info(f"Scheduler started with {len(self.tasks)} tasks")

        while self.running:
            try:
                await self.run_pending()
                if not self.running:
                    break
                await self._sleep(self.seconds_until_next())
            except asyncio.CancelledError:
                logger.info("Scheduler received cancellation signal")
                break

        self.running = False
        logger.info("Scheduler stopped")

    def stop(self) -> None:
        self.running = False
