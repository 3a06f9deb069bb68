"""Interval scheduler for background maintenance tasks."""

import asyncio
import contextlib
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from recollect.core.clock import Clock, system_clock
from recollect.core.logging import get_logger

logger = get_logger("core.scheduler")


@dataclass
class ScheduledTask:
    """A task scheduled for background execution."""

    id: str
    name: str
    callback: Callable
    interval: timedelta | None = None  # None = one-shot
    next_run: datetime | None = None
    last_run: datetime | None = None
    last_error: str | None = None
    enabled: bool = True
    running: bool = False


class Scheduler:
    """Runs due tasks on the event loop.

    Time comes from the injected clock, so ``run_pending`` can be driven
    deterministically in tests without starting the loop.
    """

    def __init__(self, clock: Clock | None = None, tick: float = 1.0):
        self._clock = clock or system_clock
        self._tick = tick
        self._tasks: dict[str, ScheduledTask] = {}
        self._running = False
        self._loop_task: asyncio.Task | None = None

    @property
    def tasks(self) -> dict[str, ScheduledTask]:
        return self._tasks

    def schedule_task(
        self,
        task_id: str,
        name: str,
        callback: Callable,
        interval: timedelta | None = None,
        delay: timedelta | None = None,
    ) -> None:
        """Schedule a task. Interval tasks first run one interval from now."""
        next_run = self._clock()
        if delay is not None:
            next_run += delay
        elif interval is not None:
            next_run += interval

        self._tasks[task_id] = ScheduledTask(
            id=task_id,
            name=name,
            callback=callback,
            interval=interval,
            next_run=next_run,
        )
        logger.info(f"Scheduled task: {name} (interval: {interval})")

    def cancel_task(self, task_id: str) -> bool:
        """Cancel a scheduled task."""
        if task_id in self._tasks:
            del self._tasks[task_id]
            return True
        return False

    async def run_pending(self) -> list[str]:
        """Run every due task once. Returns ids of tasks that ran."""
        now = self._clock()
        pending = [
            t for t in self._tasks.values()
            if t.enabled and not t.running and t.next_run is not None and t.next_run <= now
        ]

        ran = []
        for task in pending:
            task.running = True
            try:
                result = task.callback()
                if asyncio.iscoroutine(result):
                    await result
                task.last_error = None
            except Exception as e:
                task.last_error = str(e)
                logger.error(f"Task {task.name} failed: {e}")
            finally:
                task.running = False
                task.last_run = self._clock()
                ran.append(task.id)

                if task.interval:
                    task.next_run = task.last_run + task.interval
                else:
                    self._tasks.pop(task.id, None)

        return ran

    async def start(self) -> None:
        """Start the scheduler loop."""
        if self._running:
            return
        self._running = True
        self._loop_task = asyncio.create_task(self._loop())
        logger.info("Scheduler started")

    async def stop(self) -> None:
        """Stop the scheduler loop."""
        self._running = False
        if self._loop_task:
            self._loop_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._loop_task
            self._loop_task = None
        logger.info("Scheduler stopped")

    @property
    def running(self) -> bool:
        return self._running

    async def _loop(self) -> None:
        while self._running:
            await self.run_pending()
            await asyncio.sleep(self._tick)
