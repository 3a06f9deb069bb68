"""Tests for the interval scheduler."""

import asyncio
from datetime import timedelta

import pytest

from recollect.core.scheduler import Scheduler


@pytest.fixture
def scheduler(clock):
    return Scheduler(clock=clock)


def test_schedule_task(scheduler, clock):
    """Interval tasks first run one interval from now."""
    scheduler.schedule_task(
        task_id="test",
        name="Test task",
        callback=lambda: None,
        interval=timedelta(minutes=5),
    )

    assert "test" in scheduler.tasks
    assert scheduler.tasks["test"].name == "Test task"
    assert scheduler.tasks["test"].next_run == clock() + timedelta(minutes=5)


def test_cancel_task(scheduler):
    scheduler.schedule_task(task_id="test", name="Test task", callback=lambda: None)
    assert scheduler.cancel_task("test")
    assert "test" not in scheduler.tasks
    assert not scheduler.cancel_task("test")


@pytest.mark.asyncio
async def test_run_pending_respects_clock(scheduler, clock):
    calls = []
    scheduler.schedule_task("tick", "Tick", lambda: calls.append(clock()), timedelta(minutes=10))

    assert await scheduler.run_pending() == []
    clock.advance(timedelta(minutes=10))
    assert await scheduler.run_pending() == ["tick"]
    assert await scheduler.run_pending() == []

    clock.advance(timedelta(minutes=10))
    await scheduler.run_pending()
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_async_callback_awaited(scheduler, clock):
    done = []

    async def job():
        done.append(True)

    scheduler.schedule_task("job", "Job", job, interval=timedelta(seconds=1))
    clock.advance(timedelta(seconds=1))
    await scheduler.run_pending()
    assert done == [True]


@pytest.mark.asyncio
async def test_one_shot_task_removed(scheduler):
    calls = []
    scheduler.schedule_task("once", "Once", lambda: calls.append(1))
    assert await scheduler.run_pending() == ["once"]
    assert "once" not in scheduler.tasks
    await scheduler.run_pending()
    assert calls == [1]


@pytest.mark.asyncio
async def test_failing_task_does_not_stop_others(scheduler, clock):
    calls = []

    def boom():
        raise RuntimeError("boom")

    scheduler.schedule_task("bad", "Bad", boom, interval=timedelta(minutes=1))
    scheduler.schedule_task("good", "Good", lambda: calls.append(1), interval=timedelta(minutes=1))
    clock.advance(timedelta(minutes=1))

    ran = await scheduler.run_pending()
    assert set(ran) == {"bad", "good"}
    assert calls == [1]
    assert scheduler.tasks["bad"].last_error == "boom"
    assert scheduler.tasks["bad"].next_run == clock() + timedelta(minutes=1)


@pytest.mark.asyncio
async def test_disabled_task_skipped(scheduler, clock):
    scheduler.schedule_task("t", "T", lambda: None, interval=timedelta(minutes=1))
    scheduler.tasks["t"].enabled = False
    clock.advance(timedelta(minutes=5))
    assert await scheduler.run_pending() == []


@pytest.mark.asyncio
async def test_start_stop():
    scheduler = Scheduler(tick=0.01)
    calls = []
    scheduler.schedule_task("once", "Once", lambda: calls.append(1))

    await scheduler.start()
    assert scheduler.running
    await asyncio.sleep(0.05)
    await scheduler.stop()

    assert not scheduler.running
    assert calls == [1]
