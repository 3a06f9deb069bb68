"""Tests for background tier maintenance."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from recollect.core.config import Settings
from recollect.core.scheduler import Scheduler
from recollect.memory.base import MemoryEntry, MemoryTier
from recollect.memory.maintenance import (
    DEEP_SYNC_SOURCE,
    MERGED_PREFIX,
    SUMMARY_SYNC_SOURCE,
    MemoryMaintenance,
    word_similarity,
)
from recollect.memory.persistence import InMemoryKeyValueStore
from recollect.memory.session import SessionLifecycleController


@pytest.fixture
async def sessions(clock):
    controller = SessionLifecycleController(
        Settings(_env_file=None), InMemoryKeyValueStore(), clock=clock
    )
    await controller.switch("chat-a")
    return controller


def add(sessions, clock, entry_id, importance, age=timedelta(0)):
    sessions.state.store.insert(
        MemoryEntry(
            id=entry_id,
            tier=MemoryTier.SENSORY,
            content=f"memory {entry_id}",
            timestamp=clock() - age,
            importance=importance,
        )
    )


@pytest.mark.asyncio
async def test_expire_sensory(sessions, clock):
    add(sessions, clock, "old", 0.1, age=timedelta(minutes=61))
    add(sessions, clock, "fresh", 0.1, age=timedelta(minutes=59))
    add(sessions, clock, "kept", 0.9, age=timedelta(hours=5))

    maintenance = MemoryMaintenance(sessions, clock=clock)
    assert await maintenance.expire_sensory() == 1

    store = sessions.state.store
    assert store.find("old") is None
    assert store.find("fresh") is not None
    assert store.find("kept") is not None
    assert sessions.stats.expired == 1


@pytest.mark.asyncio
async def test_demote_short_term(sessions, clock):
    add(sessions, clock, "weak", 0.6)
    add(sessions, clock, "strong", 0.6)
    sessions.state.store.find("weak").importance = 0.25

    maintenance = MemoryMaintenance(sessions, clock=clock)
    assert await maintenance.demote_short_term() == 1

    weak = sessions.state.store.find("weak")
    assert weak.tier == MemoryTier.ARCHIVE
    assert weak.archived and weak.archived_at == clock()
    assert sessions.state.store.find("strong").tier == MemoryTier.SHORT_TERM
    assert sessions.stats.demotions == 1


@pytest.mark.asyncio
async def test_cleanup_archive(sessions, clock):
    add(sessions, clock, "old", 0.6)
    add(sessions, clock, "recent", 0.6)
    store = sessions.state.store
    store.move_to_archive("old")
    clock.advance(timedelta(days=31))
    store.move_to_archive("recent")

    maintenance = MemoryMaintenance(sessions, clock=clock)
    assert await maintenance.cleanup_archive() == 1
    assert store.find("old") is None
    assert store.find("recent") is not None


@pytest.mark.asyncio
async def test_resync_inserts_from_sources(sessions, clock):
    summary = MagicMock(spec=["get_recent"])
    summary.get_recent = AsyncMock(
        return_value=[{"content": f"summary {i}", "importance": 0.9} for i in range(3)]
    )
    deep = MagicMock(spec=["get_important"])
    deep.get_important.return_value = [{"content": "deep one"}]

    maintenance = MemoryMaintenance(sessions, summary_source=summary, deep_source=deep, clock=clock)
    assert await maintenance.resync_sources() == 4

    summary.get_recent.assert_awaited_once_with(10)
    deep.get_important.assert_called_once_with(5)

    store = sessions.state.store
    assert store.size_of(MemoryTier.LONG_TERM) == 3
    deep_entry = store.get(MemoryTier.SHORT_TERM)[0]
    assert deep_entry.content == "deep one"
    assert deep_entry.importance == 0.5
    assert deep_entry.source == DEEP_SYNC_SOURCE
    assert {e.source for e in store.get(MemoryTier.LONG_TERM)} == {SUMMARY_SYNC_SOURCE}


@pytest.mark.asyncio
async def test_resync_tolerates_missing_and_failing_sources(sessions, clock):
    broken = MagicMock(spec=["get_recent"])
    broken.get_recent = AsyncMock(side_effect=RuntimeError("offline"))

    maintenance = MemoryMaintenance(sessions, summary_source=broken, deep_source=None, clock=clock)
    assert await maintenance.resync_sources() == 0
    assert sessions.state.store.is_empty()


@pytest.mark.asyncio
async def test_jobs_skip_when_session_locked(sessions, clock):
    add(sessions, clock, "old", 0.1, age=timedelta(hours=2))
    maintenance = MemoryMaintenance(sessions, clock=clock)

    async with sessions.state.lock:
        assert await maintenance.expire_sensory() == 0
        assert await maintenance.demote_short_term() == 0
        assert await maintenance.cleanup_archive() == 0

    assert sessions.state.store.find("old") is not None


@pytest.mark.asyncio
async def test_jobs_without_session(clock):
    controller = SessionLifecycleController(Settings(_env_file=None), clock=clock)
    maintenance = MemoryMaintenance(controller, clock=clock)
    assert await maintenance.expire_sensory() == 0
    assert await maintenance.resync_sources() == 0


@pytest.mark.asyncio
async def test_registered_jobs_run_on_schedule(sessions, clock):
    scheduler = Scheduler(clock=clock)
    maintenance = MemoryMaintenance(sessions, clock=clock)
    maintenance.register(scheduler)
    assert set(scheduler.tasks) == {
        "sensory_expiry",
        "demotion",
        "resync",
        "archive_cleanup",
        "outdated_cleanup",
        "compress_redundant",
    }

    add(sessions, clock, "stale", 0.1)
    clock.advance(timedelta(minutes=29))
    assert await scheduler.run_pending() == ["resync"]

    clock.advance(timedelta(minutes=2))
    ran = await scheduler.run_pending()
    assert "sensory_expiry" in ran
    # Only 31 minutes old, not yet past the one-hour max age
    assert sessions.state.store.find("stale") is not None

    clock.advance(timedelta(minutes=30))
    ran = await scheduler.run_pending()
    assert "sensory_expiry" in ran
    assert sessions.state.store.find("stale") is None


def place(sessions, clock, entry_id, content, importance, keywords=None, age=timedelta(0)):
    entry = MemoryEntry(
        id=entry_id,
        tier=MemoryTier.SENSORY,
        content=content,
        timestamp=clock() - age,
        importance=importance,
        keywords=keywords,
    )
    sessions.state.store.insert(entry)
    return entry


@pytest.mark.asyncio
async def test_cleanup_outdated(sessions, clock):
    add(sessions, clock, "stale", 0.1, age=timedelta(days=91))
    add(sessions, clock, "stale-archived", 0.6, age=timedelta(days=91))
    add(sessions, clock, "important", 0.9, age=timedelta(days=120))
    add(sessions, clock, "recent", 0.1, age=timedelta(days=89))
    store = sessions.state.store
    store.move_to_archive("stale-archived")
    store.find("stale-archived").importance = 0.2

    maintenance = MemoryMaintenance(sessions, clock=clock)
    assert await maintenance.cleanup_outdated() == 2

    assert store.find("stale") is None
    assert store.find("stale-archived") is None
    assert store.find("important") is not None
    assert store.find("recent") is not None
    assert sessions.stats.expired == 2


def test_word_similarity():
    assert word_similarity("The Red door", "the red DOOR") == 1.0
    assert word_similarity("a b c d", "a b") == 0.5
    assert word_similarity("", "") == 0.0


@pytest.mark.asyncio
async def test_compress_redundant_merges_into_more_important(sessions, clock):
    words = "alice hid the silver key under the old lighthouse stairs at night"
    place(sessions, clock, "weak", words, 0.85, keywords=["key"])
    place(sessions, clock, "strong", words + " again", 0.95, keywords=["alice"])
    place(sessions, clock, "other", "bob sailed north with the fishing fleet", 0.9)

    maintenance = MemoryMaintenance(sessions, clock=clock)
    assert await maintenance.compress_redundant() == 1

    store = sessions.state.store
    assert store.find("weak") is None
    strong = store.find("strong")
    assert strong.content == f"{words} again\n{MERGED_PREFIX} {words}"
    assert strong.keywords == ["alice", "key"]
    assert strong.metadata["merged"] is True
    assert strong.metadata["merged_count"] == 1
    assert store.find("other") is not None
    assert sessions.stats.compressed == 1


@pytest.mark.asyncio
async def test_compress_redundant_stays_within_tier(sessions, clock):
    words = "the council voted to close the northern gate before winter came"
    place(sessions, clock, "long", words, 0.9)
    place(sessions, clock, "archived", words, 0.6)
    place(sessions, clock, "short", words, 0.6)
    sessions.state.store.move_to_archive("archived")

    maintenance = MemoryMaintenance(sessions, clock=clock)
    assert await maintenance.compress_redundant() == 0
    assert sessions.state.store.total() == 3


@pytest.mark.asyncio
async def test_compress_redundant_below_threshold(sessions, clock):
    place(sessions, clock, "a", "alice found the key in the garden", 0.9)
    place(sessions, clock, "b", "alice lost the key in the river", 0.9)

    maintenance = MemoryMaintenance(sessions, clock=clock)
    assert await maintenance.compress_redundant() == 0


@pytest.mark.asyncio
async def test_new_jobs_skip_when_session_locked(sessions, clock):
    words = "the same sentence repeated twice over in the long term tier"
    place(sessions, clock, "a", words, 0.9)
    place(sessions, clock, "b", words, 0.9)
    add(sessions, clock, "old", 0.1, age=timedelta(days=100))
    maintenance = MemoryMaintenance(sessions, clock=clock)

    async with sessions.state.lock:
        assert await maintenance.compress_redundant() == 0
        assert await maintenance.cleanup_outdated() == 0

    assert sessions.state.store.total() == 3
