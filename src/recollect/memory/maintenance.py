"""
Background tier maintenance.

Independent periodic jobs against the active session's store:
sensory expiry, short-term demotion, resync from external sources, archive
and outdated-entry cleanup, and merging of near-duplicate entries. A job
whose run finds the session lock held is skipped until its next interval.
"""

from datetime import timedelta
from typing import Any

from recollect.core.clock import Clock, system_clock
from recollect.core.config import Settings
from recollect.core.errors import SourceUnavailable
from recollect.core.logging import get_logger
from recollect.core.scheduler import Scheduler
from recollect.memory.base import MemoryEntry, MemoryTier
from recollect.memory.session import SessionLifecycleController, SessionState
from recollect.memory.sources import fetch_candidates

logger = get_logger("memory.maintenance")

SUMMARY_SYNC_SOURCE = "summary_sync"
DEEP_SYNC_SOURCE = "deep_sync"
MERGED_PREFIX = "[merged]"


def word_similarity(a: str, b: str) -> float:
    """Jaccard overlap of the lowercased word sets."""
    words_a = set(a.lower().split())
    words_b = set(b.lower().split())
    total = len(words_a | words_b)
    return len(words_a & words_b) / total if total > 0 else 0.0


class MemoryMaintenance:
    """Promotion, demotion and cleanup jobs for the tier store."""

    def __init__(
        self,
        sessions: SessionLifecycleController,
        settings: Settings | None = None,
        summary_source: Any = None,
        deep_source: Any = None,
        clock: Clock | None = None,
    ):
        self.sessions = sessions
        self.settings = settings or sessions.settings
        self.summary_source = summary_source
        self.deep_source = deep_source
        self._clock = clock or system_clock

    def register(self, scheduler: Scheduler) -> None:
        """Schedule every job at its configured interval."""
        s = self.settings
        scheduler.schedule_task(
            "sensory_expiry", "Sensory expiry", self.expire_sensory,
            interval=timedelta(minutes=s.sensory_expiry_interval),
        )
        scheduler.schedule_task(
            "demotion", "Short-term demotion", self.demote_short_term,
            interval=timedelta(minutes=s.demotion_interval),
        )
        scheduler.schedule_task(
            "resync", "External resync", self.resync_sources,
            interval=timedelta(minutes=s.resync_interval),
        )
        scheduler.schedule_task(
            "archive_cleanup", "Archive cleanup", self.cleanup_archive,
            interval=timedelta(minutes=s.archive_cleanup_interval),
        )
        scheduler.schedule_task(
            "outdated_cleanup", "Outdated cleanup", self.cleanup_outdated,
            interval=timedelta(minutes=s.outdated_cleanup_interval),
        )
        scheduler.schedule_task(
            "compress_redundant", "Redundancy compression", self.compress_redundant,
            interval=timedelta(minutes=s.compression_interval),
        )

    def _idle_state(self, job: str) -> SessionState | None:
        state = self.sessions.state
        if state is None:
            return None
        if state.lock.locked():
            logger.debug(f"{job}: session busy, skipping this run")
            return None
        return state

    async def expire_sensory(self) -> int:
        """Delete sensory entries older than the max age."""
        state = self._idle_state("Sensory expiry")
        if state is None:
            return 0

        async with state.lock:
            cutoff = self._clock() - timedelta(minutes=self.settings.sensory_max_age)
            stale = [e.id for e in state.store.get(MemoryTier.SENSORY) if e.timestamp < cutoff]
            for entry_id in stale:
                state.store.remove(entry_id)
            state.expired += len(stale)

        if stale:
            logger.info(f"Expired {len(stale)} sensory entries")
        return len(stale)

    async def demote_short_term(self) -> int:
        """Archive short-term entries that fell below the demotion threshold."""
        state = self._idle_state("Demotion")
        if state is None:
            return 0

        async with state.lock:
            weak = [
                e.id for e in state.store.get(MemoryTier.SHORT_TERM)
                if e.importance < self.settings.demotion_threshold
            ]
            moved = sum(1 for entry_id in weak if state.store.move_to_archive(entry_id))
            state.demotions += moved

        if moved:
            logger.info(f"Demoted {moved} short-term entries to archive")
        return moved

    async def resync_sources(self) -> int:
        """Pull recent items from the summary and long-form sources."""
        if self.sessions.state is None:
            return 0

        entries: list[MemoryEntry] = []
        if self.summary_source is not None:
            entries += await self._pull(
                self.summary_source, SUMMARY_SYNC_SOURCE, "get_recent",
                self.settings.resync_summary_limit,
            )
        if self.deep_source is not None:
            method = "get_important" if hasattr(self.deep_source, "get_important") else "get_recent"
            entries += await self._pull(
                self.deep_source, DEEP_SYNC_SOURCE, method, self.settings.resync_deep_limit,
            )
        if not entries:
            return 0

        # Sources may be slow; the session could have switched or locked meanwhile
        state = self._idle_state("Resync")
        if state is None:
            return 0

        async with state.lock:
            for entry in entries:
                state.store.insert(entry)

        logger.info(f"Resynced {len(entries)} entries from external sources")
        return len(entries)

    async def _pull(self, source: Any, name: str, method: str, limit: int) -> list[MemoryEntry]:
        if limit <= 0:
            return []
        try:
            entries = await fetch_candidates(source, name, method, limit, clock=self._clock)
        except SourceUnavailable as e:
            logger.warning(f"Resync skipped source: {e}")
            return []
        return entries[:limit]

    async def cleanup_archive(self) -> int:
        """Delete archive entries past the retention period."""
        state = self._idle_state("Archive cleanup")
        if state is None:
            return 0

        async with state.lock:
            cutoff = self._clock() - timedelta(days=self.settings.archive_retention_days)
            old = [
                e.id for e in state.store.get(MemoryTier.ARCHIVE)
                if (e.archived_at or e.timestamp) < cutoff
            ]
            for entry_id in old:
                state.store.remove(entry_id)

        if old:
            logger.info(f"Removed {len(old)} archived entries past retention")
        return len(old)

    async def cleanup_outdated(self) -> int:
        """Delete old, low-importance entries from every tier."""
        state = self._idle_state("Outdated cleanup")
        if state is None:
            return 0

        async with state.lock:
            cutoff = self._clock() - timedelta(days=self.settings.outdated_max_age_days)
            threshold = self.settings.outdated_importance_threshold
            old = [
                e.id for e in state.store.all_entries()
                if e.timestamp < cutoff and e.importance < threshold
            ]
            for entry_id in old:
                state.store.remove(entry_id)
            state.expired += len(old)

        if old:
            logger.info(f"Removed {len(old)} outdated low-importance entries")
        return len(old)

    async def compress_redundant(self) -> int:
        """Fold near-duplicate long-term and archive entries into one.

        Within each tier, a pair whose word overlap exceeds the similarity
        threshold is merged into the more important entry and the other is
        deleted.
        """
        state = self._idle_state("Compression")
        if state is None:
            return 0

        merged = 0
        async with state.lock:
            for tier in (MemoryTier.LONG_TERM, MemoryTier.ARCHIVE):
                merged += self._compress_tier(state, tier)
            state.compressed += merged

        if merged:
            logger.info(f"Compressed {merged} redundant entries")
        return merged

    def _compress_tier(self, state: SessionState, tier: MemoryTier) -> int:
        entries = state.store.get(tier)
        removed: set[str] = set()
        threshold = self.settings.compression_similarity

        for i, first in enumerate(entries):
            if first.id in removed:
                continue
            for second in entries[i + 1 :]:
                if first.id in removed:
                    break
                if second.id in removed:
                    continue
                if word_similarity(first.content, second.content) <= threshold:
                    continue

                primary, secondary = (
                    (first, second) if first.importance >= second.importance else (second, first)
                )
                self._merge(primary, secondary)
                state.store.remove(secondary.id)
                removed.add(secondary.id)

        return len(removed)

    def _merge(self, primary: MemoryEntry, secondary: MemoryEntry) -> None:
        primary.content = f"{primary.content}\n{MERGED_PREFIX} {secondary.content}"
        if secondary.keywords:
            keywords = list(primary.keywords or [])
            keywords += [k for k in secondary.keywords if k not in keywords]
            primary.keywords = keywords
        primary.metadata["merged"] = True
        primary.metadata["merged_count"] = primary.metadata.get("merged_count", 0) + 1
        primary.metadata["last_merged_at"] = self._clock().isoformat()
