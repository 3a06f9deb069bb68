"""Four-tier in-memory store scoped to one conversation session."""

from collections.abc import Iterable

from recollect.core.clock import Clock, system_clock
from recollect.core.errors import MalformedEntry
from recollect.core.logging import get_logger
from recollect.memory.base import MemoryEntry, MemoryStats, MemoryTier

logger = get_logger("memory.tiers")

DEFAULT_CAPACITIES: dict[MemoryTier, int] = {
    MemoryTier.SENSORY: 100,
    MemoryTier.SHORT_TERM: 500,
    MemoryTier.LONG_TERM: 5000,
    MemoryTier.ARCHIVE: 50000,
}


class TierStore:
    """Sensory, short-term, long-term and archive mappings keyed by entry id.

    An entry lives in exactly one mapping. Placement on insert is decided by
    importance; only ``move_to_archive`` puts entries into the archive.
    """

    def __init__(
        self,
        long_term_threshold: float = 0.8,
        short_term_threshold: float = 0.5,
        capacities: dict[MemoryTier, int] | None = None,
        clock: Clock | None = None,
    ):
        self.long_term_threshold = long_term_threshold
        self.short_term_threshold = short_term_threshold
        self.capacities = {**DEFAULT_CAPACITIES, **(capacities or {})}
        self._clock = clock or system_clock
        self._tiers: dict[MemoryTier, dict[str, MemoryEntry]] = {
            tier: {} for tier in MemoryTier
        }
        self.evicted = 0

    def tier_for(self, importance: float) -> MemoryTier:
        """Placement rule for a new entry."""
        if importance >= self.long_term_threshold:
            return MemoryTier.LONG_TERM
        if importance >= self.short_term_threshold:
            return MemoryTier.SHORT_TERM
        return MemoryTier.SENSORY

    def insert(self, entry: MemoryEntry) -> MemoryTier:
        """Place entry in the tier matching its importance."""
        if not isinstance(entry.content, str) or not entry.content.strip():
            raise MalformedEntry(
                "Entry has no content", {"id": getattr(entry, "id", None)}
            )

        self.remove(entry.id)
        tier = self.tier_for(entry.importance)
        entry.tier = tier
        self._put(tier, entry)
        return tier

    def load(self, tier: MemoryTier, entries: Iterable[MemoryEntry]) -> int:
        """Restore entries into a tier as-is, bypassing placement."""
        count = 0
        for entry in entries:
            self.remove(entry.id)
            entry.tier = tier
            self._tiers[tier][entry.id] = entry
            count += 1
        return count

    def move_to_archive(self, entry_id: str) -> bool:
        """Move entry from its current tier into the archive."""
        entry = self.remove(entry_id)
        if entry is None:
            return False

        entry.tier = MemoryTier.ARCHIVE
        entry.archived = True
        entry.archived_at = self._clock()
        self._put(MemoryTier.ARCHIVE, entry)
        return True

    def remove(self, entry_id: str) -> MemoryEntry | None:
        """Remove entry from whichever tier holds it."""
        for mapping in self._tiers.values():
            if entry_id in mapping:
                return mapping.pop(entry_id)
        return None

    def find(self, entry_id: str) -> MemoryEntry | None:
        for mapping in self._tiers.values():
            if entry_id in mapping:
                return mapping[entry_id]
        return None

    def get(self, tier: MemoryTier) -> list[MemoryEntry]:
        return list(self._tiers[tier].values())

    def snapshot(self, tier: MemoryTier) -> list[MemoryEntry]:
        """Detached copies of a tier's entries, safe to use outside the lock."""
        return [MemoryEntry.from_dict(e.to_dict()) for e in self._tiers[tier].values()]

    def all_entries(self) -> list[MemoryEntry]:
        return [entry for mapping in self._tiers.values() for entry in mapping.values()]

    def size_of(self, tier: MemoryTier) -> int:
        return len(self._tiers[tier])

    def total(self) -> int:
        return sum(len(mapping) for mapping in self._tiers.values())

    def is_empty(self) -> bool:
        return self.total() == 0

    def clear_all(self) -> None:
        for mapping in self._tiers.values():
            mapping.clear()

    def stats(self) -> MemoryStats:
        return MemoryStats(
            sensory=self.size_of(MemoryTier.SENSORY),
            short_term=self.size_of(MemoryTier.SHORT_TERM),
            long_term=self.size_of(MemoryTier.LONG_TERM),
            archive=self.size_of(MemoryTier.ARCHIVE),
            evicted=self.evicted,
        )

    def _put(self, tier: MemoryTier, entry: MemoryEntry) -> None:
        mapping = self._tiers[tier]
        if len(mapping) >= self.capacities[tier]:
            self._evict(tier)
        mapping[entry.id] = entry

    def _evict(self, tier: MemoryTier) -> None:
        """Drop the least important entry, oldest first on ties."""
        mapping = self._tiers[tier]
        if not mapping:
            return
        victim = min(mapping.values(), key=lambda e: (e.importance, e.timestamp))
        del mapping[victim.id]
        self.evicted += 1
        logger.debug(f"Evicted {victim.id} from {tier.value} (capacity {self.capacities[tier]})")
