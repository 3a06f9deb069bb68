"""Candidate deduplication and ranking."""

from recollect.memory.base import MemoryEntry

DEDUP_PREFIX_CHARS = 100


def dedup_key(entry: MemoryEntry) -> tuple[str, str]:
    return (entry.content[:DEDUP_PREFIX_CHARS], entry.tag)


def dedupe(candidates: list[MemoryEntry]) -> list[MemoryEntry]:
    """Drop candidates whose content prefix and tag repeat an earlier one.

    First occurrence wins and first-seen order is kept.
    """
    seen: set[tuple[str, str]] = set()
    unique = []
    for entry in candidates:
        key = dedup_key(entry)
        if key in seen:
            continue
        seen.add(key)
        unique.append(entry)
    return unique


def rank(candidates: list[MemoryEntry]) -> list[MemoryEntry]:
    """Sort by importance, then recency, both descending. Stable."""
    return sorted(candidates, key=lambda e: (e.importance, e.timestamp), reverse=True)
