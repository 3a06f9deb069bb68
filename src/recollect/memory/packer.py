"""Greedy packing of ranked candidates into a fixed character budget."""

from recollect.core.logging import get_logger
from recollect.memory.base import MemoryEntry, PackedEntry

logger = get_logger("memory.packer")

ELLIPSIS = "..."
MIN_FRAGMENT_CHARS = 100


def pack(
    candidates: list[MemoryEntry],
    max_budget: int,
    min_fragment: int = MIN_FRAGMENT_CHARS,
) -> list[PackedEntry]:
    """Select candidates in order until the budget is spent.

    Candidates must already be ranked. An entry that does not fit whole is
    truncated to exactly the remaining budget if more than ``min_fragment``
    characters remain; packing stops after it either way. Total packed
    content length never exceeds ``max_budget``.
    """
    if max_budget < 0:
        raise ValueError(f"max_budget must be >= 0, got {max_budget}")

    packed: list[PackedEntry] = []
    used = 0

    for entry in candidates:
        if used >= max_budget:
            break

        size = len(entry.content)
        if used + size <= max_budget:
            packed.append(PackedEntry.from_entry(entry))
            used += size
            continue

        remaining = max_budget - used
        if remaining > max(min_fragment, len(ELLIPSIS)):
            content = entry.content[: remaining - len(ELLIPSIS)] + ELLIPSIS
            packed.append(PackedEntry.from_entry(entry, content=content, truncated=True))
        break

    return packed


def packed_size(packed: list[PackedEntry]) -> int:
    return sum(len(p.content) for p in packed)


class BudgetPacker:
    """``pack`` bound to a configured budget."""

    def __init__(self, max_budget: int = 4000, min_fragment: int = MIN_FRAGMENT_CHARS):
        self.max_budget = max_budget
        self.min_fragment = min_fragment

    def pack(self, candidates: list[MemoryEntry]) -> list[PackedEntry]:
        packed = pack(candidates, self.max_budget, self.min_fragment)
        truncated = sum(1 for p in packed if p.truncated)
        logger.debug(
            f"Packed {len(packed)}/{len(candidates)} entries, "
            f"{packed_size(packed)}/{self.max_budget} chars, {truncated} truncated"
        )
        return packed
