"""
Per-turn memory injection.

Before each generation the coordinator gathers candidates from the active
session's tiers and the external sources, dedupes and ranks them, packs
them into the character budget, formats the payload and hands it to the
host. Nothing raised along the way escapes ``inject()``.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from recollect.core.clock import Clock, system_clock
from recollect.core.config import Settings
from recollect.core.errors import SourceUnavailable
from recollect.core.events import Event, EventBus, EventType
from recollect.core.logging import get_logger
from recollect.injection.targets import deliver
from recollect.memory.base import MemoryEntry, MemoryTier, PackedEntry
from recollect.memory.dedup import dedupe, rank
from recollect.memory.formatter import INDEXED_SOURCE, Formatter
from recollect.memory.ingest import is_raw_message
from recollect.memory.packer import BudgetPacker, packed_size
from recollect.memory.session import SessionLifecycleController
from recollect.memory.sources import fetch_candidates

logger = get_logger("injection.coordinator")

INJECTED_TIERS = (MemoryTier.SENSORY, MemoryTier.SHORT_TERM, MemoryTier.LONG_TERM)

SUMMARY_LIMIT = 10
DEEP_LIMIT = 10
VECTOR_LIMIT = 5
INDEX_LIMIT = 15


class InjectionState(Enum):
    IDLE = "idle"
    PREPARING = "preparing"
    INJECTING = "injecting"


@dataclass
class InjectionResult:
    success: bool
    size: int = 0
    method: str | None = None
    error: str | None = None


@dataclass
class InjectionStats:
    attempts: int = 0
    successes: int = 0
    failures: int = 0
    total_injected_size: int = 0
    last_injection_at: datetime | None = None

    @property
    def success_rate(self) -> float:
        return self.successes / self.attempts if self.attempts else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempts": self.attempts,
            "successes": self.successes,
            "failures": self.failures,
            "total_injected_size": self.total_injected_size,
            "success_rate": round(self.success_rate, 3),
            "last_injection_at": (
                self.last_injection_at.isoformat() if self.last_injection_at else None
            ),
        }


class InjectionCoordinator:
    """Runs the gather/pack/format/deliver pipeline once per request."""

    def __init__(
        self,
        sessions: SessionLifecycleController,
        target: Any = None,
        settings: Settings | None = None,
        summary_source: Any = None,
        deep_source: Any = None,
        vector_source: Any = None,
        classifier_source: Any = None,
        formatter: Formatter | None = None,
        bus: EventBus | None = None,
        clock: Clock | None = None,
    ):
        self.sessions = sessions
        self.target = target
        self.settings = settings or sessions.settings
        self.summary_source = summary_source
        self.deep_source = deep_source
        self.vector_source = vector_source
        self.classifier_source = classifier_source
        self.formatter = formatter or Formatter(
            max_items=self.settings.max_items, max_keywords=self.settings.max_keywords
        )
        self.packer = BudgetPacker(self.settings.max_budget, self.settings.min_fragment)
        self.bus = bus
        self._clock = clock or system_clock
        self.state = InjectionState.IDLE
        self.stats = InjectionStats()

    async def inject(self, query: str | None = None) -> InjectionResult:
        """Build and deliver this turn's payload.

        A request arriving while a previous one is still in flight is dropped.
        """
        if not self.settings.enabled:
            return InjectionResult(success=False, error="disabled")
        if self.state is not InjectionState.IDLE:
            logger.debug(f"Injection already {self.state.value}, dropping request")
            return InjectionResult(success=False, error="busy")

        self.stats.attempts += 1
        self.state = InjectionState.PREPARING
        try:
            text = await self.prepare(query)
            if not text:
                logger.debug("No memories to inject this turn")
                self.stats.successes += 1
                return InjectionResult(success=True)

            self.state = InjectionState.INJECTING
            method = await deliver(
                self.target,
                self.settings.injection_identifier,
                text,
                self.settings.injection_position,
                self.settings.injection_depth,
            )
        except Exception as e:
            self.stats.failures += 1
            logger.error(f"Memory injection failed: {e}")
            return InjectionResult(success=False, error=str(e))
        finally:
            self.state = InjectionState.IDLE

        self.stats.successes += 1
        self.stats.total_injected_size += len(text)
        self.stats.last_injection_at = self._clock()
        logger.info(f"Injected {len(text)} chars via {method}")

        if self.bus:
            await self.bus.publish(
                Event(
                    type=EventType.MEMORY_INJECTED,
                    session_id=self.sessions.session_id,
                    data={"size": len(text), "method": method},
                    timestamp=self._clock(),
                )
            )
        return InjectionResult(success=True, size=len(text), method=method)

    async def prepare(self, query: str | None = None) -> str:
        """Gather, select and format. Returns an empty string when nothing qualifies."""
        packed = await self.select(query)
        if not packed:
            return ""
        return self.formatter.format(packed)

    async def select(self, query: str | None = None) -> list[PackedEntry]:
        candidates = await self.gather(query)
        ranked = rank(dedupe(candidates))
        eligible = [c for c in ranked if c.importance >= self.settings.min_importance]
        packed = self.packer.pack(eligible)
        logger.debug(
            f"Selected {len(packed)} of {len(candidates)} candidates "
            f"({len(eligible)} eligible, {packed_size(packed)} chars)"
        )
        return packed

    async def gather(self, query: str | None = None) -> list[MemoryEntry]:
        """Collect candidates from the tier store and every external source."""
        candidates = await self._gather_tiers()

        external = [
            (self.summary_source, "summary", "get_recent", (SUMMARY_LIMIT,)),
            (self.deep_source, "deep_memory", "get_important", (DEEP_LIMIT,)),
            (self.classifier_source, INDEXED_SOURCE, "get_important", (INDEX_LIMIT,)),
        ]
        if query:
            external.append((self.vector_source, "vectorized", "search", (query, VECTOR_LIMIT)))

        for source, name, method, args in external:
            if source is None:
                continue
            if not hasattr(source, method) and hasattr(source, "get_recent"):
                method, args = "get_recent", args[-1:]
            try:
                candidates += await fetch_candidates(
                    source, name, method, *args, kind=name, clock=self._clock
                )
            except SourceUnavailable as e:
                logger.warning(f"Skipping candidate source: {e}")

        return candidates

    async def _gather_tiers(self) -> list[MemoryEntry]:
        state = self.sessions.state
        if state is None:
            return []

        max_chars = self.settings.raw_message_max_chars
        async with state.lock:
            entries = [e for tier in INJECTED_TIERS for e in state.store.snapshot(tier)]

        kept = [e for e in entries if not is_raw_message(e.content, max_chars)]
        if len(kept) < len(entries):
            logger.debug(f"Filtered {len(entries) - len(kept)} raw messages from tiers")
        return kept
