"""Turning observed messages into stored memory entries."""

import re

from recollect.core.clock import Clock, system_clock
from recollect.core.config import Settings
from recollect.core.events import Event, EventBus, EventType
from recollect.core.logging import get_logger
from recollect.memory.base import MemoryEntry, MemoryTier, clamp_importance, new_entry_id
from recollect.memory.classifier import Classifier, KeywordClassifier
from recollect.memory.extraction import extract_summary
from recollect.memory.session import SessionLifecycleController

logger = get_logger("memory.ingest")

SUMMARY_KIND = "ai_memory_summary"
SUMMARY_SOURCE = "summary"
SUMMARY_IMPORTANCE = 0.8

MIN_CONTENT_CHARS = 5
MAX_RAW_LINES = 15

# Never stored: model reasoning, role-prefixed echoes, punctuation noise
FILTER_PATTERNS = [
    re.compile(r"^<thinking>", re.IGNORECASE),
    re.compile(r"^<interactive_input>", re.IGNORECASE),
    re.compile(r"^System:", re.IGNORECASE),
    re.compile(r"^Assistant:", re.IGNORECASE),
    re.compile(r"^\[System\]", re.IGNORECASE),
    re.compile(r"^\[Assistant\]", re.IGNORECASE),
    re.compile(r"^[。，、；：？！,.;:?!\s]+$"),
]

# Status-panel directives only appear in raw assistant output
RAW_MARKERS = ("update personal", "update organization", "update world", "update tasks")


def should_store(content: str | None) -> bool:
    """Whether content is worth keeping as a memory."""
    if not isinstance(content, str) or not content.strip():
        return False
    if any(p.search(content) for p in FILTER_PATTERNS):
        return False
    return len(content.strip()) >= MIN_CONTENT_CHARS


def is_raw_message(content: str | None, max_chars: int = 800) -> bool:
    """Whether content looks like an unsummarized assistant message."""
    if not isinstance(content, str) or not content:
        return True
    if any(marker in content for marker in RAW_MARKERS):
        return True
    return len(content) > max_chars or len(content.split("\n")) > MAX_RAW_LINES


class MemoryIngestor:
    """Stores summaries found in observed messages and explicit additions."""

    def __init__(
        self,
        sessions: SessionLifecycleController,
        classifier: Classifier | None = None,
        bus: EventBus | None = None,
        settings: Settings | None = None,
        clock: Clock | None = None,
    ):
        self.sessions = sessions
        self.classifier = classifier or KeywordClassifier()
        self.bus = bus
        self.settings = settings or sessions.settings
        self._clock = clock or system_clock

    async def add(
        self,
        content: str,
        importance: float | None = None,
        source: str = "unknown",
        kind: str | None = None,
        category: str | None = None,
        keywords: list[str] | None = None,
        session_id: str | None = None,
    ) -> MemoryEntry | None:
        """Store content in the active (or given) session.

        Missing importance is estimated by the classifier. Returns the stored
        entry, or None when the content was filtered out or no session exists.
        """
        if not self.settings.enabled:
            return None
        if not should_store(content):
            logger.debug("Content filtered, not stored")
            return None

        state = (
            await self.sessions.ensure_session(session_id) if session_id else self.sessions.state
        )
        if state is None:
            logger.warning("No active session, dropping memory")
            return None

        if importance is None:
            importance = self.classifier.score(content, kind)

        entry = MemoryEntry(
            id=new_entry_id(),
            tier=MemoryTier.SENSORY,
            content=content.strip(),
            timestamp=self._clock(),
            importance=clamp_importance(importance),
            source=source,
            category=category,
            keywords=keywords or None,
        )

        async with state.lock:
            tier = state.store.insert(entry)
            state.last_activity = entry.timestamp

        logger.debug(f"Stored {entry.id} in {tier.value} (importance {entry.importance:.2f})")
        if self.bus:
            await self.bus.publish(
                Event(
                    type=EventType.MEMORY_ADDED,
                    session_id=state.session_id,
                    content=entry.content,
                    data={"id": entry.id, "tier": tier.value, "importance": entry.importance},
                    timestamp=self._clock(),
                )
            )
        return entry

    async def ingest_message(self, event: Event) -> MemoryEntry | None:
        """Store the summary embedded in an assistant message, if any."""
        if event.is_user or not event.content:
            return None

        payload = extract_summary(event.content)
        if payload is None:
            return None

        importance = payload.importance if payload.importance is not None else SUMMARY_IMPORTANCE
        return await self.add(
            payload.content,
            importance=importance,
            source=SUMMARY_SOURCE,
            kind=payload.type or SUMMARY_KIND,
            category=payload.category,
            keywords=payload.tags,
            session_id=event.session_id,
        )
