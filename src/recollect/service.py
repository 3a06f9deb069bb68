"""Service wiring: collaborators, components and event handlers.

``MemoryService`` builds every component from ``Settings`` and the host's
collaborators, subscribes them to the event bus, and runs background
maintenance on the scheduler.
"""

from dataclasses import dataclass
from typing import Any

from recollect.core.clock import Clock, system_clock
from recollect.core.config import Settings, get_settings
from recollect.core.events import Event, EventBus, EventType
from recollect.core.logging import get_logger
from recollect.core.scheduler import Scheduler
from recollect.injection.coordinator import InjectionCoordinator, InjectionResult
from recollect.memory.classifier import Classifier, KeywordClassifier
from recollect.memory.formatter import Formatter
from recollect.memory.ingest import MemoryIngestor
from recollect.memory.maintenance import MemoryMaintenance
from recollect.memory.persistence import KeyValueStore, SQLiteKeyValueStore
from recollect.memory.session import SessionLifecycleController

logger = get_logger("service")


@dataclass
class Collaborators:
    """External dependencies supplied by the host. Any of them may be missing."""

    summary_source: Any = None
    deep_source: Any = None
    vector_source: Any = None
    classifier_source: Any = None
    injection_target: Any = None
    kv_store: KeyValueStore | None = None
    classifier: Classifier | None = None


class MemoryService:
    """Tiered memory with per-turn injection, driven by host events."""

    def __init__(
        self,
        settings: Settings | None = None,
        collaborators: Collaborators | None = None,
        bus: EventBus | None = None,
        clock: Clock | None = None,
    ):
        self.settings = settings or get_settings()
        self.collaborators = collaborators or Collaborators()
        self.bus = bus or EventBus()
        self.clock = clock or system_clock

        c = self.collaborators
        self._owned_store: SQLiteKeyValueStore | None = None
        kv_store = c.kv_store
        if kv_store is None:
            self._owned_store = SQLiteKeyValueStore(self.settings.db_path)
            kv_store = self._owned_store

        classifier = c.classifier or KeywordClassifier()

        self.sessions = SessionLifecycleController(self.settings, kv_store, self.bus, self.clock)
        self.ingestor = MemoryIngestor(
            self.sessions, classifier, self.bus, self.settings, self.clock
        )
        self.maintenance = MemoryMaintenance(
            self.sessions, self.settings, c.summary_source, c.deep_source, self.clock
        )
        self.coordinator = InjectionCoordinator(
            self.sessions,
            target=c.injection_target,
            settings=self.settings,
            summary_source=c.summary_source,
            deep_source=c.deep_source,
            vector_source=c.vector_source,
            classifier_source=c.classifier_source,
            formatter=Formatter(classifier, self.settings.max_items, self.settings.max_keywords),
            bus=self.bus,
            clock=self.clock,
        )
        self.scheduler = Scheduler(self.clock, self.settings.scheduler_tick)
        self.maintenance.register(self.scheduler)

        self.bus.subscribe(EventType.GENERATION_STARTED, self.on_generation_started)
        self.bus.subscribe(EventType.MESSAGE_OBSERVED, self.on_message_observed)
        self.bus.subscribe(EventType.SESSION_SWITCHED, self.on_session_switched)
        self.bus.subscribe(EventType.MESSAGE_DELETED, self.on_message_removed)
        self.bus.subscribe(EventType.MESSAGE_REGENERATED, self.on_message_removed)

    async def start(self) -> None:
        """Open storage and start background maintenance."""
        if self._owned_store:
            await self._owned_store.connect()
        await self.scheduler.start()
        logger.info("Memory service started")

    async def stop(self) -> None:
        """Stop maintenance, save the active session and close storage."""
        await self.scheduler.stop()
        await self.sessions.save()
        if self._owned_store:
            await self._owned_store.close()
        logger.info("Memory service stopped")

    async def on_generation_started(self, event: Event) -> InjectionResult:
        if event.session_id:
            await self.sessions.ensure_session(event.session_id)
        return await self.coordinator.inject(query=event.content)

    async def on_message_observed(self, event: Event) -> None:
        await self.ingestor.ingest_message(event)

    async def on_session_switched(self, event: Event) -> None:
        if not event.session_id:
            logger.warning("Session switch without a session id, ignoring")
            return
        await self.sessions.switch(event.session_id)

    async def on_message_removed(self, event: Event) -> None:
        await self.sessions.rollback(is_user=event.is_user)

    def status(self) -> dict[str, Any]:
        return {
            "enabled": self.settings.enabled,
            "session_id": self.sessions.session_id,
            "phase": self.sessions.phase.value,
            "memory": self.sessions.stats.to_dict(),
            "injection": self.coordinator.stats.to_dict(),
        }
