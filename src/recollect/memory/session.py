"""Per-session store lifecycle: create, persist on switch, restore, roll back."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from recollect.core.clock import Clock, system_clock
from recollect.core.config import Settings
from recollect.core.events import Event, EventBus, EventType
from recollect.core.logging import get_logger
from recollect.memory.base import MemoryStats, MemoryTier
from recollect.memory.persistence import KeyValueStore, decode_tier, encode_tier, snapshot_key
from recollect.memory.tiers import TierStore

logger = get_logger("memory.session")


class SessionPhase(Enum):
    NO_SESSION = "no_session"
    ACTIVE = "active"
    PERSISTING = "persisting"
    RESTORING = "restoring"


@dataclass
class SessionState:
    """In-memory state of the active conversation.

    ``lock`` guards every mutation of ``store``. ``has_snapshot`` is set once the
    session has stored tiers, so an emptied store still overwrites them.
    """

    session_id: str
    store: TierStore
    last_activity: datetime
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    has_snapshot: bool = False
    demotions: int = 0
    expired: int = 0
    rolled_back: int = 0
    compressed: int = 0

    def stats(self) -> MemoryStats:
        stats = self.store.stats()
        stats.demotions = self.demotions
        stats.expired = self.expired
        stats.rolled_back = self.rolled_back
        stats.compressed = self.compressed
        return stats


class SessionLifecycleController:
    """Owns the active session and moves it in and out of persistence."""

    def __init__(
        self,
        settings: Settings | None = None,
        kv_store: KeyValueStore | None = None,
        bus: EventBus | None = None,
        clock: Clock | None = None,
    ):
        self.settings = settings or Settings()
        self.kv_store = kv_store
        self.bus = bus
        self._clock = clock or system_clock
        self._state: SessionState | None = None
        self._phase = SessionPhase.NO_SESSION
        self._switch_lock = asyncio.Lock()

    @property
    def state(self) -> SessionState | None:
        return self._state

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def session_id(self) -> str | None:
        return self._state.session_id if self._state else None

    @property
    def stats(self) -> MemoryStats:
        return self._state.stats() if self._state else MemoryStats()

    def new_store(self) -> TierStore:
        s = self.settings
        return TierStore(
            long_term_threshold=s.long_term_threshold,
            short_term_threshold=s.short_term_threshold,
            capacities={
                MemoryTier.SENSORY: s.sensory_capacity,
                MemoryTier.SHORT_TERM: s.short_term_capacity,
                MemoryTier.LONG_TERM: s.long_term_capacity,
                MemoryTier.ARCHIVE: s.archive_capacity,
            },
            clock=self._clock,
        )

    async def ensure_session(self, session_id: str) -> SessionState:
        """Return the state for session_id, switching to it if needed."""
        if self._state and self._state.session_id == session_id:
            self._state.last_activity = self._clock()
            return self._state
        return await self.switch(session_id)

    async def switch(self, session_id: str) -> SessionState:
        """Persist and clear the active session, then restore session_id."""
        async with self._switch_lock:
            current = self._state
            if current and current.session_id == session_id:
                return current

            if current:
                async with current.lock:
                    self._phase = SessionPhase.PERSISTING
                    if current.has_snapshot or not current.store.is_empty():
                        await self._persist(current)
                    current.store.clear_all()
                    current.demotions = current.expired = 0
                    current.rolled_back = current.compressed = 0
                logger.info(f"Switched out of session {current.session_id}")

            self._phase = SessionPhase.RESTORING
            state = SessionState(
                session_id=session_id,
                store=self.new_store(),
                last_activity=self._clock(),
            )
            self._state = state
            async with state.lock:
                restored = await self._restore(state)
            self._phase = SessionPhase.ACTIVE

            logger.info(f"Session {session_id} active ({restored} entries restored)")
            return state

    async def save(self) -> bool:
        """Persist the active session without switching."""
        state = self._state
        if state is None:
            return False
        async with state.lock:
            return await self._persist(state)

    async def rollback(self, is_user: bool = False) -> int:
        """Drop recent entries after a message was deleted or regenerated.

        All sensory entries go, plus short-term and long-term entries newer
        than their rollback windows. Deleting a user message keeps the store.
        """
        state = self._state
        if state is None:
            return 0
        if is_user:
            logger.debug("Deleted message was from the user, keeping memories")
            return 0

        async with state.lock:
            now = self._clock()
            short_cutoff = now - timedelta(minutes=self.settings.rollback_short_term_window)
            long_cutoff = now - timedelta(minutes=self.settings.rollback_long_term_window)

            doomed = [e.id for e in state.store.get(MemoryTier.SENSORY)]
            doomed += [
                e.id for e in state.store.get(MemoryTier.SHORT_TERM) if e.timestamp > short_cutoff
            ]
            doomed += [
                e.id for e in state.store.get(MemoryTier.LONG_TERM) if e.timestamp > long_cutoff
            ]
            for entry_id in doomed:
                state.store.remove(entry_id)
            state.rolled_back += len(doomed)

        logger.info(f"Rolled back {len(doomed)} entries in session {state.session_id}")
        if self.bus:
            await self.bus.publish(
                Event(
                    type=EventType.MEMORY_ROLLED_BACK,
                    session_id=state.session_id,
                    data={"removed": len(doomed)},
                    timestamp=self._clock(),
                )
            )
        return len(doomed)

    async def _persist(self, state: SessionState) -> bool:
        """Write all four tiers. Failures are logged, never raised."""
        if self.kv_store is None:
            logger.debug("No snapshot store configured, skipping persist")
            return False

        ok = True
        for tier in MemoryTier:
            key = snapshot_key(tier, state.session_id)
            try:
                await self.kv_store.set(key, encode_tier(state.store.get(tier)))
            except Exception as e:
                ok = False
                logger.error(f"Failed to persist {key}: {e}")
        if ok:
            state.has_snapshot = True
        return ok

    async def _restore(self, state: SessionState) -> int:
        """Load whatever tier snapshots exist. Unreadable ones count as absent."""
        if self.kv_store is None:
            return 0

        restored = 0
        for tier in MemoryTier:
            key = snapshot_key(tier, state.session_id)
            try:
                blob = await self.kv_store.get(key)
            except Exception as e:
                logger.warning(f"Failed to read {key}, treating as empty: {e}")
                continue
            if not blob:
                continue
            state.has_snapshot = True
            try:
                restored += state.store.load(tier, decode_tier(blob))
            except ValueError as e:
                logger.warning(f"Corrupt snapshot {key}, ignoring: {e}")
        return restored
