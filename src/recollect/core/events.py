"""Typed event channel between the host and memory components."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from recollect.core.logging import get_logger

logger = get_logger("core.events")


class EventType(Enum):
    # Host -> memory
    GENERATION_STARTED = "generation_started"
    MESSAGE_OBSERVED = "message_observed"
    SESSION_SWITCHED = "session_switched"
    MESSAGE_DELETED = "message_deleted"
    MESSAGE_REGENERATED = "message_regenerated"
    # Memory -> observers
    MEMORY_ADDED = "memory_added"
    MEMORY_ROLLED_BACK = "memory_rolled_back"
    MEMORY_INJECTED = "memory_injected"


@dataclass
class Event:
    """An event with the minimal metadata the host provides.

    Events raised inside the package are stamped from the component's clock.
    """

    type: EventType
    session_id: str | None = None
    message_index: int | None = None
    is_user: bool = False
    content: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)


Handler = Callable[[Event], Awaitable[None] | None]


class EventBus:
    """Dispatches events to subscribed handlers in subscription order.

    A failing handler is logged and does not stop the others.
    """

    def __init__(self):
        self._handlers: dict[EventType, list[Handler]] = {}

    def subscribe(self, event_type: EventType, handler: Handler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    def unsubscribe(self, event_type: EventType, handler: Handler) -> bool:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    def handler_count(self, event_type: EventType) -> int:
        return len(self._handlers.get(event_type, []))

    async def publish(self, event: Event) -> int:
        """Deliver event to its handlers. Returns how many succeeded."""
        delivered = 0
        for handler in list(self._handlers.get(event.type, [])):
            try:
                result = handler(event)
                if asyncio.iscoroutine(result):
                    await result
                delivered += 1
            except Exception as e:
                logger.error(f"Handler for {event.type.value} failed: {e}", exc_info=True)
        return delivered
