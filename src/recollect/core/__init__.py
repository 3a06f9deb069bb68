"""
Core module - configuration, shared infrastructure.

Components:
- config: Settings management via pydantic-settings
- errors: Exception hierarchy
- clock: Injectable time source
- scheduler: Interval task scheduler
- events: Typed event channel
- logging: Structured logging setup
"""

from recollect.core.config import Settings
from recollect.core.events import Event, EventBus, EventType

__all__ = ["Settings", "Event", "EventBus", "EventType"]
