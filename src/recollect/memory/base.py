"""
Memory data model.

Four retention tiers, the entry record, and the packed form produced by
the budget packer.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4


class MemoryTier(Enum):
    SENSORY = "sensory"
    SHORT_TERM = "short_term"
    LONG_TERM = "long_term"
    ARCHIVE = "archive"


def clamp_importance(value: Any, default: float = 0.5) -> float:
    """Coerce to float in [0, 1]. Non-numeric values fall back to default."""
    try:
        importance = float(value)
    except (TypeError, ValueError):
        importance = default
    if importance != importance:  # NaN
        importance = default
    return min(max(importance, 0.0), 1.0)


def new_entry_id() -> str:
    return f"memory_{uuid4().hex[:12]}"


@dataclass
class MemoryEntry:
    """Single memory record."""

    id: str
    tier: MemoryTier
    content: str
    timestamp: datetime
    importance: float = 0.5  # 0-1 ranking
    source: str = "unknown"
    category: str | None = None
    keywords: list[str] | None = None
    kind: str | None = None  # type tag for candidates that did not come from a tier
    archived: bool = False
    archived_at: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.importance = clamp_importance(self.importance)

    @property
    def tag(self) -> str:
        """Tier-or-type tag used for deduplication."""
        return self.kind or self.tier.value

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-safe dict."""
        return {
            "id": self.id,
            "tier": self.tier.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "importance": self.importance,
            "source": self.source,
            "category": self.category,
            "keywords": self.keywords,
            "kind": self.kind,
            "archived": self.archived,
            "archived_at": self.archived_at.isoformat() if self.archived_at else None,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MemoryEntry":
        """Deserialize from a dict produced by ``to_dict``."""
        return cls(
            id=data["id"],
            tier=MemoryTier(data["tier"]),
            content=data["content"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            importance=data.get("importance", 0.5),
            source=data.get("source", "unknown"),
            category=data.get("category"),
            keywords=data.get("keywords"),
            kind=data.get("kind"),
            archived=bool(data.get("archived", False)),
            archived_at=(
                datetime.fromisoformat(data["archived_at"]) if data.get("archived_at") else None
            ),
            metadata=data.get("metadata") or {},
        )


@dataclass
class PackedEntry(MemoryEntry):
    """Entry selected by the packer, possibly with shortened content."""

    truncated: bool = False

    @classmethod
    def from_entry(
        cls,
        entry: MemoryEntry,
        content: str | None = None,
        truncated: bool = False,
    ) -> "PackedEntry":
        values = {f.name: getattr(entry, f.name) for f in fields(MemoryEntry)}
        values["metadata"] = dict(entry.metadata)
        if content is not None:
            values["content"] = content
        return cls(**values, truncated=truncated)


@dataclass
class MemoryStats:
    """Derived counters for the active session's store."""

    sensory: int = 0
    short_term: int = 0
    long_term: int = 0
    archive: int = 0
    demotions: int = 0
    expired: int = 0
    rolled_back: int = 0
    compressed: int = 0
    evicted: int = 0

    @property
    def total(self) -> int:
        return self.sensory + self.short_term + self.long_term + self.archive

    def to_dict(self) -> dict[str, int]:
        return {
            "sensory": self.sensory,
            "short_term": self.short_term,
            "long_term": self.long_term,
            "archive": self.archive,
            "total": self.total,
            "demotions": self.demotions,
            "expired": self.expired,
            "rolled_back": self.rolled_back,
            "compressed": self.compressed,
            "evicted": self.evicted,
        }
