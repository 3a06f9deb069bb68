"""External candidate sources and fragment normalization."""

import asyncio
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from recollect.core.clock import Clock, system_clock
from recollect.core.errors import SourceUnavailable
from recollect.core.logging import get_logger
from recollect.memory.base import MemoryEntry, MemoryTier, clamp_importance, new_entry_id

logger = get_logger("memory.sources")


@runtime_checkable
class CandidateSource(Protocol):
    """Anything that can hand back memory fragments.

    Sources implement ``get_recent`` and/or ``get_important``; vector
    retrieval sources implement ``search``. Methods may be sync or async.
    """

    def get_recent(self, n: int) -> Any:
        ...


def _field(fragment: Any, name: str, default: Any = None) -> Any:
    if isinstance(fragment, dict):
        return fragment.get(name, default)
    return getattr(fragment, name, default)


def parse_timestamp(value: Any, clock: Clock = system_clock) -> datetime:
    """Accept datetime, ISO string or epoch seconds/millis. Result is naive local time."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000 if value > 1e11 else value
        try:
            parsed = datetime.fromtimestamp(seconds)
        except (OverflowError, OSError, ValueError):
            return clock()
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return clock()
    else:
        return clock()

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def to_entry(
    fragment: Any,
    source: str,
    kind: str | None = None,
    default_importance: float = 0.5,
    clock: Clock = system_clock,
) -> MemoryEntry | None:
    """Normalize a fragment (dict or object) into a candidate entry.

    Returns None when the fragment carries no usable content.
    """
    if isinstance(fragment, str):
        fragment = {"content": fragment}

    content = _field(fragment, "content")
    if not isinstance(content, str) or not content.strip():
        return None

    importance = _field(fragment, "importance")
    if importance is None:
        importance = _field(fragment, "similarity")
    if importance is None:
        importance = _field(fragment, "score")

    keywords = _field(fragment, "keywords")
    if isinstance(keywords, str):
        keywords = [keywords]

    return MemoryEntry(
        id=str(_field(fragment, "id") or new_entry_id()),
        tier=MemoryTier.SENSORY,
        content=content.strip(),
        timestamp=parse_timestamp(_field(fragment, "timestamp"), clock),
        importance=clamp_importance(importance, default_importance),
        source=source,
        category=_field(fragment, "category"),
        keywords=list(keywords) if keywords else None,
        kind=kind,
    )


async def query(source: Any, name: str, method: str, *args: Any) -> list[Any]:
    """Call ``source.method(*args)``, awaiting if needed.

    Raises SourceUnavailable if the source is missing, lacks the method, or
    raises. A None result counts as empty.
    """
    if source is None:
        raise SourceUnavailable(name, "not configured")

    fn = getattr(source, method, None)
    if not callable(fn):
        raise SourceUnavailable(name, f"has no {method}()")

    try:
        result = fn(*args)
        if asyncio.iscoroutine(result):
            result = await result
    except Exception as e:
        raise SourceUnavailable(name, f"{method}() failed: {e}") from e

    if result is None:
        return []
    if isinstance(result, (list, tuple)):
        return list(result)
    if isinstance(result, dict):
        return list(result.values())
    raise SourceUnavailable(name, f"{method}() returned {type(result).__name__}")


async def fetch_candidates(
    source: Any,
    name: str,
    method: str,
    *args: Any,
    kind: str | None = None,
    default_importance: float = 0.5,
    clock: Clock = system_clock,
) -> list[MemoryEntry]:
    """Query a source and normalize its fragments, dropping empty ones."""
    fragments = await query(source, name, method, *args)
    entries = []
    for fragment in fragments:
        entry = to_entry(fragment, name, kind, default_importance, clock)
        if entry is not None:
            entries.append(entry)
    logger.debug(f"{name}.{method}: {len(entries)}/{len(fragments)} usable fragments")
    return entries
