"""Host injection points and the order they are tried in."""

import asyncio
from typing import Any, Protocol, runtime_checkable

from recollect.core.errors import InjectionTargetUnavailable
from recollect.core.logging import get_logger

logger = get_logger("injection.targets")

METHOD_PROMPT = "set_injection"
METHOD_NOTE = "append_to_note"
METHOD_SESSION_MEMORY = "append_to_session_memory"


@runtime_checkable
class InjectionTarget(Protocol):
    """Host prompt hook. Calling it again with the same identifier replaces the text."""

    def set_injection(self, identifier: str, text: str, position: int, depth: int) -> Any:
        ...


async def _call(fn: Any, *args: Any) -> Any:
    result = fn(*args)
    if asyncio.iscoroutine(result):
        result = await result
    return result


async def deliver(
    target: Any,
    identifier: str,
    text: str,
    position: int = 2,
    depth: int = 0,
) -> str:
    """Hand text to the first injection method the target supports.

    Tries the prompt hook, then the note, then session memory. A method that
    is missing, raises, or returns False falls through to the next one.
    Returns the name of the method that took the text.
    """
    if target is None:
        raise InjectionTargetUnavailable("No injection target configured")

    attempts = [
        (METHOD_PROMPT, (identifier, text, position, depth)),
        (METHOD_NOTE, (text,)),
        (METHOD_SESSION_MEMORY, (text,)),
    ]
    errors: dict[str, str] = {}

    for method, args in attempts:
        fn = getattr(target, method, None)
        if not callable(fn):
            errors[method] = "missing"
            continue
        try:
            result = await _call(fn, *args)
        except Exception as e:
            logger.warning(f"Injection via {method} failed: {e}")
            errors[method] = str(e)
            continue
        if result is False:
            errors[method] = "rejected"
            continue

        logger.debug(f"Injected {len(text)} chars via {method}")
        return method

    raise InjectionTargetUnavailable("No injection method accepted the payload", errors)
