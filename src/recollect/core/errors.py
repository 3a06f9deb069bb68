"""
Exception hierarchy.

None of these escape the injection coordinator; they mark which stage
failed so callers can log and skip.
"""

from typing import Any


class RecollectError(Exception):
    """Base exception for all recollect errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class SourceUnavailable(RecollectError):
    """A candidate source is missing or raised while being queried."""

    def __init__(self, source: str, message: str, details: dict[str, Any] | None = None):
        self.source = source
        super().__init__(f"[{source}] {message}", details)


class MalformedEntry(RecollectError):
    """Entry has missing or invalid content and was not inserted."""


class PersistenceFailure(RecollectError):
    """Snapshot read or write failed; the store keeps running in memory."""

    def __init__(self, key: str, message: str, details: dict[str, Any] | None = None):
        self.key = key
        super().__init__(f"[{key}] {message}", details)


class InjectionTargetUnavailable(RecollectError):
    """No injection method accepted the payload."""
