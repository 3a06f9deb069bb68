"""
Extraction of memory summaries embedded in generated text.

Canonical form: a ``<memory_summary>`` tag wrapping one JSON object::

    <memory_summary>{"content": "...", "importance": 0.8, "tags": ["..."]}</memory_summary>

Two older forms are still accepted:

- ``<ai_memory_summary>`` (any case) with the JSON inside an HTML comment,
  braces optional
- ``[AI_MEMORY_SUMMARY]{...}[/AI_MEMORY_SUMMARY]``
"""

import re

from pydantic import BaseModel, Field, ValidationError, field_validator

from recollect.core.logging import get_logger

logger = get_logger("memory.extraction")

CANONICAL_RE = re.compile(r"<memory_summary>\s*(.*?)\s*</memory_summary>", re.DOTALL)
LEGACY_TAG_RE = re.compile(
    r"<ai_memory_summary>(.*?)</ai_memory_summary>", re.DOTALL | re.IGNORECASE
)
LEGACY_COMMENT_RE = re.compile(r"<!--(.*?)-->", re.DOTALL)
LEGACY_BRACKET_RE = re.compile(r"\[AI_MEMORY_SUMMARY\](.*?)\[/AI_MEMORY_SUMMARY\]", re.DOTALL)


class SummaryPayload(BaseModel):
    """Structured memory summary produced by the model."""

    content: str = Field(min_length=1)
    importance: float | None = None
    tags: list[str] = Field(default_factory=list)
    category: str | None = None
    type: str | None = None

    @field_validator("content")
    @classmethod
    def _strip_content(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("content is blank")
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value: object) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        if not isinstance(value, (list, tuple)):
            raise ValueError(f"tags must be a list, got {type(value).__name__}")
        return [str(v) for v in value if v]


def _parse(raw: str) -> SummaryPayload | None:
    try:
        return SummaryPayload.model_validate_json(raw)
    except ValidationError:
        return None


def _parse_legacy_comment(inner: str) -> SummaryPayload | None:
    """Try every HTML comment until one holds a valid payload."""
    for match in LEGACY_COMMENT_RE.finditer(inner):
        raw = match.group(1).strip()
        if not raw.startswith(("{", "[")):
            raw = "{" + raw + "}"
        payload = _parse(raw)
        if payload:
            return payload
    return None


def extract_summary(text: str | None) -> SummaryPayload | None:
    """Return the first memory summary embedded in text, or None."""
    if not text:
        return None

    for match in CANONICAL_RE.finditer(text):
        payload = _parse(match.group(1))
        if payload:
            return payload

    for match in LEGACY_TAG_RE.finditer(text):
        payload = _parse_legacy_comment(match.group(1))
        if payload:
            logger.debug("Extracted summary from legacy comment-tag format")
            return payload

    for match in LEGACY_BRACKET_RE.finditer(text):
        payload = _parse(match.group(1).strip())
        if payload:
            logger.debug("Extracted summary from legacy bracket format")
            return payload

    return None
