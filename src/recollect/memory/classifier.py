"""
Pluggable content classification.

The pipeline only depends on the ``Classifier`` protocol and the closed
``MemoryCategory`` enum. ``KeywordClassifier`` is a lightweight default.
"""

from enum import Enum
from typing import Protocol, runtime_checkable


class MemoryCategory(Enum):
    GENERAL = "general"
    CHARACTER = "character"
    PLOT = "plot"
    RELATIONSHIP = "relationship"
    ENVIRONMENT = "environment"


@runtime_checkable
class Classifier(Protocol):
    def categorize(self, content: str) -> MemoryCategory:
        """Assign content to a formatting section."""
        ...

    def score(self, content: str, kind: str | None = None) -> float:
        """Estimate importance in [0, 1]."""
        ...


# Checked in order; first match wins.
CATEGORY_KEYWORDS: list[tuple[MemoryCategory, tuple[str, ...]]] = [
    (
        MemoryCategory.CHARACTER,
        ("角色", "性格", "特征", "character", "personality", "trait", "persona"),
    ),
    (
        MemoryCategory.PLOT,
        ("剧情", "故事", "发生", "plot", "story", "event", "happened"),
    ),
    (
        MemoryCategory.RELATIONSHIP,
        ("关系", "感情", "友情", "恋爱", "relationship", "feeling", "friendship", "romance"),
    ),
    (
        MemoryCategory.ENVIRONMENT,
        ("环境", "地点", "场景", "environment", "location", "scene", "setting"),
    ),
]

IMPORTANT_KEYWORDS = (
    "重要", "关键", "决定", "计划", "目标", "问题", "解决",
    "important", "key", "decision", "plan", "goal", "problem",
)

KIND_SCORES = {
    "ai_memory_summary": 0.8,
    "user_message": 0.6,
    "system_message": 0.4,
    "general": 0.3,
}


class KeywordClassifier:
    """Substring keyword matching over lowercased content."""

    def __init__(
        self,
        category_keywords: list[tuple[MemoryCategory, tuple[str, ...]]] | None = None,
        important_keywords: tuple[str, ...] = IMPORTANT_KEYWORDS,
    ):
        self.category_keywords = category_keywords or CATEGORY_KEYWORDS
        self.important_keywords = important_keywords

    def categorize(self, content: str) -> MemoryCategory:
        text = content.lower()
        for category, keywords in self.category_keywords:
            if any(keyword in text for keyword in keywords):
                return category
        return MemoryCategory.GENERAL

    def score(self, content: str, kind: str | None = None) -> float:
        """Length bonus (up to 0.3) + kind score + 0.1 per important keyword."""
        importance = min(len(content) / 1000, 0.3)
        importance += KIND_SCORES.get(kind or "general", 0.3)

        text = content.lower()
        importance += 0.1 * sum(1 for keyword in self.important_keywords if keyword in text)

        return min(max(importance, 0.0), 1.0)
