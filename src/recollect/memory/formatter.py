"""Render packed entries into the injection payload."""

from recollect.core.logging import get_logger
from recollect.memory.base import PackedEntry
from recollect.memory.classifier import Classifier, KeywordClassifier, MemoryCategory

logger = get_logger("memory.formatter")

# Source tag of entries coming from the keyword-indexed memory store
INDEXED_SOURCE = "memory_index"

SECTION_TITLES: dict[MemoryCategory, str] = {
    MemoryCategory.GENERAL: "Key Memories",
    MemoryCategory.CHARACTER: "Character",
    MemoryCategory.PLOT: "Plot",
    MemoryCategory.RELATIONSHIP: "Relationships",
    MemoryCategory.ENVIRONMENT: "Setting",
}

HEADER = """The following are memories of earlier events that may be relevant:
<memories>"""

FOOTER = """</memories>

These memories are written in the third person and past tense. {{char}} can recall them and bring them up naturally when it fits.
They may or may not be relevant to the current conversation; use the context to decide."""

INDEXED_NOTE = """

[Indexed memories]
Entries with # tags come from the keyword index and are annotated with their importance.
Use the tags to grasp the core of each memory."""


class Formatter:
    """Groups entries into fixed sections and wraps them in header and footer."""

    def __init__(
        self,
        classifier: Classifier | None = None,
        max_items: int = 10,
        max_keywords: int = 5,
    ):
        self.classifier = classifier or KeywordClassifier()
        self.max_items = max_items
        self.max_keywords = max_keywords

    def format(self, packed: list[PackedEntry]) -> str:
        try:
            return self._build(packed)
        except Exception as e:
            logger.error(f"Section formatting failed, using plain join: {e}", exc_info=True)
            return "\n\n".join(p.content for p in packed)

    def format_line(self, entry: PackedEntry) -> str:
        line = f"• {entry.content}"
        if entry.source != INDEXED_SOURCE:
            return line

        annotation = f" [importance:{entry.importance * 100:.0f}%]"
        keywords = (entry.keywords or [])[: self.max_keywords]
        if keywords:
            annotation += " #" + " #".join(keywords)
        return line + annotation

    def _build(self, packed: list[PackedEntry]) -> str:
        sections: dict[MemoryCategory, list[str]] = {category: [] for category in SECTION_TITLES}
        seen: set[str] = set()
        rendered = 0

        for entry in packed:
            if rendered >= self.max_items:
                logger.debug(f"Item limit {self.max_items} reached, skipping remaining entries")
                break

            prefix = entry.content[:100]
            if prefix in seen:
                continue
            seen.add(prefix)

            category = self.classifier.categorize(entry.content)
            sections.setdefault(category, []).append(self.format_line(entry))
            rendered += 1

        blocks = [
            f"\n**{SECTION_TITLES.get(category, category.value)}**\n" + "\n".join(lines)
            for category, lines in sections.items()
            if lines
        ]

        footer = FOOTER
        if any(p.source == INDEXED_SOURCE for p in packed):
            footer += INDEXED_NOTE

        logger.debug(f"Formatted {rendered}/{len(packed)} entries into {len(blocks)} sections")
        return HEADER + "\n".join(blocks) + "\n" + footer
