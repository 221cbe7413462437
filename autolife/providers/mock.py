"""
Deterministic mock adapter.

Never fails and never touches the network. Useful for development without
API keys and as a last-resort provider at the bottom of the priority list.
"""

import re
from collections import Counter

from ..types import CompletionOptions, ProviderConfig, ProviderKind
from .base import MAX_CATEGORIES, MAX_TAGS, get_factory

_WORD_RE = re.compile(r"[a-zA-Z][a-zA-Z-]{3,}")

_STOPWORDS = frozenset({
    "about", "after", "also", "been", "before", "being", "between", "both",
    "could", "does", "each", "from", "have", "here", "into", "just", "like",
    "many", "more", "most", "much", "must", "only", "other", "over", "same",
    "should", "some", "such", "than", "that", "their", "them", "then",
    "there", "these", "they", "this", "those", "through", "under", "very",
    "what", "when", "where", "which", "while", "will", "with", "would",
    "your",
})

# keyword -> category
_CATEGORY_KEYWORDS = {
    "project": "Projects",
    "task": "Projects",
    "milestone": "Projects",
    "meeting": "Meetings",
    "research": "Research",
    "paper": "Research",
    "code": "Development",
    "python": "Development",
    "software": "Development",
    "budget": "Finance",
    "invoice": "Finance",
    "health": "Health",
    "recipe": "Personal",
    "travel": "Personal",
}


class MockAdapter:
    """
    Mock completion provider.

    - complete: canned answers keyed on prompt keywords
    - summarize: content truncated at a word boundary
    - generate_tags: most frequent non-trivial words
    - suggest_categories: keyword lookup, "Uncategorized" when nothing matches
    """

    def __init__(self, config: ProviderConfig, max_chars: int = 200):
        self.config = config
        self.max_chars = max_chars

    async def complete(self, prompt: str, options: CompletionOptions | None = None) -> str:
        lowered = prompt.lower()
        if "tasks" in lowered and "one per line" in lowered:
            return "\n".join([
                "- Define project scope",
                "- Gather requirements",
                "- Create implementation plan",
                "- Execute tasks",
                "- Review and adjust",
            ])
        if "project plan" in lowered:
            return (
                "Project Plan:\n"
                "1. Planning Phase\n"
                "2. Execution Phase\n"
                "3. Review Phase"
            )
        if "summar" in lowered:
            return "This is a mock summary of the content."
        if "suggest" in lowered or "recommend" in lowered:
            return "Mock suggestion: organize your content with tags and project milestones."
        head = prompt[:50]
        return f"Mock AI response to: {head}..."

    async def summarize(self, content: str) -> str:
        text = content.strip()
        if len(text) <= self.max_chars:
            return text
        return text[:self.max_chars].rsplit(" ", 1)[0] + "..."

    async def generate_tags(self, content: str) -> list[str]:
        words = [w.lower() for w in _WORD_RE.findall(content)]
        counts = Counter(w for w in words if w not in _STOPWORDS)
        # most_common is stable for ties, so first occurrence wins
        tags = [w for w, _ in counts.most_common(MAX_TAGS)]
        return tags or ["general"]

    async def suggest_categories(self, content: str) -> list[str]:
        lowered = content.lower()
        categories: list[str] = []
        for keyword, category in _CATEGORY_KEYWORDS.items():
            if keyword in lowered and category not in categories:
                categories.append(category)
        return categories[:MAX_CATEGORIES] or ["Uncategorized"]

    async def is_healthy(self) -> bool:
        return True

    async def aclose(self) -> None:
        pass


get_factory().register(ProviderKind.MOCK, MockAdapter)
