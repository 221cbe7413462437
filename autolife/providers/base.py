"""
Base adapter protocol, shared prompts and the adapter factory.

An adapter turns one ProviderConfig snapshot into the abstract capability
surface used by the fallback orchestrator. Adapters are cheap and built per
call, so configuration edits take effect on the next operation.
"""

import re
from typing import Protocol, runtime_checkable

from ..errors import MalformedResponse
from ..types import CompletionOptions, ProviderConfig, ProviderKind


# -----------------------------------------------------------------------------
# Capability protocol
# -----------------------------------------------------------------------------

@runtime_checkable
class CompletionProvider(Protocol):
    """
    Text completion capability of one provider.

    Every method may raise a ProviderError subclass (AuthFailure,
    ProviderTimeout, RateLimited, MalformedResponse, Unsupported,
    ProviderUnavailable). Anything else is treated by the orchestrator as an
    unclassified ProviderError.
    """

    async def complete(self, prompt: str, options: CompletionOptions | None = None) -> str:
        """Send a raw prompt and return the generated text."""
        ...

    async def summarize(self, content: str) -> str:
        """Generate a short summary of the content."""
        ...

    async def generate_tags(self, content: str) -> list[str]:
        """Generate short lowercase tags for the content."""
        ...

    async def suggest_categories(self, content: str) -> list[str]:
        """Suggest a few broad categories for the content."""
        ...

    async def is_healthy(self) -> bool:
        """Cheap configuration check; never raises."""
        ...

    async def aclose(self) -> None:
        """Release any network clients held by the adapter."""
        ...


# -----------------------------------------------------------------------------
# Prompts
# -----------------------------------------------------------------------------

SUMMARIZATION_SYSTEM_PROMPT = """Summarize this text in 2-3 sentences.

Begin with the subject or topic directly - do not start with meta-phrases like "This document describes..." or "The main purpose is...".

Include what it is about and why someone might find it useful."""

TAGGING_SYSTEM_PROMPT = """Generate up to 10 short tags for the text.

Tags are lowercase, one to three words each, describing topics, technologies, people or places that clearly appear in the text.

Respond with the tags only, separated by commas, no explanation."""

CATEGORY_SYSTEM_PROMPT = """Suggest up to 5 broad categories for filing this text in a personal knowledge base (for example: Work, Research, Finance, Health, Projects, Personal).

Respond with the category names only, separated by commas, no explanation."""

MAX_CONTENT_CHARS = 50000
MAX_TAGS = 10
MAX_CATEGORIES = 5


def truncate_content(content: str, limit: int = MAX_CONTENT_CHARS) -> str:
    return content[:limit] if len(content) > limit else content


def strip_summary_preamble(text: str) -> str:
    """
    Remove common LLM preambles from summaries.

    Many models add introductory phrases despite instructions not to.
    """
    preambles = [
        r"^here is a summary[^:]*[:.]\s*",
        r"^here is a concise summary[^:]*:\s*",
        r"^here's a summary[^:]*:\s*",
        r"^summary:\s*",
        r"^this document describes\s+",
        r"^the document describes\s+",
        r"^this text (is about|describes|covers)\s+",
    ]
    result = text.strip()
    for pattern in preambles:
        result = re.sub(pattern, "", result, flags=re.IGNORECASE)
    return result


_LIST_SPLIT_RE = re.compile(r"[,\n;]")
_LIST_MARKER_RE = re.compile(r"^(?:[-*•]+|\d+[.)])\s*")


def parse_list_output(text: str | None, limit: int) -> list[str]:
    """
    Parse a comma- or newline-separated model answer into distinct items.

    Strips bullets, numbering and quotes, drops blanks and case-insensitive
    duplicates, keeps order and caps at limit.

    Raises:
        MalformedResponse: If nothing usable remains
    """
    if not text:
        raise MalformedResponse("Empty response where a list was expected")
    items: list[str] = []
    seen: set[str] = set()
    for raw in _LIST_SPLIT_RE.split(text):
        item = _LIST_MARKER_RE.sub("", raw.strip()).strip().strip("\"'`#").strip()
        if not item or item.lower() in seen:
            continue
        seen.add(item.lower())
        items.append(item)
        if len(items) >= limit:
            break
    if not items:
        raise MalformedResponse(f"Could not parse a list from response: {text[:100]!r}")
    return items


# -----------------------------------------------------------------------------
# Adapter factory
# -----------------------------------------------------------------------------

class AdapterFactory:
    """
    Maps provider kinds to adapter classes.

    Adapter classes take the ProviderConfig snapshot as their only
    constructor argument. Concrete adapters register themselves when their
    module is imported.

    Example:
        factory = AdapterFactory()
        factory.register(ProviderKind.MOCK, MockAdapter)
        adapter = factory.create(config)
    """

    def __init__(self):
        self._adapters: dict[ProviderKind, type] = {}
        self._lazy_loaded = False

    def _ensure_adapters_loaded(self) -> None:
        """Import the built-in adapter modules (they register on import)."""
        if self._lazy_loaded:
            return
        self._lazy_loaded = True
        from . import llm  # noqa: F401
        from . import mock  # noqa: F401

    def register(self, kind: ProviderKind | str, adapter_class: type) -> None:
        self._adapters[ProviderKind(kind)] = adapter_class

    def kinds(self) -> list[ProviderKind]:
        self._ensure_adapters_loaded()
        return list(self._adapters.keys())

    def create(self, config: ProviderConfig) -> CompletionProvider:
        """
        Build an adapter for the config's kind.

        Raises:
            Unsupported: If no adapter is registered for the kind
            ProviderError: If the adapter rejects the configuration
        """
        from ..errors import Unsupported

        self._ensure_adapters_loaded()
        adapter_class = self._adapters.get(config.kind)
        if adapter_class is None:
            available = ", ".join(k.value for k in self._adapters) or "none"
            raise Unsupported(
                f"No adapter for provider kind '{config.kind.value}'. "
                f"Available kinds: {available}.",
                provider_id=config.id,
            )
        return adapter_class(config)


# Default factory used when none is injected
_factory = AdapterFactory()


def get_factory() -> AdapterFactory:
    """Get the default adapter factory."""
    return _factory
