"""
Provider adapters for the AI completion layer.

Each provider kind maps to one adapter class with the same capability
surface (complete, summarize, generate_tags, suggest_categories). Concrete
adapters are registered with the default factory when first needed.
"""

from .base import (
    AdapterFactory,
    CompletionProvider,
    get_factory,
    parse_list_output,
    strip_summary_preamble,
)

__all__ = [
    "AdapterFactory",
    "CompletionProvider",
    "get_factory",
    "parse_list_output",
    "strip_summary_preamble",
]
