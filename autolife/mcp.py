"""
MCP stdio server for autolife: AI summarization, tagging and planning tools.

Exposes the AiService operations as MCP tools so local AI agents can use the
configured providers (with fallback) without HTTP infrastructure.

Usage:
    autolife mcp                          # stdio server (via CLI)

The service is created lazily on first use. Provider health is saved back
to autolife.toml after each call.
"""

import logging
from typing import Annotated, Optional

from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field

from .config import (
    build_registry,
    build_tracker,
    get_config_dir,
    load_or_create_config,
    save_config,
)
from .errors import AutolifeError
from .orchestrator import FallbackOrchestrator
from .service import AiService

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Server setup
# ---------------------------------------------------------------------------

mcp = FastMCP(
    "autolife",
    instructions=(
        "AI helpers for a personal knowledge base: summarize documents, "
        "generate tags and categories, plan projects, break projects into "
        "tasks, and answer questions from supplied context."
    ),
)

_service: Optional[AiService] = None
_config = None


def _get_service() -> AiService:
    """Lazy-init the service from the config directory (respects AUTOLIFE_CONFIG_DIR)."""
    global _service, _config
    if _service is None:
        _config = load_or_create_config(get_config_dir())
        registry = build_registry(_config)
        orchestrator = FallbackOrchestrator(registry, build_tracker(_config))
        _service = AiService(orchestrator, timeout=_config.timeout)
    return _service


def _save_health(service: AiService) -> None:
    if _config is None:
        return
    try:
        save_config(_config, service.orchestrator.registry)
    except OSError as e:
        logger.warning("Could not save provider health: %s", e)


async def _call(operation, *args):
    """Run a service operation, returning errors as text for the agent."""
    service = _get_service()
    try:
        return await operation(service, *args)
    except AutolifeError as e:
        return f"Error: {e}"
    finally:
        _save_health(service)


def _as_lines(result) -> str:
    if isinstance(result, list):
        return "\n".join(result) if result else "(none)"
    return result


# ---------------------------------------------------------------------------
# Tool annotations
# ---------------------------------------------------------------------------

_READ_ONLY = ToolAnnotations(readOnlyHint=True, destructiveHint=False, openWorldHint=True)


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@mcp.tool(
    description="Summarize text in 2-3 sentences.",
    annotations=_READ_ONLY,
)
async def autolife_summarize(
    content: Annotated[str, Field(description="Text to summarize.")],
) -> str:
    """Summarize content."""
    return await _call(AiService.generate_summary, content)


@mcp.tool(
    description="Generate short lowercase tags for text, one per line.",
    annotations=_READ_ONLY,
)
async def autolife_tags(
    content: Annotated[str, Field(description="Text to tag.")],
) -> str:
    """Generate tags."""
    return _as_lines(await _call(AiService.generate_tags, content))


@mcp.tool(
    description="Suggest broad categories for filing text, one per line.",
    annotations=_READ_ONLY,
)
async def autolife_categories(
    content: Annotated[str, Field(description="Text to categorize.")],
) -> str:
    """Suggest categories."""
    return _as_lines(await _call(AiService.suggest_categories, content))


@mcp.tool(
    description="Create a structured project plan with phases and milestones.",
    annotations=_READ_ONLY,
)
async def autolife_plan(
    description: Annotated[str, Field(description="What the project is about.")],
) -> str:
    """Generate a project plan."""
    return await _call(AiService.generate_project_plan, description)


@mcp.tool(
    description="Break a project description into up to 10 task titles, one per line.",
    annotations=_READ_ONLY,
)
async def autolife_tasks(
    description: Annotated[str, Field(description="What the project is about.")],
) -> str:
    """Generate tasks."""
    return _as_lines(await _call(AiService.generate_tasks, description))


@mcp.tool(
    description="Answer a question using only the supplied context.",
    annotations=_READ_ONLY,
)
async def autolife_ask(
    question: Annotated[str, Field(description="The question to answer.")],
    context: Annotated[str, Field(
        description="Background text the answer should be based on.",
    )] = "",
) -> str:
    """Answer a question."""
    return await _call(AiService.answer_question, question, context)


@mcp.tool(
    description=(
        "List configured AI providers in priority order with their health "
        "status and failure count. Disabled providers are marked."
    ),
    annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False),
)
async def autolife_providers() -> str:
    """List providers."""
    registry = _get_service().orchestrator.registry
    lines = []
    for p in sorted(registry.list_all(), key=lambda c: c.priority):
        line = (
            f"{p.priority:>4}  {p.name} [{p.kind.value}] "
            f"{p.status.value}, {p.consecutive_failures} failures"
        )
        lines.append(line if p.enabled else f"{line} (disabled)")
    return "\n".join(lines) if lines else "No providers configured."


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main():
    """Run the MCP stdio server."""
    import os
    import signal
    # anyio's stdin reader shields the blocking readline from task
    # cancellation, so the first Ctrl+C would otherwise be ignored.
    signal.signal(signal.SIGINT, lambda *_: os._exit(130))
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
