"""
Domain-level AI operations used by documents, knowledge entries and projects.

Every operation except extract_text goes through the fallback orchestrator.
"""

import asyncio

from .orchestrator import FallbackOrchestrator
from .types import (
    Complete,
    ExtractText,
    Summarize,
    SuggestCategories,
    Tag,
)

MAX_GENERATED_TASKS = 10

PROJECT_PLAN_PROMPT = (
    "Create a detailed project plan for: {description}\n\n"
    "Provide a structured plan with phases and milestones."
)

TASKS_PROMPT = (
    "Generate a list of 5-10 specific tasks for this project: {description}\n\n"
    "Provide only the task titles, one per line."
)

ANSWER_PROMPT = "Context: {context}\n\nQuestion: {question}\n\nAnswer:"

_TASK_MARKERS = "-*•"


def parse_task_lines(text: str, limit: int = MAX_GENERATED_TASKS) -> list[str]:
    """
    Turn line-oriented model output into task titles.

    Leading "-", "*" and "•" markers are stripped, blank lines dropped,
    order preserved, at most limit items returned.
    """
    tasks = []
    for line in text.split("\n"):
        title = line.strip().lstrip(_TASK_MARKERS).strip()
        if title:
            tasks.append(title)
        if len(tasks) >= limit:
            break
    return tasks


class AiService:
    """
    AI operations with automatic provider fallback.

    Args:
        orchestrator: Runs requests against the configured providers
        timeout: Default overall deadline per operation (seconds), or None
    """

    def __init__(self, orchestrator: FallbackOrchestrator, timeout: float | None = None):
        self._orchestrator = orchestrator
        self._timeout = timeout

    @property
    def orchestrator(self) -> FallbackOrchestrator:
        return self._orchestrator

    async def generate_summary(self, content: str, *, cancel: asyncio.Event | None = None) -> str:
        return await self._orchestrator.execute(
            Summarize(content=content, timeout=self._timeout, cancel=cancel)
        )

    async def generate_tags(self, content: str, *, cancel: asyncio.Event | None = None) -> list[str]:
        return await self._orchestrator.execute(
            Tag(content=content, timeout=self._timeout, cancel=cancel)
        )

    async def suggest_categories(
        self, content: str, *, cancel: asyncio.Event | None = None,
    ) -> list[str]:
        return await self._orchestrator.execute(
            SuggestCategories(content=content, timeout=self._timeout, cancel=cancel)
        )

    async def generate_project_plan(
        self, description: str, *, cancel: asyncio.Event | None = None,
    ) -> str:
        return await self._complete(PROJECT_PLAN_PROMPT.format(description=description), cancel)

    async def generate_tasks(
        self, description: str, *, cancel: asyncio.Event | None = None,
    ) -> list[str]:
        text = await self._complete(TASKS_PROMPT.format(description=description), cancel)
        return parse_task_lines(text)

    async def answer_question(
        self, question: str, context: str, *, cancel: asyncio.Event | None = None,
    ) -> str:
        return await self._complete(
            ANSWER_PROMPT.format(context=context, question=question), cancel,
        )

    async def extract_text(self, data: bytes, mime_type: str) -> str:
        """Plain text is decoded; other types return UNSUPPORTED_EXTRACTION."""
        return await self._orchestrator.execute(ExtractText(data=data, mime_type=mime_type))

    async def _complete(self, prompt: str, cancel: asyncio.Event | None) -> str:
        return await self._orchestrator.execute(
            Complete(prompt=prompt, timeout=self._timeout, cancel=cancel)
        )
