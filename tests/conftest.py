"""
Shared pytest fixtures for autolife tests.

Provides a scriptable adapter so orchestrator behaviour can be tested
without network access or vendor SDK calls.
"""

import asyncio

import pytest

from autolife.health import HealthTracker
from autolife.orchestrator import FallbackOrchestrator
from autolife.providers.base import AdapterFactory
from autolife.registry import ProviderRegistry
from autolife.service import AiService
from autolife.types import ProviderConfig, ProviderKind

HANG = "hang"


class ScriptedAdapter:
    """
    Adapter whose behaviour is looked up by provider name in an AdapterScript.

    Behaviours:
        missing      -> canned payload ("<name> summary", ["<name>", ...])
        exception    -> raised (instance or class)
        HANG         -> sleeps until cancelled
        other value  -> returned as the payload
    """

    def __init__(self, config: ProviderConfig, script: "AdapterScript"):
        self.config = config
        self.script = script

    async def _run(self, op: str, canned):
        self.script.calls.append((self.config.name, op))
        behaviour = self.script.behaviours.get(self.config.name)
        if isinstance(behaviour, BaseException) or (
            isinstance(behaviour, type) and issubclass(behaviour, BaseException)
        ):
            raise behaviour
        if behaviour == HANG:
            await asyncio.sleep(3600)
        if behaviour is not None:
            return behaviour
        return canned

    async def complete(self, prompt, options=None):
        self.script.prompts.append(prompt)
        return await self._run("complete", f"{self.config.name} completion")

    async def summarize(self, content):
        return await self._run("summarize", f"{self.config.name} summary")

    async def generate_tags(self, content):
        return await self._run("tags", [self.config.name.lower(), "tag"])

    async def suggest_categories(self, content):
        return await self._run("categories", ["General"])

    async def is_healthy(self):
        behaviour = self.script.behaviours.get(self.config.name)
        if behaviour == HANG:
            await asyncio.sleep(3600)
        return not isinstance(behaviour, BaseException)

    async def aclose(self):
        self.script.closed.append(self.config.name)


class AdapterScript:
    """Per-test behaviour table and call log for ScriptedAdapter."""

    def __init__(self):
        self.behaviours: dict = {}
        self.calls: list[tuple[str, str]] = []
        self.prompts: list[str] = []
        self.closed: list[str] = []

    def called(self) -> list[str]:
        """Provider names in invocation order."""
        return [name for name, _ in self.calls]

    def factory(self) -> AdapterFactory:
        factory = AdapterFactory()
        factory._lazy_loaded = True  # only scripted adapters
        for kind in ProviderKind:
            factory.register(kind, lambda config: ScriptedAdapter(config, self))
        return factory


def make_provider(name: str, priority: int, **kwargs) -> ProviderConfig:
    kwargs.setdefault("kind", ProviderKind.MOCK)
    return ProviderConfig(name=name, priority=priority, **kwargs)


@pytest.fixture
def script():
    return AdapterScript()


@pytest.fixture
def registry():
    return ProviderRegistry()


@pytest.fixture
def tracker():
    return HealthTracker()


@pytest.fixture
def orchestrator(registry, tracker, script):
    return FallbackOrchestrator(registry, tracker, factory=script.factory())


@pytest.fixture
def service(orchestrator):
    return AiService(orchestrator)


@pytest.fixture
def three_providers(registry):
    """Providers named p1..p3 with priorities 1..3, added out of order."""
    p3 = registry.add(make_provider("p3", 3))
    p1 = registry.add(make_provider("p1", 1))
    p2 = registry.add(make_provider("p2", 2))
    return p1, p2, p3
