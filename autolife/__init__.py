"""
Autolife AI

AI summarization, tagging, categorization and project planning for a
personal knowledge base, with automatic fallback across providers.

Quick Start:
    import asyncio
    from autolife import AiService, FallbackOrchestrator, ProviderRegistry
    from autolife import ProviderConfig, ProviderKind

    registry = ProviderRegistry([
        ProviderConfig(name="Claude", kind=ProviderKind.ANTHROPIC, priority=1),
        ProviderConfig(name="Mock", kind=ProviderKind.MOCK, priority=999),
    ])
    service = AiService(FallbackOrchestrator(registry))
    summary = asyncio.run(service.generate_summary(text))

CLI Usage:
    autolife providers list
    autolife summarize notes.md
    autolife tasks "Renovate the kitchen"

Environment Variables:
    AUTOLIFE_CONFIG_DIR      - Override config location (default ~/.autolife)
    AUTOLIFE_VERBOSE         - Set to 1 for debug logging
    ANTHROPIC_API_KEY        - Credential for anthropic providers
    OPENAI_API_KEY           - Credential for openai providers
    AZURE_OPENAI_API_KEY     - Credential for azure providers
    OLLAMA_HOST              - Default endpoint for local providers
"""

from .errors import (
    AllProvidersFailed,
    AuthFailure,
    ConfigurationError,
    MalformedResponse,
    NoProvidersConfigured,
    OperationCancelled,
    ProviderError,
    ProviderNotFound,
    ProviderTimeout,
    RateLimited,
    Unsupported,
)
from .health import HealthTracker
from .orchestrator import FallbackOrchestrator
from .registry import ProviderRegistry
from .service import AiService, parse_task_lines
from .types import ProviderConfig, ProviderKind, ProviderStatus

__version__ = "0.1.0"
__all__ = [
    "AiService",
    "FallbackOrchestrator",
    "HealthTracker",
    "ProviderRegistry",
    "ProviderConfig",
    "ProviderKind",
    "ProviderStatus",
    "parse_task_lines",
    "AllProvidersFailed",
    "AuthFailure",
    "ConfigurationError",
    "MalformedResponse",
    "NoProvidersConfigured",
    "OperationCancelled",
    "ProviderError",
    "ProviderNotFound",
    "ProviderTimeout",
    "RateLimited",
    "Unsupported",
]
