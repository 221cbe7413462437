"""
Data types for the AI completion layer.

ProviderConfig is the single mutable record kept per provider. Requests and
outcomes are small value objects passed between the service layer and the
fallback orchestrator.
"""

import abc
import asyncio
import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Union


def utc_now() -> str:
    """Current UTC timestamp in canonical format: YYYY-MM-DDTHH:MM:SS."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")


class ProviderKind(str, enum.Enum):
    """Which adapter implementation a provider record maps to."""
    OPENAI = "openai"
    AZURE = "azure"
    ANTHROPIC = "anthropic"
    LOCAL = "local"
    MOCK = "mock"


class ProviderStatus(str, enum.Enum):
    """Health label derived from consecutive failures."""
    UNKNOWN = "unknown"
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"


def _coerce(kind: type, name: str, value: Any):
    """Convert a numeric setting, raising ValueError for anything unusable."""
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a number, got {value!r}")
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number, got {value!r}") from None


@dataclass
class ProviderConfig:
    """
    Configuration and health state for one AI provider.

    Attributes:
        id: Opaque identifier, assigned by the registry when empty
        name: Display name
        kind: Adapter kind (see ProviderKind)
        priority: Lower values are tried first
        enabled: Disabled providers are never tried
        credential: API key or token; empty means "read from environment"
        endpoint: Optional base URL override (required for Azure)
        model: Model identifier passed to the vendor API
        max_retries: Retry budget handed to the vendor client
        timeout_seconds: Per-call deadline
        last_success: UTC timestamp of the last successful call
        last_failure: UTC timestamp of the last failed call
        consecutive_failures: Failures since the last success
        status: Derived health label
    """
    name: str
    kind: ProviderKind
    id: str = ""
    priority: int = 0
    enabled: bool = True
    credential: str = ""
    endpoint: str | None = None
    model: str = ""
    max_retries: int = 3
    timeout_seconds: float = 30.0
    last_success: str | None = None
    last_failure: str | None = None
    consecutive_failures: int = 0
    status: ProviderStatus = ProviderStatus.UNKNOWN

    def __post_init__(self):
        self.kind = ProviderKind(self.kind)
        self.status = ProviderStatus(self.status)
        if not isinstance(self.enabled, bool):
            raise ValueError(f"enabled must be true or false, got {self.enabled!r}")
        self.priority = _coerce(int, "priority", self.priority)
        self.max_retries = _coerce(int, "max_retries", self.max_retries)
        self.timeout_seconds = _coerce(float, "timeout_seconds", self.timeout_seconds)
        self.consecutive_failures = _coerce(
            int, "consecutive_failures", self.consecutive_failures,
        )
        if self.max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if self.consecutive_failures < 0:
            raise ValueError("consecutive_failures must be non-negative")

    def __repr__(self) -> str:
        # Keep credentials out of logs and tracebacks
        return (
            f"ProviderConfig(id={self.id!r}, name={self.name!r}, kind={self.kind.value!r}, "
            f"priority={self.priority}, enabled={self.enabled}, "
            f"failures={self.consecutive_failures}, status={self.status.value!r})"
        )

    def to_dict(self, include_credential: bool = False) -> dict[str, Any]:
        """Plain dict for TOML/JSON output."""
        d: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "kind": self.kind.value,
            "priority": self.priority,
            "enabled": self.enabled,
            "model": self.model,
            "max_retries": self.max_retries,
            "timeout_seconds": self.timeout_seconds,
            "consecutive_failures": self.consecutive_failures,
            "status": self.status.value,
        }
        if self.endpoint:
            d["endpoint"] = self.endpoint
        if self.last_success:
            d["last_success"] = self.last_success
        if self.last_failure:
            d["last_failure"] = self.last_failure
        if include_credential and self.credential:
            d["credential"] = self.credential
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProviderConfig":
        """Build a config from a settings section, ignoring unknown keys."""
        known = {f for f in cls.__dataclass_fields__}
        return cls(**{k: v for k, v in data.items() if k in known})


# -----------------------------------------------------------------------------
# Requests
# -----------------------------------------------------------------------------

@dataclass(kw_only=True)
class OperationRequest(abc.ABC):
    """
    Base for a typed request to a provider capability.

    Attributes:
        timeout: Overall deadline for the whole fallback pass, in seconds
        cancel: Set by the caller to abandon the operation
    """
    timeout: float | None = None
    cancel: asyncio.Event | None = None

    @abc.abstractmethod
    async def invoke(self, adapter) -> Any:
        """Call the matching capability on one adapter."""


@dataclass(kw_only=True)
class CompletionOptions:
    """Sampling options for raw completions."""
    temperature: float = 0.7
    max_tokens: int = 1000
    system_prompt: str | None = None


@dataclass(kw_only=True)
class Complete(OperationRequest):
    prompt: str
    options: CompletionOptions | None = None

    async def invoke(self, adapter) -> str:
        return await adapter.complete(self.prompt, self.options)


@dataclass(kw_only=True)
class Summarize(OperationRequest):
    content: str

    async def invoke(self, adapter) -> str:
        return await adapter.summarize(self.content)


@dataclass(kw_only=True)
class Tag(OperationRequest):
    content: str

    async def invoke(self, adapter) -> list[str]:
        return await adapter.generate_tags(self.content)


@dataclass(kw_only=True)
class SuggestCategories(OperationRequest):
    content: str

    async def invoke(self, adapter) -> list[str]:
        return await adapter.suggest_categories(self.content)


UNSUPPORTED_EXTRACTION = "[Text extraction requires additional libraries for this file type]"


@dataclass(kw_only=True)
class ExtractText(OperationRequest):
    """
    Text extraction from raw bytes.

    Resolved locally without consulting any provider: plain text is decoded,
    every other MIME type yields UNSUPPORTED_EXTRACTION.
    """
    data: bytes
    mime_type: str

    def resolve(self) -> str:
        mime = self.mime_type.split(";", 1)[0].strip().lower()
        if mime == "text/plain":
            return self.data.decode("utf-8", errors="replace")
        return UNSUPPORTED_EXTRACTION

    async def invoke(self, adapter) -> str:
        return self.resolve()


# -----------------------------------------------------------------------------
# Outcomes
# -----------------------------------------------------------------------------

@dataclass
class Success:
    """A provider produced a payload."""
    payload: str | list[str]
    provider_id: str | None = None
    ok: bool = field(default=True, init=False)


@dataclass
class Failure:
    """No provider produced a payload; error holds the classified cause."""
    error: Exception
    ok: bool = field(default=False, init=False)


@dataclass
class Cancelled:
    """The caller withdrew the request before a provider succeeded."""
    ok: bool = field(default=False, init=False)


OperationOutcome = Union[Success, Failure, Cancelled]
