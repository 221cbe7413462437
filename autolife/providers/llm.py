"""
Adapters for hosted and local LLM APIs.

Each adapter wraps one async vendor client and translates vendor exceptions
into the ProviderError taxonomy. Summaries, tags and categories are all
built on a single chat call, implemented per vendor in _chat().
"""

import logging
import os

from ..errors import (
    AuthFailure,
    MalformedResponse,
    ProviderError,
    ProviderTimeout,
    ProviderUnavailable,
    RateLimited,
)
from ..types import CompletionOptions, ProviderConfig, ProviderKind
from .base import (
    CATEGORY_SYSTEM_PROMPT,
    MAX_CATEGORIES,
    MAX_TAGS,
    SUMMARIZATION_SYSTEM_PROMPT,
    TAGGING_SYSTEM_PROMPT,
    get_factory,
    parse_list_output,
    strip_summary_preamble,
    truncate_content,
)

logger = logging.getLogger(__name__)

DEFAULT_OLLAMA_URL = "http://localhost:11434"
DEFAULT_AZURE_API_VERSION = "2024-10-21"


def _resolve_credential(config: ProviderConfig, *env_vars: str) -> str:
    """Config credential first, then the listed environment variables."""
    key = config.credential or next(
        (os.environ[v] for v in env_vars if os.environ.get(v)), ""
    )
    if not key:
        raise AuthFailure(
            f"No credential for provider '{config.name}'. "
            f"Set it in autolife.toml or via {' or '.join(env_vars)}",
            provider_id=config.id,
        )
    return key


def _classify_sdk_error(sdk, exc: Exception, config: ProviderConfig) -> ProviderError:
    """
    Map an openai/anthropic SDK exception to a ProviderError.

    Both SDKs share the same exception hierarchy names. APITimeoutError is a
    subclass of APIConnectionError, so it is checked first.
    """
    message = f"{config.name} ({config.kind.value}): {exc}"
    if isinstance(exc, (sdk.AuthenticationError, sdk.PermissionDeniedError)):
        return AuthFailure(message, provider_id=config.id)
    if isinstance(exc, sdk.RateLimitError):
        return RateLimited(message, provider_id=config.id)
    if isinstance(exc, sdk.APITimeoutError):
        return ProviderTimeout(message, provider_id=config.id)
    if isinstance(exc, sdk.APIConnectionError):
        return ProviderUnavailable(message, provider_id=config.id)
    if isinstance(exc, sdk.APIStatusError) and exc.status_code >= 500:
        return ProviderUnavailable(message, provider_id=config.id)
    return ProviderError(message, provider_id=config.id)


def _classify_status(status_code: int, detail: str, config: ProviderConfig) -> ProviderError:
    """Map an HTTP status from a raw API to a ProviderError."""
    message = f"{config.name}: HTTP {status_code}. {detail}"
    if status_code in (401, 403):
        return AuthFailure(message, provider_id=config.id)
    if status_code == 429:
        return RateLimited(message, provider_id=config.id)
    if status_code in (408, 504):
        return ProviderTimeout(message, provider_id=config.id)
    if status_code >= 500:
        return ProviderUnavailable(message, provider_id=config.id)
    return ProviderError(message, provider_id=config.id)


class ChatAdapter:
    """
    Shared capability surface for chat-style LLM APIs.

    Subclasses implement _chat() and aclose().
    """

    default_model = ""

    def __init__(self, config: ProviderConfig):
        self.config = config
        self.model = config.model or self.default_model
        self._credential = ""

    async def _chat(
        self,
        system: str | None,
        user: str,
        *,
        max_tokens: int,
        temperature: float,
    ) -> str | None:
        raise NotImplementedError

    async def aclose(self) -> None:
        pass

    async def is_healthy(self) -> bool:
        """Configured means a credential was resolved when the adapter was built."""
        return bool(self._credential)

    async def complete(self, prompt: str, options: CompletionOptions | None = None) -> str:
        options = options or CompletionOptions()
        text = await self._chat(
            options.system_prompt,
            prompt,
            max_tokens=options.max_tokens,
            temperature=options.temperature,
        )
        if not text or not text.strip():
            raise MalformedResponse(f"{self.config.name} returned an empty completion",
                                    provider_id=self.config.id)
        return text.strip()

    async def summarize(self, content: str) -> str:
        text = await self._chat(
            SUMMARIZATION_SYSTEM_PROMPT,
            truncate_content(content),
            max_tokens=300,
            temperature=0.3,
        )
        summary = strip_summary_preamble(text or "")
        if not summary:
            raise MalformedResponse(f"{self.config.name} returned an empty summary",
                                    provider_id=self.config.id)
        return summary

    async def generate_tags(self, content: str) -> list[str]:
        text = await self._chat(
            TAGGING_SYSTEM_PROMPT,
            truncate_content(content, 20000),
            max_tokens=200,
            temperature=0.2,
        )
        return [t.lower() for t in self._parse_list(text, MAX_TAGS)]

    async def suggest_categories(self, content: str) -> list[str]:
        text = await self._chat(
            CATEGORY_SYSTEM_PROMPT,
            truncate_content(content, 20000),
            max_tokens=100,
            temperature=0.2,
        )
        return self._parse_list(text, MAX_CATEGORIES)

    def _parse_list(self, text: str | None, limit: int) -> list[str]:
        try:
            return parse_list_output(text, limit)
        except MalformedResponse as e:
            e.provider_id = self.config.id
            raise


# -----------------------------------------------------------------------------
# OpenAI
# -----------------------------------------------------------------------------

class OpenAIAdapter(ChatAdapter):
    """
    Adapter for OpenAI's chat completions API.

    Credential: config.credential, AUTOLIFE_OPENAI_API_KEY or OPENAI_API_KEY.
    Default model is gpt-4.1-mini.
    """

    default_model = "gpt-4.1-mini"

    def __init__(self, config: ProviderConfig):
        super().__init__(config)
        try:
            from openai import AsyncOpenAI
        except ImportError:
            raise RuntimeError("OpenAIAdapter requires 'openai' library")

        key = _resolve_credential(config, "AUTOLIFE_OPENAI_API_KEY", "OPENAI_API_KEY")
        self._credential = key
        self._client = AsyncOpenAI(
            api_key=key,
            base_url=config.endpoint or None,
            timeout=config.timeout_seconds,
            max_retries=config.max_retries,
        )

        # GPT-5+ and reasoning models use a different API surface:
        # - max_completion_tokens instead of max_tokens
        # - temperature must be omitted (only default=1 supported)
        self._new_api = self.model.startswith(("gpt-5", "o3", "o4"))

    def _completion_kwargs(self, max_tokens: int, temperature: float) -> dict:
        """Return model-appropriate kwargs for token limit and temperature."""
        if self._new_api:
            return {"max_completion_tokens": max_tokens}
        return {"max_tokens": max_tokens, "temperature": temperature}

    async def _chat(self, system, user, *, max_tokens, temperature):
        import openai

        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": user})
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                **self._completion_kwargs(max_tokens, temperature),
            )
        except openai.APIError as e:
            raise _classify_sdk_error(openai, e, self.config) from e

        if not response.choices:
            raise MalformedResponse(f"{self.config.name} returned no choices",
                                    provider_id=self.config.id)
        return response.choices[0].message.content

    async def aclose(self) -> None:
        await self._client.close()


class AzureOpenAIAdapter(OpenAIAdapter):
    """
    Adapter for Azure-hosted (or Azure-compatible) OpenAI deployments.

    Requires config.endpoint. The model field names the deployment.
    Credential: config.credential or AZURE_OPENAI_API_KEY.
    API version from AZURE_OPENAI_API_VERSION (default 2024-10-21).
    """

    def __init__(self, config: ProviderConfig):
        ChatAdapter.__init__(self, config)
        try:
            from openai import AsyncAzureOpenAI
        except ImportError:
            raise RuntimeError("AzureOpenAIAdapter requires 'openai' library")

        if not config.endpoint:
            raise ProviderError(
                f"Azure provider '{config.name}' requires an endpoint",
                provider_id=config.id,
            )
        key = _resolve_credential(config, "AZURE_OPENAI_API_KEY")
        self._credential = key
        self._client = AsyncAzureOpenAI(
            api_key=key,
            azure_endpoint=config.endpoint,
            api_version=os.environ.get("AZURE_OPENAI_API_VERSION", DEFAULT_AZURE_API_VERSION),
            timeout=config.timeout_seconds,
            max_retries=config.max_retries,
        )
        self._new_api = self.model.startswith(("gpt-5", "o3", "o4"))


# -----------------------------------------------------------------------------
# Anthropic
# -----------------------------------------------------------------------------

class AnthropicAdapter(ChatAdapter):
    """
    Adapter for Anthropic's messages API (or a compatible endpoint).

    Credential (checked in order): config.credential, ANTHROPIC_API_KEY,
    CLAUDE_CODE_OAUTH_TOKEN. Default model is claude-haiku-4-5.
    """

    default_model = "claude-haiku-4-5-20251001"

    def __init__(self, config: ProviderConfig):
        super().__init__(config)
        try:
            from anthropic import AsyncAnthropic
        except ImportError:
            raise RuntimeError("AnthropicAdapter requires 'anthropic' library")

        key = _resolve_credential(config, "ANTHROPIC_API_KEY", "CLAUDE_CODE_OAUTH_TOKEN")
        self._credential = key
        self._client = AsyncAnthropic(
            api_key=key,
            base_url=config.endpoint or None,
            timeout=config.timeout_seconds,
            max_retries=config.max_retries,
        )

    async def _chat(self, system, user, *, max_tokens, temperature):
        import anthropic

        kwargs: dict = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": user}],
        }
        if system:
            kwargs["system"] = system
        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.APIError as e:
            raise _classify_sdk_error(anthropic, e, self.config) from e

        for block in response.content or []:
            if getattr(block, "type", None) == "text":
                return block.text
        raise MalformedResponse(f"{self.config.name} returned no text content",
                                provider_id=self.config.id)

    async def aclose(self) -> None:
        await self._client.close()


# -----------------------------------------------------------------------------
# Local models (Ollama)
# -----------------------------------------------------------------------------

def ollama_base_url(endpoint: str | None = None) -> str:
    """Resolve the Ollama URL: explicit endpoint, OLLAMA_HOST, or localhost."""
    url = endpoint or os.environ.get("OLLAMA_HOST") or DEFAULT_OLLAMA_URL
    if "://" not in url:
        url = f"http://{url}"
    return url.rstrip("/")


class LocalModelAdapter(ChatAdapter):
    """
    Adapter for a local model served by Ollama's /api/chat.

    Respects OLLAMA_HOST when no endpoint is configured. A credential, if
    set, is sent as a bearer token (for authenticating proxies).
    """

    default_model = "llama3.2"

    def __init__(self, config: ProviderConfig):
        super().__init__(config)
        import httpx

        self.base_url = ollama_base_url(config.endpoint)
        headers = {"Content-Type": "application/json"}
        if config.credential:
            headers["Authorization"] = f"Bearer {config.credential}"
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=httpx.Timeout(config.timeout_seconds, connect=10.0),
            transport=httpx.AsyncHTTPTransport(retries=config.max_retries),
        )

    async def _chat(self, system, user, *, max_tokens, temperature):
        import httpx

        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": user})
        try:
            response = await self._client.post(
                "/api/chat",
                json={
                    "model": self.model,
                    "messages": messages,
                    "stream": False,
                    "options": {"temperature": temperature, "num_predict": max_tokens},
                },
            )
        except httpx.TimeoutException as e:
            raise ProviderTimeout(f"{self.config.name}: {e}", provider_id=self.config.id) from e
        except httpx.HTTPError as e:
            raise ProviderUnavailable(
                f"Cannot reach Ollama at {self.base_url}: {e}", provider_id=self.config.id
            ) from e

        if response.status_code >= 400:
            detail = response.text[:200] if response.text else ""
            raise _classify_status(response.status_code, detail, self.config)

        try:
            return response.json()["message"]["content"]
        except (ValueError, KeyError, TypeError) as e:
            raise MalformedResponse(
                f"{self.config.name}: unexpected response from {self.base_url}",
                provider_id=self.config.id,
            ) from e

    async def is_healthy(self) -> bool:
        """True when the Ollama server answers /api/tags."""
        import httpx

        try:
            response = await self._client.get("/api/tags")
        except httpx.HTTPError as e:
            logger.debug("Ollama at %s not reachable: %s", self.base_url, e)
            return False
        return response.status_code == 200

    async def aclose(self) -> None:
        await self._client.aclose()


# Register adapters
_factory = get_factory()
_factory.register(ProviderKind.OPENAI, OpenAIAdapter)
_factory.register(ProviderKind.AZURE, AzureOpenAIAdapter)
_factory.register(ProviderKind.ANTHROPIC, AnthropicAdapter)
_factory.register(ProviderKind.LOCAL, LocalModelAdapter)
