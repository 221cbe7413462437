"""
Tests for provider adapters.

Vendor clients are replaced with mocks; no network access is needed.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx
import openai
import pytest

from autolife.errors import (
    AuthFailure,
    MalformedResponse,
    ProviderError,
    ProviderTimeout,
    ProviderUnavailable,
    RateLimited,
    Unsupported,
)
from autolife.providers import (
    AdapterFactory,
    CompletionProvider,
    get_factory,
    parse_list_output,
    strip_summary_preamble,
)
from autolife.providers.llm import (
    AnthropicAdapter,
    AzureOpenAIAdapter,
    LocalModelAdapter,
    OpenAIAdapter,
    ollama_base_url,
)
from autolife.providers.mock import MockAdapter
from autolife.types import CompletionOptions, ProviderConfig, ProviderKind


def _request(url="https://api.example.com/v1/chat"):
    return httpx.Request("POST", url)


def _response(status):
    return httpx.Response(status, request=_request())


def _openai_reply(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _anthropic_reply(text):
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)])


def _ollama_adapter(handler, **config):
    adapter = LocalModelAdapter(ProviderConfig(
        name="Ollama", kind=ProviderKind.LOCAL, id="ol",
        endpoint="http://ollama.test", **config,
    ))
    adapter._client = httpx.AsyncClient(
        base_url=adapter.base_url, transport=httpx.MockTransport(handler),
    )
    return adapter


@pytest.fixture
def no_env_keys(monkeypatch):
    for var in (
        "OPENAI_API_KEY", "AUTOLIFE_OPENAI_API_KEY", "AZURE_OPENAI_API_KEY",
        "ANTHROPIC_API_KEY", "CLAUDE_CODE_OAUTH_TOKEN", "OLLAMA_HOST",
    ):
        monkeypatch.delenv(var, raising=False)


# -----------------------------------------------------------------------------
# Shared parsing helpers
# -----------------------------------------------------------------------------

class TestParseListOutput:

    def test_comma_separated(self):
        assert parse_list_output("python, testing, ci", 10) == ["python", "testing", "ci"]

    def test_bullets_numbers_and_quotes(self):
        text = "1. \"Research\"\n2) Work\n- Finance\n* #health"
        assert parse_list_output(text, 10) == ["Research", "Work", "Finance", "health"]

    def test_duplicates_and_limit(self):
        assert parse_list_output("a, A, b, c, d", 3) == ["a", "b", "c"]

    @pytest.mark.parametrize("text", [None, "", " , ;\n"])
    def test_nothing_usable(self, text):
        with pytest.raises(MalformedResponse):
            parse_list_output(text, 5)


class TestStripSummaryPreamble:

    @pytest.mark.parametrize("raw", [
        "Here is a summary of the text: Rust borrow checking explained.",
        "Summary: Rust borrow checking explained.",
        "  Rust borrow checking explained.  ",
    ])
    def test_preambles_removed(self, raw):
        assert strip_summary_preamble(raw) == "Rust borrow checking explained."


# -----------------------------------------------------------------------------
# Factory
# -----------------------------------------------------------------------------

class TestAdapterFactory:

    def test_builtin_kinds_registered(self):
        assert set(get_factory().kinds()) == set(ProviderKind)

    def test_unknown_kind_unsupported(self):
        factory = AdapterFactory()
        factory._lazy_loaded = True
        config = ProviderConfig(name="x", kind=ProviderKind.OPENAI, id="abc")
        with pytest.raises(Unsupported) as exc_info:
            factory.create(config)
        assert exc_info.value.provider_id == "abc"

    def test_creates_mock(self):
        adapter = get_factory().create(ProviderConfig(name="m", kind=ProviderKind.MOCK))
        assert isinstance(adapter, MockAdapter)
        assert isinstance(adapter, CompletionProvider)


# -----------------------------------------------------------------------------
# Mock adapter
# -----------------------------------------------------------------------------

class TestMockAdapter:

    @pytest.fixture
    def adapter(self):
        return MockAdapter(ProviderConfig(name="Mock", kind=ProviderKind.MOCK))

    @pytest.mark.asyncio
    async def test_task_prompt(self, adapter):
        text = await adapter.complete(
            "Generate a list of 5-10 specific tasks for this project: x\n\n"
            "Provide only the task titles, one per line."
        )
        lines = text.splitlines()
        assert len(lines) == 5
        assert all(line.startswith("- ") for line in lines)

    @pytest.mark.asyncio
    async def test_plan_prompt(self, adapter):
        text = await adapter.complete("Create a detailed project plan for: a garden")
        assert text.startswith("Project Plan:")

    @pytest.mark.asyncio
    async def test_generic_prompt_echoes(self, adapter):
        assert await adapter.complete("hello there") == "Mock AI response to: hello there..."

    @pytest.mark.asyncio
    async def test_summarize_short_content_unchanged(self, adapter):
        assert await adapter.summarize("  short note  ") == "short note"

    @pytest.mark.asyncio
    async def test_summarize_truncates_at_word(self, adapter):
        summary = await adapter.summarize("word " * 100)
        assert summary.endswith("...")
        assert len(summary) <= 203
        assert "wor..." not in summary

    @pytest.mark.asyncio
    async def test_tags_by_frequency(self, adapter):
        tags = await adapter.generate_tags(
            "Python testing with pytest. Python fixtures make testing easy. Python!"
        )
        assert tags[0] == "python"
        assert tags[1] == "testing"
        assert "with" not in tags

    @pytest.mark.asyncio
    async def test_tags_fallback(self, adapter):
        assert await adapter.generate_tags("a b c") == ["general"]

    @pytest.mark.asyncio
    async def test_categories(self, adapter):
        cats = await adapter.suggest_categories("Meeting notes about the python project budget")
        assert cats == ["Projects", "Meetings", "Development", "Finance"]

    @pytest.mark.asyncio
    async def test_categories_fallback(self, adapter):
        assert await adapter.suggest_categories("zzz") == ["Uncategorized"]


# -----------------------------------------------------------------------------
# OpenAI
# -----------------------------------------------------------------------------

class TestOpenAIAdapter:

    @pytest.fixture
    def adapter(self):
        adapter = OpenAIAdapter(ProviderConfig(
            name="OpenAI", kind=ProviderKind.OPENAI, id="oa", credential="sk-test",
        ))
        adapter._client = MagicMock()
        adapter._client.chat.completions.create = AsyncMock()
        return adapter

    def test_missing_credential(self, no_env_keys):
        with pytest.raises(AuthFailure):
            OpenAIAdapter(ProviderConfig(name="OpenAI", kind=ProviderKind.OPENAI))

    def test_credential_from_env(self, no_env_keys, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        adapter = OpenAIAdapter(ProviderConfig(name="OpenAI", kind=ProviderKind.OPENAI))
        assert adapter.model == "gpt-4.1-mini"

    def test_new_api_models_omit_temperature(self):
        adapter = OpenAIAdapter(ProviderConfig(
            name="o", kind=ProviderKind.OPENAI, credential="sk", model="gpt-5-mini",
        ))
        assert adapter._completion_kwargs(100, 0.3) == {"max_completion_tokens": 100}

    @pytest.mark.asyncio
    async def test_complete(self, adapter):
        adapter._client.chat.completions.create.return_value = _openai_reply("  hi  ")
        result = await adapter.complete(
            "hello", CompletionOptions(system_prompt="be brief", max_tokens=50),
        )
        assert result == "hi"
        kwargs = adapter._client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"][0] == {"role": "system", "content": "be brief"}
        assert kwargs["max_tokens"] == 50

    @pytest.mark.asyncio
    async def test_summarize_strips_preamble(self, adapter):
        adapter._client.chat.completions.create.return_value = _openai_reply(
            "Summary: A guide to sourdough."
        )
        assert await adapter.summarize("long text") == "A guide to sourdough."

    @pytest.mark.asyncio
    async def test_tags_lowercased(self, adapter):
        adapter._client.chat.completions.create.return_value = _openai_reply("Python, CI")
        assert await adapter.generate_tags("text") == ["python", "ci"]

    @pytest.mark.asyncio
    async def test_empty_completion_is_malformed(self, adapter):
        adapter._client.chat.completions.create.return_value = _openai_reply("")
        with pytest.raises(MalformedResponse):
            await adapter.complete("hello")

    @pytest.mark.asyncio
    async def test_no_choices_is_malformed(self, adapter):
        adapter._client.chat.completions.create.return_value = SimpleNamespace(choices=[])
        with pytest.raises(MalformedResponse) as exc_info:
            await adapter.summarize("text")
        assert exc_info.value.provider_id == "oa"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("exc,expected", [
        (openai.AuthenticationError("bad key", response=_response(401), body=None), AuthFailure),
        (openai.PermissionDeniedError("denied", response=_response(403), body=None), AuthFailure),
        (openai.RateLimitError("slow down", response=_response(429), body=None), RateLimited),
        (openai.InternalServerError("oops", response=_response(500), body=None),
         ProviderUnavailable),
        (openai.APITimeoutError(request=_request()), ProviderTimeout),
        (openai.APIConnectionError(request=_request()), ProviderUnavailable),
        (openai.BadRequestError("bad", response=_response(400), body=None), ProviderError),
    ])
    async def test_error_classification(self, adapter, exc, expected):
        adapter._client.chat.completions.create.side_effect = exc
        with pytest.raises(expected) as exc_info:
            await adapter.summarize("text")
        assert type(exc_info.value) is expected
        assert exc_info.value.provider_id == "oa"
        assert exc_info.value.__cause__ is exc


class TestAzureOpenAIAdapter:

    def test_requires_endpoint(self):
        with pytest.raises(ProviderError):
            AzureOpenAIAdapter(ProviderConfig(
                name="Azure", kind=ProviderKind.AZURE, credential="k",
            ))

    def test_model_names_deployment(self):
        adapter = AzureOpenAIAdapter(ProviderConfig(
            name="Azure", kind=ProviderKind.AZURE, credential="k",
            endpoint="https://example.openai.azure.com", model="my-deployment",
        ))
        assert adapter.model == "my-deployment"
        assert adapter._completion_kwargs(10, 0.5) == {"max_tokens": 10, "temperature": 0.5}


# -----------------------------------------------------------------------------
# Anthropic
# -----------------------------------------------------------------------------

class TestAnthropicAdapter:

    @pytest.fixture
    def adapter(self):
        adapter = AnthropicAdapter(ProviderConfig(
            name="Claude", kind=ProviderKind.ANTHROPIC, id="an", credential="sk-ant",
        ))
        adapter._client = MagicMock()
        adapter._client.messages.create = AsyncMock()
        return adapter

    def test_missing_credential(self, no_env_keys):
        with pytest.raises(AuthFailure):
            AnthropicAdapter(ProviderConfig(name="Claude", kind=ProviderKind.ANTHROPIC))

    @pytest.mark.asyncio
    async def test_system_prompt_passed_separately(self, adapter):
        adapter._client.messages.create.return_value = _anthropic_reply("Work, Research")
        assert await adapter.suggest_categories("text") == ["Work", "Research"]
        kwargs = adapter._client.messages.create.call_args.kwargs
        assert "categories" in kwargs["system"]
        assert kwargs["messages"] == [{"role": "user", "content": "text"}]

    @pytest.mark.asyncio
    async def test_first_text_block_used(self, adapter):
        adapter._client.messages.create.return_value = SimpleNamespace(content=[
            SimpleNamespace(type="thinking", thinking="..."),
            SimpleNamespace(type="text", text="answer"),
        ])
        assert await adapter.complete("q") == "answer"

    @pytest.mark.asyncio
    async def test_no_text_block_is_malformed(self, adapter):
        adapter._client.messages.create.return_value = SimpleNamespace(content=[])
        with pytest.raises(MalformedResponse):
            await adapter.complete("q")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("exc,expected", [
        (anthropic.AuthenticationError("bad key", response=_response(401), body=None),
         AuthFailure),
        (anthropic.RateLimitError("slow down", response=_response(429), body=None),
         RateLimited),
        (anthropic.InternalServerError("overloaded", response=_response(529), body=None),
         ProviderUnavailable),
        (anthropic.APITimeoutError(request=_request()), ProviderTimeout),
        (anthropic.APIConnectionError(request=_request()), ProviderUnavailable),
    ])
    async def test_error_classification(self, adapter, exc, expected):
        adapter._client.messages.create.side_effect = exc
        with pytest.raises(expected):
            await adapter.complete("q")


# -----------------------------------------------------------------------------
# Local models
# -----------------------------------------------------------------------------

class TestOllamaBaseUrl:

    def test_default(self, no_env_keys):
        assert ollama_base_url() == "http://localhost:11434"

    def test_env_without_scheme(self, no_env_keys, monkeypatch):
        monkeypatch.setenv("OLLAMA_HOST", "gpu-box:11434")
        assert ollama_base_url() == "http://gpu-box:11434"

    def test_explicit_endpoint_wins(self, no_env_keys, monkeypatch):
        monkeypatch.setenv("OLLAMA_HOST", "gpu-box:11434")
        assert ollama_base_url("https://llm.internal/") == "https://llm.internal"


class TestLocalModelAdapter:

    @pytest.mark.asyncio
    async def test_chat_request_and_reply(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = request.read()
            return httpx.Response(200, json={"message": {"role": "assistant", "content": "ok"}})

        adapter = _ollama_adapter(handler, model="mistral")
        assert await adapter.complete("ping") == "ok"
        await adapter.aclose()
        assert seen["path"] == "/api/chat"
        assert b'"model":"mistral"' in seen["body"].replace(b" ", b"")
        assert b'"stream":false' in seen["body"].replace(b" ", b"")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,expected", [
        (401, AuthFailure),
        (429, RateLimited),
        (504, ProviderTimeout),
        (503, ProviderUnavailable),
        (404, ProviderError),
    ])
    async def test_http_status_classification(self, status, expected):
        adapter = _ollama_adapter(lambda request: httpx.Response(status, text="nope"))
        with pytest.raises(expected) as exc_info:
            await adapter.summarize("text")
        assert type(exc_info.value) is expected

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        adapter = _ollama_adapter(handler)
        with pytest.raises(ProviderUnavailable):
            await adapter.complete("ping")

    @pytest.mark.asyncio
    async def test_read_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        adapter = _ollama_adapter(handler)
        with pytest.raises(ProviderTimeout):
            await adapter.complete("ping")

    @pytest.mark.asyncio
    async def test_unexpected_json(self):
        adapter = _ollama_adapter(lambda request: httpx.Response(200, json={"done": True}))
        with pytest.raises(MalformedResponse):
            await adapter.complete("ping")

    def test_bearer_token_header(self):
        adapter = LocalModelAdapter(ProviderConfig(
            name="Proxy", kind=ProviderKind.LOCAL, credential="tok",
            endpoint="http://proxy.test",
        ))
        assert adapter._client.headers["Authorization"] == "Bearer tok"


# -----------------------------------------------------------------------------
# Health checks
# -----------------------------------------------------------------------------

class TestIsHealthy:

    @pytest.mark.asyncio
    async def test_mock_always_healthy(self):
        adapter = MockAdapter(ProviderConfig(name="Mock", kind=ProviderKind.MOCK))
        assert await adapter.is_healthy() is True

    @pytest.mark.asyncio
    async def test_hosted_with_credential(self, no_env_keys):
        openai_adapter = OpenAIAdapter(ProviderConfig(
            name="o", kind=ProviderKind.OPENAI, credential="sk",
        ))
        anthropic_adapter = AnthropicAdapter(ProviderConfig(
            name="a", kind=ProviderKind.ANTHROPIC, credential="sk-ant",
        ))
        assert await openai_adapter.is_healthy() is True
        assert await anthropic_adapter.is_healthy() is True

    @pytest.mark.asyncio
    async def test_ollama_tags_endpoint(self):
        seen = []

        def handler(request):
            seen.append((request.method, request.url.path))
            return httpx.Response(200, json={"models": []})

        adapter = _ollama_adapter(handler)
        assert await adapter.is_healthy() is True
        assert seen == [("GET", "/api/tags")]

    @pytest.mark.asyncio
    async def test_ollama_error_status(self):
        adapter = _ollama_adapter(lambda request: httpx.Response(500))
        assert await adapter.is_healthy() is False

    @pytest.mark.asyncio
    async def test_ollama_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        adapter = _ollama_adapter(handler)
        assert await adapter.is_healthy() is False
