"""Tests for model providers and the provider registry."""

import json
from typing import Any, Callable, Dict

import httpx
import pytest
from ollama import ResponseError

from eaas.evaluation.types import ModelConfig, ModelParameters, Prompt
from eaas.providers import (
    CohereProvider,
    GroqProvider,
    OllamaProvider,
    OpenRouterProvider,
    ProviderRegistry,
    TogetherProvider,
)
from utils.exceptions import (
    AuthenticationError,
    ConfigError,
    InvalidResponseError,
    NetworkError,
    ProviderError,
    RateLimitError,
)

PROMPT = Prompt(id="p1", text="Say hi", expected_output="hi")


def _make_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _chat_body(text: str = "hi", total_tokens: int = 1000) -> Dict[str, Any]:
    return {
        "model": "served-model",
        "choices": [{"message": {"role": "assistant", "content": text}, "finish_reason": "stop"}],
        "usage": {"total_tokens": total_tokens},
    }


def _model(provider: str, model_name: str, **kwargs: Any) -> ModelConfig:
    return ModelConfig(id=f"{provider}-model", provider=provider, model_name=model_name, api_key="secret", **kwargs)


class TestChatCompletionsProviders:
    @pytest.mark.asyncio
    async def test_together_success(self) -> None:
        seen: Dict[str, Any] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_chat_body("hello there", 1000))

        async with _make_client(handler) as client:
            provider = TogetherProvider(client=client)
            config = _model(
                "together",
                "meta-llama/Meta-Llama-3-8B-Instruct",
                parameters=ModelParameters(temperature=0.1, max_tokens=64),
            )
            output = await provider.generate(PROMPT, config)

        assert seen["url"] == "https://api.together.xyz/v1/chat/completions"
        assert seen["auth"] == "Bearer secret"
        assert seen["body"]["model"] == "meta-llama/Meta-Llama-3-8B-Instruct"
        assert seen["body"]["messages"] == [{"role": "user", "content": "Say hi"}]
        assert seen["body"]["temperature"] == 0.1
        assert seen["body"]["max_tokens"] == 64
        assert "frequency_penalty" in seen["body"]

        assert output.prompt_id == "p1"
        assert output.output == "hello there"
        assert output.metadata.token_count == 1000
        assert output.metadata.cost_usd == pytest.approx(0.0002)
        assert output.metadata.provider_metadata["finish_reason"] == "stop"
        assert output.metadata.latency_ms >= 0
        assert provider.get_stats()["request_count"] == 1

    @pytest.mark.asyncio
    async def test_endpoint_override(self) -> None:
        seen: Dict[str, str] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            return httpx.Response(200, json=_chat_body())

        async with _make_client(handler) as client:
            provider = GroqProvider(client=client)
            config = _model("groq", "llama3-8b-8192", endpoint="http://proxy.local/v1/chat/completions")
            await provider.generate(PROMPT, config)

        assert seen["url"] == "http://proxy.local/v1/chat/completions"

    @pytest.mark.parametrize(
        "status,error_cls",
        [
            (401, AuthenticationError),
            (403, AuthenticationError),
            (429, RateLimitError),
            (500, ProviderError),
            (404, ProviderError),
        ],
    )
    @pytest.mark.asyncio
    async def test_status_mapping(self, status: int, error_cls: type) -> None:
        async with _make_client(lambda request: httpx.Response(status, text="nope")) as client:
            provider = GroqProvider(client=client)
            with pytest.raises(error_cls) as exc_info:
                await provider.generate(PROMPT, _model("groq", "llama3-8b-8192"))

        if error_cls is ProviderError:
            assert type(exc_info.value) is ProviderError

    @pytest.mark.asyncio
    async def test_transport_error_is_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _make_client(handler) as client:
            provider = GroqProvider(client=client)
            with pytest.raises(NetworkError) as exc_info:
                await provider.generate(PROMPT, _model("groq", "llama3-8b-8192"))

        assert exc_info.value.error_kind == "NetworkError"

    @pytest.mark.asyncio
    async def test_malformed_json_is_invalid_response(self) -> None:
        async with _make_client(lambda request: httpx.Response(200, content=b"<html>")) as client:
            provider = GroqProvider(client=client)
            with pytest.raises(InvalidResponseError):
                await provider.generate(PROMPT, _model("groq", "llama3-8b-8192"))

    @pytest.mark.asyncio
    async def test_missing_api_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("GROQ_API_KEY", raising=False)
        async with _make_client(lambda request: httpx.Response(200, json=_chat_body())) as client:
            provider = GroqProvider(client=client)
            config = ModelConfig(id="g", provider="groq", model_name="llama3-8b-8192")
            with pytest.raises(AuthenticationError):
                await provider.generate(PROMPT, config)

    @pytest.mark.asyncio
    async def test_api_key_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENROUTER_API_KEY", "env-key")
        seen: Dict[str, str] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json=_chat_body())

        async with _make_client(handler) as client:
            provider = OpenRouterProvider(client=client)
            config = ModelConfig(id="o", provider="openrouter", model_name="google/gemma-2-9b-it:free")
            await provider.generate(PROMPT, config)

        assert seen["auth"] == "Bearer env-key"


class TestCohereProvider:
    @pytest.mark.asyncio
    async def test_parses_v2_chat_response(self) -> None:
        seen: Dict[str, Any] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "message": {"role": "assistant", "content": [{"type": "text", "text": "bonjour"}]},
                    "finish_reason": "COMPLETE",
                    "usage": {"tokens": {"input_tokens": 600, "output_tokens": 400}},
                },
            )

        async with _make_client(handler) as client:
            provider = CohereProvider(client=client)
            output = await provider.generate(PROMPT, _model("cohere", "command-r-plus"))

        assert seen["url"] == "https://api.cohere.com/v2/chat"
        assert seen["body"]["p"] == 1.0
        assert output.output == "bonjour"
        assert output.metadata.token_count == 1000
        assert output.metadata.cost_usd == pytest.approx(0.003)
        assert output.metadata.provider_metadata["finish_reason"] == "COMPLETE"


class TestCostTables:
    def test_known_and_default_rates(self) -> None:
        provider = TogetherProvider()
        assert provider.calculate_cost(2000, "meta-llama/Llama-2-70b-chat-hf") == pytest.approx(0.0018)
        assert provider.calculate_cost(1000, "some/unknown-model") == pytest.approx(0.0005)

    def test_groq_is_free(self) -> None:
        assert GroqProvider().calculate_cost(50_000, "llama3-70b-8192") == 0.0

    def test_openrouter_free_suffix(self) -> None:
        provider = OpenRouterProvider()
        assert provider.calculate_cost(10_000, "anything/model:free") == 0.0
        assert provider.calculate_cost(1000, "openai/gpt-4o") == pytest.approx(0.001)

    def test_supports_model(self) -> None:
        provider = CohereProvider()
        assert provider.supports_model("command-r")
        assert not provider.supports_model("gpt-4")


class FakeOllamaClient:
    def __init__(self, response: Any = None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.calls: list[Dict[str, Any]] = []

    async def chat(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return self.response


class TestOllamaProvider:
    @pytest.mark.asyncio
    async def test_generate(self) -> None:
        fake = FakeOllamaClient(
            response={
                "message": {"role": "assistant", "content": "4"},
                "prompt_eval_count": 12,
                "eval_count": 3,
                "total_duration": 250_000_000,
                "done_reason": "stop",
            }
        )
        provider = OllamaProvider(host="http://ollama.test:11434")
        provider._ollama_clients["http://ollama.test:11434"] = fake

        config = ModelConfig(id="local", provider="ollama", model_name="qwen2.5:7b")
        output = await provider.generate(PROMPT, config)

        assert output.output == "4"
        assert output.metadata.token_count == 15
        assert output.metadata.latency_ms == 250
        assert output.metadata.cost_usd == 0.0
        assert fake.calls[0]["model"] == "qwen2.5:7b"
        assert fake.calls[0]["options"]["num_predict"] == 1024

    @pytest.mark.asyncio
    async def test_response_error_mapping(self) -> None:
        provider = OllamaProvider(host="http://ollama.test:11434")
        config = ModelConfig(id="local", provider="ollama", model_name="missing:latest")

        provider._ollama_clients["http://ollama.test:11434"] = FakeOllamaClient(
            error=ResponseError("model not found", 404)
        )
        with pytest.raises(ProviderError, match="not found"):
            await provider.generate(PROMPT, config)

        provider._ollama_clients["http://ollama.test:11434"] = FakeOllamaClient(
            error=ResponseError("slow down", 429)
        )
        with pytest.raises(RateLimitError):
            await provider.generate(PROMPT, config)

    @pytest.mark.asyncio
    async def test_connection_failure_is_network_error(self) -> None:
        provider = OllamaProvider(host="http://ollama.test:11434")
        provider._ollama_clients["http://ollama.test:11434"] = FakeOllamaClient(
            error=ConnectionError("Failed to connect to Ollama")
        )
        config = ModelConfig(id="local", provider="ollama", model_name="qwen2.5:7b")
        with pytest.raises(NetworkError):
            await provider.generate(PROMPT, config)

    def test_no_api_key_needed(self) -> None:
        OllamaProvider().validate_model_config(ModelConfig(id="l", provider="ollama", model_name="llama3.2"))


class TestProviderRegistry:
    @pytest.mark.asyncio
    async def test_default_registry_has_builtin_providers(self) -> None:
        registry = ProviderRegistry.default(timeout=5.0)
        try:
            assert registry.list_providers() == ["cohere", "groq", "ollama", "openrouter", "together"]
            assert isinstance(registry.get("GROQ"), GroqProvider)
        finally:
            await registry.aclose()

    def test_unknown_provider_rejected(self) -> None:
        registry = ProviderRegistry()
        config = ModelConfig(id="x", provider="openai", model_name="gpt-4")
        with pytest.raises(ConfigError, match="Unknown provider 'openai'"):
            registry.validate_model_config(config)

    def test_missing_api_key_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("TOGETHER_API_KEY", raising=False)
        registry = ProviderRegistry()
        registry.register(TogetherProvider())
        config = ModelConfig(id="t", provider="together", model_name="meta-llama/Llama-2-7b-chat-hf")
        with pytest.raises(ConfigError, match="TOGETHER_API_KEY"):
            registry.validate_model_config(config)

    def test_empty_model_name_rejected(self) -> None:
        registry = ProviderRegistry()
        registry.register(OllamaProvider())
        with pytest.raises(ConfigError, match="empty model_name"):
            registry.validate_model_config(ModelConfig(id="l", provider="ollama", model_name=""))

    @pytest.mark.asyncio
    async def test_generate_with_unknown_provider(self) -> None:
        registry = ProviderRegistry()
        with pytest.raises(ProviderError, match="not found"):
            await registry.generate(PROMPT, ModelConfig(id="x", provider="nope", model_name="m"))
