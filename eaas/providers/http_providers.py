"""
Hosted API Providers

Together, Groq, OpenRouter and Cohere over HTTPS. The first three speak the
OpenAI chat-completions dialect; Cohere uses its v2 chat endpoint. All share
one httpx.AsyncClient handed in by the registry.

Failures map onto the ProviderError hierarchy:
    401/403           -> AuthenticationError
    429               -> RateLimitError
    other >= 400      -> ProviderError
    transport/timeout -> NetworkError
    unparseable body  -> InvalidResponseError
"""

import logging
import time
from typing import Any, Dict, Optional, Tuple

import httpx

from utils.exceptions import (
    AuthenticationError,
    InvalidResponseError,
    NetworkError,
    ProviderError,
    RateLimitError,
)

from ..evaluation.types import ModelConfig, ModelOutput, OutputMetadata, Prompt
from .base import ModelProvider, ProviderRegistry

logger = logging.getLogger(__name__)


def raise_for_status(provider: str, resp: httpx.Response) -> None:
    """Translate an HTTP error status into a ProviderError subclass."""
    status = resp.status_code
    if status in (401, 403):
        raise AuthenticationError(f"{provider} auth error: HTTP {status}")
    if status == 429:
        raise RateLimitError(f"{provider} rate limited: HTTP {status}")
    if status >= 400:
        raise ProviderError(f"{provider} API error: HTTP {status} body={resp.text[:200]}")


class HTTPChatProvider(ModelProvider):
    """Shared request/response handling for hosted chat APIs."""

    url: str = ""
    requires_api_key = True

    def build_payload(self, prompt: Prompt, config: ModelConfig) -> Dict[str, Any]:
        params = config.parameters
        payload: Dict[str, Any] = {
            "model": config.model_name,
            "messages": [{"role": "user", "content": prompt.text}],
            "temperature": params.temperature if params.temperature is not None else 0.7,
            "max_tokens": params.max_tokens if params.max_tokens is not None else 1024,
            "top_p": params.top_p if params.top_p is not None else 1.0,
        }
        if params.stop_sequences:
            payload["stop"] = list(params.stop_sequences)
        return payload

    def extra_headers(self) -> Dict[str, str]:
        return {}

    def parse_response(self, data: Dict[str, Any], config: ModelConfig) -> Tuple[str, int, Dict[str, Any]]:
        """Extract (text, total tokens, provider metadata) from a chat-completions body."""
        choices = data.get("choices") or []
        first = choices[0] if choices else {}
        text = (first.get("message") or {}).get("content") or ""
        tokens = int((data.get("usage") or {}).get("total_tokens") or 0)
        meta = {
            "model": data.get("model", config.model_name),
            "finish_reason": first.get("finish_reason") or "unknown",
        }
        return text, tokens, meta

    async def generate(self, prompt: Prompt, config: ModelConfig) -> ModelOutput:
        api_key = self.resolve_api_key(config)
        if not api_key:
            raise AuthenticationError(f"Missing {self.name} API key (set {self.api_key_env})")

        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            **self.extra_headers(),
        }
        url = config.endpoint or self.url

        start = time.perf_counter()
        try:
            resp = await self.client.post(url, json=self.build_payload(prompt, config), headers=headers)
        except httpx.TransportError as e:
            raise NetworkError(f"{self.name} network error: {e}") from e
        latency_ms = int((time.perf_counter() - start) * 1000)

        raise_for_status(self.name, resp)

        try:
            data = resp.json()
            if not isinstance(data, dict):
                raise ValueError("response body is not an object")
            text, tokens, meta = self.parse_response(data, config)
        except (ValueError, TypeError, KeyError, AttributeError, IndexError) as e:
            raise InvalidResponseError(f"{self.name} response parse error: {e}") from e

        output = ModelOutput(
            prompt_id=prompt.id,
            output=text,
            metadata=OutputMetadata(
                latency_ms=latency_ms,
                token_count=tokens,
                cost_usd=self.calculate_cost(tokens, config.model_name),
                provider_metadata=meta,
            ),
        )
        self._record_request(output)
        logger.debug(
            "%s/%s answered prompt %s in %d ms (%d tokens)",
            self.name,
            config.model_name,
            prompt.id,
            latency_ms,
            tokens,
        )
        return output


class TogetherProvider(HTTPChatProvider):
    name = "together"
    url = "https://api.together.xyz/v1/chat/completions"
    default_cost_per_1k = 0.0005
    cost_per_1k = {
        "meta-llama/Llama-2-70b-chat-hf": 0.0009,
        "meta-llama/Meta-Llama-3-70B-Instruct": 0.0009,
        "meta-llama/Llama-2-13b-chat-hf": 0.0003,
        "meta-llama/Meta-Llama-3-8B-Instruct": 0.0002,
        "meta-llama/Llama-2-7b-chat-hf": 0.0002,
        "mistralai/Mixtral-8x7B-Instruct-v0.1": 0.0006,
        "mistralai/Mistral-7B-Instruct-v0.1": 0.0002,
        "codellama/CodeLlama-34b-Instruct-hf": 0.0008,
        "togethercomputer/RedPajama-INCITE-Chat-3B-v1": 0.0001,
        "NousResearch/Nous-Hermes-2-Mixtral-8x7B-DPO": 0.0006,
        "teknium/OpenHermes-2.5-Mistral-7B": 0.0002,
        "Qwen/Qwen1.5-72B-Chat": 0.0009,
        "OpenAI/GPT-OSS-20B": 0.0004,
    }

    def build_payload(self, prompt: Prompt, config: ModelConfig) -> Dict[str, Any]:
        payload = super().build_payload(prompt, config)
        params = config.parameters
        payload["frequency_penalty"] = params.frequency_penalty or 0.0
        payload["presence_penalty"] = params.presence_penalty or 0.0
        return payload


class GroqProvider(HTTPChatProvider):
    name = "groq"
    url = "https://api.groq.com/openai/v1/chat/completions"
    default_cost_per_1k = 0.0
    # Free tier
    cost_per_1k = {
        "llama3-8b-8192": 0.0,
        "llama3-70b-8192": 0.0,
        "mixtral-8x7b-32768": 0.0,
        "gemma-7b-it": 0.0,
    }


class OpenRouterProvider(HTTPChatProvider):
    name = "openrouter"
    url = "https://openrouter.ai/api/v1/chat/completions"
    default_cost_per_1k = 0.001
    cost_per_1k = {
        "mistralai/mistral-small-3.2-24b-instruct:free": 0.0,
        "meta-llama/llama-3.1-8b-instruct:free": 0.0,
        "microsoft/phi-3-mini-128k-instruct:free": 0.0,
        "google/gemma-2-9b-it:free": 0.0,
    }

    def extra_headers(self) -> Dict[str, str]:
        return {"X-Title": "EaaS Evaluation"}

    def calculate_cost(self, tokens: int, model_name: str) -> float:
        if model_name.endswith(":free"):
            return 0.0
        return super().calculate_cost(tokens, model_name)


class CohereProvider(HTTPChatProvider):
    name = "cohere"
    url = "https://api.cohere.com/v2/chat"
    default_cost_per_1k = 0.0005
    cost_per_1k = {
        "command-r": 0.0005,
        "command-r-plus": 0.003,
        "command-light": 0.0003,
        "command-nightly": 0.0005,
        "command-r-08-2024": 0.0005,
    }

    def build_payload(self, prompt: Prompt, config: ModelConfig) -> Dict[str, Any]:
        params = config.parameters
        payload: Dict[str, Any] = {
            "model": config.model_name,
            "messages": [{"role": "user", "content": prompt.text}],
            "temperature": params.temperature if params.temperature is not None else 0.7,
            "max_tokens": params.max_tokens if params.max_tokens is not None else 1024,
            "p": params.top_p if params.top_p is not None else 1.0,
        }
        if params.stop_sequences:
            payload["stop_sequences"] = list(params.stop_sequences)
        return payload

    def parse_response(self, data: Dict[str, Any], config: ModelConfig) -> Tuple[str, int, Dict[str, Any]]:
        content = (data.get("message") or {}).get("content") or []
        text = content[0].get("text", "") if content else ""
        usage_tokens: Optional[Dict[str, Any]] = (data.get("usage") or {}).get("tokens")
        tokens = 0
        if usage_tokens:
            tokens = int(usage_tokens.get("input_tokens") or 0) + int(usage_tokens.get("output_tokens") or 0)
        meta = {
            "model": config.model_name,
            "finish_reason": data.get("finish_reason") or "unknown",
        }
        return text, tokens, meta


ProviderRegistry.register_class("together", TogetherProvider)
ProviderRegistry.register_class("groq", GroqProvider)
ProviderRegistry.register_class("openrouter", OpenRouterProvider)
ProviderRegistry.register_class("cohere", CohereProvider)
