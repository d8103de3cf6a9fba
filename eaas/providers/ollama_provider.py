"""
Ollama Provider Implementation

Local LLM inference via the Ollama API. No API key and no cost; latency is
taken from Ollama's own total_duration when present.

Usage:
    provider = OllamaProvider(timeout=120.0)
    output = await provider.generate(prompt, ModelConfig(id="local", provider="ollama", model_name="qwen2.5:7b"))
    print(output.metadata.latency_ms, output.metadata.token_count)
"""

import logging
import time
from typing import Any, Dict, Optional

import httpx
from ollama import AsyncClient, ResponseError

from config import OLLAMA_HOST
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


class OllamaProvider(ModelProvider):
    """
    Ollama provider for local LLM inference.

    Connects to OLLAMA_HOST (default: http://localhost:11434); a model's
    ``endpoint`` overrides the host per model.
    """

    name = "ollama"
    requires_api_key = False

    def __init__(
        self,
        timeout: float = 120.0,
        client: Optional[httpx.AsyncClient] = None,
        host: str = OLLAMA_HOST,
    ):
        """
        Args:
            timeout: Request timeout in seconds.
            client: Unused; Ollama manages its own connection pool.
            host: Ollama server URL.
        """
        super().__init__(timeout=timeout, client=None)
        self.host = host
        self._ollama_clients: Dict[str, AsyncClient] = {}

    def _ollama_client(self, host: str) -> AsyncClient:
        if host not in self._ollama_clients:
            self._ollama_clients[host] = AsyncClient(host=host, timeout=self.timeout)
        return self._ollama_clients[host]

    def supports_model(self, model_name: str) -> bool:
        # Whatever has been pulled locally
        return bool(model_name)

    def calculate_cost(self, tokens: int, model_name: str) -> float:
        return 0.0

    async def generate(self, prompt: Prompt, config: ModelConfig) -> ModelOutput:
        """Generate text from a single prompt via the chat endpoint."""
        params = config.parameters
        options: Dict[str, Any] = {}
        if params.temperature is not None:
            options["temperature"] = params.temperature
        if params.max_tokens is not None:
            options["num_predict"] = params.max_tokens
        if params.top_p is not None:
            options["top_p"] = params.top_p
        if params.frequency_penalty:
            options["frequency_penalty"] = params.frequency_penalty
        if params.presence_penalty:
            options["presence_penalty"] = params.presence_penalty
        if params.stop_sequences:
            options["stop"] = list(params.stop_sequences)

        client = self._ollama_client(config.endpoint or self.host)
        start = time.perf_counter()
        try:
            response = await client.chat(
                model=config.model_name,
                messages=[{"role": "user", "content": prompt.text}],
                options=options,
                stream=False,
            )
        except ResponseError as e:
            if e.status_code in (401, 403):
                raise AuthenticationError(f"Ollama auth error: {e.error}") from e
            if e.status_code == 429:
                raise RateLimitError(f"Ollama rate limited: {e.error}") from e
            raise ProviderError(f"Ollama error (HTTP {e.status_code}): {e.error}") from e
        except (httpx.TransportError, ConnectionError) as e:
            raise NetworkError(f"Ollama network error: {e}") from e
        wall_ms = int((time.perf_counter() - start) * 1000)

        try:
            text = response.get("message", {}).get("content", "") or ""
            prompt_tokens = response.get("prompt_eval_count", 0) or 0
            completion_tokens = response.get("eval_count", 0) or 0
            # Ollama returns durations in nanoseconds
            total_ns = response.get("total_duration", 0) or 0
        except (AttributeError, TypeError) as e:
            raise InvalidResponseError(f"Ollama response parse error: {e}") from e

        latency_ms = int(total_ns / 1_000_000) if total_ns else wall_ms
        tokens = prompt_tokens + completion_tokens

        output = ModelOutput(
            prompt_id=prompt.id,
            output=text,
            metadata=OutputMetadata(
                latency_ms=latency_ms,
                token_count=tokens,
                cost_usd=0.0,
                provider_metadata={
                    "model": config.model_name,
                    "prompt_tokens": prompt_tokens,
                    "completion_tokens": completion_tokens,
                    "done_reason": response.get("done_reason") or "unknown",
                },
            ),
        )
        self._record_request(output)
        return output


# Register with factory
ProviderRegistry.register_class("ollama", OllamaProvider)
