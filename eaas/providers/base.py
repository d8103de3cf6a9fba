"""
Base Provider Abstraction Layer

Defines the interface every model backend implements and the registry the
evaluation runner dispatches through. Providers raise ProviderError
subclasses on failure; the runner records those as per-prompt errors.

Usage:
    from eaas.providers import ProviderRegistry

    registry = ProviderRegistry.default(timeout=30.0)
    registry.validate_model_config(model_config)
    output = await registry.generate(prompt, model_config)
    print(output.output, output.metadata.latency_ms)
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from config import PROVIDER_API_KEY_VARS
from utils.exceptions import ConfigError, ProviderError

from ..evaluation.types import ModelConfig, ModelOutput, Prompt

logger = logging.getLogger(__name__)


class ModelProvider(ABC):
    """
    Abstract base class for model backends.

    Subclasses implement generate() and declare:
    - name: registry key referenced by ModelConfig.provider
    - cost_per_1k: USD per 1k tokens for known models
    - default_cost_per_1k: fallback rate for unlisted models
    - requires_api_key: whether validation demands a key
    """

    name: str = ""
    cost_per_1k: Dict[str, float] = {}
    default_cost_per_1k: float = 0.0
    requires_api_key: bool = False

    def __init__(
        self,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            timeout: Request timeout in seconds, applied to every call.
            client: Shared HTTP client; created on demand when omitted.
        """
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._request_count = 0
        self._total_tokens = 0

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    @abstractmethod
    async def generate(self, prompt: Prompt, config: ModelConfig) -> ModelOutput:
        """
        Generate one output for a prompt.

        Args:
            prompt: The prompt to send.
            config: Model id, backend model name and parameters.

        Returns:
            ModelOutput with text, latency, tokens and cost.

        Raises:
            ProviderError: Network, auth, rate-limit or parse failures.
        """
        ...

    def supports_model(self, model_name: str) -> bool:
        """Whether the model is in this provider's known-model table."""
        return model_name in self.cost_per_1k

    def calculate_cost(self, tokens: int, model_name: str) -> float:
        """USD cost of ``tokens`` tokens on ``model_name``."""
        rate = self.cost_per_1k.get(model_name, self.default_cost_per_1k)
        return (tokens / 1000.0) * rate

    @property
    def api_key_env(self) -> Optional[str]:
        return PROVIDER_API_KEY_VARS.get(self.name)

    def resolve_api_key(self, config: ModelConfig) -> Optional[str]:
        """API key from the model config, else from the environment."""
        if config.api_key:
            return config.api_key
        if self.api_key_env:
            return os.getenv(self.api_key_env) or None
        return None

    def validate_model_config(self, config: ModelConfig) -> None:
        """
        Check that a model config can be served by this provider.

        Raises:
            ConfigError: Empty model name or missing API key.
        """
        if not config.model_name:
            raise ConfigError(f"Model '{config.id}' has empty model_name")
        if self.requires_api_key and not self.resolve_api_key(config):
            raise ConfigError(
                f"Model '{config.id}': no API key for provider '{self.name}' "
                f"(set api_key or {self.api_key_env})"
            )
        if not self.supports_model(config.model_name):
            logger.warning(
                "Model '%s' (%s) is not in the known model list for %s; "
                "cost will use the default rate",
                config.id,
                config.model_name,
                self.name,
            )

    def get_stats(self) -> Dict[str, Any]:
        """Get usage statistics for this provider instance."""
        return {
            "provider": self.name,
            "request_count": self._request_count,
            "total_tokens": self._total_tokens,
        }

    def _record_request(self, output: ModelOutput) -> None:
        self._request_count += 1
        self._total_tokens += output.metadata.token_count or 0

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None


class ProviderRegistry:
    """
    Name -> provider mapping shared read-only by all model tasks.

    Provider classes register themselves at import time with
    ``ProviderRegistry.register_class``; ``default()`` instantiates every
    registered class around one shared HTTP client.
    """

    _classes: Dict[str, type] = {}

    def __init__(self) -> None:
        self._providers: Dict[str, ModelProvider] = {}
        self._shared_client: Optional[httpx.AsyncClient] = None

    @classmethod
    def register_class(cls, name: str, provider_class: type) -> None:
        """Register a provider class under a name."""
        cls._classes[name.lower()] = provider_class

    @classmethod
    def default(cls, timeout: float = 60.0) -> "ProviderRegistry":
        """Registry holding one instance of every registered provider."""
        registry = cls()
        registry._shared_client = httpx.AsyncClient(timeout=timeout)
        for name, provider_class in cls._classes.items():
            provider = provider_class(timeout=timeout, client=registry._shared_client)
            registry._providers[name] = provider
        return registry

    def register(self, provider: ModelProvider) -> None:
        self._providers[provider.name.lower()] = provider

    def get(self, name: str) -> Optional[ModelProvider]:
        return self._providers.get(name.lower())

    def list_providers(self) -> List[str]:
        return sorted(self._providers)

    def _require(self, name: str) -> ModelProvider:
        provider = self.get(name)
        if provider is None:
            available = ", ".join(self.list_providers())
            raise ConfigError(f"Unknown provider '{name}'. Available: {available}")
        return provider

    def validate_model_config(self, config: ModelConfig) -> None:
        """
        Raises:
            ConfigError: Unknown provider or a config the provider rejects.
        """
        if not config.provider:
            raise ConfigError(f"Model '{config.id}' has empty provider")
        self._require(config.provider).validate_model_config(config)

    async def generate(self, prompt: Prompt, config: ModelConfig) -> ModelOutput:
        provider = self.get(config.provider)
        if provider is None:
            raise ProviderError(f"Provider '{config.provider}' not found")
        return await provider.generate(prompt, config)

    async def aclose(self) -> None:
        for provider in self._providers.values():
            await provider.aclose()
        if self._shared_client is not None:
            await self._shared_client.aclose()
            self._shared_client = None
