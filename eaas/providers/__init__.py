"""
Model backends for evaluation jobs.

Importing this package registers every built-in provider with
ProviderRegistry, so ``ProviderRegistry.default()`` serves them all.
"""

from .base import ModelProvider, ProviderRegistry
from .http_providers import (
    CohereProvider,
    GroqProvider,
    HTTPChatProvider,
    OpenRouterProvider,
    TogetherProvider,
)
from .ollama_provider import OllamaProvider

__all__ = [
    "ModelProvider",
    "ProviderRegistry",
    "HTTPChatProvider",
    "TogetherProvider",
    "GroqProvider",
    "OpenRouterProvider",
    "CohereProvider",
    "OllamaProvider",
]
