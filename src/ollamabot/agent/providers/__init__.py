"""LLM provider implementations."""

from .base import BaseLLMProvider, LLMProviderError, LLMProviderConfig
from .ollama import OllamaProvider

__all__ = [
    "BaseLLMProvider",
    "LLMProviderError",
    "LLMProviderConfig",
    "OllamaProvider",
]
