"""LLM Provider abstraction for multi-model streaming generation."""

from .base import LLMProvider, LLMResponse
from .errors import GenerationError, normalize_provider_error
from .factory import get_provider, list_providers

__all__ = [
    "LLMProvider",
    "LLMResponse",
    "GenerationError",
    "normalize_provider_error",
    "get_provider",
    "list_providers",
]
