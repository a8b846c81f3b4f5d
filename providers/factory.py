"""Factory for creating LLM providers."""

from typing import Optional, Dict, Type

from .base import LLMProvider
from .anthropic_provider import AnthropicProvider
from .openai_provider import OpenAIProvider, DeepseekProvider
from .litellm_provider import LiteLLMProvider, to_litellm_model


# Registry of available providers
PROVIDERS: Dict[str, Type[LLMProvider]] = {
    "anthropic": AnthropicProvider,
    "claude": AnthropicProvider,
    "openai": OpenAIProvider,
    "gpt": OpenAIProvider,
    "deepseek": DeepseekProvider,
    "litellm": LiteLLMProvider,
}

ALIASES = ("claude", "gpt")

# Model to provider mapping for auto-detection
MODEL_PROVIDERS: Dict[str, str] = {
    # Anthropic
    "claude": "anthropic",
    "sonnet": "anthropic",
    "opus": "anthropic",
    "haiku": "anthropic",
    # OpenAI
    "gpt-4": "openai",
    "gpt-3.5": "openai",
    "o1": "openai",
    # Deepseek
    "deepseek": "deepseek",
}


def get_provider(
    provider_name: Optional[str] = None,
    model: Optional[str] = None,
) -> LLMProvider:
    """Get an LLM provider instance.

    Args:
        provider_name: Explicit provider name (anthropic, openai, deepseek, litellm)
        model: Model name - if provided without provider, will auto-detect provider

    Returns:
        LLMProvider instance

    Examples:
        get_provider("anthropic")
        get_provider(model="gpt-4o")  # Returns OpenAI provider
        get_provider("litellm", model="claude-sonnet")  # LiteLLM routed to Anthropic
        get_provider()  # Anthropic
    """
    if provider_name:
        provider_key = provider_name.lower()
        if provider_key not in PROVIDERS:
            raise ValueError(
                f"Unknown provider: {provider_name}. "
                f"Available: {list(PROVIDERS.keys())}"
            )
        if provider_key == "litellm":
            return LiteLLMProvider(to_litellm_model(None, model) if model else None)
        return PROVIDERS[provider_key]()

    if model:
        model_lower = model.lower()
        for prefix, provider in MODEL_PROVIDERS.items():
            if model_lower.startswith(prefix):
                return PROVIDERS[provider]()

    return AnthropicProvider()


def list_providers() -> Dict[str, bool]:
    """List all providers and their availability.

    Returns:
        Dict mapping provider name to availability status
    """
    result = {}
    for name, provider_class in PROVIDERS.items():
        if name in ALIASES:
            continue
        result[name] = provider_class().is_available()
    return result
