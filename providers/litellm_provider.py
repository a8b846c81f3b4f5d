"""LiteLLM-backed provider. One implementation for any model LiteLLM can route."""

import logging
from typing import AsyncIterator, Optional

from config import settings

from .base import LLMProvider, LLMResponse
from .cost_logger import get_build_cost_logger
from .errors import normalize_provider_error

logger = logging.getLogger(__name__)


# LiteLLM model strings: provider/model-name (OpenAI can omit prefix)
DEFAULT_MODELS = {
    "anthropic": "anthropic/claude-sonnet-4-20250514",
    "openai": "gpt-4o",
    "deepseek": "deepseek/deepseek-chat",
}

# Map provider + optional model -> LiteLLM model string
MODEL_ALIASES = {
    "anthropic": {
        None: "anthropic/claude-sonnet-4-20250514",
        "claude-sonnet": "anthropic/claude-sonnet-4-20250514",
        "claude-opus": "anthropic/claude-opus-4-20250514",
        "claude-haiku": "anthropic/claude-3-5-haiku-20241022",
    },
    "openai": {
        None: "gpt-4o",
        "gpt-4o": "gpt-4o",
        "gpt-4o-mini": "gpt-4o-mini",
        "gpt-4-turbo": "gpt-4-turbo",
        "gpt-4.1": "gpt-4.1",
        "o1": "o1",
        "o1-mini": "o1-mini",
    },
    "deepseek": {
        None: "deepseek/deepseek-chat",
        "deepseek-chat": "deepseek/deepseek-chat",
        "deepseek-coder": "deepseek/deepseek-coder",
        "deepseek-reasoner": "deepseek/deepseek-reasoner",
    },
}


def _match_alias(aliases: dict, model_lower: str) -> Optional[str]:
    # Prefer longest alias match first (e.g. gpt-4o-mini before gpt-4o)
    for alias in sorted((a for a in aliases if a), key=len, reverse=True):
        if model_lower == alias or model_lower.startswith(alias + "-") or model_lower.startswith(alias + "."):
            return aliases[alias]
    return None


def to_litellm_model(provider_name: Optional[str], model: Optional[str]) -> str:
    """Map provider + model to a LiteLLM model string."""
    if provider_name:
        key = provider_name.lower()
        if key in ("claude", "gpt"):
            key = "anthropic" if key == "claude" else "openai"
        if key in MODEL_ALIASES:
            aliases = MODEL_ALIASES[key]
            if model:
                matched = _match_alias(aliases, model.lower())
                if matched:
                    return matched
                if key == "openai":
                    return model  # OpenAI works without prefix
                return f"{key}/{model}"
            return aliases[None]
    if model:
        if "/" in model:
            return model
        for aliases in MODEL_ALIASES.values():
            matched = _match_alias(aliases, model.lower())
            if matched:
                return matched
        return model
    return DEFAULT_MODELS["anthropic"]


class LiteLLMProvider(LLMProvider):
    """Single provider that delegates to litellm.acompletion() in streaming mode."""

    def __init__(self, default_model: Optional[str] = None, metadata: Optional[dict] = None):
        """Initialize with the LiteLLM model string to use by default.

        Args:
            default_model: LiteLLM model string (e.g. gpt-4o, anthropic/claude-sonnet-4-20250514).
            metadata: Optional dict passed to litellm (e.g. build_id, iteration) for cost logging.
        """
        self._default_model = default_model or to_litellm_model(settings.default_provider, settings.default_model)
        self.metadata = metadata or {}
        self.last_response = None

    def set_metadata(self, metadata: dict) -> None:
        """Replace the metadata sent with each call (e.g. build_id, iteration)."""
        self.metadata = dict(metadata)

    @property
    def name(self) -> str:
        return "litellm"

    @property
    def default_model(self) -> str:
        return self._default_model

    def _cost(self, model: str, input_tokens: int, output_tokens: int) -> float:
        import litellm

        try:
            prompt_cost, completion_cost = litellm.cost_per_token(
                model=model,
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
            )
        except Exception as e:
            # Unknown model in LiteLLM's price map
            logger.debug("No LiteLLM pricing for %s, using configured rates: %s", model, e)
            return settings.calculate_cost(input_tokens, output_tokens)
        return float(prompt_cost + completion_cost)

    async def stream(
        self,
        system_prompt: str,
        user_message: str,
        model: Optional[str] = None,
        max_tokens: int = 4096,
    ) -> AsyncIterator[str]:
        import litellm

        get_build_cost_logger()
        resolved_model = model or self._default_model
        self.last_response = None
        chunks = []
        usage = None

        try:
            response = await litellm.acompletion(
                model=resolved_model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_message},
                ],
                max_tokens=max_tokens,
                stream=True,
                stream_options={"include_usage": True},
                metadata={**self.metadata},
            )
            async for chunk in response:
                chunk_usage = getattr(chunk, "usage", None)
                if chunk_usage:
                    usage = chunk_usage
                if not chunk.choices:
                    continue
                text = chunk.choices[0].delta.content
                if text:
                    chunks.append(text)
                    yield text
        except Exception as e:
            raise normalize_provider_error(e) from e

        input_tokens = getattr(usage, "prompt_tokens", 0) or 0
        output_tokens = getattr(usage, "completion_tokens", 0) or 0
        self.last_response = LLMResponse(
            content="".join(chunks),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            model=resolved_model,
            provider=self.name,
            cost=self._cost(resolved_model, input_tokens, output_tokens),
        )

    def is_available(self) -> bool:
        """LiteLLM reads API keys from env; we consider it available if the model is set."""
        return bool(self._default_model)
