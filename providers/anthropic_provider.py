"""Anthropic (Claude) provider implementation."""

import os
from typing import AsyncIterator, Optional

from config import settings

from .base import LLMProvider, LLMResponse
from .errors import normalize_provider_error


class AnthropicProvider(LLMProvider):
    """Provider for Anthropic Claude models."""

    MODELS = {
        "claude-sonnet": "claude-sonnet-4-20250514",
        "claude-opus": "claude-opus-4-20250514",
        "claude-haiku": "claude-3-5-haiku-20241022",
        "sonnet": "claude-sonnet-4-20250514",
        "opus": "claude-opus-4-20250514",
        "haiku": "claude-3-5-haiku-20241022",
    }

    def __init__(self, api_key: Optional[str] = None):
        """Initialize Anthropic provider.

        Args:
            api_key: Anthropic API key. Falls back to settings, then ANTHROPIC_API_KEY.
        """
        self.api_key = api_key or settings.anthropic_api_key or os.environ.get("ANTHROPIC_API_KEY")
        self._client = None
        self.last_response = None

    @property
    def name(self) -> str:
        return "anthropic"

    @property
    def default_model(self) -> str:
        return "claude-sonnet-4-20250514"

    def _get_client(self):
        if self._client is None:
            from anthropic import AsyncAnthropic
            self._client = AsyncAnthropic(api_key=self.api_key)
        return self._client

    def _resolve_model(self, model: Optional[str]) -> str:
        """Resolve model alias to full model name."""
        if model is None:
            return self.default_model
        return self.MODELS.get(model, model)

    async def stream(
        self,
        system_prompt: str,
        user_message: str,
        model: Optional[str] = None,
        max_tokens: int = 4096,
    ) -> AsyncIterator[str]:
        client = self._get_client()
        resolved_model = self._resolve_model(model)
        self.last_response = None
        chunks = []

        try:
            async with client.messages.stream(
                model=resolved_model,
                max_tokens=max_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": user_message}],
            ) as stream:
                async for text in stream.text_stream:
                    chunks.append(text)
                    yield text
                final = await stream.get_final_message()
        except Exception as e:
            raise normalize_provider_error(e) from e

        self.last_response = LLMResponse(
            content="".join(chunks),
            input_tokens=final.usage.input_tokens,
            output_tokens=final.usage.output_tokens,
            model=resolved_model,
            provider=self.name,
            cost=settings.calculate_cost(final.usage.input_tokens, final.usage.output_tokens),
        )

    def is_available(self) -> bool:
        return bool(self.api_key)
