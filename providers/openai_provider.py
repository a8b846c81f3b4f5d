"""OpenAI provider implementation."""

import os
from typing import AsyncIterator, Optional

from config import settings

from .base import LLMProvider, LLMResponse
from .errors import normalize_provider_error


class OpenAIProvider(LLMProvider):
    """Provider for OpenAI models."""

    MODELS = {
        "gpt-4o": "gpt-4o",
        "gpt-4o-mini": "gpt-4o-mini",
        "gpt-4-turbo": "gpt-4-turbo",
        "gpt-4.1": "gpt-4.1",
        "o1": "o1",
        "o1-mini": "o1-mini",
    }
    BASE_URL: Optional[str] = None
    API_KEY_ENV = "OPENAI_API_KEY"

    def __init__(self, api_key: Optional[str] = None):
        """Initialize OpenAI provider.

        Args:
            api_key: API key. Falls back to settings, then the provider's env var.
        """
        self.api_key = api_key or self._settings_key() or os.environ.get(self.API_KEY_ENV)
        self._client = None
        self.last_response = None

    def _settings_key(self) -> str:
        return settings.openai_api_key

    @property
    def name(self) -> str:
        return "openai"

    @property
    def default_model(self) -> str:
        return "gpt-4o"

    def _get_client(self):
        if self._client is None:
            from openai import AsyncOpenAI
            kwargs = {"api_key": self.api_key}
            if self.BASE_URL:
                kwargs["base_url"] = self.BASE_URL
            self._client = AsyncOpenAI(**kwargs)
        return self._client

    def _resolve_model(self, model: Optional[str]) -> str:
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
        usage = None

        try:
            response = await client.chat.completions.create(
                model=resolved_model,
                max_tokens=max_tokens,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_message},
                ],
                stream=True,
                stream_options={"include_usage": True},
            )
            async for chunk in response:
                if chunk.usage is not None:
                    usage = chunk.usage
                if not chunk.choices:
                    continue
                text = chunk.choices[0].delta.content
                if text:
                    chunks.append(text)
                    yield text
        except Exception as e:
            raise normalize_provider_error(e) from e

        input_tokens = usage.prompt_tokens if usage else 0
        output_tokens = usage.completion_tokens if usage else 0
        self.last_response = LLMResponse(
            content="".join(chunks),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            model=resolved_model,
            provider=self.name,
            cost=settings.calculate_cost(input_tokens, output_tokens),
        )

    def is_available(self) -> bool:
        return bool(self.api_key)


class DeepseekProvider(OpenAIProvider):
    """Provider for Deepseek models (OpenAI-compatible API)."""

    MODELS = {
        "deepseek-chat": "deepseek-chat",
        "deepseek-coder": "deepseek-coder",
        "deepseek-reasoner": "deepseek-reasoner",
    }
    BASE_URL = "https://api.deepseek.com/v1"
    API_KEY_ENV = "DEEPSEEK_API_KEY"

    def _settings_key(self) -> str:
        return ""

    @property
    def name(self) -> str:
        return "deepseek"

    @property
    def default_model(self) -> str:
        return "deepseek-chat"
