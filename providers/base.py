"""Base LLM provider interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, Optional


@dataclass
class LLMResponse:
    """Standardized response from any LLM provider."""
    content: str
    input_tokens: int
    output_tokens: int
    model: str
    provider: str
    cost: float = 0.0


class LLMProvider(ABC):
    """Abstract base class for streaming LLM providers.

    After a stream is fully consumed, ``last_response`` holds the complete
    text and the token usage the provider reported for it.
    """

    last_response: Optional[LLMResponse] = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name (anthropic, openai, deepseek, litellm)."""
        pass

    @property
    @abstractmethod
    def default_model(self) -> str:
        """Default model for this provider."""
        pass

    @abstractmethod
    def stream(
        self,
        system_prompt: str,
        user_message: str,
        model: Optional[str] = None,
        max_tokens: int = 4096,
    ) -> AsyncIterator[str]:
        """Stream a completion as text chunks.

        Args:
            system_prompt: System/instruction prompt
            user_message: User message/query
            model: Model to use (defaults to provider's default)
            max_tokens: Maximum tokens in response

        Raises:
            GenerationError: on any SDK or transport failure
        """
        pass

    async def complete(
        self,
        system_prompt: str,
        user_message: str,
        model: Optional[str] = None,
        max_tokens: int = 4096,
    ) -> LLMResponse:
        """Consume a full stream and return the collected response."""
        chunks = []
        async for chunk in self.stream(system_prompt, user_message, model=model, max_tokens=max_tokens):
            chunks.append(chunk)
        if self.last_response is not None:
            return self.last_response
        return LLMResponse(
            content="".join(chunks),
            input_tokens=0,
            output_tokens=0,
            model=model or self.default_model,
            provider=self.name,
        )

    def is_available(self) -> bool:
        """Check if this provider is available (API key set, etc.)."""
        return True
