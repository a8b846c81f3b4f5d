"""Base agent class that generation agents inherit from.

Every agent:
- Owns an LLM provider (injected, or resolved from provider/model names)
- Streams the provider's output, forwarding each chunk to an optional observer
- Tracks token usage for the cost controller
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from pydantic import BaseModel

from providers import get_provider, LLMProvider
from config import settings

# Rough chars-per-token ratio used when a provider reports no usage
CHARS_PER_TOKEN = 4


class TokenUsage(BaseModel):
    """Track token usage for cost calculation."""
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_cost(self) -> float:
        """Calculate cost based on current token pricing."""
        return settings.calculate_cost(self.input_tokens, self.output_tokens)


class AgentResult(BaseModel):
    """Result from an agent run, including output and metadata."""
    output: Any
    token_usage: TokenUsage
    model: str
    provider: str = "anthropic"
    raw_response: Optional[str] = None
    cost: float = 0.0
    usage_estimated: bool = False


class BaseAgent(ABC):
    """Base class for streaming generation agents."""

    def __init__(
        self,
        role: str,
        system_prompt: str,
        provider: Optional[LLMProvider] = None,
        provider_name: Optional[str] = None,
        model: Optional[str] = None,
    ):
        """Initialize the agent.

        Args:
            role: Agent role, used for logging and cost metadata
            system_prompt: The agent's base system prompt
            provider: Provider instance to use; resolved by name when omitted
            provider_name: Explicit provider name (anthropic, openai, deepseek, litellm)
            model: Override the provider's default model
        """
        self.role = role
        self.system_prompt = system_prompt
        self.llm_provider: LLMProvider = provider or get_provider(
            provider_name=provider_name or (None if model else settings.default_provider),
            model=model,
        )
        self.model = model or self.llm_provider.default_model
        self.total_usage = TokenUsage()

    async def stream(
        self,
        user_message: str,
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
        on_chunk: Optional[Callable[[str], None]] = None,
    ) -> AgentResult:
        """Stream one completion to the end and return the buffered text.

        Args:
            user_message: User message for this call
            system_prompt: Full system prompt; defaults to the agent's base prompt
            max_tokens: Output ceiling; defaults to settings.max_output_tokens
            on_chunk: Called with every text chunk as it arrives

        Returns:
            AgentResult whose output is the complete raw text
        """
        full_system_prompt = system_prompt or self.system_prompt
        chunks = []
        async for chunk in self.llm_provider.stream(
            system_prompt=full_system_prompt,
            user_message=user_message,
            model=self.model,
            max_tokens=max_tokens or settings.max_output_tokens,
        ):
            chunks.append(chunk)
            if on_chunk is not None:
                on_chunk(chunk)

        raw = "".join(chunks)
        response = self.llm_provider.last_response
        if response is not None and (response.input_tokens or response.output_tokens):
            usage = TokenUsage(input_tokens=response.input_tokens, output_tokens=response.output_tokens)
            cost = response.cost or usage.total_cost
            estimated = False
        else:
            usage = TokenUsage(
                input_tokens=(len(full_system_prompt) + len(user_message)) // CHARS_PER_TOKEN,
                output_tokens=len(raw) // CHARS_PER_TOKEN,
            )
            cost = usage.total_cost
            estimated = True

        self.total_usage.input_tokens += usage.input_tokens
        self.total_usage.output_tokens += usage.output_tokens

        return AgentResult(
            output=raw,
            token_usage=usage,
            model=response.model if response else self.model,
            provider=self.llm_provider.name,
            raw_response=raw,
            cost=cost,
            usage_estimated=estimated,
        )

    @abstractmethod
    def get_task_description(self) -> str:
        """Return a description of what this agent does.

        Used for logging and debugging.
        """
        pass
