"""Agent implementations for App-Factory.

Each agent wraps an LLM provider for one generation task.
"""

from .base_agent import BaseAgent, AgentResult, TokenUsage
from .builder_agent import (
    BuilderAgent,
    format_context_for_prompt,
    phase_for_iteration,
    iteration_focus,
)

__all__ = [
    # Base
    "BaseAgent",
    "AgentResult",
    "TokenUsage",
    # Builder
    "BuilderAgent",
    "format_context_for_prompt",
    "phase_for_iteration",
    "iteration_focus",
]
