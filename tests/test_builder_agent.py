"""Tests for the builder agent: phases, focus, prompt bounding, and streaming."""

import asyncio
from typing import AsyncIterator, List, Optional

import pytest

from agents import BuilderAgent, format_context_for_prompt, iteration_focus, phase_for_iteration
from config import Settings, settings
from contracts import (
    BuildContext,
    BuildPhase,
    BuildProgress,
    GeneratedFile,
    IterationResult,
    TestResult,
    TodoItem,
    TodoStatus,
)
from providers import LLMProvider, LLMResponse


class ScriptedProvider(LLMProvider):
    """Streams fixed chunks and optionally reports usage."""

    def __init__(self, chunks: List[str], usage: Optional[tuple] = None):
        self.chunks = chunks
        self.usage = usage
        self.calls = []
        self.last_response = None

    @property
    def name(self) -> str:
        return "scripted"

    @property
    def default_model(self) -> str:
        return "scripted-1"

    async def stream(self, system_prompt, user_message, model=None, max_tokens=4096) -> AsyncIterator[str]:
        self.calls.append({"system": system_prompt, "user": user_message, "max_tokens": max_tokens})
        self.last_response = None
        for chunk in self.chunks:
            yield chunk
        if self.usage:
            self.last_response = LLMResponse(
                content="".join(self.chunks),
                input_tokens=self.usage[0],
                output_tokens=self.usage[1],
                model="scripted-1",
                provider=self.name,
                cost=0.42,
            )


@pytest.fixture
def context():
    return BuildContext(
        requirements="A recipe sharing site with login",
        progress=BuildProgress(total_iterations=4, current_iteration=1),
        todo_list=[
            TodoItem(id="setup", task="Project setup", target_iteration=1, status=TodoStatus.COMPLETED,
                     test_result=TestResult(passed=True)),
            TodoItem(id="auth", task="Implement authentication system", target_iteration=2,
                     status=TodoStatus.IN_PROGRESS),
            TodoItem(id="polish", task="Final polish", target_iteration=4),
        ],
        iteration_history=[
            IterationResult(iteration=1, files_created=["app/page.tsx"], summary="Scaffolded the app",
                            test_result=TestResult(passed=True)),
        ],
    )


def make_files(count: int, content: str = "export const x = 1") -> dict:
    files = {}
    for i in range(count):
        path = f"components/c{i}.tsx"
        files[path] = GeneratedFile(path=path, content=content, iteration=1 + i % 3)
    return files


class TestPhasesAndFocus:
    """Test phase and focus selection."""

    @pytest.mark.parametrize("iteration,phase", [
        (1, BuildPhase.SETUP),
        (2, BuildPhase.COMPONENTS),
        (3, BuildPhase.COMPONENTS),
        (4, BuildPhase.PAGES),
        (5, BuildPhase.PAGES),
        (6, BuildPhase.FEATURES),
        (7, BuildPhase.FEATURES),
        (8, BuildPhase.API),
        (9, BuildPhase.API),
        (10, BuildPhase.TESTING),
    ])
    def test_phase_for_iteration(self, iteration, phase):
        assert phase_for_iteration(iteration) == phase

    def test_focus_by_ratio(self):
        assert iteration_focus(1, 10).startswith("Project foundation")
        assert iteration_focus(2, 10).startswith("Core UI components")
        assert iteration_focus(2, 4).startswith("Feature implementation")
        assert iteration_focus(3, 4).startswith("API and data layer")
        assert iteration_focus(9, 10).startswith("Authentication and integrations")
        assert iteration_focus(4, 4).startswith("Final polish")


class TestFormatContext:
    """Test context rendering and bounding."""

    def test_sections(self, context):
        text = format_context_for_prompt(context, {}, 2)
        assert text.startswith("=== CURRENT BUILD CONTEXT ===")
        assert "A recipe sharing site with login" in text
        assert "- Current Iteration: 2 of 4" in text
        assert "[x] setup: Project setup (Test: PASS)" in text
        assert "[>] auth: Implement authentication system" in text
        assert "[ ] polish: Final polish" in text
        assert "### Iteration 1" in text
        assert "- Summary: Scaffolded the app" in text
        assert "EXISTING FILES" not in text
        assert text.endswith("=== END CONTEXT ===")

    def test_early_iterations_list_more_files(self, context):
        text = format_context_for_prompt(context, make_files(25), 1)
        assert text.count("--- components/") == 20
        assert "... and 5 more files" in text

    def test_late_iterations_list_fewer_files(self, context):
        text = format_context_for_prompt(context, make_files(25), 6)
        assert text.count("--- components/") == 10
        assert "... and 15 more files" in text

    def test_excerpts_truncated_late(self, context):
        files = make_files(1, content="x" * 2000)
        early = format_context_for_prompt(context, files, 2)
        late = format_context_for_prompt(context, files, 8)
        assert "x" * 1200 in early and "x" * 1201 not in early
        assert "x" * 300 in late and "x" * 301 not in late
        assert "... (truncated)" in late

    def test_context_scale_shrinks_bounds(self, context):
        text = format_context_for_prompt(context, make_files(25), 1, context_scale=0.5)
        assert text.count("--- components/") == 10

    def test_most_recent_files_first(self, context):
        files = {
            "a.ts": GeneratedFile(path="a.ts", content="export const a = 1", iteration=1),
            "b.ts": GeneratedFile(path="b.ts", content="export const b = 1", iteration=3),
        }
        text = format_context_for_prompt(context, files, 4)
        assert text.index("- b.ts") < text.index("- a.ts")

    def test_config_override(self, context):
        config = Settings(max_context_files=2)
        text = format_context_for_prompt(context, make_files(5), 1, config=config)
        assert "... and 3 more files" in text


class TestBuilderAgent:
    """Test prompt construction and streaming."""

    def test_system_prompt(self, context):
        agent = BuilderAgent(provider=ScriptedProvider([]))
        prompt = agent.build_system_prompt(context, {}, 2)
        assert "=== FILE: path/to/file.tsx ===" in prompt
        assert '"iteration": 2' in prompt
        assert "This is iteration 2 of 4." in prompt
        assert "PREVIOUS ATTEMPT FAILED" not in prompt

    def test_retry_prompt_carries_error(self, context):
        agent = BuilderAgent(provider=ScriptedProvider([]))
        prompt = agent.build_system_prompt(context, {}, 2, retry_error="Request timed out")
        assert "PREVIOUS ATTEMPT FAILED WITH ERROR:\nRequest timed out" in prompt

    def test_stream_iteration_forwards_chunks(self, context):
        provider = ScriptedProvider(["=== FILE: app/page.tsx ===\n", "export default function Page() {}\n"])
        agent = BuilderAgent(provider=provider)
        seen = []
        result = asyncio.run(agent.stream_iteration(context, {}, 2, on_chunk=seen.append))

        assert seen == provider.chunks
        assert result.output == "".join(provider.chunks)
        assert result.provider == "scripted"
        assert provider.calls[0]["user"].startswith("Build iteration 2.")
        assert provider.calls[0]["max_tokens"] == settings.max_output_tokens

    def test_metadata_tags_providers_that_accept_it(self, context):
        class TaggedProvider(ScriptedProvider):
            metadata = None

            def set_metadata(self, metadata):
                self.metadata = metadata

        provider = TaggedProvider(["abc"])
        agent = BuilderAgent(provider=provider)
        asyncio.run(agent.stream_iteration(context, {}, 2, metadata={"build_id": "b1", "iteration": 2, "attempt": 1}))
        assert provider.metadata == {"agent": "builder", "build_id": "b1", "iteration": 2, "attempt": 1}

    def test_reported_usage(self, context):
        agent = BuilderAgent(provider=ScriptedProvider(["abc"], usage=(100, 50)))
        result = asyncio.run(agent.stream_iteration(context, {}, 1))
        assert result.usage_estimated is False
        assert result.token_usage.input_tokens == 100
        assert result.token_usage.output_tokens == 50
        assert result.cost == 0.42
        assert agent.total_usage.output_tokens == 50

    def test_estimated_usage_when_provider_reports_none(self, context):
        agent = BuilderAgent(provider=ScriptedProvider(["x" * 400]))
        result = asyncio.run(agent.stream_iteration(context, {}, 1))
        assert result.usage_estimated is True
        assert result.token_usage.output_tokens == 100
        assert result.token_usage.input_tokens > 0
        assert result.model == "scripted-1"
