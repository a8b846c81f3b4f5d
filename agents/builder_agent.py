"""Builder Agent - writes one iteration of the application.

Builds the iteration prompt from the build context and the accumulated file
set, then streams the model's file blocks back to the orchestrator.
"""

from typing import Callable, Mapping, Optional

from agents.base_agent import AgentResult, BaseAgent
from contracts import BuildContext, BuildPhase, GeneratedFile, TodoStatus
from config import settings, Settings
from providers import LLMProvider


STATUS_ICONS = {
    TodoStatus.COMPLETED: "[x]",
    TodoStatus.IN_PROGRESS: "[>]",
    TodoStatus.FAILED: "[!]",
    TodoStatus.PENDING: "[ ]",
}

# (upper bound of iteration/total, focus text)
ITERATION_FOCUS = [
    (0.1, """Project foundation:
- app/layout.tsx with metadata, fonts, and providers
- app/page.tsx with initial structure
- app/globals.css with Tailwind + CSS variables for theming
- lib/utils.ts with cn() helper
- components/ui/button.tsx (if not using shadcn)"""),
    (0.25, """Core UI components and layout:
- Navigation component (header/navbar)
- Footer component
- Reusable card, input, and form components
- Loading skeletons and error states"""),
    (0.4, """Page structure and routing:
- All main page routes
- Dynamic route handling if needed
- Page sections and content areas
- Responsive layout structure"""),
    (0.6, """Feature implementation:
- Form handling with validation (react-hook-form + zod)
- State management
- User interactions and event handlers
- Modals, dropdowns, and overlays"""),
    (0.75, """API and data layer:
- API routes in app/api/
- Server actions for mutations
- Data fetching patterns
- Error handling and loading states"""),
    (0.9, """Authentication and integrations:
- Auth flow (if required by the requirements)
- Third-party integrations
- Protected routes
- User session handling"""),
]

FINAL_FOCUS = """Final polish and testing:
- Review all components for bugs
- Ensure responsive design works
- Add missing accessibility features
- Optimize performance
- Final code cleanup"""


def phase_for_iteration(iteration: int) -> BuildPhase:
    """Coarse build phase shown for an iteration number."""
    if iteration <= 1:
        return BuildPhase.SETUP
    if iteration <= 3:
        return BuildPhase.COMPONENTS
    if iteration <= 5:
        return BuildPhase.PAGES
    if iteration <= 7:
        return BuildPhase.FEATURES
    if iteration <= 9:
        return BuildPhase.API
    return BuildPhase.TESTING


def iteration_focus(iteration: int, total: int) -> str:
    """What the model should concentrate on, by share of the build completed."""
    ratio = iteration / max(total, 1)
    for upper, focus in ITERATION_FOCUS:
        if ratio <= upper:
            return focus
    return FINAL_FOCUS


def format_context_for_prompt(
    context: BuildContext,
    files: Mapping[str, GeneratedFile],
    iteration: int,
    context_scale: float = 1.0,
    config: Optional[Settings] = None,
) -> str:
    """Render the build context, bounded so later iterations stay small.

    Later iterations list fewer existing files, and past a threshold the file
    excerpts are truncated. ``context_scale`` shrinks both bounds further
    after a context-too-large failure.
    """
    cfg = config or settings
    if iteration > cfg.late_iteration_threshold:
        max_files = cfg.late_max_context_files
    else:
        max_files = cfg.max_context_files
    if iteration > cfg.truncate_iteration_threshold:
        excerpt_chars = cfg.truncated_excerpt_chars
    else:
        excerpt_chars = cfg.context_excerpt_chars
    max_files = max(1, int(max_files * context_scale))
    excerpt_chars = max(80, int(excerpt_chars * context_scale))

    progress = context.progress
    lines = [
        "=== CURRENT BUILD CONTEXT ===",
        "",
        "## Project Requirements",
        context.requirements,
        "",
        "## Build Progress",
        f"- Current Iteration: {iteration} of {progress.total_iterations}",
        f"- Phase: {progress.phase.value}",
        f"- Files Generated: {progress.files_generated}",
        f"- Lines of Code: {progress.lines_of_code}",
        "",
        "## Todo List",
    ]
    for item in context.todo_list:
        line = f"{STATUS_ICONS[item.status]} {item.id}: {item.task}"
        if item.test_result is not None:
            line += f" (Test: {'PASS' if item.test_result.passed else 'FAIL'})"
        lines.append(line)

    if context.iteration_history:
        lines.extend(["", "## Completed Work (Previous Iterations)"])
        for result in context.iteration_history:
            lines.append(f"### Iteration {result.iteration}")
            lines.append(f"- Files: {', '.join(result.files_created + result.files_updated) or 'none'}")
            lines.append(f"- Summary: {result.summary}")
            if result.test_result is not None:
                if result.test_result.passed:
                    lines.append("- Test: PASSED")
                else:
                    lines.append(f"- Test: FAILED - {', '.join(result.test_result.errors)}")

    if files:
        # Most recently written files first
        ordered = sorted(files.values(), key=lambda f: f.iteration or 0, reverse=True)
        shown = ordered[:max_files]
        lines.extend(["", "EXISTING FILES (reference or update these - DO NOT recreate from scratch):"])
        lines.extend(f"- {f.path}" for f in shown)
        if len(ordered) > max_files:
            lines.append(f"... and {len(ordered) - max_files} more files")

        lines.extend(["", "## Existing File Excerpts"])
        for f in shown:
            excerpt = f.content[:excerpt_chars]
            if len(f.content) > excerpt_chars:
                excerpt += "\n... (truncated)"
            lines.extend([f"--- {f.path} ---", excerpt])

    lines.extend(["", "=== END CONTEXT ==="])
    return "\n".join(lines)


class BuilderAgent(BaseAgent):
    """Writes the application one iteration at a time using the file-block format."""

    SYSTEM_PROMPT = """You are an expert Next.js 14+ developer building a production web application.
You write clean, type-safe TypeScript code using modern best practices."""

    FORMAT_RULES = """OUTPUT FORMAT - CRITICAL:
You MUST output each file using this EXACT format:
