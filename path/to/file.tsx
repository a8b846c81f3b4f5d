// file content here - COMPLETE CODE, NO PLACEHOLDERS
=== END FILE ===

AFTER generating ALL files, output a progress update:

=== PROGRESS UPDATE ===
{{
  "iteration": {iteration},
  "filesCreated": ["list", "of", "files"],
  "summary": "Brief description of what was accomplished",
  "nextSteps": ["what", "to", "do", "next"],
  "todoUpdates": [{{ "id": "task-id", "status": "completed" }}],
  "prdAddendum": "Optional implementation notes to append to the requirements"
}}
=== END PROGRESS ===

CRITICAL RULES:
1. Use === FILE: path === and === END FILE === markers EXACTLY as shown
2. Write COMPLETE, WORKING code - NO placeholders, NO "// TODO", NO "..."
3. Use TypeScript with proper types - avoid 'any' unless absolutely necessary
4. Use Tailwind CSS for ALL styling - no inline styles, no CSS modules
5. Follow Next.js 14 App Router conventions (app directory, server components by default)
6. Import shadcn components from @/components/ui/*
7. Add 'use client' directive ONLY when using hooks or browser APIs
8. Handle errors properly - try/catch, error boundaries
9. Make forms accessible - labels, aria attributes, proper validation
10. Reference previous iteration work - don't duplicate, BUILD UPON IT"""

    def __init__(
        self,
        provider: Optional[LLMProvider] = None,
        provider_name: Optional[str] = None,
        model: Optional[str] = None,
    ):
        super().__init__(
            role="builder",
            system_prompt=self.SYSTEM_PROMPT,
            provider=provider,
            provider_name=provider_name,
            model=model,
        )

    def build_system_prompt(
        self,
        context: BuildContext,
        files: Mapping[str, GeneratedFile],
        iteration: int,
        retry_error: Optional[str] = None,
        context_scale: float = 1.0,
    ) -> str:
        """Full system prompt for one iteration attempt."""
        total = context.progress.total_iterations
        parts = [
            self.SYSTEM_PROMPT,
            format_context_for_prompt(context, files, iteration, context_scale=context_scale),
        ]
        if retry_error:
            parts.append(
                f"PREVIOUS ATTEMPT FAILED WITH ERROR:\n{retry_error}\n\n"
                "Please fix the issue and try again. Focus on generating valid, complete code."
            )
        parts.append(self.FORMAT_RULES.format(iteration=iteration))
        parts.append(
            f"This is iteration {iteration} of {total}.\n"
            f"FOCUS THIS ITERATION ON: {iteration_focus(iteration, total)}"
        )
        return "\n\n".join(parts)

    def build_user_prompt(self, iteration: int, total: int) -> str:
        return (
            f"Build iteration {iteration}. Focus: {iteration_focus(iteration, total)}\n\n"
            "Generate the code now. Remember:\n"
            "- Use === FILE: path === and === END FILE === markers\n"
            "- Write complete, working code\n"
            "- Include the PROGRESS UPDATE at the end"
        )

    async def stream_iteration(
        self,
        context: BuildContext,
        files: Mapping[str, GeneratedFile],
        iteration: int,
        retry_error: Optional[str] = None,
        context_scale: float = 1.0,
        on_chunk: Optional[Callable[[str], None]] = None,
        metadata: Optional[dict] = None,
    ) -> AgentResult:
        """Generate one iteration and return the complete raw output.

        ``metadata`` (build_id, iteration, attempt) tags the call for providers
        that log cost per build.
        """
        if metadata and hasattr(self.llm_provider, "set_metadata"):
            self.llm_provider.set_metadata({"agent": self.role, **metadata})
        system_prompt = self.build_system_prompt(
            context, files, iteration, retry_error=retry_error, context_scale=context_scale
        )
        user_prompt = self.build_user_prompt(iteration, context.progress.total_iterations)
        return await self.stream(
            user_prompt,
            system_prompt=system_prompt,
            max_tokens=settings.max_output_tokens,
            on_chunk=on_chunk,
        )

    def get_task_description(self) -> str:
        return "Generates application source files for one build iteration"
