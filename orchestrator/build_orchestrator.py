"""Build Orchestrator - the iterative build state machine.

States: verifying-payment -> building -> testing -> syncing -> (building |
complete), with error reachable only from the payment gate. Each iteration:

1. Marks its todo in progress and builds the prompt from the build context
2. Streams the generator's output, scanning it for the file being written
3. Parses the buffered text, merges the files, applies the progress block
4. Validates the accumulated file set and records the result on the todo
5. Pushes the files to source control (best effort)

Any stage failure is classified; retryable failures retry the same iteration
after backoff, anything else marks the iteration failed and the build moves on.
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from agents import BuilderAgent, phase_for_iteration
from codegen import (
    CurrentFileScanner,
    FileSet,
    diff_file_sets,
    merge_generated_files,
    parse_generated_code,
    parse_progress_update,
    test_generated_files,
)
from codegen.file_merger import to_file_set
from contracts import (
    BuildContext,
    BuildLogEntry,
    BuildPhase,
    BuildProgress,
    BuildResult,
    BuildSnapshot,
    BuildState,
    CostEstimate,
    ErrorKind,
    IterationResult,
    LogSeverity,
    ProgressUpdate,
    TestOptions,
    TestResult,
    TodoItem,
    TodoStatus,
)
from estimator import estimate_cost, generate_todo_from_prd
from integrations import PaymentGate, PaymentVerificationError, SourceControl
from providers import GenerationError
from orchestrator.cost_controller import CostController
from orchestrator.error_recovery import (
    analyze_error,
    get_retry_delay,
    init_recovery_state,
    record_failure,
    record_success,
    reset_retries,
    should_retry,
)
from orchestrator.recovery_store import RecoveryStore
from config import settings

logger = logging.getLogger(__name__)


LOG_LEVELS = {
    LogSeverity.INFO: logging.INFO,
    LogSeverity.SUCCESS: logging.INFO,
    LogSeverity.WARNING: logging.WARNING,
    LogSeverity.ERROR: logging.ERROR,
}

# Forward-only todo lifecycle; completed and failed are both terminal
TODO_RANK = {
    TodoStatus.PENDING: 0,
    TodoStatus.IN_PROGRESS: 1,
    TodoStatus.COMPLETED: 2,
    TodoStatus.FAILED: 2,
}
TERMINAL_STATUSES = (TodoStatus.COMPLETED, TodoStatus.FAILED)

SnapshotCallback = Callable[[BuildSnapshot], None]
Sleep = Callable[[float], Awaitable[None]]


class BuildOrchestrator:
    """Owns the build context and file set for one build at a time.

    Observers receive immutable BuildSnapshot copies after every stage
    transition; they never share a reference to the mutable state.
    """

    def __init__(
        self,
        agent: BuilderAgent,
        payment_gate: PaymentGate,
        source_control: Optional[SourceControl] = None,
        recovery_store: Optional[RecoveryStore] = None,
        on_update: Optional[SnapshotCallback] = None,
        sleep: Sleep = asyncio.sleep,
        timeout_seconds: Optional[float] = None,
        test_options: Optional[TestOptions] = None,
    ):
        """Initialize the orchestrator.

        Args:
            agent: Builder agent wrapping the generation provider
            payment_gate: Collaborator answering whether a session is paid
            source_control: Optional collaborator receiving per-iteration commits
            recovery_store: Persistence for resumable state
            on_update: Observer called with a snapshot after each transition
            sleep: Awaitable used for retry backoff
            timeout_seconds: Wall-clock ceiling for one generation call
            test_options: Toggles for the validation checks
        """
        self.agent = agent
        self.payment_gate = payment_gate
        self.source_control = source_control
        self.recovery_store = recovery_store or RecoveryStore()
        self.on_update = on_update
        self.sleep = sleep
        self.timeout_seconds = timeout_seconds or settings.generation_timeout_seconds
        self.test_options = test_options or TestOptions()

        self.build_id = ""
        self.repo_ref: Optional[str] = None
        self.state = BuildState.VERIFYING_PAYMENT
        self.context: Optional[BuildContext] = None
        self.files: FileSet = {}
        self.recovery = init_recovery_state()
        self.log: List[BuildLogEntry] = []
        self.failed_iterations: List[int] = []
        self.current_file = ""
        self.cost_controller: Optional[CostController] = None
        self._started_at: Optional[datetime] = None

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------

    async def run(
        self,
        requirements: str,
        session_id: Optional[str],
        estimate: Optional[CostEstimate] = None,
        build_id: Optional[str] = None,
        repo_ref: Optional[str] = None,
        resume: bool = False,
    ) -> BuildResult:
        """Run a complete build.

        Args:
            requirements: Requirements document text
            session_id: Checkout session verified by the payment gate
            estimate: Estimate the build was priced at; computed when omitted
            build_id: Key for recovery state; generated when omitted
            repo_ref: ``owner/repo`` to sync each iteration to
            resume: Continue from a persisted snapshot for build_id if one is fresh

        Returns:
            BuildResult, in state complete unless the payment gate failed
        """
        self._started_at = datetime.now()
        self.build_id = build_id or f"build_{self._started_at.strftime('%Y%m%d_%H%M%S')}"
        self.repo_ref = repo_ref
        self.log = []
        self.failed_iterations = []
        self.files = {}
        self.current_file = ""
        self.recovery = init_recovery_state()

        estimate = estimate or estimate_cost(requirements)
        self.cost_controller = CostController(
            pricing=estimate.pricing,
            track_litellm=self.agent.llm_provider.name == "litellm",
            build_id=self.build_id,
        )

        self._transition(BuildState.VERIFYING_PAYMENT)
        try:
            paid = await self.payment_gate.is_paid(session_id)
        except PaymentVerificationError as e:
            return self._fail(str(e))
        if not paid:
            return self._fail("Payment not completed")
        self._log(0, "Payment verified", LogSeverity.SUCCESS)

        start = self._restore(build_id) if resume and build_id else None
        if start is None:
            total = estimate.tokens.iteration_count
            self.context = BuildContext(
                requirements=requirements,
                todo_list=generate_todo_from_prd(requirements, total),
                progress=BuildProgress(total_iterations=total),
            )
            start = 1
            self._save_recovery()

        total = self.context.progress.total_iterations
        for iteration in range(start, total + 1):
            await self._run_iteration(iteration)

        progress = self.context.progress
        progress.phase = BuildPhase.COMPLETE
        progress.percent = 100.0
        progress.current_task = ""
        self._log(
            total,
            f"Build complete: {len(self.files)} files, "
            f"{len(self.failed_iterations)} failed iterations",
            LogSeverity.SUCCESS if not self.failed_iterations else LogSeverity.WARNING,
        )
        self._transition(BuildState.COMPLETE)
        self.recovery_store.clear(self.build_id)
        return self._result()

    # ------------------------------------------------------------------
    # Iterations
    # ------------------------------------------------------------------

    async def _run_iteration(self, iteration: int) -> None:
        progress = self.context.progress
        total = progress.total_iterations
        progress.current_iteration = iteration
        progress.phase = phase_for_iteration(iteration)

        todo = self.context.todo_for_iteration(iteration)
        if todo is not None:
            todo.status = TodoStatus.IN_PROGRESS
            progress.current_task = todo.task
        task = todo.task if todo else progress.phase.value
        self._log(iteration, f"Starting iteration {iteration}/{total}: {task}")
        self._transition(BuildState.BUILDING)

        retry_error: Optional[str] = None
        context_scale = 1.0
        attempt = 0
        while True:
            attempt += 1
            try:
                await self._attempt(iteration, todo, retry_error, context_scale, attempt)
                return
            except Exception as e:
                build_error = analyze_error(e, iteration)
                retry = should_retry(self.recovery, build_error)
                delay_ms = get_retry_delay(self.recovery.retry_count)
                self.recovery = record_failure(self.recovery, build_error)

                if not retry:
                    break

                self._log(
                    iteration,
                    f"Iteration {iteration} attempt {attempt} failed: {build_error.error}. "
                    f"Retrying in {delay_ms}ms",
                    LogSeverity.WARNING,
                )
                retry_error = build_error.detail or build_error.error
                if build_error.kind == ErrorKind.CONTEXT_TOO_LARGE:
                    context_scale /= 2
                await self.sleep(delay_ms / 1000)
                self._transition(BuildState.BUILDING)

        if todo is not None:
            todo.status = TodoStatus.FAILED
        self.failed_iterations.append(iteration)
        self._log(
            iteration,
            f"Iteration {iteration} failed after {attempt} attempts: {build_error.error}",
            LogSeverity.ERROR,
        )
        self.recovery = reset_retries(self.recovery)
        self._update_progress(iteration)
        self._save_recovery()

    async def _attempt(
        self,
        iteration: int,
        todo: Optional[TodoItem],
        retry_error: Optional[str],
        context_scale: float,
        attempt: int,
    ) -> None:
        """One try at an iteration. State is only committed once validation ran."""
        raw = await self._generate(iteration, retry_error, context_scale, attempt)

        parsed = parse_generated_code(raw, iteration)
        update = parse_progress_update(raw)
        merged = merge_generated_files(self.files, parsed)
        created, updated = diff_file_sets(self.files, merged)
        if not parsed:
            self._log(iteration, "No files could be parsed from the output", LogSeverity.WARNING)
        else:
            self._log(
                iteration,
                f"Parsed {len(parsed)} files ({len(created)} new, {len(updated)} updated)",
            )

        self._transition(BuildState.TESTING)
        test_result = test_generated_files(merged, self.test_options)

        # Commit
        self.files = merged
        if update is not None:
            self._apply_progress_update(iteration, update, todo)
        self._record_test_result(iteration, todo, test_result)

        summary = update.summary if update else f"Generated {len(parsed)} files"
        self._transition(BuildState.SYNCING)
        await self._sync(iteration, summary)

        self.recovery = record_success(self.recovery, iteration, self.files.values())
        self.context.iteration_history.append(IterationResult(
            iteration=iteration,
            files_created=created,
            files_updated=updated,
            test_result=test_result,
            summary=summary,
        ))
        self._update_progress(iteration)
        self._save_recovery()
        self._emit()

    async def _generate(
        self,
        iteration: int,
        retry_error: Optional[str],
        context_scale: float,
        attempt: int,
    ) -> str:
        scanner = CurrentFileScanner()

        def on_chunk(chunk: str) -> None:
            current = scanner.feed(chunk)
            if current and current != self.current_file:
                self.current_file = current
                self._emit()

        try:
            result = await asyncio.wait_for(
                self.agent.stream_iteration(
                    self.context,
                    self.files,
                    iteration,
                    retry_error=retry_error,
                    context_scale=context_scale,
                    on_chunk=on_chunk,
                    metadata={"build_id": self.build_id, "iteration": iteration, "attempt": attempt},
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise GenerationError(
                f"Generation timeout after {self.timeout_seconds:.0f}s",
                kind=ErrorKind.TIMEOUT,
            ) from e

        self.cost_controller.record_usage(
            iteration=iteration,
            input_tokens=result.token_usage.input_tokens,
            output_tokens=result.token_usage.output_tokens,
            model=result.model,
            cost_usd=result.cost,
            attempt=attempt,
            estimated=result.usage_estimated,
        )
        return result.output

    def _apply_progress_update(
        self,
        iteration: int,
        update: ProgressUpdate,
        current: Optional[TodoItem],
    ) -> None:
        if update.prd_addendum and update.prd_addendum.strip():
            self.context.requirements += (
                f"\n\n## Implementation Notes (Iteration {iteration})\n{update.prd_addendum.strip()}"
            )

        for change in update.todo_updates:
            item = self.context.get_todo(change.id)
            # The current todo's outcome comes from validation
            if item is None or item is current or item.status in TERMINAL_STATUSES:
                continue
            try:
                status = TodoStatus(change.status)
            except ValueError:
                continue
            if TODO_RANK[status] > TODO_RANK[item.status]:
                item.status = status
                if status == TodoStatus.COMPLETED:
                    self._mark_completed(item)

        for message in update.errors:
            self._log(iteration, f"Model reported: {message}", LogSeverity.WARNING)

    def _record_test_result(self, iteration: int, todo: Optional[TodoItem], result: TestResult) -> None:
        self.context.progress.last_test_result = result
        if result.passed:
            self._log(
                iteration,
                f"Tests passed ({len(result.warnings)} warnings)",
                LogSeverity.SUCCESS,
            )
        else:
            self._log(
                iteration,
                f"Tests failed: {'; '.join(result.errors[:3])}",
                LogSeverity.WARNING,
            )

        if todo is None:
            return
        todo.test_result = result
        if todo.status not in TERMINAL_STATUSES:
            todo.status = TodoStatus.COMPLETED if result.passed else TodoStatus.FAILED
            if todo.status == TodoStatus.COMPLETED:
                self._mark_completed(todo)

    def _mark_completed(self, item: TodoItem) -> None:
        completed = self.context.progress.completed_tasks
        if item.id not in completed:
            completed.append(item.id)

    async def _sync(self, iteration: int, summary: str) -> None:
        if self.source_control is None or not self.repo_ref:
            return
        message = f"App-Factory build {self.build_id} - Iteration {iteration}: {summary}"
        try:
            result = await self.source_control.push(self.repo_ref, list(self.files.values()), message)
        except Exception as e:
            self._log(iteration, f"Source control sync failed: {e}", LogSeverity.WARNING)
            return
        progress = self.context.progress
        progress.last_commit_sha = result.commit_sha
        progress.last_synced_at = datetime.now()
        self._log(iteration, f"Synced to {self.repo_ref} ({result.commit_sha[:7]})", LogSeverity.SUCCESS)

    def _update_progress(self, iteration: int) -> None:
        progress = self.context.progress
        progress.files_generated = len(self.files)
        progress.lines_of_code = sum(len(f.content.splitlines()) for f in self.files.values())
        progress.percent = round(iteration / progress.total_iterations * 100, 1)

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    def _restore(self, build_id: str) -> Optional[int]:
        """Load a fresh snapshot; returns the iteration to continue from."""
        snapshot = self.recovery_store.load(build_id)
        if snapshot is None:
            return None
        self.context = snapshot.context
        self.files = to_file_set(snapshot.files)
        self.recovery = reset_retries(snapshot.state)
        start = self.context.progress.current_iteration + 1
        self._log(
            start,
            f"Resuming build {build_id} at iteration {start} with {len(self.files)} files",
        )
        return start

    def _save_recovery(self) -> None:
        try:
            self.recovery_store.save(
                self.build_id,
                self.recovery,
                self.context,
                list(self.files.values()),
            )
        except OSError as e:
            logger.warning("Failed to save recovery state for %s: %s", self.build_id, e)

    # ------------------------------------------------------------------
    # Log, snapshots, results
    # ------------------------------------------------------------------

    def _log(self, iteration: int, message: str, severity: LogSeverity = LogSeverity.INFO) -> None:
        entry = BuildLogEntry(iteration=iteration, message=message, severity=severity)
        self.log.append(entry)
        logger.log(LOG_LEVELS[severity], "[%s] %s", self.build_id, message)

    def _transition(self, state: BuildState) -> None:
        self.state = state
        self._emit()

    def snapshot(self) -> BuildSnapshot:
        """Immutable view of the current build state."""
        if self.context is not None:
            progress = self.context.progress.model_copy(deep=True)
            todo_list = [item.model_copy(deep=True) for item in self.context.todo_list]
        else:
            progress = BuildProgress(total_iterations=1)
            todo_list = []
        return BuildSnapshot(
            build_id=self.build_id,
            state=self.state,
            progress=progress,
            todo_list=todo_list,
            current_file=self.current_file,
            file_count=len(self.files),
            last_log=self.log[-1] if self.log else None,
        )

    def _emit(self) -> None:
        # Observer failures never reach the retry boundary
        if self.on_update is None:
            return
        try:
            self.on_update(self.snapshot())
        except Exception:
            logger.exception("[%s] Build observer failed", self.build_id)

    def _fail(self, message: str) -> BuildResult:
        self._log(0, message, LogSeverity.ERROR)
        self._transition(BuildState.ERROR)
        return self._result(fatal_error=message)

    def _result(self, fatal_error: Optional[str] = None) -> BuildResult:
        return BuildResult(
            build_id=self.build_id,
            state=self.state,
            files=list(self.files.values()),
            context=self.context,
            log=list(self.log),
            fatal_error=fatal_error,
            failed_iterations=list(self.failed_iterations),
            cost_manifest=self.cost_controller.generate_manifest() if self.cost_controller else {},
            started_at=self._started_at or datetime.now(),
            completed_at=datetime.now(),
        )


def run_build(
    requirements: str,
    session_id: Optional[str],
    payment_gate: PaymentGate,
    estimate: Optional[CostEstimate] = None,
    provider: Optional[str] = None,
    model: Optional[str] = None,
    source_control: Optional[SourceControl] = None,
    repo_ref: Optional[str] = None,
    build_id: Optional[str] = None,
    resume: bool = False,
    on_update: Optional[SnapshotCallback] = None,
) -> BuildResult:
    """Convenience function to run a build to completion from synchronous code."""
    orchestrator = BuildOrchestrator(
        agent=BuilderAgent(provider_name=provider, model=model),
        payment_gate=payment_gate,
        source_control=source_control,
        on_update=on_update,
    )
    return asyncio.run(orchestrator.run(
        requirements,
        session_id=session_id,
        estimate=estimate,
        build_id=build_id,
        repo_ref=repo_ref,
        resume=resume,
    ))
