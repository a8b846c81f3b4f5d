"""Tests for error classification, retry policy, and recovery persistence."""

from datetime import datetime, timedelta

import pytest

from contracts import (
    BuildContext,
    BuildProgress,
    ErrorKind,
    GeneratedFile,
    TestResult,
)
from orchestrator import (
    RecoveryStore,
    analyze_error,
    generate_iteration_summary,
    get_retry_delay,
    init_recovery_state,
    record_failure,
    record_success,
    should_retry,
)
from orchestrator.error_recovery import reset_retries
from providers import GenerationError


class TestAnalyzeError:
    """Test classification by message."""

    @pytest.mark.parametrize("message,kind", [
        ("Request timeout after 300s", ErrorKind.TIMEOUT),
        ("ETIMEDOUT", ErrorKind.TIMEOUT),
        ("HTTP 504 from upstream", ErrorKind.TIMEOUT),
        ("429 Too Many Requests", ErrorKind.RATE_LIMITED),
        ("rate limit exceeded", ErrorKind.RATE_LIMITED),
        ("Overloaded", ErrorKind.RATE_LIMITED),
        ("Could not parse output", ErrorKind.PARSE_FAILURE),
        ("Unexpected token in JSON", ErrorKind.PARSE_FAILURE),
        ("prompt is too long: 210000 tokens", ErrorKind.CONTEXT_TOO_LARGE),
        ("maximum context length is 128000", ErrorKind.CONTEXT_TOO_LARGE),
        ("Payment required", ErrorKind.PAYMENT_REQUIRED),
        ("HTTP 402", ErrorKind.PAYMENT_REQUIRED),
        ("something odd happened", ErrorKind.UNKNOWN),
    ])
    def test_classification(self, message, kind):
        assert analyze_error(Exception(message), 1).kind == kind

    def test_rate_limit_is_retryable(self):
        assert analyze_error(Exception("429"), 2).retryable is True
        assert analyze_error(Exception("rate limit"), 2).retryable is True

    def test_payment_is_not_retryable(self):
        error = analyze_error(Exception("payment session expired"), 2)
        assert error.retryable is False
        assert error.error == "Payment required"

    def test_payment_checked_before_other_categories(self):
        error = analyze_error(Exception("payment service timeout (429)"), 1)
        assert error.kind == ErrorKind.PAYMENT_REQUIRED
        assert error.retryable is False

    def test_normalized_kind_wins_over_message(self):
        error = analyze_error(GenerationError("Generation failed: upstream said no", kind=ErrorKind.TIMEOUT), 3)
        assert error.kind == ErrorKind.TIMEOUT
        assert error.detail == "Generation failed: upstream said no"
        assert error.iteration == 3

    def test_unknown_is_retryable_and_keeps_message(self):
        error = analyze_error(RuntimeError("boom"), 1)
        assert error.retryable is True
        assert error.error == "boom"

    def test_empty_message_uses_type_name(self):
        assert analyze_error(KeyError(), 1).detail == "KeyError"
        assert analyze_error(RuntimeError(), 1).detail == "RuntimeError"

    def test_plain_strings(self):
        assert analyze_error("timed out", 1).kind == ErrorKind.TIMEOUT


class TestRetryPolicy:
    """Test should_retry, delays, and state transitions."""

    def test_retries_until_budget_exhausted(self):
        state = init_recovery_state()
        error = analyze_error(Exception("timeout"), 1)
        attempts = 0
        while should_retry(state, error):
            state = record_failure(state, error)
            attempts += 1
        assert attempts == 3
        assert state.retry_count == 3
        assert len(state.errors) == 3

    def test_non_retryable_never_retried(self):
        state = init_recovery_state()
        assert not should_retry(state, analyze_error(Exception("payment"), 1))

    def test_unknown_retried_once(self):
        state = init_recovery_state()
        error = analyze_error(Exception("boom"), 1)
        assert should_retry(state, error)
        state = record_failure(state, error)
        assert not should_retry(state, error)

    def test_custom_max_retries(self):
        state = init_recovery_state(max_retries=0)
        assert not should_retry(state, analyze_error(Exception("timeout"), 1))

    def test_backoff(self):
        assert [get_retry_delay(n) for n in range(4)] == [1000, 2000, 4000, 8000]
        assert get_retry_delay(10) == 30000

    def test_record_success_resets_counter(self):
        state = record_failure(init_recovery_state(), analyze_error(Exception("timeout"), 1))
        files = [GeneratedFile(path="app/page.tsx", content="export default function Page() {}")]
        state = record_success(state, 1, files)
        assert state.retry_count == 0
        assert state.last_successful_iteration == 1
        assert state.last_successful_files[0].path == "app/page.tsx"
        assert len(state.errors) == 1

    def test_state_is_not_mutated(self):
        state = init_recovery_state()
        record_failure(state, analyze_error(Exception("timeout"), 1))
        assert state.retry_count == 0
        assert state.errors == []

    def test_reset_retries(self):
        state = record_failure(init_recovery_state(), analyze_error(Exception("timeout"), 1))
        assert reset_retries(state).retry_count == 0


class TestIterationSummary:
    """Test the markdown iteration summary."""

    def test_passed(self):
        summary = generate_iteration_summary(2, ["app/page.tsx"], TestResult(passed=True))
        assert summary.startswith("## Iteration 2 Summary")
        assert "- Files Created/Updated: 1" in summary
        assert "  - app/page.tsx" in summary
        assert "- Test Status: PASSED" in summary

    def test_failed_lists_errors(self):
        result = TestResult(passed=False, errors=["Missing app/page.tsx - app will not have a homepage"])
        summary = generate_iteration_summary(1, [], result)
        assert "- Test Status: FAILED" in summary
        assert "- Errors: Missing app/page.tsx" in summary

    def test_not_tested(self):
        assert "- Test Status: Not tested" in generate_iteration_summary(1, [])


class TestRecoveryStore:
    """Test the file-backed recovery snapshots."""

    @pytest.fixture
    def store(self, tmp_path):
        return RecoveryStore(directory=tmp_path, ttl_seconds=3600)

    @pytest.fixture
    def context(self):
        return BuildContext(
            requirements="A bakery site",
            progress=BuildProgress(total_iterations=4, current_iteration=2),
        )

    def test_save_and_load(self, store, context):
        files = [GeneratedFile(path="app/page.tsx", content="export default function Page() {}")]
        path = store.save("shop-1", init_recovery_state(), context, files)
        assert path.name == "build-shop-1.json"

        snapshot = store.load("shop-1")
        assert snapshot.build_id == "shop-1"
        assert snapshot.context.progress.current_iteration == 2
        assert snapshot.files[0].path == "app/page.tsx"

    def test_missing(self, store):
        assert store.load("nope") is None

    def test_expired_snapshot_is_discarded(self, store, context):
        path = store.save("old", init_recovery_state(), context, [])
        later = datetime.now() + timedelta(hours=1, minutes=1)
        assert store.load("old", now=later) is None
        assert not path.exists()

    def test_fresh_within_ttl(self, store, context):
        store.save("recent", init_recovery_state(), context, [])
        assert store.load("recent", now=datetime.now() + timedelta(minutes=59)) is not None

    def test_corrupt_snapshot(self, store, tmp_path):
        (tmp_path / "build-bad.json").write_text("{not json")
        assert store.load("bad") is None

    def test_clear(self, store, context):
        store.save("done", init_recovery_state(), context, [])
        store.clear("done")
        assert store.load("done") is None
        store.clear("done")

    def test_build_id_is_made_filesystem_safe(self, store, context):
        path = store.save("../escape/id", init_recovery_state(), context, [])
        assert path.parent == store.directory
        assert store.load("../escape/id").build_id == "../escape/id"
