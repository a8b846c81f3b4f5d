"""Error classification and retry policy for build iterations.

The classifier only looks at the exception message and a normalized ``kind``
attribute when one was attached at the provider boundary. Transport details
never reach it.
"""

from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from contracts import (
    BuildError,
    ErrorKind,
    GeneratedFile,
    RecoveryState,
    TestResult,
)
from config import settings


# (kind, message substrings, normalized error, retryable, suggestion)
# Order matters: payment is checked first so it can never be retried.
ERROR_CATEGORIES: List[Tuple[ErrorKind, Tuple[str, ...], str, bool, str]] = [
    (
        ErrorKind.PAYMENT_REQUIRED,
        ("payment", "402"),
        "Payment required",
        False,
        "Please complete payment to continue.",
    ),
    (
        ErrorKind.TIMEOUT,
        ("timeout", "timed out", "etimedout", "504"),
        "Request timed out",
        True,
        "The request took too long. Retrying with a smaller prompt.",
    ),
    (
        ErrorKind.RATE_LIMITED,
        ("rate limit", "rate_limit", "429", "overloaded"),
        "Rate limited by API",
        True,
        "Too many requests. Waiting before retry...",
    ),
    (
        ErrorKind.PARSE_FAILURE,
        ("parse", "json", "no files"),
        "Failed to parse generated code",
        True,
        "Output format was incorrect. Retrying with clearer instructions.",
    ),
    (
        ErrorKind.CONTEXT_TOO_LARGE,
        ("context length", "context_length", "too long", "token limit", "maximum context", "413"),
        "Context too large",
        True,
        "Reducing context size and retrying.",
    ),
]

# Unknown failures get a single retry
UNKNOWN_MAX_RETRIES = 1


def init_recovery_state(max_retries: Optional[int] = None) -> RecoveryState:
    """Fresh recovery state for a new build."""
    return RecoveryState(
        max_retries=settings.max_retries if max_retries is None else max_retries,
    )


def _category_for_kind(kind: ErrorKind):
    for category in ERROR_CATEGORIES:
        if category[0] == kind:
            return category
    return None


def analyze_error(error: object, iteration: int) -> BuildError:
    """Classify a failure into a BuildError.

    Args:
        error: Exception (or anything with a string form) from any stage
        iteration: Iteration the failure happened in

    Returns:
        BuildError with normalized description, kind, and retryability
    """
    message = str(error) if not isinstance(error, BaseException) else (str(error) or type(error).__name__)
    lowered = message.lower()

    kind = getattr(error, "kind", None)
    category = _category_for_kind(kind) if isinstance(kind, ErrorKind) else None

    if category is None:
        for candidate in ERROR_CATEGORIES:
            if any(token in lowered for token in candidate[1]):
                category = candidate
                break

    if category is None:
        return BuildError(
            iteration=iteration,
            error=message,
            kind=ErrorKind.UNKNOWN,
            retryable=True,
            suggestion="An unexpected error occurred. Retrying...",
            detail=message,
        )

    kind, _, description, retryable, suggestion = category
    return BuildError(
        iteration=iteration,
        error=description,
        kind=kind,
        retryable=retryable,
        suggestion=suggestion,
        detail=message,
    )


def should_retry(state: RecoveryState, error: BuildError) -> bool:
    """Retry only retryable errors while the retry budget lasts."""
    if not error.retryable:
        return False
    if error.kind == ErrorKind.UNKNOWN and state.retry_count >= UNKNOWN_MAX_RETRIES:
        return False
    return state.retry_count < state.max_retries


def get_retry_delay(retry_count: int) -> int:
    """Exponential backoff in milliseconds, capped."""
    delay = settings.retry_base_delay_ms * (2 ** max(retry_count, 0))
    return min(delay, settings.retry_max_delay_ms)


def record_success(state: RecoveryState, iteration: int, files: Iterable[GeneratedFile]) -> RecoveryState:
    """Snapshot the last good iteration and reset the retry counter."""
    return state.model_copy(update={
        "last_successful_iteration": iteration,
        "last_successful_files": list(files),
        "retry_count": 0,
    })


def record_failure(state: RecoveryState, error: BuildError) -> RecoveryState:
    """Append the error and count the attempt."""
    return state.model_copy(update={
        "errors": [*state.errors, error],
        "retry_count": state.retry_count + 1,
    })


def reset_retries(state: RecoveryState) -> RecoveryState:
    """Clear the retry counter when moving past a permanently failed iteration."""
    return state.model_copy(update={"retry_count": 0})


def generate_iteration_summary(
    iteration: int,
    files_created: List[str],
    test_result: Optional[TestResult] = None,
) -> str:
    """Markdown summary of one iteration for logs and run summaries."""
    if test_result is None:
        status = "Not tested"
    else:
        status = "PASSED" if test_result.passed else "FAILED"

    lines = [
        f"## Iteration {iteration} Summary",
        f"- Files Created/Updated: {len(files_created)}",
    ]
    lines.extend(f"  - {path}" for path in files_created)
    lines.append(f"- Test Status: {status}")
    if test_result and test_result.errors:
        lines.append(f"- Errors: {', '.join(test_result.errors)}")
    lines.append(f"- Completed: {datetime.now().isoformat()}")
    return "\n".join(lines) + "\n"
