"""Normalization of provider SDK and transport failures.

Each SDK raises its own exception hierarchy (and some report the failure
only as a status code on the exception). Everything is converted here into a
single GenerationError carrying an ErrorKind before the orchestrator sees it.
"""

import asyncio
from typing import Optional

from contracts import ErrorKind


STATUS_KINDS = {
    402: ErrorKind.PAYMENT_REQUIRED,
    408: ErrorKind.TIMEOUT,
    413: ErrorKind.CONTEXT_TOO_LARGE,
    429: ErrorKind.RATE_LIMITED,
    504: ErrorKind.TIMEOUT,
    529: ErrorKind.RATE_LIMITED,
}

CONTEXT_MARKERS = (
    "prompt is too long",
    "context_length_exceeded",
    "maximum context length",
    "context window",
)

KIND_LABELS = {
    ErrorKind.TIMEOUT: "Generation timeout",
    ErrorKind.RATE_LIMITED: "Generation rate limit",
    ErrorKind.PARSE_FAILURE: "Generation parse failure",
    ErrorKind.CONTEXT_TOO_LARGE: "Generation context length exceeded",
    ErrorKind.PAYMENT_REQUIRED: "Provider payment required",
    ErrorKind.UNKNOWN: "Generation failed",
}


class GenerationError(Exception):
    """A generation failure with a normalized kind."""

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.UNKNOWN, status_code: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


def _status_code(exc: BaseException) -> Optional[int]:
    for attr in ("status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def normalize_provider_error(exc: BaseException) -> GenerationError:
    """Convert any provider-side exception into a GenerationError."""
    if isinstance(exc, GenerationError):
        return exc

    detail = str(exc) or type(exc).__name__
    status = _status_code(exc)
    kind = ErrorKind.UNKNOWN

    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)) or "timeout" in type(exc).__name__.lower():
        kind = ErrorKind.TIMEOUT
    elif status in STATUS_KINDS:
        kind = STATUS_KINDS[status]
    elif "ratelimit" in type(exc).__name__.lower():
        kind = ErrorKind.RATE_LIMITED
    elif any(marker in detail.lower() for marker in CONTEXT_MARKERS):
        kind = ErrorKind.CONTEXT_TOO_LARGE

    return GenerationError(f"{KIND_LABELS[kind]}: {detail}", kind=kind, status_code=status)
