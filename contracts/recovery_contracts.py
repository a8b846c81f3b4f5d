"""Recovery contracts for error classification and resumable build state."""

from pydantic import BaseModel, Field
from typing import List, Optional
from enum import Enum
from datetime import datetime

from .build_contracts import BuildContext, GeneratedFile


class ErrorKind(str, Enum):
    """Normalized failure categories."""
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    PARSE_FAILURE = "parse_failure"
    CONTEXT_TOO_LARGE = "context_too_large"
    PAYMENT_REQUIRED = "payment_required"
    UNKNOWN = "unknown"


class BuildError(BaseModel):
    """A classified failure from one iteration attempt."""
    iteration: int = Field(..., ge=0)
    error: str = Field(..., description="Short normalized description")
    kind: ErrorKind = Field(default=ErrorKind.UNKNOWN)
    retryable: bool = Field(...)
    suggestion: Optional[str] = None
    detail: Optional[str] = Field(None, description="Original error message")


class RecoveryState(BaseModel):
    """Retry bookkeeping and last good snapshot for a build."""
    last_successful_iteration: int = 0
    last_successful_files: List[GeneratedFile] = Field(default_factory=list)
    errors: List[BuildError] = Field(default_factory=list)
    retry_count: int = Field(0, ge=0)
    max_retries: int = Field(3, ge=0)


class RecoverySnapshot(BaseModel):
    """Persisted form of an in-flight build, keyed by build id."""
    build_id: str
    state: RecoveryState
    context: BuildContext
    files: List[GeneratedFile] = Field(default_factory=list)
    saved_at: datetime = Field(default_factory=datetime.now)
