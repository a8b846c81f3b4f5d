"""Pydantic contracts for the App-Factory system.

All stage-to-stage handoffs are typed through these contracts.
"""

from .estimation_contracts import (
    ComplexityTier,
    DetectedFeatures,
    ComplexityAnalysis,
    TokenBreakdown,
    TokenEstimate,
    PricingEstimate,
    CostEstimate,
)

from .build_contracts import (
    TodoStatus,
    BuildPhase,
    BuildState,
    LogSeverity,
    TestResult,
    TestOptions,
    TodoItem,
    GeneratedFile,
    TodoUpdate,
    ProgressUpdate,
    BuildProgress,
    IterationResult,
    BuildContext,
    BuildLogEntry,
    BuildSnapshot,
    SyncResult,
    BuildResult,
)

from .recovery_contracts import (
    ErrorKind,
    BuildError,
    RecoveryState,
    RecoverySnapshot,
)

__all__ = [
    # Estimation
    "ComplexityTier",
    "DetectedFeatures",
    "ComplexityAnalysis",
    "TokenBreakdown",
    "TokenEstimate",
    "PricingEstimate",
    "CostEstimate",
    # Build
    "TodoStatus",
    "BuildPhase",
    "BuildState",
    "LogSeverity",
    "TestResult",
    "TestOptions",
    "TodoItem",
    "GeneratedFile",
    "TodoUpdate",
    "ProgressUpdate",
    "BuildProgress",
    "IterationResult",
    "BuildContext",
    "BuildLogEntry",
    "BuildSnapshot",
    "SyncResult",
    "BuildResult",
    # Recovery
    "ErrorKind",
    "BuildError",
    "RecoveryState",
    "RecoverySnapshot",
]
