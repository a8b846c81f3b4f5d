"""Orchestrator module for App-Factory build execution control."""

from .cost_controller import (
    CostController,
    TokenUsage,
    IterationCostRecord,
)
from .error_recovery import (
    init_recovery_state,
    analyze_error,
    should_retry,
    get_retry_delay,
    record_success,
    record_failure,
    generate_iteration_summary,
)
from .recovery_store import RecoveryStore
from .build_orchestrator import BuildOrchestrator, run_build

__all__ = [
    "CostController",
    "TokenUsage",
    "IterationCostRecord",
    "init_recovery_state",
    "analyze_error",
    "should_retry",
    "get_retry_delay",
    "record_success",
    "record_failure",
    "generate_iteration_summary",
    "RecoveryStore",
    "BuildOrchestrator",
    "run_build",
]
