"""Estimation and planning for App-Factory builds."""

from .features import detect_features
from .complexity_estimator import (
    analyze_complexity,
    estimate_tokens,
    calculate_pricing,
    get_complexity_label,
    estimate_cost,
)
from .task_planner import generate_todo_from_prd

__all__ = [
    "detect_features",
    "analyze_complexity",
    "estimate_tokens",
    "calculate_pricing",
    "get_complexity_label",
    "estimate_cost",
    "generate_todo_from_prd",
]
