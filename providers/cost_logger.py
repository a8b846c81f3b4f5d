"""LiteLLM cost tracking callback for build runs."""

import logging

from litellm.integrations.custom_logger import CustomLogger

logger = logging.getLogger(__name__)


class BuildCostLogger(CustomLogger):
    """Tracks per-call cost reported by LiteLLM, tagged with build metadata."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.total_cost = 0.0
        self.calls = []

    def _record(self, kwargs, response_obj):
        cost = float(kwargs.get("response_cost") or 0)
        if not cost and response_obj is not None:
            hidden = getattr(response_obj, "_hidden_params", None) or {}
            cost = float(hidden.get("response_cost", 0) or 0)
        self.total_cost += cost

        litellm_params = kwargs.get("litellm_params") or {}
        meta = litellm_params.get("metadata") or kwargs.get("metadata") or {}
        if not isinstance(meta, dict):
            meta = {}
        model = kwargs.get("model", "unknown")
        iteration = meta.get("iteration", "?")
        build_id = meta.get("build_id", "unknown")
        attempt = meta.get("attempt", 1)
        logger.debug("[%s iteration:%s %s] $%.4f", build_id, iteration, model, cost)
        self.calls.append({
            "build_id": build_id,
            "iteration": iteration,
            "attempt": attempt,
            "model": model,
            "cost": cost,
        })

    def log_success_event(self, kwargs, response_obj, start_time, end_time):
        self._record(kwargs, response_obj)

    async def async_log_success_event(self, kwargs, response_obj, start_time, end_time):
        self._record(kwargs, response_obj)

    def reset(self):
        self.total_cost = 0.0
        self.calls = []


# Singleton for the cost controller to read
_build_cost_logger = None


def get_build_cost_logger() -> BuildCostLogger:
    """Return the global BuildCostLogger, registering it with LiteLLM on first use."""
    global _build_cost_logger
    if _build_cost_logger is not None:
        return _build_cost_logger

    import litellm

    _build_cost_logger = BuildCostLogger()
    if not litellm.callbacks:
        litellm.callbacks = []
    if _build_cost_logger not in litellm.callbacks:
        litellm.callbacks.append(_build_cost_logger)
    return _build_cost_logger
