"""Cost controller reconciling actual usage against the projected budget.

The projected price is fixed before payment. Actual spend is recorded per
iteration for reconciliation; crossing the warning ratio is logged, never
enforced (the fixed iteration count and output ceiling bound consumption).
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from contracts import PricingEstimate
from config import settings

logger = logging.getLogger(__name__)


def _litellm_logger():
    from providers.cost_logger import get_build_cost_logger
    return get_build_cost_logger()


@dataclass
class TokenUsage:
    """Token usage for a single generation call."""
    input_tokens: int
    output_tokens: int
    model: str
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def cost(self) -> float:
        """Calculate cost based on settings."""
        return settings.calculate_cost(self.input_tokens, self.output_tokens)


@dataclass
class IterationCostRecord:
    """Cost record for one generation attempt."""
    iteration: int
    usage: TokenUsage
    cost_usd: float
    attempt: int = 1
    estimated: bool = False


class CostController:
    """Tracks per-iteration spend for one build and generates manifests."""

    def __init__(
        self,
        budget_usd: Optional[float] = None,
        pricing: Optional[PricingEstimate] = None,
        warning_ratio: Optional[float] = None,
        track_litellm: bool = False,
        build_id: Optional[str] = None,
    ):
        """Initialize the controller.

        Args:
            budget_usd: Projected budget; defaults to the pricing total
            pricing: Pricing estimate the build was sold at
            warning_ratio: Fraction of the budget that triggers a warning
            track_litellm: Reset and read the LiteLLM cost callback as well
            build_id: Build whose LiteLLM calls the manifest reports
        """
        self.pricing = pricing
        if budget_usd is None:
            budget_usd = pricing.total_cost if pricing else settings.minimum_price_usd
        self.max_cost_usd = budget_usd
        self.warning_ratio = settings.budget_warning_ratio if warning_ratio is None else warning_ratio
        self.records: List[IterationCostRecord] = []
        self.warned = False
        self.track_litellm = track_litellm
        self.build_id = build_id
        if track_litellm:
            _litellm_logger().reset()

    @property
    def total_input_tokens(self) -> int:
        return sum(r.usage.input_tokens for r in self.records)

    @property
    def total_output_tokens(self) -> int:
        return sum(r.usage.output_tokens for r in self.records)

    @property
    def total_cost_usd(self) -> float:
        """Total recorded cost in USD."""
        return sum(r.cost_usd for r in self.records)

    @property
    def remaining_budget_usd(self) -> float:
        """Remaining budget in USD."""
        return max(0.0, self.max_cost_usd - self.total_cost_usd)

    @property
    def is_budget_exceeded(self) -> bool:
        """Check if budget has been exceeded."""
        return self.total_cost_usd >= self.max_cost_usd

    @property
    def budget_used_ratio(self) -> float:
        if self.max_cost_usd <= 0:
            return 0.0
        return self.total_cost_usd / self.max_cost_usd

    def record_usage(
        self,
        iteration: int,
        input_tokens: int,
        output_tokens: int,
        model: str,
        cost_usd: Optional[float] = None,
        attempt: int = 1,
        estimated: bool = False,
    ) -> bool:
        """Record one generation call. Returns False once the budget is exceeded."""
        usage = TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens, model=model)
        self.records.append(IterationCostRecord(
            iteration=iteration,
            usage=usage,
            cost_usd=usage.cost if cost_usd is None else cost_usd,
            attempt=attempt,
            estimated=estimated,
        ))

        if not self.warned and self.budget_used_ratio >= self.warning_ratio:
            self.warned = True
            logger.warning(
                "Build spend $%.4f reached %.0f%% of the projected budget $%.2f",
                self.total_cost_usd, self.budget_used_ratio * 100, self.max_cost_usd,
            )
        return not self.is_budget_exceeded

    def get_cost_by_iteration(self) -> Dict[int, float]:
        costs: Dict[int, float] = {}
        for r in self.records:
            costs[r.iteration] = costs.get(r.iteration, 0.0) + r.cost_usd
        return costs

    def generate_manifest(self) -> Dict[str, Any]:
        """Generate a cost manifest for the run."""
        total = self.total_cost_usd
        manifest = {
            "summary": {
                "total_input_tokens": self.total_input_tokens,
                "total_output_tokens": self.total_output_tokens,
                "total_cost_usd": round(total, 4),
                "max_budget_usd": self.max_cost_usd,
                "remaining_budget_usd": round(self.remaining_budget_usd, 4),
                "budget_used_percent": round(self.budget_used_ratio * 100, 1),
                "budget_exceeded": self.is_budget_exceeded,
                "warning_issued": self.warned,
            },
            "by_iteration": {str(k): round(v, 4) for k, v in self.get_cost_by_iteration().items()},
            "detailed_records": [
                {
                    "iteration": r.iteration,
                    "attempt": r.attempt,
                    "model": r.usage.model,
                    "input_tokens": r.usage.input_tokens,
                    "output_tokens": r.usage.output_tokens,
                    "cost_usd": round(r.cost_usd, 4),
                    "estimated": r.estimated,
                }
                for r in self.records
            ],
        }
        if self.pricing is not None:
            manifest["projected"] = self.pricing.model_dump()
        if self.track_litellm:
            litellm_logger = _litellm_logger()
            manifest["litellm_reported_cost_usd"] = round(litellm_logger.total_cost, 4)
            manifest["litellm_calls"] = [
                call for call in litellm_logger.calls
                if self.build_id is None or call["build_id"] == self.build_id
            ]
        return manifest

    def save_manifest(self, output_path: Path) -> str:
        """Save cost manifest to file.

        Args:
            output_path: Directory to save manifest

        Returns:
            Path to saved manifest file
        """
        manifest = self.generate_manifest()
        output_path.mkdir(parents=True, exist_ok=True)
        manifest_path = output_path / "cost_manifest.json"
        manifest_path.write_text(json.dumps(manifest, indent=2))
        return str(manifest_path)
