"""Complexity, token, and price estimation for a requirements document.

Everything here is a pure function of the input text and the pricing
settings: identical documents always produce identical estimates, and the
iteration count chosen here is the loop bound for the whole build.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional

from contracts import (
    ComplexityAnalysis,
    ComplexityTier,
    CostEstimate,
    PricingEstimate,
    TokenBreakdown,
    TokenEstimate,
)
from config import settings, Settings

from .features import detect_features, distinct_page_words


# Lines-of-code weights per unit of detected scope
FEATURE_WEIGHTS: Dict[str, int] = {
    "authentication": 800,
    "database": 600,
    "payments": 500,
    "file_upload": 400,
    "realtime": 700,
    "api_integration": 300,
    "form": 150,
    "page": 250,
    "component": 100,
}

MIN_PAGES = 3
MAX_PAGES = 15
COMPONENTS_PER_PAGE = 4
SHARED_COMPONENTS = 10
MAX_FORM_UNITS = 10
MAX_API_INTEGRATION_UNITS = 10

# Upper bounds (exclusive) on estimated lines of code per tier
TIER_THRESHOLDS = (
    (2000, ComplexityTier.SIMPLE),
    (5000, ComplexityTier.MEDIUM),
    (10000, ComplexityTier.COMPLEX),
)

ITERATIONS_BY_TIER: Dict[ComplexityTier, int] = {
    ComplexityTier.SIMPLE: 2,
    ComplexityTier.MEDIUM: 4,
    ComplexityTier.COMPLEX: 6,
    ComplexityTier.ENTERPRISE: 10,
}

TIER_LABELS: Dict[ComplexityTier, str] = {
    ComplexityTier.SIMPLE: "Simple App",
    ComplexityTier.MEDIUM: "Medium Complexity",
    ComplexityTier.COMPLEX: "Complex Application",
    ComplexityTier.ENTERPRISE: "Enterprise Grade",
}

TOKENS_PER_LOC = 4
BASE_PROMPT_TOKENS = 2000
PRD_CONTEXT_TOKENS = 3000


def _round_cents(value: float) -> float:
    """Round half-up to the nearest cent."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def tier_for_lines(lines_of_code: int) -> ComplexityTier:
    """Map an estimated line count to its complexity tier."""
    for upper_bound, tier in TIER_THRESHOLDS:
        if lines_of_code < upper_bound:
            return tier
    return ComplexityTier.ENTERPRISE


def analyze_complexity(prd: str) -> ComplexityAnalysis:
    """Derive page/component counts, features, size, and tier from the document."""
    features = detect_features(prd)

    pages = max(MIN_PAGES, min(MAX_PAGES, len(distinct_page_words(prd))))
    components = pages * COMPONENTS_PER_PAGE + SHARED_COMPONENTS

    lines = pages * FEATURE_WEIGHTS["page"] + components * FEATURE_WEIGHTS["component"]
    for flag in ("authentication", "database", "payments", "file_upload", "realtime"):
        if getattr(features, flag):
            lines += FEATURE_WEIGHTS[flag]
    lines += min(features.api_integration_count, MAX_API_INTEGRATION_UNITS) * FEATURE_WEIGHTS["api_integration"]
    lines += min(features.form_count, MAX_FORM_UNITS) * FEATURE_WEIGHTS["form"]

    return ComplexityAnalysis(
        page_count=pages,
        component_count=components,
        features=features,
        estimated_lines_of_code=lines,
        complexity_tier=tier_for_lines(lines),
    )


def estimate_tokens(analysis: ComplexityAnalysis) -> TokenEstimate:
    """Project input/output tokens; the iteration count depends on the tier only."""
    iterations = ITERATIONS_BY_TIER[analysis.complexity_tier]

    code_per_iteration = analysis.estimated_lines_of_code / iterations
    tokens_per_iteration = code_per_iteration * TOKENS_PER_LOC
    code_generation_tokens = tokens_per_iteration * iterations

    input_tokens = (BASE_PROMPT_TOKENS + PRD_CONTEXT_TOKENS) * iterations
    output_tokens = round(code_generation_tokens)

    return TokenEstimate(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        iteration_count=iterations,
        breakdown=TokenBreakdown(
            prd_tokens=PRD_CONTEXT_TOKENS,
            code_generation_tokens=code_generation_tokens,
            tokens_per_iteration=tokens_per_iteration,
        ),
    )


def calculate_pricing(
    estimate: TokenEstimate,
    config: Optional[Settings] = None,
) -> PricingEstimate:
    """Price a token estimate: raw cost times margin, rounded, never below the floor."""
    cfg = config or settings
    input_cost = (estimate.input_tokens / 1_000_000) * cfg.input_token_cost_per_million
    output_cost = (estimate.output_tokens / 1_000_000) * cfg.output_token_cost_per_million
    base_cost = input_cost + output_cost

    margin = base_cost * (cfg.margin_multiplier - 1)
    total = base_cost * cfg.margin_multiplier

    return PricingEstimate(
        input_cost=_round_cents(input_cost),
        output_cost=_round_cents(output_cost),
        base_cost=_round_cents(base_cost),
        margin=_round_cents(max(0.0, margin)),
        total_cost=max(cfg.minimum_price_usd, _round_cents(total)),
    )


def get_complexity_label(tier: ComplexityTier) -> str:
    """Human-readable label for a tier."""
    return TIER_LABELS[tier]


def estimate_cost(prd: str, config: Optional[Settings] = None) -> CostEstimate:
    """Convenience function running analysis, token projection, and pricing.

    Args:
        prd: Requirements document text
        config: Optional settings override for pricing

    Returns:
        CostEstimate bundling all three results
    """
    analysis = analyze_complexity(prd)
    tokens = estimate_tokens(analysis)
    pricing = calculate_pricing(tokens, config)
    return CostEstimate(
        analysis=analysis,
        tokens=tokens,
        pricing=pricing,
        label=get_complexity_label(analysis.complexity_tier),
    )
