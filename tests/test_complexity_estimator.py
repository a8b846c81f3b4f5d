"""Tests for feature detection, complexity analysis, token projection, and pricing."""

import pytest

from config import Settings
from contracts import ComplexityTier, TokenEstimate
from estimator import (
    analyze_complexity,
    calculate_pricing,
    detect_features,
    estimate_cost,
    estimate_tokens,
    get_complexity_label,
)
from estimator.complexity_estimator import ITERATIONS_BY_TIER, tier_for_lines
from estimator.features import distinct_page_words


CHECKOUT_PRD = (
    "Users can login with email, pay with a stripe checkout, "
    "and upload profile photo from their account."
)


class TestFeatureDetection:
    """Test keyword-based feature detection."""

    def test_checkout_scenario(self):
        features = detect_features(CHECKOUT_PRD)
        assert features.authentication is True
        assert features.payments is True
        assert features.file_upload is True
        assert features.database is False
        assert features.realtime is False

    def test_case_insensitive(self):
        assert detect_features("LOGIN and SIGNUP").authentication is True
        assert detect_features("Built on Supabase").database is True

    def test_whole_word_matching(self):
        # "authentication" is not "auth", "profile" is not "file"
        features = detect_features("Authentication happens elsewhere; edit your profile")
        assert features.authentication is False
        assert features.file_upload is False

    def test_counts(self):
        features = detect_features("An API for the form. Another API with a webhook. Submit the form.")
        assert features.api_integration_count == 3
        assert features.form_count == 3

    def test_dashboard(self):
        assert detect_features("An analytics dashboard with charts").dashboard is True

    def test_distinct_page_words_keep_first_order(self):
        words = distinct_page_words("Home page, a Settings page and another home screen")
        assert words == ["home", "page", "settings", "screen"]


class TestAnalyzeComplexity:
    """Test the deterministic complexity analysis."""

    def test_deterministic(self):
        first = analyze_complexity(CHECKOUT_PRD)
        second = analyze_complexity(CHECKOUT_PRD)
        assert first.model_dump_json() == second.model_dump_json()

    def test_page_count_clamped_low(self):
        analysis = analyze_complexity("A tiny tool")
        assert analysis.page_count == 3
        assert analysis.component_count == 3 * 4 + 10

    def test_page_count_counts_distinct_words(self):
        words = "page screen view route dashboard home landing profile settings"
        analysis = analyze_complexity(words)
        assert analysis.page_count == 9
        analysis = analyze_complexity(" ".join(f"{w} {w}" for w in words.split()))
        assert analysis.page_count == 9

    def test_lines_of_code_for_checkout_scenario(self):
        analysis = analyze_complexity(CHECKOUT_PRD)
        # 3 pages, 22 components, auth + payments + uploads
        assert analysis.page_count == 3
        assert analysis.estimated_lines_of_code == 3 * 250 + 22 * 100 + 800 + 500 + 400
        assert analysis.complexity_tier == ComplexityTier.MEDIUM

    def test_form_units_capped(self):
        many_forms = analyze_complexity("form " * 30)
        ten_forms = analyze_complexity("form " * 10)
        assert many_forms.estimated_lines_of_code == ten_forms.estimated_lines_of_code

    def test_api_units_capped(self):
        many = analyze_complexity("api " * 40)
        ten = analyze_complexity("api " * 10)
        assert many.estimated_lines_of_code == ten.estimated_lines_of_code

    def test_tier_thresholds(self):
        assert tier_for_lines(0) == ComplexityTier.SIMPLE
        assert tier_for_lines(1999) == ComplexityTier.SIMPLE
        assert tier_for_lines(2000) == ComplexityTier.MEDIUM
        assert tier_for_lines(4999) == ComplexityTier.MEDIUM
        assert tier_for_lines(5000) == ComplexityTier.COMPLEX
        assert tier_for_lines(9999) == ComplexityTier.COMPLEX
        assert tier_for_lines(10000) == ComplexityTier.ENTERPRISE

    def test_tier_monotonic(self):
        order = list(ComplexityTier)
        ranks = [order.index(tier_for_lines(n)) for n in range(0, 12000, 250)]
        assert ranks == sorted(ranks)


class TestEstimateTokens:
    """Test token projection."""

    @pytest.mark.parametrize("tier,iterations", [
        (ComplexityTier.SIMPLE, 2),
        (ComplexityTier.MEDIUM, 4),
        (ComplexityTier.COMPLEX, 6),
        (ComplexityTier.ENTERPRISE, 10),
    ])
    def test_iteration_count_by_tier(self, tier, iterations):
        analysis = analyze_complexity(CHECKOUT_PRD).model_copy(update={"complexity_tier": tier})
        assert estimate_tokens(analysis).iteration_count == iterations
        assert ITERATIONS_BY_TIER[tier] == iterations

    def test_iteration_count_ignores_size_within_tier(self):
        analysis = analyze_complexity(CHECKOUT_PRD)
        bigger = analysis.model_copy(update={"estimated_lines_of_code": 4999})
        assert estimate_tokens(analysis).iteration_count == estimate_tokens(bigger).iteration_count

    def test_token_formula(self):
        analysis = analyze_complexity(CHECKOUT_PRD)
        tokens = estimate_tokens(analysis)
        assert tokens.input_tokens == (2000 + 3000) * 4
        assert tokens.output_tokens == analysis.estimated_lines_of_code * 4
        assert tokens.total_tokens == tokens.input_tokens + tokens.output_tokens
        assert tokens.breakdown.prd_tokens == 3000


class TestCalculatePricing:
    """Test price calculation."""

    def test_floor_applies_to_small_builds(self):
        tokens = TokenEstimate(input_tokens=0, output_tokens=0, iteration_count=2)
        assert calculate_pricing(tokens).total_cost == 5.00

    def test_margin_applies_above_floor(self):
        tokens = TokenEstimate(input_tokens=1_000_000, output_tokens=1_000_000, iteration_count=4)
        pricing = calculate_pricing(tokens)
        assert pricing.input_cost == 3.00
        assert pricing.output_cost == 15.00
        assert pricing.base_cost == 18.00
        assert pricing.margin == 27.00
        assert pricing.total_cost == 45.00

    def test_total_rounded_to_cents(self):
        tokens = TokenEstimate(input_tokens=0, output_tokens=200_001, iteration_count=4)
        assert calculate_pricing(tokens).total_cost == 7.50

    def test_never_below_floor(self):
        for output in (0, 1000, 50_000, 133_000):
            tokens = TokenEstimate(input_tokens=10_000, output_tokens=output, iteration_count=2)
            assert calculate_pricing(tokens).total_cost >= 5.00

    def test_config_override(self):
        config = Settings(minimum_price_usd=0.0, margin_multiplier=2.0)
        tokens = TokenEstimate(input_tokens=1_000_000, output_tokens=0, iteration_count=2)
        assert calculate_pricing(tokens, config).total_cost == 6.00


class TestEstimateCost:
    """Test the one-call convenience function."""

    def test_bundles_all_parts(self):
        estimate = estimate_cost(CHECKOUT_PRD)
        assert estimate.analysis.complexity_tier == ComplexityTier.MEDIUM
        assert estimate.tokens.iteration_count == 4
        assert estimate.pricing.total_cost >= 5.00
        assert estimate.label == "Medium Complexity"

    def test_identical_input_identical_estimate(self):
        assert estimate_cost(CHECKOUT_PRD).model_dump() == estimate_cost(CHECKOUT_PRD).model_dump()

    def test_labels(self):
        assert get_complexity_label(ComplexityTier.SIMPLE) == "Simple App"
        assert get_complexity_label(ComplexityTier.ENTERPRISE) == "Enterprise Grade"
