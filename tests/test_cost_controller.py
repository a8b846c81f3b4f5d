"""Tests for per-build cost reconciliation."""

import json
import logging
from unittest.mock import MagicMock, patch

import pytest

from contracts import PricingEstimate
from orchestrator import CostController


@pytest.fixture
def pricing():
    return PricingEstimate(input_cost=0.5, output_cost=1.5, base_cost=2.0, margin=3.0, total_cost=10.0)


class TestCostController:
    """Test usage recording and budget tracking."""

    def test_budget_defaults_to_projected_price(self, pricing):
        controller = CostController(pricing=pricing)
        assert controller.max_cost_usd == 10.0
        assert controller.remaining_budget_usd == 10.0

    def test_record_usage_with_reported_cost(self, pricing):
        controller = CostController(pricing=pricing)
        assert controller.record_usage(1, 1000, 500, "claude-sonnet", cost_usd=2.0) is True
        assert controller.total_input_tokens == 1000
        assert controller.total_output_tokens == 500
        assert controller.total_cost_usd == 2.0
        assert controller.remaining_budget_usd == 8.0

    def test_record_usage_computes_cost_when_missing(self):
        controller = CostController(budget_usd=100.0)
        controller.record_usage(1, 1_000_000, 1_000_000, "claude-sonnet")
        assert controller.total_cost_usd == pytest.approx(18.0)

    def test_warning_logged_once_at_ratio(self, pricing, caplog):
        controller = CostController(pricing=pricing)
        with caplog.at_level(logging.WARNING, logger="orchestrator.cost_controller"):
            controller.record_usage(1, 0, 0, "m", cost_usd=7.0)
            assert not controller.warned
            controller.record_usage(2, 0, 0, "m", cost_usd=1.0)
            controller.record_usage(3, 0, 0, "m", cost_usd=0.5)
        assert controller.warned
        warnings = [r for r in caplog.records if "projected budget" in r.getMessage()]
        assert len(warnings) == 1

    def test_overspend_is_tracked_not_enforced(self, pricing):
        controller = CostController(pricing=pricing)
        assert controller.record_usage(1, 0, 0, "m", cost_usd=12.0) is False
        assert controller.is_budget_exceeded
        assert controller.remaining_budget_usd == 0.0
        controller.record_usage(2, 0, 0, "m", cost_usd=1.0)
        assert controller.total_cost_usd == 13.0

    def test_cost_by_iteration_sums_attempts(self, pricing):
        controller = CostController(pricing=pricing)
        controller.record_usage(2, 0, 0, "m", cost_usd=0.25, attempt=1)
        controller.record_usage(2, 0, 0, "m", cost_usd=0.5, attempt=2)
        controller.record_usage(3, 0, 0, "m", cost_usd=1.0)
        assert controller.get_cost_by_iteration() == {2: 0.75, 3: 1.0}


class TestManifest:
    """Test cost manifest generation."""

    def test_manifest_contents(self, pricing):
        controller = CostController(pricing=pricing)
        controller.record_usage(1, 100, 200, "claude-sonnet", cost_usd=1.23456, estimated=True)
        manifest = controller.generate_manifest()

        summary = manifest["summary"]
        assert summary["total_input_tokens"] == 100
        assert summary["total_cost_usd"] == 1.2346
        assert summary["max_budget_usd"] == 10.0
        assert summary["remaining_budget_usd"] == 8.7654
        assert summary["budget_used_percent"] == 12.3
        assert summary["warning_issued"] is False
        assert manifest["by_iteration"] == {"1": 1.2346}
        assert manifest["detailed_records"][0]["estimated"] is True
        assert manifest["projected"]["total_cost"] == 10.0
        assert "litellm_reported_cost_usd" not in manifest

    def test_save_manifest(self, pricing, tmp_path):
        controller = CostController(pricing=pricing)
        controller.record_usage(1, 10, 20, "m", cost_usd=0.1)
        path = controller.save_manifest(tmp_path / "run")
        data = json.loads((tmp_path / "run" / "cost_manifest.json").read_text())
        assert path.endswith("cost_manifest.json")
        assert data["summary"]["total_cost_usd"] == 0.1

    def test_manifest_reports_this_builds_litellm_calls(self, pricing):
        litellm_logger = MagicMock(total_cost=0.75, calls=[
            {"build_id": "b1", "iteration": 1, "attempt": 1, "model": "gpt-4o", "cost": 0.5},
            {"build_id": "b2", "iteration": 1, "attempt": 1, "model": "gpt-4o", "cost": 0.25},
        ])
        with patch("orchestrator.cost_controller._litellm_logger", return_value=litellm_logger):
            controller = CostController(pricing=pricing, track_litellm=True, build_id="b1")
            manifest = controller.generate_manifest()
        litellm_logger.reset.assert_called_once()
        assert manifest["litellm_reported_cost_usd"] == 0.75
        assert [call["build_id"] for call in manifest["litellm_calls"]] == ["b1"]
