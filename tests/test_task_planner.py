"""Tests for todo list planning."""

import pytest

from contracts import TodoStatus
from estimator import generate_todo_from_prd


BASELINE_IDS = ["setup", "ui-components", "page-structure", "features", "data-layer"]
TRAILING_IDS = ["testing", "polish"]


class TestGenerateTodo:
    """Test generate_todo_from_prd."""

    def test_baseline_and_trailing_only(self):
        todos = generate_todo_from_prd("A static marketing site", 4)
        assert [t.id for t in todos] == BASELINE_IDS + TRAILING_IDS
        assert all(t.status == TodoStatus.PENDING for t in todos)

    def test_checkout_scenario_adds_feature_tasks(self):
        prd = "Users login, pay with stripe checkout, and upload profile photo."
        ids = [t.id for t in generate_todo_from_prd(prd, 4)]
        assert ids == BASELINE_IDS + ["auth", "payments", "uploads"] + TRAILING_IDS

    def test_all_feature_tasks_in_fixed_order(self):
        prd = "Realtime chat dashboard with login, a postgres database, stripe billing, and image upload"
        ids = [t.id for t in generate_todo_from_prd(prd, 10)]
        assert ids[5:-2] == ["auth", "database", "payments", "uploads", "realtime", "dashboard"]
        assert ids[-2:] == TRAILING_IDS

    def test_short_budget_stacks_tail_on_last_iteration(self):
        todos = generate_todo_from_prd("A static marketing site", 4)
        # 7 tasks, 4 iterations: step is 1, clamped at 4
        assert [t.target_iteration for t in todos] == [1, 2, 3, 4, 4, 4, 4]

    def test_even_spread_when_budget_allows(self):
        todos = generate_todo_from_prd("A static marketing site", 14)
        # step = 14 // 7 = 2
        assert [t.target_iteration for t in todos] == [1, 3, 5, 7, 9, 11, 13]

    @pytest.mark.parametrize("total", [1, 2, 4, 6, 10])
    def test_targets_never_exceed_budget(self, total):
        prd = "Realtime chat dashboard with login, a database, stripe billing, and file upload"
        todos = generate_todo_from_prd(prd, total)
        assert all(1 <= t.target_iteration <= total for t in todos)
        targets = [t.target_iteration for t in todos]
        assert targets == sorted(targets)

    def test_deterministic(self):
        prd = "A blog with login and comments"
        first = [t.model_dump() for t in generate_todo_from_prd(prd, 4)]
        second = [t.model_dump() for t in generate_todo_from_prd(prd, 4)]
        assert first == second

    def test_rejects_empty_budget(self):
        with pytest.raises(ValueError):
            generate_todo_from_prd("A blog", 0)
