"""Tests for CLI helpers."""

from unittest.mock import patch

from main import resolve_source_control


class TestResolveSourceControl:
    """Test GitHub sync selection for a build."""

    def test_no_repo(self):
        with patch("main.GitHubSync") as github_sync:
            assert resolve_source_control(None) is None
        github_sync.assert_not_called()

    def test_missing_token_disables_sync(self):
        with patch("main.GitHubSync") as github_sync:
            github_sync.return_value.is_available.return_value = False
            assert resolve_source_control("acme/shop") is None

    def test_configured_sync(self):
        with patch("main.GitHubSync") as github_sync:
            github_sync.return_value.is_available.return_value = True
            assert resolve_source_control("acme/shop") is github_sync.return_value
