"""Tests for repository URL parsing."""

import pytest

from src.utils.github_url import RepositoryRef, parse_repository_url


class TestParseRepositoryUrl:
    """Tests for parse_repository_url."""

    @pytest.mark.parametrize(
        "value",
        [
            "https://github.com/rails/rails",
            "https://github.com/rails/rails/",
            "https://github.com/rails/rails.git",
            "http://github.com/rails/rails/issues/123",
            "github.com/rails/rails",
            "rails/rails",
            "  rails/rails  ",
        ],
    )
    def test_github_com_formats(self, value: str):
        """Test the accepted github.com formats."""
        assert parse_repository_url(value) == RepositoryRef("github.com", "rails", "rails")

    def test_enterprise_url(self):
        """Test a GitHub Enterprise URL keeps its host."""
        ref = parse_repository_url("https://ghe.example.com/platform/api.git")
        assert ref == RepositoryRef("ghe.example.com", "platform", "api")
        assert ref.full_name == "platform/api"

    def test_enterprise_shorthand(self):
        """Test host/owner/repo shorthand."""
        assert parse_repository_url("ghe.example.com/platform/api") == RepositoryRef(
            "ghe.example.com", "platform", "api"
        )

    def test_custom_default_domain(self):
        """Test owner/repo with a configured default host."""
        ref = parse_repository_url("platform/api", default_domain="ghe.example.com")
        assert ref.domain == "ghe.example.com"

    @pytest.mark.parametrize(
        "value",
        [
            None,
            "",
            "   ",
            "rails",
            "https://github.com/rails",
            "https://github.com",
            "a/b/c/d",
            "ftp://github.com/rails/rails",
        ],
    )
    def test_invalid_inputs(self, value):
        """Test that anything else is rejected."""
        assert parse_repository_url(value) is None
