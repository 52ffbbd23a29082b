"""Tests for issue endpoints."""

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.crud.issues import upsert_comment, upsert_issue
from src.models.repository import Repository
from src.services.github.client import GitHubRateLimitError
from src.services.jobs import ISSUES_JOB


def label(name: str) -> dict:
    return {"name": name, "color": "ededed"}


@pytest_asyncio.fixture
async def cached_issues(db_session: AsyncSession, repository: Repository, make_issue_data):
    """Cache three issues, the first with two comments."""
    now = datetime.now(UTC)
    first = await upsert_issue(
        db_session,
        repository.id,
        make_issue_data(1, labels=[label("bug")], comments_count=2),
        cached_at=now,
    )
    await upsert_issue(
        db_session,
        repository.id,
        make_issue_data(2, state="closed", assignees=[{"login": "alice", "avatar_url": None}]),
        cached_at=now,
    )
    await upsert_issue(db_session, repository.id, make_issue_data(3, author_login="hubot"), cached_at=now)
    for github_id, day in [(101, 6), (100, 5)]:
        await upsert_comment(
            db_session,
            first.id,
            {
                "github_id": github_id,
                "author_login": "hubot",
                "author_avatar_url": None,
                "body": f"comment {github_id}",
                "created_at": datetime(2024, 3, day, tzinfo=UTC),
                "updated_at": datetime(2024, 3, day, tzinfo=UTC),
            },
        )
    await db_session.commit()


def issues_url(repository: Repository) -> str:
    return f"/api/repositories/{repository.id}/issues"


class TestListIssues:
    """Tests for the issue list."""

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("cached_issues")
    async def test_list_cached(
        self,
        authenticated_client: AsyncClient,
        repository: Repository,
        client_factory: MagicMock,
        enqueued: MagicMock,
    ):
        """Test that a fresh cache is served without touching GitHub."""
        response = await authenticated_client.get(issues_url(repository))

        assert response.status_code == 200
        data = response.json()
        assert [item["number"] for item in data["items"]] == [3, 2, 1]
        assert data["total"] == 3
        assert data["pages"] == 1
        assert data["mode"] == "local"
        assert data["available_labels"] == ["bug"]
        assert data["available_assignees"] == ["alice"]
        assert data["sync_error"] is None
        client_factory.assert_not_called()
        enqueued.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("cached_issues")
    async def test_filters(self, authenticated_client: AsyncClient, repository: Repository):
        """Test that query parameters filter the cached issues."""
        url = issues_url(repository)

        async def numbers(**params) -> list[int]:
            response = await authenticated_client.get(url, params=params)
            return [item["number"] for item in response.json()["items"]]

        assert await numbers(state="open") == [3, 1]
        assert await numbers(state="all") == [3, 2, 1]
        assert await numbers(labels="bug") == [1]
        assert await numbers(assignee="alice") == [2]
        assert await numbers(author="hubot") == [3]
        assert await numbers(sort="created-asc") == [1, 2, 3]
        assert await numbers(sort="comments") == [1, 3, 2]

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("cached_issues")
    async def test_pagination(self, authenticated_client: AsyncClient, repository: Repository):
        """Test page metadata."""
        response = await authenticated_client.get(
            issues_url(repository), params={"page": 2, "per_page": 2}
        )

        data = response.json()
        assert [item["number"] for item in data["items"]] == [1]
        assert data["pages"] == 2
        assert data["page"] == 2

    @pytest.mark.asyncio
    async def test_invalid_state(self, authenticated_client: AsyncClient, repository: Repository):
        """Test that unknown states are rejected."""
        response = await authenticated_client.get(issues_url(repository), params={"state": "merged"})

        assert response.status_code == 422

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("github_token")
    async def test_empty_cache_syncs_inline(
        self,
        authenticated_client: AsyncClient,
        repository: Repository,
        github_client: MagicMock,
        make_issue_data,
    ):
        """Test that the first visit fills the cache before answering."""
        github_client.fetch_issues.return_value = [make_issue_data(1), make_issue_data(2)]

        response = await authenticated_client.get(issues_url(repository))

        data = response.json()
        assert [item["number"] for item in data["items"]] == [2, 1]
        assert data["sync_error"] is None
        github_client.fetch_issues.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("github_token")
    async def test_empty_cache_sync_error(
        self, authenticated_client: AsyncClient, repository: Repository, github_client: MagicMock
    ):
        """Test that an inline sync failure is reported with an empty list."""
        github_client.fetch_issues.return_value = {"error": "Repository not found"}

        response = await authenticated_client.get(issues_url(repository))

        assert response.status_code == 200
        data = response.json()
        assert data["items"] == []
        assert data["sync_error"] == "Repository not found"

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("cached_issues")
    async def test_stale_cache_refreshes_in_background(
        self,
        authenticated_client: AsyncClient,
        db_session: AsyncSession,
        repository: Repository,
        github_client: MagicMock,
        enqueued: MagicMock,
    ):
        """Test that a stale cache is served while a job refreshes it."""
        repository.cached_at = datetime.now(UTC) - timedelta(hours=2)
        await db_session.commit()

        response = await authenticated_client.get(issues_url(repository))

        assert response.json()["total"] == 3
        enqueued.assert_called_once_with(repository.id, ISSUES_JOB)
        github_client.fetch_issues.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("cached_issues", "github_token")
    async def test_github_mode(
        self,
        authenticated_client: AsyncClient,
        repository: Repository,
        github_client: MagicMock,
        make_issue_data,
    ):
        """Test that GitHub mode returns API results."""
        github_client.search_issues.return_value = {
            "total_count": 1,
            "items": [make_issue_data(99, title="Remote only")],
        }

        response = await authenticated_client.get(
            issues_url(repository), params={"mode": "github", "q": "remote"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["mode"] == "github"
        assert [item["title"] for item in data["items"]] == ["Remote only"]
        assert data["items"][0]["cached_at"] is None

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("cached_issues", "github_token")
    async def test_github_mode_falls_back_to_cache(
        self, authenticated_client: AsyncClient, repository: Repository, github_client: MagicMock
    ):
        """Test that a failed GitHub search serves cached results with the error."""
        github_client.search_issues.side_effect = GitHubRateLimitError(
            "Rate limit exceeded", reset_at=None, remaining=0, limit=30, resource="search"
        )

        response = await authenticated_client.get(
            issues_url(repository), params={"mode": "github", "author": "hubot"}
        )

        data = response.json()
        assert data["mode"] == "local"
        assert [item["number"] for item in data["items"]] == [3]
        assert data["sync_error"] == "Search rate limit exceeded. Showing cached issues. Resets at unknown"
        assert data["rate_limit"] == {"search": {"remaining": 0, "limit": 30, "reset_at": None}}


class TestIssueDetail:
    """Tests for a single issue."""

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("cached_issues")
    async def test_detail_with_comments(self, authenticated_client: AsyncClient, repository: Repository):
        """Test that comments are returned oldest first."""
        response = await authenticated_client.get(f"{issues_url(repository)}/1")

        assert response.status_code == 200
        data = response.json()
        assert data["title"] == "Issue 1"
        assert data["labels"] == [{"name": "bug", "color": "ededed"}]
        assert [comment["github_id"] for comment in data["comments"]] == [100, 101]

    @pytest.mark.asyncio
    async def test_missing_issue(self, authenticated_client: AsyncClient, repository: Repository):
        """Test that unknown issue numbers are 404."""
        response = await authenticated_client.get(f"{issues_url(repository)}/404")

        assert response.status_code == 404


@pytest.mark.usefixtures("github_token")
class TestRefreshIssues:
    """Tests for manual issue syncs."""

    @pytest.mark.asyncio
    async def test_refresh_all(
        self,
        authenticated_client: AsyncClient,
        repository: Repository,
        github_client: MagicMock,
        make_issue_data,
    ):
        """Test a manual full sync."""
        github_client.fetch_issues.return_value = [make_issue_data(1)]

        response = await authenticated_client.post(f"{issues_url(repository)}/refresh")

        assert response.status_code == 200
        assert response.json() == {"status": "success", "synced_count": 1, "error": None}

    @pytest.mark.asyncio
    async def test_refresh_one(
        self,
        authenticated_client: AsyncClient,
        repository: Repository,
        github_client: MagicMock,
        make_issue_data,
    ):
        """Test a manual single issue sync."""
        github_client.fetch_issue.return_value = make_issue_data(8, title="Fresh title")

        response = await authenticated_client.post(f"{issues_url(repository)}/8/refresh")
        assert response.json()["synced_count"] == 1

        detail = await authenticated_client.get(f"{issues_url(repository)}/8")
        assert detail.json()["title"] == "Fresh title"

    @pytest.mark.asyncio
    async def test_refresh_error(
        self, authenticated_client: AsyncClient, repository: Repository, github_client: MagicMock
    ):
        """Test that sync failures are reported in the body."""
        github_client.fetch_issue.return_value = {"error": "Issue not found"}

        response = await authenticated_client.post(f"{issues_url(repository)}/5/refresh")

        assert response.status_code == 200
        assert response.json() == {"status": "error", "synced_count": 0, "error": "Issue not found"}
