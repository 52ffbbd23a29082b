"""Tests for the assignable users reconciliation."""

import logging
from unittest.mock import MagicMock

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.github_token import GithubToken
from src.models.repository import Repository, RepositoryAssignableUser
from src.services.github.sync import (
    RepositoryNotFoundError,
    SyncStage,
    sync_repository_assignable_users,
)


async def cached_users(db: AsyncSession, repository_id: int) -> dict[str, str | None]:
    """Map login -> avatar_url as currently stored."""
    result = await db.execute(
        select(RepositoryAssignableUser)
        .where(RepositoryAssignableUser.repository_id == repository_id)
        .execution_options(populate_existing=True)
    )
    return {user.login: user.avatar_url for user in result.scalars().all()}


async def seed_user(db: AsyncSession, repository_id: int, login: str, avatar_url: str) -> None:
    db.add(RepositoryAssignableUser(repository_id=repository_id, login=login, avatar_url=avatar_url))
    await db.commit()


@pytest.mark.usefixtures("github_token")
class TestSyncAssignableUsers:
    """Tests for sync_repository_assignable_users."""

    @pytest.mark.asyncio
    async def test_inserts_users(
        self,
        db_session: AsyncSession,
        repository: Repository,
        github_client: MagicMock,
        client_factory: MagicMock,
    ):
        """Test that fetched users are stored."""
        github_client.fetch_assignable_users.return_value = [
            {"login": "alice", "avatar_url": "https://a/1"},
            {"login": "bob", "avatar_url": "https://a/2"},
        ]

        result = await sync_repository_assignable_users(
            db_session, repository.id, client_factory=client_factory
        )

        assert result.success
        assert result.stage == SyncStage.DONE
        assert result.synced_count == 2
        assert await cached_users(db_session, repository.id) == {
            "alice": "https://a/1",
            "bob": "https://a/2",
        }
        client_factory.assert_called_once_with("ghp_testtoken1234", "github.com")
        github_client.fetch_assignable_users.assert_awaited_once_with("octocat", "hello-world")

    @pytest.mark.asyncio
    async def test_skips_blank_logins(
        self,
        db_session: AsyncSession,
        repository: Repository,
        github_client: MagicMock,
        client_factory: MagicMock,
    ):
        """Test that deleted accounts without a login are ignored."""
        github_client.fetch_assignable_users.return_value = [
            {"login": None, "avatar_url": "https://a/0"},
            {"login": "", "avatar_url": "https://a/0"},
            {"login": "   ", "avatar_url": "https://a/0"},
            {"login": "alice", "avatar_url": "https://a/1"},
        ]

        result = await sync_repository_assignable_users(
            db_session, repository.id, client_factory=client_factory
        )

        assert result.synced_count == 1
        assert await cached_users(db_session, repository.id) == {"alice": "https://a/1"}

    @pytest.mark.asyncio
    async def test_updates_avatar_of_existing_user(
        self,
        db_session: AsyncSession,
        repository: Repository,
        github_client: MagicMock,
        client_factory: MagicMock,
    ):
        """Test that an existing row is updated in place, not duplicated."""
        await seed_user(db_session, repository.id, "alice", "https://old")
        github_client.fetch_assignable_users.return_value = [
            {"login": "alice", "avatar_url": "https://new"},
        ]

        await sync_repository_assignable_users(db_session, repository.id, client_factory=client_factory)

        assert await cached_users(db_session, repository.id) == {"alice": "https://new"}

    @pytest.mark.asyncio
    async def test_additive_by_default(
        self,
        db_session: AsyncSession,
        repository: Repository,
        github_client: MagicMock,
        client_factory: MagicMock,
    ):
        """Test that users missing from the response are kept."""
        await seed_user(db_session, repository.id, "former", "https://f")
        github_client.fetch_assignable_users.return_value = [
            {"login": "alice", "avatar_url": "https://a/1"},
        ]

        result = await sync_repository_assignable_users(
            db_session, repository.id, client_factory=client_factory, full_replace=False
        )

        assert result.removed_count == 0
        assert set(await cached_users(db_session, repository.id)) == {"alice", "former"}

    @pytest.mark.asyncio
    async def test_full_replace_removes_missing_users(
        self,
        db_session: AsyncSession,
        repository: Repository,
        github_client: MagicMock,
        client_factory: MagicMock,
    ):
        """Test that full replace deletes users GitHub no longer returns."""
        await seed_user(db_session, repository.id, "former", "https://f")
        github_client.fetch_assignable_users.return_value = [
            {"login": "alice", "avatar_url": "https://a/1"},
        ]

        result = await sync_repository_assignable_users(
            db_session, repository.id, client_factory=client_factory, full_replace=True
        )

        assert result.removed_count == 1
        assert await cached_users(db_session, repository.id) == {"alice": "https://a/1"}

    @pytest.mark.asyncio
    async def test_idempotent(
        self,
        db_session: AsyncSession,
        repository: Repository,
        github_client: MagicMock,
        client_factory: MagicMock,
    ):
        """Test that running twice on the same response changes nothing."""
        github_client.fetch_assignable_users.return_value = [
            {"login": "alice", "avatar_url": "https://a/1"},
            {"login": "bob", "avatar_url": "https://a/2"},
            {"login": "bob", "avatar_url": "https://a/2"},
        ]

        await sync_repository_assignable_users(db_session, repository.id, client_factory=client_factory)
        first = await cached_users(db_session, repository.id)
        await sync_repository_assignable_users(db_session, repository.id, client_factory=client_factory)

        assert await cached_users(db_session, repository.id) == first
        count = await db_session.execute(select(RepositoryAssignableUser))
        assert len(count.scalars().all()) == 2

    @pytest.mark.asyncio
    async def test_api_error_leaves_cache_untouched(
        self,
        db_session: AsyncSession,
        repository: Repository,
        github_client: MagicMock,
        client_factory: MagicMock,
        caplog: pytest.LogCaptureFixture,
    ):
        """Test that an error marker aborts without mutations."""
        await seed_user(db_session, repository.id, "alice", "https://a/1")
        github_client.fetch_assignable_users.return_value = {"error": "Repository not found"}

        with caplog.at_level(logging.ERROR):
            result = await sync_repository_assignable_users(
                db_session, repository.id, client_factory=client_factory, full_replace=True
            )

        assert result.status == "error"
        assert result.error == "Repository not found"
        assert result.stage == SyncStage.FETCHED
        assert await cached_users(db_session, repository.id) == {"alice": "https://a/1"}
        assert "Repository not found" in caplog.text

    @pytest.mark.asyncio
    async def test_error_marker_without_reason_is_an_error(
        self,
        db_session: AsyncSession,
        repository: Repository,
        github_client: MagicMock,
        client_factory: MagicMock,
    ):
        """Test that {"error": ""} aborts instead of being reconciled as users."""
        await seed_user(db_session, repository.id, "alice", "https://a/1")
        github_client.fetch_assignable_users.return_value = {"error": ""}

        result = await sync_repository_assignable_users(
            db_session, repository.id, client_factory=client_factory, full_replace=True
        )

        assert result.status == "error"
        assert result.error == "Unknown GitHub error"
        assert await cached_users(db_session, repository.id) == {"alice": "https://a/1"}

    @pytest.mark.asyncio
    async def test_missing_repository_raises(
        self, db_session: AsyncSession, client_factory: MagicMock
    ):
        """Test that an unknown repository id raises and never calls GitHub."""
        with pytest.raises(RepositoryNotFoundError):
            await sync_repository_assignable_users(db_session, 9999, client_factory=client_factory)
        client_factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_token_is_skipped(
        self,
        db_session: AsyncSession,
        repository: Repository,
        github_token: GithubToken,
        client_factory: MagicMock,
    ):
        """Test that a repository whose owner has no token is a logged no-op."""
        await db_session.delete(github_token)
        await db_session.commit()

        result = await sync_repository_assignable_users(
            db_session, repository.id, client_factory=client_factory
        )

        assert result.status == "skipped"
        assert result.stage == SyncStage.TOKEN_RESOLVED
        client_factory.assert_not_called()
        assert await cached_users(db_session, repository.id) == {}

    @pytest.mark.asyncio
    async def test_token_for_other_domain_is_not_used(
        self,
        db_session: AsyncSession,
        repository: Repository,
        client_factory: MagicMock,
    ):
        """Test that tokens are matched on the repository's host."""
        repository.github_domain = "ghe.example.com"
        await db_session.commit()

        result = await sync_repository_assignable_users(
            db_session, repository.id, client_factory=client_factory
        )

        assert result.status == "skipped"
        client_factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_unexpected_error_rolls_back_and_reraises(
        self,
        db_session: AsyncSession,
        repository: Repository,
        github_client: MagicMock,
        client_factory: MagicMock,
    ):
        """Test that a failure mid-reconcile persists nothing and propagates."""
        repository_id = repository.id
        github_client.fetch_assignable_users.return_value = [
            {"login": "alice", "avatar_url": "https://a/1"},
            42,
        ]

        with pytest.raises(AttributeError):
            await sync_repository_assignable_users(
                db_session, repository_id, client_factory=client_factory
            )

        assert await cached_users(db_session, repository_id) == {}

    @pytest.mark.asyncio
    async def test_logs_summary(
        self,
        db_session: AsyncSession,
        repository: Repository,
        github_client: MagicMock,
        client_factory: MagicMock,
        caplog: pytest.LogCaptureFixture,
    ):
        """Test the success log line."""
        github_client.fetch_assignable_users.return_value = [
            {"login": "alice", "avatar_url": "https://a/1"},
            {"login": "bob", "avatar_url": "https://a/2"},
        ]

        with caplog.at_level(logging.INFO, logger="src.services.github.sync"):
            await sync_repository_assignable_users(
                db_session, repository.id, client_factory=client_factory
            )

        assert "Synced 2 assignable users for octocat/hello-world" in caplog.text
