"""GitHub sync services.

Pulls repository summaries, issues with their comments, and assignable users
from GitHub into the local cache:
- Repository: summary fields and counters
- Issues: all issues (or one issue) with comments, in a single transaction
- Assignable users: idempotent reconciliation used by background jobs
"""

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import get_settings
from src.db.crud.issues import upsert_comment, upsert_issue
from src.db.crud.repositories import find_repository, get_assignable_users_by_login, get_repository
from src.db.crud.users import get_token_for_domain
from src.models.repository import Repository, RepositoryAssignableUser
from src.models.user import User
from src.services.github.client import (
    GitHubAuthError,
    GitHubClient,
    GitHubRateLimitError,
    create_github_client,
)
from src.utils.logging import LogContext
from src.utils.staleness import advance_cached_at

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str, str], GitHubClient]


class RepositoryNotFoundError(Exception):
    """Repository id does not exist in the local database."""

    def __init__(self, repository_id: int):
        super().__init__(f"Repository {repository_id} not found")
        self.repository_id = repository_id


class SyncStage(str, enum.Enum):
    """Last stage a sync run reached before it finished."""

    START = "start"
    TOKEN_RESOLVED = "token_resolved"
    FETCHED = "fetched"
    RECONCILED = "reconciled"
    DONE = "done"


@dataclass
class SyncResult:
    """Result of a sync operation."""

    status: str = "success"  # success, skipped, error
    stage: SyncStage = SyncStage.START
    synced_count: int = 0
    removed_count: int = 0
    error: str | None = None
    cache_preserved: bool = False
    repository: Repository | None = field(default=None, repr=False)

    @property
    def success(self) -> bool:
        return self.status == "success"

    def __str__(self) -> str:
        if self.error:
            return f"status={self.status}, stage={self.stage.value}, error={self.error}"
        return (
            f"status={self.status}, stage={self.stage.value}, "
            f"synced={self.synced_count}, removed={self.removed_count}"
        )


def _error_marker(payload: Any) -> str | None:
    """Extract the reason from a client `{"error": reason}` marker."""
    if isinstance(payload, dict) and "error" in payload:
        return str(payload["error"]) or "Unknown GitHub error"
    return None


def missing_token_error(domain: str) -> str:
    return f"No GitHub token configured for {domain}"


# ==================== Assignable users ====================


async def sync_repository_assignable_users(
    db: AsyncSession,
    repository_id: int,
    client_factory: ClientFactory = create_github_client,
    full_replace: bool | None = None,
) -> SyncResult:
    """Reconcile the cached assignable users of a repository with GitHub.

    Upserts every returned user by (repository, login). Users missing from the
    response are kept unless `full_replace` is enabled. Running twice against
    an unchanged response leaves the table unchanged.

    Args:
        db: Database session
        repository_id: Local repository ID
        client_factory: Builds a GitHub client from (token, domain)
        full_replace: Delete users absent from the response
            (default: Settings.sync_full_replace)

    Returns:
        SyncResult; "skipped" when the owner has no token for the domain,
        "error" when GitHub returned an error marker

    Raises:
        RepositoryNotFoundError: If the repository does not exist
    """
    if full_replace is None:
        full_replace = get_settings().sync_full_replace

    repository = await get_repository(db, repository_id)
    if repository is None:
        raise RepositoryNotFoundError(repository_id)

    log = LogContext(logger, repository=repository.full_name)
    result = SyncResult(repository=repository)

    try:
        github_token = await get_token_for_domain(db, repository.user_id, repository.github_domain)
        result.stage = SyncStage.TOKEN_RESOLVED
        if github_token is None:
            log.error(
                f"No GitHub token for user {repository.user_id} on {repository.github_domain}, "
                "skipping assignable users sync"
            )
            result.status = "skipped"
            result.error = missing_token_error(repository.github_domain)
            return result

        client = client_factory(github_token.token.reveal(), repository.github_domain)
        users_data = await client.fetch_assignable_users(repository.owner, repository.name)
        result.stage = SyncStage.FETCHED

        error = _error_marker(users_data)
        if error:
            log.error(f"Failed to fetch assignable users: {error}")
            result.status = "error"
            result.error = error
            return result

        existing = await get_assignable_users_by_login(db, repository.id)
        seen: set[str] = set()

        for user_data in users_data:
            login = (user_data.get("login") or "").strip()
            if not login or login in seen:
                continue
            seen.add(login)

            assignable_user = existing.get(login)
            if assignable_user is None:
                db.add(
                    RepositoryAssignableUser(
                        repository_id=repository.id,
                        login=login,
                        avatar_url=user_data.get("avatar_url"),
                    )
                )
            elif assignable_user.avatar_url != user_data.get("avatar_url"):
                assignable_user.avatar_url = user_data.get("avatar_url")

        if full_replace:
            stale_logins = set(existing) - seen
            if stale_logins:
                await db.execute(
                    delete(RepositoryAssignableUser).where(
                        RepositoryAssignableUser.repository_id == repository.id,
                        RepositoryAssignableUser.login.in_(stale_logins),
                    )
                )
            result.removed_count = len(stale_logins)
        result.stage = SyncStage.RECONCILED

        await db.commit()

        result.synced_count = len(seen)
        result.stage = SyncStage.DONE
        logger.info(f"Synced {result.synced_count} assignable users for {repository.full_name}")
        return result

    except Exception as e:
        log.exception(f"Assignable users sync failed at stage {result.stage.value}: {e}")
        await db.rollback()
        raise


# ==================== Repository ====================


class RepositorySyncService:
    """Fetch a repository summary from GitHub and cache it for the user."""

    def __init__(
        self,
        db: AsyncSession,
        user: User,
        github_domain: str,
        owner: str,
        name: str,
        client_factory: ClientFactory = create_github_client,
    ):
        self.db = db
        self.user = user
        self.github_domain = github_domain
        self.owner = owner
        self.name = name
        self.client_factory = client_factory

    async def sync(self) -> SyncResult:
        """Fetch and upsert the repository.

        Returns:
            SyncResult with the cached repository on success
        """
        github_token = await get_token_for_domain(self.db, self.user.id, self.github_domain)
        if github_token is None:
            return SyncResult(
                status="error", error=missing_token_error(self.github_domain)
            )

        client = self.client_factory(github_token.token.reveal(), self.github_domain)
        repo_data = await client.fetch_repository(self.owner, self.name)

        error = _error_marker(repo_data)
        if error:
            logger.warning(f"Could not fetch {self.owner}/{self.name} from {self.github_domain}: {error}")
            return SyncResult(status="error", stage=SyncStage.FETCHED, error=error)

        repository = await self._upsert_repository(repo_data)
        await self.db.commit()
        await self.db.refresh(repository)

        logger.info(f"Synced repository {repository.full_name} for user {self.user.id}")
        return SyncResult(stage=SyncStage.DONE, synced_count=1, repository=repository)

    async def _upsert_repository(self, repo_data: dict[str, Any]) -> Repository:
        repository = await find_repository(
            self.db, self.user.id, self.github_domain, repo_data["owner"], repo_data["name"]
        )
        if repository is None:
            repository = Repository(
                user_id=self.user.id,
                github_domain=self.github_domain,
                owner=repo_data["owner"],
                name=repo_data["name"],
            )
            self.db.add(repository)

        repository.full_name = repo_data["full_name"]
        repository.description = repo_data.get("description")
        repository.url = repo_data.get("url")
        repository.issue_count = repo_data.get("issue_count") or 0
        repository.open_issue_count = repo_data.get("open_issue_count") or 0
        repository.cached_at = advance_cached_at(repository.cached_at)

        await self.db.flush()
        return repository


# ==================== Issues ====================


class IssueSyncService:
    """Fetch issues and their comments from GitHub into the cache.

    Syncs every issue of the repository, or a single issue when
    `issue_number` is given. Either everything is committed or nothing is;
    on failure the previous cache stays as it was.
    """

    def __init__(
        self,
        db: AsyncSession,
        user: User,
        repository: Repository,
        issue_number: int | None = None,
        client_factory: ClientFactory = create_github_client,
    ):
        self.db = db
        self.user = user
        self.repository = repository
        self.issue_number = issue_number
        self.client_factory = client_factory

    async def sync(self) -> SyncResult:
        """Fetch and upsert issues with comments.

        Returns:
            SyncResult with the number of synced issues. Failures are
            returned as error results with `cache_preserved=True`.
        """
        repository = self.repository
        domain = repository.github_domain
        full_name = repository.full_name

        github_token = await get_token_for_domain(self.db, self.user.id, domain)
        if github_token is None:
            return SyncResult(status="error", error=missing_token_error(domain), repository=repository)

        try:
            client = self.client_factory(github_token.token.reveal(), domain)

            if self.issue_number is not None:
                issue_data = await client.fetch_issue(repository.owner, repository.name, self.issue_number)
                issues_data: Any = issue_data if _error_marker(issue_data) else [issue_data]
            else:
                issues_data = await client.fetch_issues(repository.owner, repository.name, state="all")

            error = _error_marker(issues_data)
            if error:
                logger.error(f"GitHub API error syncing issues for {full_name}: {error}")
                return self._failure(error)

            now = datetime.now(UTC)
            for data in issues_data:
                issue = await upsert_issue(self.db, repository.id, data, cached_at=now)
                comments = await client.fetch_issue_comments(
                    repository.owner, repository.name, data["number"]
                )
                for comment_data in comments:
                    await upsert_comment(self.db, issue.id, comment_data)

            if self.issue_number is None:
                repository.issue_count = len(issues_data)
                repository.open_issue_count = sum(1 for data in issues_data if data["state"] == "open")
            repository.cached_at = advance_cached_at(repository.cached_at, now)

            await self.db.commit()

        except GitHubRateLimitError as e:
            await self._rollback()
            reset = (
                datetime.fromtimestamp(e.reset_at, UTC).strftime("%Y-%m-%d %H:%M:%S UTC")
                if e.reset_at
                else "unknown"
            )
            error = f"Rate limit exceeded. Resets at {reset}"
            logger.warning(f"Rate limit syncing issues for {full_name}: {error}")
            return self._failure(error)
        except GitHubAuthError:
            await self._rollback()
            logger.error(f"Auth error syncing issues for {full_name}")
            return self._failure("Unauthorized - check your GitHub token")
        except Exception as e:
            await self._rollback()
            logger.exception(f"Error syncing issues for {full_name}: {type(e).__name__} - {e}")
            return self._failure(f"Failed to sync issues: {e}")

        logger.info(f"Synced {len(issues_data)} issues for {full_name}")
        return SyncResult(stage=SyncStage.DONE, synced_count=len(issues_data), repository=repository)

    def _failure(self, error: str) -> SyncResult:
        return SyncResult(
            status="error", error=error, cache_preserved=True, repository=self.repository
        )

    async def _rollback(self) -> None:
        """Discard partial writes and reload the instances the caller still holds."""
        await self.db.rollback()
        await self.db.refresh(self.repository)
        await self.db.refresh(self.user)
