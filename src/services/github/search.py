"""Issue search over the local cache or the GitHub search API."""

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.constants import (
    DEFAULT_PAGE_SIZE,
    DEFAULT_SORT_FIELD,
    DEFAULT_SORT_ORDER,
    VALID_SORT_FIELDS,
    VALID_SORT_ORDERS,
)
from src.db.crud.issues import search_issues
from src.db.crud.users import get_token_for_domain
from src.models.issue import Issue
from src.models.repository import Repository
from src.models.schemas import IssueRead
from src.models.user import User
from src.services.github.client import (
    GitHubAuthError,
    GitHubError,
    GitHubRateLimitError,
    create_github_client,
)
from src.services.github.sync import ClientFactory, missing_token_error

logger = logging.getLogger(__name__)

LOCAL_MODE = "local"
GITHUB_MODE = "github"
SEARCH_MODES = (LOCAL_MODE, GITHUB_MODE)


@dataclass
class SearchFilters:
    """Issue filters shared by both search modes."""

    state: str | None = None
    labels: list[str] = field(default_factory=list)
    assignee: str | None = None
    author: str | None = None


@dataclass
class SearchResult:
    """Result of an issue search."""

    success: bool = True
    issues: Sequence[Issue | IssueRead] = ()
    mode: str = LOCAL_MODE
    count: int = 0
    error: str | None = None
    rate_limit: dict[str, Any] | None = None


def parse_sort_params(sort_by: str | None) -> tuple[str | None, str | None]:
    """Split a sort option into (field, order).

    "updated" -> ("updated", "desc"), "created-asc" -> ("created", "asc").
    Unknown fields or orders fall back to the defaults.
    """
    if not sort_by:
        return None, None

    sort_field, _, order = sort_by.partition("-")
    if sort_field not in VALID_SORT_FIELDS:
        sort_field = DEFAULT_SORT_FIELD
    if order not in VALID_SORT_ORDERS:
        order = DEFAULT_SORT_ORDER
    return sort_field, order


def build_github_search_query(
    full_name: str,
    query: str | None = None,
    filters: SearchFilters | None = None,
) -> str:
    """Build a GitHub search query string scoped to one repository.

    Example:
        repo:rails/rails timeout state:open label:"bug" assignee:dhh
    """
    filters = filters or SearchFilters()
    parts = [f"repo:{full_name}"]
    if query and query.strip():
        parts.append(query.strip())
    if filters.state:
        parts.append(f"state:{filters.state}")
    for label in filters.labels:
        parts.append(f'label:"{label}"')
    if filters.assignee:
        parts.append(f"assignee:{filters.assignee}")
    if filters.author:
        parts.append(f"author:{filters.author}")
    return " ".join(parts)


class IssueSearchService:
    """Dual-mode issue search.

    Local mode filters and sorts cached issues in the database. GitHub mode
    runs a full-text search through the API and returns issues without
    caching them.
    """

    def __init__(
        self,
        db: AsyncSession,
        user: User,
        repository: Repository,
        query: str | None = None,
        filters: SearchFilters | None = None,
        sort_by: str | None = None,
        mode: str = LOCAL_MODE,
        page: int = 1,
        per_page: int = DEFAULT_PAGE_SIZE,
        client_factory: ClientFactory = create_github_client,
    ):
        self.db = db
        self.user = user
        self.repository = repository
        self.query = query
        self.filters = filters or SearchFilters()
        self.sort_by = sort_by or DEFAULT_SORT_FIELD
        self.mode = mode
        self.page = page
        self.per_page = per_page
        self.client_factory = client_factory

    async def search(self) -> SearchResult:
        if self.mode == LOCAL_MODE:
            return await self._local_search()
        if self.mode == GITHUB_MODE:
            return await self._github_search()
        return SearchResult(success=False, mode=self.mode, error=f"Invalid search mode: {self.mode}")

    async def _local_search(self) -> SearchResult:
        sort_field, order = parse_sort_params(self.sort_by)
        issues, total = await search_issues(
            self.db,
            self.repository.id,
            page=self.page,
            per_page=self.per_page,
            query=self.query,
            state=self.filters.state,
            labels=self.filters.labels,
            assignee=self.filters.assignee,
            author=self.filters.author,
            sort_by=sort_field or DEFAULT_SORT_FIELD,
            sort_order=order or DEFAULT_SORT_ORDER,
        )
        return SearchResult(issues=issues, mode=LOCAL_MODE, count=total)

    async def _github_search(self) -> SearchResult:
        repository = self.repository
        github_token = await get_token_for_domain(self.db, self.user.id, repository.github_domain)
        if github_token is None:
            return SearchResult(
                success=False, mode=GITHUB_MODE, error=missing_token_error(repository.github_domain)
            )

        client = self.client_factory(github_token.token.reveal(), repository.github_domain)
        search_query = build_github_search_query(repository.full_name, self.query, self.filters)
        sort_field, order = parse_sort_params(self.sort_by)

        try:
            start = time.perf_counter()
            results = await client.search_issues(
                search_query, sort=sort_field, order=order, per_page=self.per_page, page=self.page
            )
            duration_ms = (time.perf_counter() - start) * 1000
            logger.info(
                f"GitHub search took {duration_ms:.1f}ms for query: {search_query} "
                f"(page: {self.page}, per_page: {self.per_page})"
            )
        except GitHubRateLimitError as e:
            resets_at = (
                datetime.fromtimestamp(e.reset_at, UTC).strftime("%H:%M UTC") if e.reset_at else "unknown"
            )
            error = f"Search rate limit exceeded. Showing cached issues. Resets at {resets_at}"
            logger.warning(f"Rate limit during search for {repository.full_name}: {error}")
            rate_limit = None
            if e.remaining is not None and e.limit is not None:
                rate_limit = {
                    e.resource or "search": {
                        "remaining": e.remaining,
                        "limit": e.limit,
                        "reset_at": e.reset_at,
                    }
                }
            return SearchResult(success=False, mode=GITHUB_MODE, error=error, rate_limit=rate_limit)
        except GitHubAuthError:
            logger.error(f"Auth error during search for {repository.full_name}")
            return SearchResult(
                success=False, mode=GITHUB_MODE, error="Unauthorized - check your GitHub token"
            )
        except GitHubError as e:
            logger.error(f"Error searching issues for {repository.full_name}: {e}")
            return SearchResult(success=False, mode=GITHUB_MODE, error=f"Search failed: {e}")

        error = results.get("error")
        if error:
            return SearchResult(success=False, mode=GITHUB_MODE, error=error)

        items = results.get("items") or []
        issues = [_issue_from_api_data(item) for item in items]
        return SearchResult(
            issues=issues,
            mode=GITHUB_MODE,
            count=results.get("total_count", len(items)),
            rate_limit=client.rate_limit_info or None,
        )


def _issue_from_api_data(data: dict[str, Any]) -> IssueRead:
    """Map a normalized API issue to a read payload without caching it."""
    return IssueRead(
        number=data["number"],
        title=data["title"],
        state=data["state"],
        body=data.get("body"),
        author_login=data.get("author_login"),
        author_avatar_url=data.get("author_avatar_url"),
        labels=data.get("labels") or [],
        assignees=data.get("assignees") or [],
        comments_count=data.get("comments_count") or 0,
        github_created_at=data.get("created_at"),
        github_updated_at=data.get("updated_at"),
        cached_at=None,
    )
