"""GitHub API client.

Handles communication with the GitHub REST and GraphQL APIs (github.com and
GitHub Enterprise) for repository, issue, comment and assignable user data.
Documentation: https://docs.github.com/en/rest
"""

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import datetime
from typing import Any

import httpx

from src.constants import (
    GITHUB_API_URL,
    GITHUB_API_VERSION,
    GITHUB_CRITICAL_RATE_LIMIT,
    GITHUB_DEFAULT_DOMAIN,
    GITHUB_GRAPHQL_PAGE_SIZE,
    GITHUB_GRAPHQL_URL,
    GITHUB_MAX_RETRIES,
    GITHUB_MAX_RETRY_DELAY,
    GITHUB_MIN_CRITICAL_DELAY,
    GITHUB_PAGE_SIZE,
    GITHUB_RATE_LIMIT_DELAY,
    GITHUB_RETRY_BACKOFF_BASE,
    GITHUB_WARNING_RATE_LIMIT,
)
from src.utils.http_client import get_github_http_client

logger = logging.getLogger(__name__)

ASSIGNABLE_USERS_QUERY = """
query($owner: String!, $name: String!, $first: Int!, $after: String) {
  repository(owner: $owner, name: $name) {
    assignableUsers(first: $first, after: $after) {
      nodes {
        login
        avatarUrl
      }
      pageInfo {
        hasNextPage
        endCursor
      }
    }
  }
}
"""


class GitHubError(Exception):
    """Base exception for GitHub errors."""

    pass


class GitHubConfigurationError(GitHubError):
    """Client was built without a token or domain."""

    pass


class GitHubAuthError(GitHubError):
    """Authentication error (bad or expired token)."""

    pass


class GitHubNotFoundError(GitHubError):
    """Requested resource does not exist or is not visible to the token."""

    pass


class GitHubRateLimitError(GitHubError):
    """Rate limit exhausted after retries."""

    def __init__(
        self,
        message: str,
        reset_at: int | None = None,
        remaining: int | None = None,
        limit: int | None = None,
        resource: str | None = None,
    ):
        super().__init__(message)
        self.reset_at = reset_at
        self.remaining = remaining
        self.limit = limit
        self.resource = resource


def _parse_datetime(value: str | None) -> datetime | None:
    """Parse GitHub ISO 8601 timestamps ("2024-01-01T12:00:00Z")."""
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _int_header(response: httpx.Response, name: str) -> int | None:
    value = response.headers.get(name)
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


def _is_rate_limited(response: httpx.Response) -> bool:
    if response.status_code == 429:
        return True
    return response.status_code == 403 and response.headers.get("x-ratelimit-remaining") == "0"


class GitHubClient:
    """Client for the GitHub API.

    Expected failures (not found, unauthorized) are returned from the fetch
    methods as `{"error": reason}` markers instead of raised, so callers can
    abort without touching cached data.

    Usage:
        client = GitHubClient(token="ghp_...", domain="github.com")

        users = await client.fetch_assignable_users("rails", "rails")
        if isinstance(users, dict) and "error" in users:
            ...
    """

    def __init__(
        self,
        token: str,
        domain: str = GITHUB_DEFAULT_DOMAIN,
        http_client: httpx.AsyncClient | None = None,
        max_retries: int = GITHUB_MAX_RETRIES,
    ):
        """Initialize GitHub client.

        Args:
            token: Personal access token
            domain: github.com or a GitHub Enterprise hostname
            http_client: httpx client to use (default: shared pooled client)
            max_retries: Retries for rate limit and server errors

        Raises:
            GitHubConfigurationError: If token or domain is blank
        """
        if not token:
            raise GitHubConfigurationError("Token is required")
        if not domain:
            raise GitHubConfigurationError("Domain is required")

        self.token = token
        self.domain = domain
        self.max_retries = max_retries
        self._http = http_client
        self.rate_limit_info: dict[str, dict[str, int | None]] = {}

        # GitHub Enterprise serves the API under the instance hostname
        if domain == GITHUB_DEFAULT_DOMAIN:
            self.api_url = GITHUB_API_URL
            self.graphql_url = GITHUB_GRAPHQL_URL
        else:
            self.api_url = f"https://{domain}/api/v3"
            self.graphql_url = f"https://{domain}/api/graphql"

    def __repr__(self) -> str:
        return f"<GitHubClient(domain={self.domain})>"

    def _get_headers(self) -> dict[str, str]:
        """Get request headers."""
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

    @property
    def http(self) -> httpx.AsyncClient:
        return self._http or get_github_http_client()

    async def _request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Make API request with rate limit handling and retries.

        Args:
            method: HTTP method
            url: Absolute URL or path relative to the REST base URL
            params: Query parameters
            json: JSON body

        Returns:
            Successful response

        Raises:
            GitHubAuthError: On 401
            GitHubNotFoundError: On 404
            GitHubRateLimitError: When rate limited after all retries
            GitHubError: On other errors
        """
        if not url.startswith("http"):
            url = f"{self.api_url}{url}"

        attempt = 0
        while True:
            response = await self.http.request(
                method=method,
                url=url,
                headers=self._get_headers(),
                params=params,
                json=json,
            )
            self._record_rate_limit(response)

            if _is_rate_limited(response):
                reset_at = _int_header(response, "x-ratelimit-reset")
                if attempt < self.max_retries:
                    attempt += 1
                    sleep_time = min(
                        (reset_at - int(time.time())) if reset_at else GITHUB_MIN_CRITICAL_DELAY,
                        GITHUB_MAX_RETRY_DELAY,
                    )
                    logger.warning(
                        f"Rate limited by {self.domain}. Sleeping for {max(sleep_time, 0)}s "
                        f"(attempt {attempt}/{self.max_retries})"
                    )
                    if sleep_time > 0:
                        await asyncio.sleep(sleep_time)
                    continue
                raise GitHubRateLimitError(
                    "Rate limit exceeded",
                    reset_at=reset_at,
                    remaining=_int_header(response, "x-ratelimit-remaining"),
                    limit=_int_header(response, "x-ratelimit-limit"),
                    resource=response.headers.get("x-ratelimit-resource"),
                )

            if response.status_code >= 500:
                if attempt < self.max_retries:
                    attempt += 1
                    delay = GITHUB_RETRY_BACKOFF_BASE**attempt
                    logger.warning(
                        f"Server error ({response.status_code}) from {self.domain}. "
                        f"Retrying in {delay}s (attempt {attempt}/{self.max_retries})"
                    )
                    await asyncio.sleep(delay)
                    continue
                raise GitHubError(f"API error {response.status_code}: {response.text}")

            if response.status_code == 401:
                raise GitHubAuthError("Unauthorized - check your GitHub token")
            if response.status_code == 404:
                raise GitHubNotFoundError("Not found")
            if response.status_code >= 400:
                raise GitHubError(f"API error {response.status_code}: {response.text}")

            await self._throttle(response)
            return response

    def _record_rate_limit(self, response: httpx.Response) -> None:
        remaining = _int_header(response, "x-ratelimit-remaining")
        if remaining is None:
            return
        resource = response.headers.get("x-ratelimit-resource", "core")
        self.rate_limit_info[resource] = {
            "remaining": remaining,
            "limit": _int_header(response, "x-ratelimit-limit"),
            "reset_at": _int_header(response, "x-ratelimit-reset"),
        }

    async def _throttle(self, response: httpx.Response) -> None:
        """Slow down as the remaining rate limit budget shrinks."""
        remaining = _int_header(response, "x-ratelimit-remaining")
        if remaining is None:
            return

        logger.debug(f"Rate limit: {remaining} remaining on {self.domain}")

        if remaining < GITHUB_CRITICAL_RATE_LIMIT:
            reset_at = _int_header(response, "x-ratelimit-reset") or 0
            sleep_time = min(
                max(reset_at - time.time(), GITHUB_MIN_CRITICAL_DELAY),
                GITHUB_MAX_RETRY_DELAY,
            )
            logger.warning(f"Rate limit critical ({remaining} remaining). Sleeping {sleep_time:.1f}s")
            await asyncio.sleep(sleep_time)
        elif remaining < GITHUB_WARNING_RATE_LIMIT:
            await asyncio.sleep(GITHUB_RATE_LIMIT_DELAY)

    async def _paginate(self, path: str, params: dict[str, Any] | None = None) -> list[Any]:
        """Fetch every page of a list endpoint by following Link headers."""
        items: list[Any] = []
        url: str | None = path
        page_params: dict[str, Any] | None = {"per_page": GITHUB_PAGE_SIZE, **(params or {})}

        while url:
            response = await self._request("GET", url, params=page_params)
            items.extend(response.json())
            next_link = response.links.get("next")
            url = next_link["url"] if next_link else None
            page_params = None  # the next link already carries the query

        return items

    async def _graphql(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """Run a GraphQL query and return its `data` payload.

        Raises:
            GitHubError: If the response carries GraphQL errors
        """
        response = await self._request(
            "POST", self.graphql_url, json={"query": query, "variables": variables}
        )
        payload = response.json()
        errors = payload.get("errors")
        if errors:
            messages = "; ".join(error.get("message", "Unknown error") for error in errors)
            if any(error.get("type") == "NOT_FOUND" for error in errors):
                raise GitHubNotFoundError(messages)
            raise GitHubError(f"GraphQL error: {messages}")
        return payload.get("data") or {}

    # ==================== Repositories ====================

    async def fetch_repository(self, owner: str, repo_name: str) -> dict[str, Any]:
        """Fetch repository summary.

        Returns:
            Normalized repository data or {"error": reason}
        """
        try:
            response = await self._request("GET", f"/repos/{owner}/{repo_name}")
        except GitHubNotFoundError:
            return {"error": "Repository not found"}
        except GitHubAuthError:
            return {"error": "Unauthorized - check your GitHub token"}

        repo = response.json()
        open_issues = repo.get("open_issues_count") or 0
        return {
            "owner": repo["owner"]["login"],
            "name": repo["name"],
            "full_name": repo["full_name"],
            "description": repo.get("description"),
            "url": repo.get("html_url"),
            "issue_count": open_issues,
            "open_issue_count": open_issues,
        }

    async def fetch_assignable_users(
        self, owner: str, repo_name: str
    ) -> list[dict[str, Any]] | dict[str, str]:
        """Fetch every user that can be assigned issues in a repository.

        Uses the GraphQL `assignableUsers` connection, following cursors.

        Returns:
            List of {login, avatar_url} or {"error": reason}
        """
        users: list[dict[str, Any]] = []
        cursor: str | None = None

        try:
            while True:
                data = await self._graphql(
                    ASSIGNABLE_USERS_QUERY,
                    {
                        "owner": owner,
                        "name": repo_name,
                        "first": GITHUB_GRAPHQL_PAGE_SIZE,
                        "after": cursor,
                    },
                )
                repository = data.get("repository")
                if repository is None:
                    return {"error": "Repository not found"}

                connection = repository["assignableUsers"]
                for node in connection.get("nodes") or []:
                    if node is None:
                        continue
                    users.append({"login": node.get("login"), "avatar_url": node.get("avatarUrl")})

                page_info = connection.get("pageInfo") or {}
                if not page_info.get("hasNextPage"):
                    break
                cursor = page_info.get("endCursor")
        except GitHubNotFoundError:
            return {"error": "Repository not found"}
        except GitHubAuthError:
            return {"error": "Unauthorized - check your GitHub token"}
        except GitHubRateLimitError:
            return {"error": "API rate limit exceeded"}

        return users

    # ==================== Issues ====================

    async def fetch_issues(
        self, owner: str, repo_name: str, state: str = "all"
    ) -> list[dict[str, Any]] | dict[str, str]:
        """Fetch all issues of a repository (pull requests excluded).

        Returns:
            List of normalized issues or {"error": reason}
        """
        try:
            issues = await self._paginate(f"/repos/{owner}/{repo_name}/issues", {"state": state})
        except GitHubNotFoundError:
            return {"error": "Repository not found"}
        except GitHubAuthError:
            return {"error": "Unauthorized - check your GitHub token"}

        return [normalize_issue(issue) for issue in issues if "pull_request" not in issue]

    async def fetch_issue(
        self, owner: str, repo_name: str, issue_number: int
    ) -> dict[str, Any]:
        """Fetch a single issue.

        Returns:
            Normalized issue or {"error": reason}
        """
        try:
            response = await self._request("GET", f"/repos/{owner}/{repo_name}/issues/{issue_number}")
        except GitHubNotFoundError:
            return {"error": "Issue not found"}
        return normalize_issue(response.json())

    async def fetch_issue_comments(
        self, owner: str, repo_name: str, issue_number: int
    ) -> list[dict[str, Any]]:
        """Fetch all comments on an issue (empty list if the issue is gone)."""
        try:
            comments = await self._paginate(
                f"/repos/{owner}/{repo_name}/issues/{issue_number}/comments"
            )
        except GitHubNotFoundError:
            return []
        return [normalize_comment(comment) for comment in comments]

    async def search_issues(
        self,
        query: str,
        sort: str | None = None,
        order: str | None = None,
        per_page: int = 30,
        page: int = 1,
    ) -> dict[str, Any]:
        """Search issues through the GitHub search API.

        Returns:
            {"total_count", "items"} or {"error": reason}
        """
        params: dict[str, Any] = {"q": query, "per_page": per_page, "page": page}
        if sort:
            params["sort"] = sort
        if order:
            params["order"] = order

        try:
            response = await self._request("GET", "/search/issues", params=params)
        except GitHubNotFoundError:
            return {"error": "Repository not found"}

        data = response.json()
        return {
            "total_count": data.get("total_count", 0),
            "items": [normalize_issue(item) for item in data.get("items", [])],
        }


def normalize_issue(issue: dict[str, Any]) -> dict[str, Any]:
    """Convert a REST issue payload into cached issue fields."""
    author = issue.get("user") or {}
    return {
        "number": issue["number"],
        "title": issue.get("title") or "",
        "state": issue.get("state", "open"),
        "body": issue.get("body"),
        "author_login": author.get("login"),
        "author_avatar_url": author.get("avatar_url"),
        "labels": [
            {"name": label.get("name"), "color": label.get("color")}
            for label in issue.get("labels") or []
        ],
        "assignees": [
            {"login": assignee.get("login"), "avatar_url": assignee.get("avatar_url")}
            for assignee in issue.get("assignees") or []
        ],
        "comments_count": issue.get("comments") or 0,
        "created_at": _parse_datetime(issue.get("created_at")),
        "updated_at": _parse_datetime(issue.get("updated_at")),
    }


def normalize_comment(comment: dict[str, Any]) -> dict[str, Any]:
    """Convert a REST comment payload into cached comment fields."""
    author = comment.get("user") or {}
    return {
        "github_id": comment["id"],
        "author_login": author.get("login"),
        "author_avatar_url": author.get("avatar_url"),
        "body": comment.get("body"),
        "created_at": _parse_datetime(comment.get("created_at")),
        "updated_at": _parse_datetime(comment.get("updated_at")),
    }


def create_github_client(token: str, domain: str = GITHUB_DEFAULT_DOMAIN) -> GitHubClient:
    """Create a GitHub client instance.

    Args:
        token: Personal access token (plaintext)
        domain: GitHub host

    Returns:
        Configured GitHubClient
    """
    return GitHubClient(token=token, domain=domain)


def get_client_factory() -> Callable[[str, str], GitHubClient]:
    """FastAPI dependency providing the GitHub client factory."""
    return create_github_client
