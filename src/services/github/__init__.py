"""GitHub integration module.

Caches repositories, issues with comments, and assignable users from
github.com or GitHub Enterprise, and searches them locally or through the
GitHub search API.

Usage:
    from src.services.github import IssueSyncService, sync_repository_assignable_users

    result = await sync_repository_assignable_users(db, repository.id)
    if result.success:
        ...

    result = await IssueSyncService(db, user, repository).sync()
"""

from src.services.github.client import (
    GitHubAuthError,
    GitHubClient,
    GitHubConfigurationError,
    GitHubError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    create_github_client,
    get_client_factory,
)
from src.services.github.search import (
    IssueSearchService,
    SearchFilters,
    SearchResult,
    build_github_search_query,
    parse_sort_params,
)
from src.services.github.sync import (
    IssueSyncService,
    RepositoryNotFoundError,
    RepositorySyncService,
    SyncResult,
    SyncStage,
    sync_repository_assignable_users,
)

__all__ = [
    # Client
    "GitHubAuthError",
    "GitHubClient",
    "GitHubConfigurationError",
    "GitHubError",
    "GitHubNotFoundError",
    "GitHubRateLimitError",
    "create_github_client",
    "get_client_factory",
    # Search
    "IssueSearchService",
    "SearchFilters",
    "SearchResult",
    "build_github_search_query",
    "parse_sort_params",
    # Sync
    "IssueSyncService",
    "RepositoryNotFoundError",
    "RepositorySyncService",
    "SyncResult",
    "SyncStage",
    "sync_repository_assignable_users",
]
