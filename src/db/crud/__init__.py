"""CRUD operations module."""

from src.db.crud.issues import (
    build_issue_query,
    count_issues,
    get_filter_options,
    get_issue,
    search_issues,
    upsert_comment,
    upsert_issue,
)
from src.db.crud.repositories import (
    delete_repository,
    escape_like,
    find_repository,
    get_assignable_user,
    get_assignable_users_by_login,
    get_recently_synced_repositories,
    get_repository,
    get_stale_repositories,
    get_user_repositories,
    get_user_repository,
    search_assignable_users,
)
from src.db.crud.users import (
    create_user,
    delete_token,
    get_token_for_domain,
    get_user_by_email,
    get_user_tokens,
    save_token,
)

__all__ = [
    "build_issue_query",
    "count_issues",
    "create_user",
    "delete_repository",
    "delete_token",
    "escape_like",
    "find_repository",
    "get_assignable_user",
    "get_assignable_users_by_login",
    "get_filter_options",
    "get_issue",
    "get_recently_synced_repositories",
    "get_repository",
    "get_stale_repositories",
    "get_token_for_domain",
    "get_user_by_email",
    "get_user_repositories",
    "get_user_repository",
    "get_user_tokens",
    "save_token",
    "search_assignable_users",
    "search_issues",
    "upsert_comment",
    "upsert_issue",
]
