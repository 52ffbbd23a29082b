"""CRUD operations and search query composition for cached issues."""

import json
from collections.abc import Sequence
from typing import Any

from sqlalchemy import Select, String, cast, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.db.crud.repositories import escape_like
from src.models.issue import Issue, IssueComment
from src.utils.staleness import advance_cached_at

SORT_COLUMNS = {
    "created": Issue.github_created_at,
    "updated": Issue.github_updated_at,
    "comments": Issue.comments_count,
}


def _json_member_pattern(key: str, value: str) -> str:
    """LIKE pattern matching `"key": "value"` inside a serialized JSON list."""
    fragment = f"{json.dumps(key)}: {json.dumps(value)}"
    return f"%{escape_like(fragment)}%"


def build_issue_query(
    repository_id: int,
    query: str | None = None,
    state: str | None = None,
    labels: list[str] | None = None,
    assignee: str | None = None,
    author: str | None = None,
    sort_by: str = "updated",
    sort_order: str = "desc",
) -> Select[tuple[Issue]]:
    """Compose the local issue search query.

    Args:
        query: Text matched against title and body
        state: "open" or "closed"
        labels: Label names; an issue must carry all of them
        assignee: Assignee login
        author: Author login
        sort_by: created, updated or comments (unknown values fall back to updated)
        sort_order: asc or desc
    """
    stmt = select(Issue).where(Issue.repository_id == repository_id)

    if query and query.strip():
        pattern = f"%{escape_like(query.strip())}%"
        stmt = stmt.where(
            or_(
                Issue.title.ilike(pattern, escape="\\"),
                Issue.body.ilike(pattern, escape="\\"),
            )
        )
    if state:
        stmt = stmt.where(Issue.state == state)
    for label in labels or []:
        stmt = stmt.where(
            cast(Issue.labels, String).like(_json_member_pattern("name", label), escape="\\")
        )
    if assignee:
        stmt = stmt.where(
            cast(Issue.assignees, String).like(_json_member_pattern("login", assignee), escape="\\")
        )
    if author:
        stmt = stmt.where(Issue.author_login == author)

    sort_column = SORT_COLUMNS.get(sort_by, Issue.github_updated_at)

    # Secondary sort by number keeps pagination deterministic
    if sort_order == "asc":
        stmt = stmt.order_by(sort_column.asc().nullslast(), Issue.number.asc())
    else:
        stmt = stmt.order_by(sort_column.desc().nullslast(), Issue.number.desc())

    return stmt


async def search_issues(
    db: AsyncSession,
    repository_id: int,
    page: int = 1,
    per_page: int = 30,
    **filters: Any,
) -> tuple[Sequence[Issue], int]:
    """Run the local issue search with pagination.

    Returns:
        Tuple of (issues on the page, total matching count)
    """
    stmt = build_issue_query(repository_id, **filters)

    count_result = await db.execute(select(func.count()).select_from(stmt.order_by(None).subquery()))
    total = count_result.scalar_one()

    result = await db.execute(stmt.offset((page - 1) * per_page).limit(per_page))
    return result.scalars().all(), total


async def count_issues(db: AsyncSession, repository_id: int) -> int:
    """Count cached issues for a repository."""
    result = await db.execute(
        select(func.count(Issue.id)).where(Issue.repository_id == repository_id)
    )
    return result.scalar_one()


async def get_issue(
    db: AsyncSession,
    repository_id: int,
    number: int,
    with_comments: bool = False,
) -> Issue | None:
    """Get a cached issue by number."""
    stmt = select(Issue).where(Issue.repository_id == repository_id, Issue.number == number)
    if with_comments:
        stmt = stmt.options(selectinload(Issue.comments))
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_filter_options(
    db: AsyncSession,
    repository_id: int,
) -> tuple[list[str], list[str]]:
    """Collect the distinct label names and assignee logins of cached issues.

    Returns:
        Tuple of (sorted label names, sorted assignee logins)
    """
    result = await db.execute(
        select(Issue.labels, Issue.assignees).where(Issue.repository_id == repository_id)
    )

    labels: set[str] = set()
    assignees: set[str] = set()
    for issue_labels, issue_assignees in result.all():
        labels.update(label["name"] for label in issue_labels or [] if label.get("name"))
        assignees.update(
            assignee["login"] for assignee in issue_assignees or [] if assignee.get("login")
        )

    return sorted(labels), sorted(assignees)


async def upsert_issue(
    db: AsyncSession,
    repository_id: int,
    data: dict[str, Any],
    cached_at,
) -> Issue:
    """Create or update a cached issue by (repository, number). Does not commit."""
    issue = await get_issue(db, repository_id, data["number"])
    if issue is None:
        issue = Issue(repository_id=repository_id, number=data["number"])
        db.add(issue)

    issue.title = data["title"]
    issue.state = data["state"]
    issue.body = data.get("body")
    issue.author_login = data.get("author_login")
    issue.author_avatar_url = data.get("author_avatar_url")
    issue.labels = data.get("labels") or []
    issue.assignees = data.get("assignees") or []
    issue.comments_count = data.get("comments_count") or 0
    issue.github_created_at = data.get("created_at")
    issue.github_updated_at = data.get("updated_at")
    issue.cached_at = advance_cached_at(issue.cached_at, cached_at)

    await db.flush()
    return issue


async def upsert_comment(db: AsyncSession, issue_id: int, data: dict[str, Any]) -> IssueComment:
    """Create or update a cached comment by (issue, github_id). Does not commit."""
    result = await db.execute(
        select(IssueComment).where(
            IssueComment.issue_id == issue_id,
            IssueComment.github_id == data["github_id"],
        )
    )
    comment = result.scalar_one_or_none()
    if comment is None:
        comment = IssueComment(issue_id=issue_id, github_id=data["github_id"])
        db.add(comment)

    comment.author_login = data.get("author_login")
    comment.author_avatar_url = data.get("author_avatar_url")
    comment.body = data.get("body")
    comment.github_created_at = data.get("created_at")
    comment.github_updated_at = data.get("updated_at")

    await db.flush()
    return comment
