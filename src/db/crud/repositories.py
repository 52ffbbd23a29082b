"""CRUD operations for repositories and their assignable users."""

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.repository import Repository, RepositoryAssignableUser
from src.utils.staleness import stale_cutoff


def escape_like(value: str, escape: str = "\\") -> str:
    """Escape LIKE wildcards so user input matches literally."""
    return (
        value.replace(escape, escape * 2)
        .replace("%", f"{escape}%")
        .replace("_", f"{escape}_")
    )


async def get_repository(db: AsyncSession, repository_id: int) -> Repository | None:
    """Get a repository by ID without user isolation (background jobs)."""
    return await db.get(Repository, repository_id)


async def get_user_repository(
    db: AsyncSession,
    user_id: int,
    repository_id: int,
) -> Repository | None:
    """Get a repository by ID with user isolation."""
    result = await db.execute(
        select(Repository).where(Repository.id == repository_id, Repository.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def find_repository(
    db: AsyncSession,
    user_id: int,
    github_domain: str,
    owner: str,
    name: str,
) -> Repository | None:
    """Find a repository by its natural key (owner and name ignore case, like GitHub)."""
    result = await db.execute(
        select(Repository).where(
            Repository.user_id == user_id,
            Repository.github_domain == github_domain,
            func.lower(Repository.owner) == owner.lower(),
            func.lower(Repository.name) == name.lower(),
        )
    )
    return result.scalar_one_or_none()


async def get_user_repositories(db: AsyncSession, user_id: int) -> Sequence[Repository]:
    """List a user's repositories, most recently synced first, never-synced last."""
    result = await db.execute(
        select(Repository)
        .where(Repository.user_id == user_id)
        .order_by(Repository.cached_at.desc().nullslast(), Repository.id.desc())
    )
    return result.scalars().all()


async def get_recently_synced_repositories(
    db: AsyncSession,
    user_id: int,
    limit: int = 10,
) -> Sequence[Repository]:
    """Get the user's most recently synced repositories."""
    result = await db.execute(
        select(Repository)
        .where(Repository.user_id == user_id, Repository.cached_at.isnot(None))
        .order_by(Repository.cached_at.desc())
        .limit(limit)
    )
    return result.scalars().all()


async def get_stale_repositories(
    db: AsyncSession,
    now: datetime | None = None,
    limit: int | None = 50,
) -> Sequence[Repository]:
    """Get repositories whose cache is stale, oldest first."""
    cutoff = stale_cutoff(now)
    result = await db.execute(
        select(Repository)
        .where(or_(Repository.cached_at.is_(None), Repository.cached_at < cutoff))
        .order_by(Repository.cached_at.asc().nullsfirst(), Repository.id.asc())
        .limit(limit)
    )
    return result.scalars().all()


async def delete_repository(db: AsyncSession, repository: Repository) -> None:
    """Delete a repository with its issues, comments and assignable users."""
    await db.delete(repository)
    await db.commit()


async def search_assignable_users(
    db: AsyncSession,
    repository_id: int,
    query: str | None = None,
    limit: int | None = None,
) -> Sequence[RepositoryAssignableUser]:
    """Search assignable users by login (case-insensitive substring), ordered by login."""
    stmt = select(RepositoryAssignableUser).where(
        RepositoryAssignableUser.repository_id == repository_id
    )
    if query and query.strip():
        pattern = f"%{escape_like(query.strip().lower())}%"
        stmt = stmt.where(func.lower(RepositoryAssignableUser.login).like(pattern, escape="\\"))

    stmt = stmt.order_by(RepositoryAssignableUser.login.asc())
    if limit:
        stmt = stmt.limit(limit)

    result = await db.execute(stmt)
    return result.scalars().all()


async def get_assignable_users_by_login(
    db: AsyncSession,
    repository_id: int,
) -> dict[str, RepositoryAssignableUser]:
    """Map login -> cached assignable user for a repository."""
    result = await db.execute(
        select(RepositoryAssignableUser).where(
            RepositoryAssignableUser.repository_id == repository_id
        )
    )
    return {user.login: user for user in result.scalars().all()}


async def get_assignable_user(
    db: AsyncSession,
    repository_id: int,
    login: str,
) -> RepositoryAssignableUser | None:
    """Get a cached assignable user by exact login."""
    result = await db.execute(
        select(RepositoryAssignableUser).where(
            RepositoryAssignableUser.repository_id == repository_id,
            RepositoryAssignableUser.login == login,
        )
    )
    return result.scalar_one_or_none()
