"""Repository API endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import get_current_user
from src.config import get_settings
from src.constants import ASSIGNABLE_USERS_LIMIT
from src.db import get_db
from src.db.crud import (
    delete_repository,
    find_repository,
    get_assignable_user,
    get_user_repositories,
    get_user_repository,
    search_assignable_users,
)
from src.models.repository import Repository
from src.models.schemas import AssignableUserRead, RepositoryCreate, RepositoryRead
from src.models.user import User
from src.services.github import RepositorySyncService, SyncResult, get_client_factory
from src.services.github.sync import ClientFactory, missing_token_error
from src.services.jobs import ASSIGNABLE_USERS_JOB, ISSUES_JOB, enqueue_sync
from src.utils.github_url import parse_repository_url

router = APIRouter()
logger = logging.getLogger(__name__)


async def get_repository_or_404(
    repository_id: int,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Repository:
    """Load one of the current user's repositories."""
    repository = await get_user_repository(db, user.id, repository_id)
    if not repository:
        raise HTTPException(status_code=404, detail="Repository not found")
    return repository


def raise_for_sync_error(result: SyncResult, domain: str) -> None:
    """Map a failed repository sync to an HTTP error."""
    if result.success:
        return
    if result.error == missing_token_error(domain):
        raise HTTPException(status_code=400, detail=result.error)
    raise HTTPException(status_code=502, detail=result.error or "GitHub sync failed")


@router.get("", response_model=list[RepositoryRead])
async def list_repositories(
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list[RepositoryRead]:
    """List tracked repositories, most recently synced first."""
    repositories = await get_user_repositories(db, user.id)
    return [RepositoryRead.from_repository(repository) for repository in repositories]


@router.post("", response_model=RepositoryRead, status_code=201)
async def add_repository(
    data: RepositoryCreate,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    client_factory: Annotated[ClientFactory, Depends(get_client_factory)],
) -> RepositoryRead:
    """Track a repository from a GitHub URL or owner/repo shorthand."""
    ref = parse_repository_url(data.url, default_domain=get_settings().github_default_domain)
    if ref is None:
        raise HTTPException(
            status_code=400,
            detail="Invalid repository URL. Use https://github.com/owner/repo or owner/repo",
        )

    if await find_repository(db, user.id, ref.domain, ref.owner, ref.name):
        raise HTTPException(status_code=409, detail=f"{ref.full_name} is already tracked")

    result = await RepositorySyncService(
        db, user, ref.domain, ref.owner, ref.name, client_factory=client_factory
    ).sync()
    raise_for_sync_error(result, ref.domain)

    repository = result.repository
    enqueue_sync(repository.id, ASSIGNABLE_USERS_JOB)
    logger.info(f"User {user.id} added repository {repository.full_name}")
    return RepositoryRead.from_repository(repository)


@router.delete("/{repository_id}", status_code=204)
async def remove_repository(
    repository: Annotated[Repository, Depends(get_repository_or_404)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> None:
    """Stop tracking a repository and drop its cached data."""
    await delete_repository(db, repository)


@router.post("/{repository_id}/refresh", response_model=RepositoryRead)
async def refresh_repository(
    repository: Annotated[Repository, Depends(get_repository_or_404)],
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    client_factory: Annotated[ClientFactory, Depends(get_client_factory)],
) -> RepositoryRead:
    """Re-fetch the repository summary and schedule background syncs."""
    result = await RepositorySyncService(
        db,
        user,
        repository.github_domain,
        repository.owner,
        repository.name,
        client_factory=client_factory,
    ).sync()
    raise_for_sync_error(result, repository.github_domain)

    enqueue_sync(repository.id, ISSUES_JOB)
    enqueue_sync(repository.id, ASSIGNABLE_USERS_JOB)
    return RepositoryRead.from_repository(result.repository)


@router.get("/{repository_id}/assignable-users", response_model=list[AssignableUserRead])
async def list_assignable_users(
    repository: Annotated[Repository, Depends(get_repository_or_404)],
    db: Annotated[AsyncSession, Depends(get_db)],
    q: Annotated[str | None, Query(max_length=100)] = None,
    selected: Annotated[str | None, Query(max_length=255)] = None,
) -> list[AssignableUserRead]:
    """Search cached assignable users for author and assignee filters.

    Served from the local cache only. Stale or empty caches schedule a
    background refresh; the response uses what is cached now.
    The `selected` login, when cached, is always listed first.
    """
    users = list(
        await search_assignable_users(db, repository.id, query=q, limit=ASSIGNABLE_USERS_LIMIT)
    )

    if repository.is_stale() or (not users and not q):
        enqueue_sync(repository.id, ASSIGNABLE_USERS_JOB)

    if selected:
        selected_user = await get_assignable_user(db, repository.id, selected)
        if selected_user:
            users = [selected_user] + [u for u in users if u.login != selected]

    return [AssignableUserRead.model_validate(u) for u in users[:ASSIGNABLE_USERS_LIMIT]]
