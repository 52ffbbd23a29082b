"""Issue API endpoints for a tracked repository."""

import logging
import math
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.repositories import get_repository_or_404
from src.auth import get_current_user
from src.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from src.db import get_db
from src.db.crud import count_issues, get_filter_options, get_issue
from src.models.repository import Repository
from src.models.schemas import IssueDetailRead, IssueListRead, IssueRead, SyncResponse
from src.models.user import User
from src.services.github import (
    IssueSearchService,
    IssueSyncService,
    SearchFilters,
    get_client_factory,
)
from src.services.github.search import LOCAL_MODE
from src.services.github.sync import ClientFactory
from src.services.jobs import ISSUES_JOB, enqueue_sync

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=IssueListRead)
async def list_issues(
    repository: Annotated[Repository, Depends(get_repository_or_404)],
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    client_factory: Annotated[ClientFactory, Depends(get_client_factory)],
    q: Annotated[str | None, Query(max_length=256)] = None,
    state: Annotated[Literal["open", "closed", "all"] | None, Query()] = None,
    labels: Annotated[list[str] | None, Query()] = None,
    assignee: Annotated[str | None, Query()] = None,
    author: Annotated[str | None, Query()] = None,
    sort: Annotated[str, Query()] = "updated",
    mode: Annotated[Literal["local", "github"], Query()] = "local",
    page: Annotated[int, Query(ge=1)] = 1,
    per_page: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = DEFAULT_PAGE_SIZE,
) -> IssueListRead:
    """Search issues.

    An empty cache is filled inline before searching. A stale cache is served
    as is while a background refresh runs. GitHub mode falls back to the cache
    when the search API fails.
    """
    sync_error = None

    if await count_issues(db, repository.id) == 0:
        result = await IssueSyncService(db, user, repository, client_factory=client_factory).sync()
        if not result.success:
            sync_error = result.error
    elif repository.is_stale():
        enqueue_sync(repository.id, ISSUES_JOB)

    filters = SearchFilters(
        state=None if state == "all" else state,
        labels=labels or [],
        assignee=assignee,
        author=author,
    )
    search_kwargs = dict(
        query=q, filters=filters, sort_by=sort, page=page, per_page=per_page,
        client_factory=client_factory,
    )

    search = await IssueSearchService(db, user, repository, mode=mode, **search_kwargs).search()
    rate_limit = search.rate_limit
    if not search.success:
        logger.warning(f"Issue search failed for {repository.full_name}: {search.error}")
        sync_error = search.error
        search = await IssueSearchService(db, user, repository, mode=LOCAL_MODE, **search_kwargs).search()

    available_labels, available_assignees = await get_filter_options(db, repository.id)

    return IssueListRead(
        items=[IssueRead.model_validate(issue) for issue in search.issues],
        total=search.count,
        page=page,
        per_page=per_page,
        pages=math.ceil(search.count / per_page) if search.count else 0,
        mode=search.mode,
        available_labels=available_labels,
        available_assignees=available_assignees,
        sync_error=sync_error,
        rate_limit=rate_limit,
    )


@router.post("/refresh", response_model=SyncResponse)
async def refresh_issues(
    repository: Annotated[Repository, Depends(get_repository_or_404)],
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    client_factory: Annotated[ClientFactory, Depends(get_client_factory)],
) -> SyncResponse:
    """Re-sync every issue of the repository now."""
    result = await IssueSyncService(db, user, repository, client_factory=client_factory).sync()
    return SyncResponse(status=result.status, synced_count=result.synced_count, error=result.error)


@router.get("/{number}", response_model=IssueDetailRead)
async def get_issue_detail(
    number: int,
    repository: Annotated[Repository, Depends(get_repository_or_404)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> IssueDetailRead:
    """Get a cached issue with its comments, oldest first."""
    issue = await get_issue(db, repository.id, number, with_comments=True)
    if not issue:
        raise HTTPException(status_code=404, detail="Issue not found")
    return IssueDetailRead.model_validate(issue)


@router.post("/{number}/refresh", response_model=SyncResponse)
async def refresh_issue(
    number: int,
    repository: Annotated[Repository, Depends(get_repository_or_404)],
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    client_factory: Annotated[ClientFactory, Depends(get_client_factory)],
) -> SyncResponse:
    """Re-sync one issue and its comments now."""
    result = await IssueSyncService(
        db, user, repository, issue_number=number, client_factory=client_factory
    ).sync()
    return SyncResponse(status=result.status, synced_count=result.synced_count, error=result.error)
