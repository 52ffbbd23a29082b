"""Dashboard API endpoint."""

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import get_current_user
from src.constants import DASHBOARD_RECENT_REPOSITORIES
from src.db import get_db
from src.db.crud import get_recently_synced_repositories, get_user_repositories
from src.models.schemas import RepositoryRead
from src.models.user import User

router = APIRouter()


class DashboardRead(BaseModel):
    """Dashboard summary."""

    repository_count: int
    stale_count: int
    recent_repositories: list[RepositoryRead]


@router.get("", response_model=DashboardRead)
async def get_dashboard(
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> DashboardRead:
    """Get the most recently synced repositories."""
    repositories = await get_user_repositories(db, user.id)
    recent = await get_recently_synced_repositories(
        db, user.id, limit=DASHBOARD_RECENT_REPOSITORIES
    )
    return DashboardRead(
        repository_count=len(repositories),
        stale_count=sum(1 for repository in repositories if repository.is_stale()),
        recent_repositories=[RepositoryRead.from_repository(repository) for repository in recent],
    )
