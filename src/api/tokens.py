"""GitHub personal access token endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import get_current_user
from src.db import get_db
from src.db.crud import delete_token, get_user_tokens, save_token
from src.models.schemas import GithubTokenCreate, GithubTokenRead
from src.models.user import User

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=list[GithubTokenRead])
async def list_tokens(
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list[GithubTokenRead]:
    """List the user's tokens (masked)."""
    tokens = await get_user_tokens(db, user.id)
    return [GithubTokenRead.from_token(token) for token in tokens]


@router.post("", response_model=GithubTokenRead, status_code=201)
async def create_token(
    data: GithubTokenCreate,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> GithubTokenRead:
    """Store a token for a GitHub host, replacing any existing one."""
    if not data.domain.strip():
        raise HTTPException(status_code=400, detail="Domain is required")

    token = await save_token(db, user.id, data)
    logger.info(f"Saved GitHub token for user {user.id} on {token.domain}")
    return GithubTokenRead.from_token(token)


@router.delete("/{token_id}", status_code=204)
async def delete_token_endpoint(
    token_id: int,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> None:
    """Delete a token."""
    if not await delete_token(db, user.id, token_id):
        raise HTTPException(status_code=404, detail="Token not found")
