"""Authentication API endpoints (email and password, session cookie)."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import get_current_user, login_user, logout_user
from src.db import get_db
from src.db.crud import create_user, get_user_by_email
from src.models.schemas import UserCreate, UserLogin, UserRead
from src.models.user import User

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/register", response_model=UserRead, status_code=201)
async def register(
    data: UserCreate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> UserRead:
    """Create an account and log it in."""
    if await get_user_by_email(db, data.email):
        raise HTTPException(status_code=409, detail="Email already registered")

    user = await create_user(db, data.email, data.password)
    login_user(request, user)
    logger.info(f"New user registered: {user.id}")
    return UserRead.model_validate(user)


@router.post("/login", response_model=UserRead)
async def login(
    data: UserLogin,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> UserRead:
    """Log in with email and password."""
    user = await get_user_by_email(db, data.email)
    if not user or not user.verify_password(data.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    login_user(request, user)
    return UserRead.model_validate(user)


@router.post("/logout", status_code=204)
async def logout(request: Request) -> None:
    """Clear the session."""
    logout_user(request)


@router.get("/me", response_model=UserRead)
async def get_me(user: Annotated[User, Depends(get_current_user)]) -> UserRead:
    """Get the logged in user."""
    return UserRead.model_validate(user)
