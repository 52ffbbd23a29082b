"""CRUD operations for users and their GitHub tokens."""

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.github_token import GithubToken
from src.models.schemas import GithubTokenCreate
from src.models.user import User


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Get a user by email (case-insensitive)."""
    result = await db.execute(select(User).where(User.email == email.strip().lower()))
    return result.scalar_one_or_none()


async def create_user(db: AsyncSession, email: str, password: str) -> User:
    """Create a new user with a bcrypt-hashed password."""
    user = User(email=email.strip().lower())
    user.set_password(password)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def get_token_for_domain(
    db: AsyncSession,
    user_id: int,
    domain: str,
) -> GithubToken | None:
    """Find the user's GitHub token for a host."""
    result = await db.execute(
        select(GithubToken).where(GithubToken.user_id == user_id, GithubToken.domain == domain)
    )
    return result.scalar_one_or_none()


async def get_user_tokens(db: AsyncSession, user_id: int) -> Sequence[GithubToken]:
    """List a user's GitHub tokens ordered by domain."""
    result = await db.execute(
        select(GithubToken).where(GithubToken.user_id == user_id).order_by(GithubToken.domain)
    )
    return result.scalars().all()


async def save_token(db: AsyncSession, user_id: int, data: GithubTokenCreate) -> GithubToken:
    """Create the token for a domain, or replace the existing one."""
    domain = data.domain.strip().lower()
    token = await get_token_for_domain(db, user_id, domain)
    if token:
        token.token = data.token.strip()
        token.label = data.label
    else:
        token = GithubToken(
            user_id=user_id,
            domain=domain,
            label=data.label,
            token=data.token.strip(),
        )
        db.add(token)

    await db.commit()
    await db.refresh(token)
    return token


async def delete_token(db: AsyncSession, user_id: int, token_id: int) -> bool:
    """Delete a token with user isolation. Returns False if not found."""
    result = await db.execute(
        select(GithubToken).where(GithubToken.id == token_id, GithubToken.user_id == user_id)
    )
    token = result.scalar_one_or_none()
    if not token:
        return False

    await db.delete(token)
    await db.commit()
    return True
