"""User model."""

from typing import TYPE_CHECKING

import bcrypt
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from src.models.github_token import GithubToken
    from src.models.repository import Repository


class User(Base, TimestampMixin):
    """User model for authentication and repository ownership."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)  # bcrypt hash
    is_admin: Mapped[bool] = mapped_column(default=False)

    # Relationships
    # Using lazy="select" so loading a user never pulls every repository
    repositories: Mapped[list["Repository"]] = relationship(
        "Repository",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="select",
    )
    github_tokens: Mapped[list["GithubToken"]] = relationship(
        "GithubToken",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="select",
    )

    def set_password(self, password: str) -> None:
        """Hash and set password using bcrypt."""
        salt = bcrypt.gensalt()
        self.password_hash = bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    def verify_password(self, password: str) -> bool:
        """Verify password against stored hash."""
        return bcrypt.checkpw(password.encode("utf-8"), self.password_hash.encode("utf-8"))

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
