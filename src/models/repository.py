"""Repository model and its cached assignable users."""

from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.constants import GITHUB_DEFAULT_DOMAIN
from src.models.base import Base, TimestampMixin
from src.utils.staleness import CACHE_TTL, freshness_in_words, is_stale

if TYPE_CHECKING:
    from src.models.issue import Issue
    from src.models.user import User


class Repository(Base, TimestampMixin):
    """GitHub repository tracked by a user, with cached summary fields."""

    __tablename__ = "repositories"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    github_domain: Mapped[str] = mapped_column(
        String(255), default=GITHUB_DEFAULT_DOMAIN, nullable=False
    )
    owner: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Cached from GitHub
    full_name: Mapped[str] = mapped_column(String(511), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    issue_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    open_issue_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    cached_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )  # Last successful sync

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="repositories")
    issues: Mapped[list["Issue"]] = relationship(
        "Issue",
        back_populates="repository",
        cascade="all, delete-orphan",
        lazy="select",
    )
    assignable_users: Mapped[list["RepositoryAssignableUser"]] = relationship(
        "RepositoryAssignableUser",
        back_populates="repository",
        cascade="all, delete-orphan",
        lazy="select",
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "github_domain", "owner", "name", name="uq_repository_user_domain_owner_name"
        ),
    )

    def __repr__(self) -> str:
        return f"<Repository(id={self.id}, full_name={self.full_name})>"

    def is_stale(self, now: datetime | None = None, ttl: timedelta = CACHE_TTL) -> bool:
        """Check if cached data must be refreshed before display."""
        return is_stale(self.cached_at, now=now, ttl=ttl)

    def staleness_in_words(self, now: datetime | None = None) -> str:
        """Human readable sync age, e.g. "3 minutes ago"."""
        return freshness_in_words(self.cached_at, now=now)


class RepositoryAssignableUser(Base, TimestampMixin):
    """User who can be assigned issues in a repository.

    Local projection of GitHub's GraphQL `assignableUsers`, used for fast
    author/assignee autocomplete. Not a source of truth.
    """

    __tablename__ = "repository_assignable_users"

    id: Mapped[int] = mapped_column(primary_key=True)
    repository_id: Mapped[int] = mapped_column(
        ForeignKey("repositories.id", ondelete="CASCADE"), index=True
    )
    login: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    avatar_url: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    # Relationships
    repository: Mapped["Repository"] = relationship("Repository", back_populates="assignable_users")

    __table_args__ = (
        UniqueConstraint("repository_id", "login", name="uq_assignable_user_repository_login"),
    )

    def __repr__(self) -> str:
        return f"<RepositoryAssignableUser(id={self.id}, login={self.login})>"
