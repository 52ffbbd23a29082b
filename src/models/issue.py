"""Issue and comment models cached from the GitHub API."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, BigInteger, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from src.models.repository import Repository


class Issue(Base, TimestampMixin):
    """GitHub issue cached locally for browsing and filtering."""

    __tablename__ = "issues"

    id: Mapped[int] = mapped_column(primary_key=True)
    repository_id: Mapped[int] = mapped_column(
        ForeignKey("repositories.id", ondelete="CASCADE"), index=True
    )
    number: Mapped[int] = mapped_column(Integer, nullable=False)

    title: Mapped[str] = mapped_column(String(1000), nullable=False)
    state: Mapped[str] = mapped_column(String(20), nullable=False)  # open, closed
    body: Mapped[str | None] = mapped_column(Text, nullable=True)
    author_login: Mapped[str | None] = mapped_column(String(255), nullable=True)
    author_avatar_url: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    labels: Mapped[list] = mapped_column(JSON, default=list)  # [{name, color}]
    assignees: Mapped[list] = mapped_column(JSON, default=list)  # [{login, avatar_url}]
    comments_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    github_created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    github_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cached_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    repository: Mapped["Repository"] = relationship("Repository", back_populates="issues")
    comments: Mapped[list["IssueComment"]] = relationship(
        "IssueComment",
        back_populates="issue",
        cascade="all, delete-orphan",
        order_by="IssueComment.github_created_at",
        lazy="select",
    )

    __table_args__ = (
        UniqueConstraint("repository_id", "number", name="uq_issue_repository_number"),
        Index("ix_issues_repository_state", "repository_id", "state"),
    )

    def __repr__(self) -> str:
        return f"<Issue(id={self.id}, number={self.number}, state={self.state})>"

    @property
    def is_open(self) -> bool:
        return self.state == "open"

    @property
    def is_closed(self) -> bool:
        return self.state == "closed"

    @property
    def label_names(self) -> list[str]:
        """Names of the issue labels, in GitHub order."""
        return [label.get("name") for label in self.labels or []]

    @property
    def assignee_logins(self) -> list[str]:
        """Logins of the issue assignees, in GitHub order."""
        return [assignee.get("login") for assignee in self.assignees or []]


class IssueComment(Base, TimestampMixin):
    """Immutable snapshot of a GitHub issue comment."""

    __tablename__ = "issue_comments"

    id: Mapped[int] = mapped_column(primary_key=True)
    issue_id: Mapped[int] = mapped_column(ForeignKey("issues.id", ondelete="CASCADE"), index=True)
    github_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    author_login: Mapped[str | None] = mapped_column(String(255), nullable=True)
    author_avatar_url: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    body: Mapped[str | None] = mapped_column(Text, nullable=True)
    github_created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    github_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    issue: Mapped["Issue"] = relationship("Issue", back_populates="comments")

    __table_args__ = (UniqueConstraint("issue_id", "github_id", name="uq_issue_comment_issue_github_id"),)

    def __repr__(self) -> str:
        return f"<IssueComment(id={self.id}, github_id={self.github_id})>"
