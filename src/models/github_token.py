"""GitHub personal access token model."""

from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.constants import GITHUB_DEFAULT_DOMAIN
from src.models.base import Base, TimestampMixin
from src.models.types import EncryptedString
from src.utils.secrets import Secret

if TYPE_CHECKING:
    from src.models.user import User


class GithubToken(Base, TimestampMixin):
    """Personal access token for one GitHub host (github.com or an enterprise domain)."""

    __tablename__ = "github_tokens"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    domain: Mapped[str] = mapped_column(String(255), default=GITHUB_DEFAULT_DOMAIN, nullable=False)
    label: Mapped[str | None] = mapped_column(String(255), nullable=True)
    token: Mapped[Secret] = mapped_column(EncryptedString, nullable=False)

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="github_tokens")

    __table_args__ = (UniqueConstraint("user_id", "domain", name="uq_github_token_user_domain"),)

    def __repr__(self) -> str:
        return f"<GithubToken(id={self.id}, domain={self.domain}, token={self.token!r})>"
