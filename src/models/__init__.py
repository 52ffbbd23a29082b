"""SQLAlchemy models."""

from src.models.base import Base
from src.models.github_token import GithubToken
from src.models.issue import Issue, IssueComment
from src.models.repository import Repository, RepositoryAssignableUser
from src.models.user import User

__all__ = [
    "Base",
    "User",
    "GithubToken",
    "Repository",
    "RepositoryAssignableUser",
    "Issue",
    "IssueComment",
]
