"""Pydantic schemas for API validation and serialization."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from src.constants import GITHUB_DEFAULT_DOMAIN, PASSWORD_MIN_LENGTH
from src.models.github_token import GithubToken
from src.models.repository import Repository


# User schemas
class UserCreate(BaseModel):
    """User registration schema."""

    email: EmailStr
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH)


class UserLogin(BaseModel):
    """User login schema."""

    email: EmailStr
    password: str


class UserRead(BaseModel):
    """User read schema."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    is_admin: bool = False
    created_at: datetime


# GitHub token schemas
class GithubTokenCreate(BaseModel):
    """GitHub token creation schema."""

    domain: str = GITHUB_DEFAULT_DOMAIN
    token: str = Field(..., min_length=1)
    label: str | None = None


class GithubTokenRead(BaseModel):
    """GitHub token read schema (the token itself is never returned)."""

    id: int
    domain: str
    label: str | None = None
    token_preview: str
    created_at: datetime

    @classmethod
    def from_token(cls, token: GithubToken) -> "GithubTokenRead":
        return cls(
            id=token.id,
            domain=token.domain,
            label=token.label,
            token_preview=str(token.token),
            created_at=token.created_at,
        )


# Repository schemas
class RepositoryCreate(BaseModel):
    """Repository creation schema: a GitHub URL or owner/repo shorthand."""

    url: str = Field(..., min_length=1)


class RepositoryRead(BaseModel):
    """Repository read schema with freshness info."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    github_domain: str
    owner: str
    name: str
    full_name: str
    description: str | None = None
    url: str | None = None
    issue_count: int = 0
    open_issue_count: int = 0
    cached_at: datetime | None = None
    stale: bool = True
    freshness: str = ""

    @classmethod
    def from_repository(cls, repository: Repository) -> "RepositoryRead":
        data = cls.model_validate(repository)
        data.stale = repository.is_stale()
        data.freshness = repository.staleness_in_words()
        return data


class AssignableUserRead(BaseModel):
    """Assignable user read schema."""

    model_config = ConfigDict(from_attributes=True)

    login: str
    avatar_url: str | None = None


# Issue schemas
class LabelRead(BaseModel):
    """Issue label."""

    name: str
    color: str | None = None


class IssueCommentRead(BaseModel):
    """Issue comment read schema."""

    model_config = ConfigDict(from_attributes=True)

    github_id: int
    author_login: str | None = None
    author_avatar_url: str | None = None
    body: str | None = None
    github_created_at: datetime | None = None
    github_updated_at: datetime | None = None


class IssueRead(BaseModel):
    """Issue read schema."""

    model_config = ConfigDict(from_attributes=True)

    number: int
    title: str
    state: Literal["open", "closed"]
    body: str | None = None
    author_login: str | None = None
    author_avatar_url: str | None = None
    labels: list[LabelRead] = []
    assignees: list[AssignableUserRead] = []
    comments_count: int = 0
    github_created_at: datetime | None = None
    github_updated_at: datetime | None = None
    cached_at: datetime | None = None


class IssueDetailRead(IssueRead):
    """Issue read schema including comments in chronological order."""

    comments: list[IssueCommentRead] = []


class IssueListRead(BaseModel):
    """Issue list schema with pagination and filter options."""

    items: list[IssueRead]
    total: int
    page: int
    per_page: int
    pages: int
    mode: Literal["local", "github"] = "local"
    available_labels: list[str] = []
    available_assignees: list[str] = []
    sync_error: str | None = None
    rate_limit: dict | None = None


class SyncResponse(BaseModel):
    """Response from a manual sync."""

    status: str
    synced_count: int = 0
    error: str | None = None
