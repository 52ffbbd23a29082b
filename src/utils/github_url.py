"""Parse GitHub repository URLs and shorthands."""

from typing import NamedTuple
from urllib.parse import urlsplit

from src.constants import GITHUB_DEFAULT_DOMAIN


class RepositoryRef(NamedTuple):
    """Location of a repository on a GitHub host."""

    domain: str
    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


def parse_repository_url(
    value: str | None,
    default_domain: str = GITHUB_DEFAULT_DOMAIN,
) -> RepositoryRef | None:
    """Parse a repository reference.

    Accepted formats:
        https://github.com/owner/repo (any host, extra path segments ignored)
        ghe.example.com/owner/repo
        owner/repo (default_domain)

    A trailing ".git" and trailing slashes are ignored.

    Returns:
        RepositoryRef or None if the input is not a repository reference
    """
    if not value or not value.strip():
        return None

    text = value.strip().rstrip("/")
    text = text.removesuffix(".git").rstrip("/")

    if text.startswith(("http://", "https://")):
        try:
            parts = urlsplit(text)
        except ValueError:
            return None
        if not parts.hostname:
            return None
        segments = [segment for segment in parts.path.split("/") if segment]
        if len(segments) < 2:
            return None
        return RepositoryRef(parts.hostname, segments[0], segments[1])

    if "://" in text:
        return None

    segments = [segment for segment in text.split("/") if segment]
    if len(segments) == 2:
        return RepositoryRef(default_domain, segments[0], segments[1])
    if len(segments) == 3:
        return RepositoryRef(segments[0], segments[1], segments[2])
    return None
