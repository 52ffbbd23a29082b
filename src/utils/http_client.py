"""Shared persistent httpx clients for external API calls.

Using persistent clients avoids creating a new TCP connection + TLS handshake
for every API call, improving performance through connection reuse and pooling.
"""

import httpx

from src.constants import API_TIMEOUT_GITHUB, AVATAR_FETCH_TIMEOUT

# Connection pool limits
_POOL_LIMITS = httpx.Limits(
    max_connections=20,
    max_keepalive_connections=10,
    keepalive_expiry=30,
)

# Shared clients for different service groups
_github_client: httpx.AsyncClient | None = None
_avatar_client: httpx.AsyncClient | None = None


def get_github_http_client() -> httpx.AsyncClient:
    """Get persistent httpx client for GitHub REST and GraphQL calls."""
    global _github_client
    if _github_client is None:
        _github_client = httpx.AsyncClient(
            timeout=API_TIMEOUT_GITHUB,
            limits=_POOL_LIMITS,
            http2=False,
        )
    return _github_client


def get_avatar_http_client() -> httpx.AsyncClient:
    """Get persistent httpx client for avatar image downloads."""
    global _avatar_client
    if _avatar_client is None:
        _avatar_client = httpx.AsyncClient(
            timeout=AVATAR_FETCH_TIMEOUT,
            limits=_POOL_LIMITS,
            follow_redirects=True,
            http2=False,
        )
    return _avatar_client


async def close_all_clients() -> None:
    """Close all persistent httpx clients. Call during app shutdown."""
    global _github_client, _avatar_client
    if _github_client is not None:
        await _github_client.aclose()
        _github_client = None
    if _avatar_client is not None:
        await _avatar_client.aclose()
        _avatar_client = None
