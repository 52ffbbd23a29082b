"""Avatar proxy: fetch GitHub avatar images once and serve them from Redis."""

import base64
import hashlib
import logging
from typing import Any

import httpx

from src.utils.cache import CACHE_TTL_AVATARS, cached
from src.utils.http_client import get_avatar_http_client

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "image/png"


class AvatarFetchError(Exception):
    """Avatar host could not be reached."""

    pass


def avatar_cache_key(url: str) -> str:
    return f"avatar:{hashlib.sha256(url.encode()).hexdigest()}"


@cached("avatar", ttl=CACHE_TTL_AVATARS, key_builder=avatar_cache_key)
async def fetch_avatar(url: str) -> dict[str, Any] | None:
    """Download an avatar image.

    Returns:
        {"content_type", "data"} with base64 encoded bytes, or None when the
        host answers with a non-success status

    Raises:
        AvatarFetchError: On network errors
    """
    try:
        response = await get_avatar_http_client().get(url)
    except httpx.HTTPError as e:
        raise AvatarFetchError(f"Failed to fetch avatar: {e}") from e

    if not response.is_success:
        logger.debug(f"Avatar fetch returned {response.status_code} for {url}")
        return None

    return {
        "content_type": response.headers.get("content-type", DEFAULT_CONTENT_TYPE),
        "data": base64.b64encode(response.content).decode("ascii"),
    }


def decode_avatar(avatar: dict[str, Any]) -> tuple[str, bytes]:
    """Get (content_type, image bytes) from a cached avatar."""
    return avatar["content_type"], base64.b64decode(avatar["data"])
