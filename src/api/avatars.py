"""Avatar proxy endpoint."""

import logging
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, Response

from src.constants import CACHE_TTL_AVATAR
from src.services.avatars import AvatarFetchError, decode_avatar, fetch_avatar

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/avatars")
async def get_avatar(url: Annotated[str, Query(max_length=2000)] = "") -> Response:
    """Serve a GitHub avatar through the local cache."""
    if not url.strip() or not url.startswith(("http://", "https://")):
        raise HTTPException(status_code=400, detail="Avatar URL is required")

    try:
        avatar = await fetch_avatar(url)
    except AvatarFetchError as e:
        logger.error(str(e))
        raise HTTPException(status_code=500, detail="Failed to fetch avatar") from e

    if avatar is None:
        raise HTTPException(status_code=404, detail="Avatar not found")

    content_type, body = decode_avatar(avatar)
    return Response(
        content=body,
        media_type=content_type,
        headers={"Cache-Control": f"public, max-age={CACHE_TTL_AVATAR}"},
    )
