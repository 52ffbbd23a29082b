"""API module."""

from src.api.avatars import router as avatars_router
from src.api.router import api_router

__all__ = ["api_router", "avatars_router"]
