"""Main API router."""

from fastapi import APIRouter

from src.api.auth import router as auth_router
from src.api.dashboard import router as dashboard_router
from src.api.issues import router as issues_router
from src.api.repositories import router as repositories_router
from src.api.tokens import router as tokens_router

api_router = APIRouter(prefix="/api")

api_router.include_router(auth_router, prefix="/auth", tags=["auth"])
api_router.include_router(dashboard_router, prefix="/dashboard", tags=["dashboard"])
api_router.include_router(tokens_router, prefix="/tokens", tags=["tokens"])
api_router.include_router(repositories_router, prefix="/repositories", tags=["repositories"])
api_router.include_router(
    issues_router, prefix="/repositories/{repository_id}/issues", tags=["issues"]
)
