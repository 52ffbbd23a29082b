"""IssueLens FastAPI application."""

import asyncio
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.gzip import GZipMiddleware
from starlette.middleware.sessions import SessionMiddleware

from src.api import api_router, avatars_router
from src.config import get_settings
from src.constants import (
    MAX_CONSECUTIVE_FAILURES,
    SESSION_COOKIE_NAME,
    SESSION_TIMEOUT_DAYS,
    SHUTDOWN_TIMEOUT,
    SYNC_INTERVAL_STALE,
)
from src.db import async_session_maker, init_db
from src.services.jobs import drain_jobs, sync_stale_repositories
from src.utils.cache import cache
from src.utils.http_client import close_all_clients
from src.utils.logging import get_logger, setup_logging

APP_VERSION = "0.1.0"

settings = get_settings()
setup_logging()
logger = get_logger(__name__)

DEV_ORIGINS = ["http://localhost:3000", "http://localhost:8080", "http://127.0.0.1:8080"]


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach browser hardening headers to every API response."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        headers = response.headers
        headers["X-Frame-Options"] = "DENY"
        headers["X-Content-Type-Options"] = "nosniff"
        headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # JSON only, nothing here should ever load subresources
        headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        if settings.is_production:
            headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


async def periodic_stale_sync(shutdown_event: asyncio.Event) -> None:
    """Every SYNC_INTERVAL_STALE seconds, schedule syncs for stale repositories."""
    failures = 0

    while not shutdown_event.is_set():
        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=SYNC_INTERVAL_STALE)
            return
        except TimeoutError:
            pass

        try:
            scheduled = await sync_stale_repositories()
        except Exception as e:
            failures += 1
            logger.error(f"Stale repository scan failed ({failures}/{MAX_CONSECUTIVE_FAILURES}): {e}")
            if failures >= MAX_CONSECUTIVE_FAILURES:
                logger.critical("Stale repository scan keeps failing, pausing one extra interval")
                await asyncio.sleep(SYNC_INTERVAL_STALE)
                failures = 0
            continue

        failures = 0
        logger.debug(f"Stale repository scan scheduled {scheduled} repositories")


async def stop_background_work(stale_sync_task: asyncio.Task, shutdown_event: asyncio.Event) -> None:
    """Stop the stale scan and let in-flight sync jobs finish, within SHUTDOWN_TIMEOUT."""
    shutdown_event.set()
    try:
        await asyncio.wait_for(
            asyncio.gather(stale_sync_task, drain_jobs(), return_exceptions=True),
            timeout=SHUTDOWN_TIMEOUT,
        )
        logger.info("Background work stopped")
    except TimeoutError:
        logger.warning(f"Background work still running after {SHUTDOWN_TIMEOUT}s, cancelling")
        stale_sync_task.cancel()
        await asyncio.gather(stale_sync_task, return_exceptions=True)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Start the database, cache and stale scan; tear them down in reverse."""
    await init_db()
    logger.info("Database ready")

    if await cache.connect():
        logger.info("Redis connected")
    else:
        logger.warning("Redis unavailable, avatars will be fetched on every request")

    shutdown_event = asyncio.Event()
    stale_sync_task = asyncio.create_task(periodic_stale_sync(shutdown_event), name="stale_sync")
    logger.info(f"Stale repository scan running every {SYNC_INTERVAL_STALE}s")

    yield

    logger.info("Shutting down")
    await stop_background_work(stale_sync_task, shutdown_event)
    await cache.close()
    await close_all_clients()
    logger.info("Shutdown complete")


app = FastAPI(title=settings.app_name, version=APP_VERSION, lifespan=lifespan)

# Last added runs first
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(
    CORSMiddleware,
    allow_origins=DEV_ORIGINS if settings.is_development else [settings.app_url],
    allow_credentials=True,
    allow_methods=["*"] if settings.is_development else ["GET", "POST", "DELETE"],
    allow_headers=["*"] if settings.is_development else ["Content-Type"],
)
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.app_secret_key,
    session_cookie=SESSION_COOKIE_NAME,
    max_age=SESSION_TIMEOUT_DAYS * 24 * 60 * 60,
    same_site="lax",
    https_only=settings.is_production,
)

app.include_router(api_router)
app.include_router(avatars_router, tags=["avatars"])

_started_at = datetime.now(UTC)


async def _ping_database() -> None:
    async with async_session_maker() as db:
        await db.execute(text("SELECT 1"))


async def _probe(name: str, probe: Callable[[], Awaitable[Any]]) -> dict[str, str]:
    try:
        await probe()
    except Exception as e:
        logger.warning(f"Health check {name} failed: {e}")
        return {"status": "unhealthy"}
    return {"status": "healthy"}


@app.get("/health", tags=["monitoring"])
async def health_check() -> JSONResponse:
    """Report database and Redis reachability.

    Returns 200 when every check passes, 503 ("degraded") otherwise.
    """
    checks = {
        "database": await _probe("database", _ping_database),
        "redis": await _probe("redis", cache.ping),
    }
    healthy = all(check["status"] == "healthy" for check in checks.values())
    now = datetime.now(UTC)

    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "degraded",
            "timestamp": now.isoformat(),
            "uptime_seconds": (now - _started_at).total_seconds(),
            "version": APP_VERSION,
            "checks": checks,
        },
    )
