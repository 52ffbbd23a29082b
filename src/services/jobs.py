"""Background sync jobs.

Jobs run as fire-and-forget asyncio tasks inside the API process. Each job
opens its own database session and is retried with exponential backoff.
At most one job per (kind, repository) runs at a time; enqueueing while one
is in flight returns the running task.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from src.constants import STALE_SCAN_BATCH_SIZE
from src.db import async_session_maker
from src.db.crud.repositories import get_repository, get_stale_repositories
from src.models.user import User
from src.services.github.client import create_github_client
from src.services.github.sync import (
    ClientFactory,
    IssueSyncService,
    RepositoryNotFoundError,
    SyncResult,
    sync_repository_assignable_users,
)
from src.utils.retry import RetryConfig, retry_async

logger = logging.getLogger(__name__)

ASSIGNABLE_USERS_JOB = "assignable_users"
ISSUES_JOB = "issues"

JOB_RETRY_CONFIG = RetryConfig(non_retryable_exceptions=(RepositoryNotFoundError,))

_in_flight: dict[tuple[str, int], asyncio.Task] = {}


async def run_assignable_users_sync(
    repository_id: int,
    client_factory: ClientFactory = create_github_client,
) -> SyncResult:
    """Single attempt of the assignable users reconciliation."""
    async with async_session_maker() as db:
        return await sync_repository_assignable_users(db, repository_id, client_factory=client_factory)


async def run_issue_sync(
    repository_id: int,
    client_factory: ClientFactory = create_github_client,
) -> SyncResult:
    """Single attempt of a full issue sync on behalf of the repository owner."""
    async with async_session_maker() as db:
        repository = await get_repository(db, repository_id)
        if repository is None:
            raise RepositoryNotFoundError(repository_id)
        owner = await db.get(User, repository.user_id)
        result = await IssueSyncService(db, owner, repository, client_factory=client_factory).sync()
        if not result.success:
            logger.warning(f"Issue sync for {repository.full_name} failed: {result.error}")
        return result


JOB_RUNNERS: dict[str, Callable[..., Awaitable[SyncResult]]] = {
    ASSIGNABLE_USERS_JOB: run_assignable_users_sync,
    ISSUES_JOB: run_issue_sync,
}


async def retry_job(
    kind: str,
    repository_id: int,
    config: RetryConfig = JOB_RETRY_CONFIG,
    **kwargs,
) -> SyncResult:
    """Run a job, retrying failures with exponential backoff.

    Raises:
        RepositoryNotFoundError: Immediately, the repository is gone
        Exception: The last error once all attempts failed
    """
    return await retry_async(
        JOB_RUNNERS[kind],
        repository_id,
        config=config,
        operation_name=f"{kind} sync for repository {repository_id}",
        **kwargs,
    )


async def _run_job(kind: str, repository_id: int, **kwargs) -> SyncResult | None:
    try:
        result = await retry_job(kind, repository_id, **kwargs)
        logger.info(f"Job {kind} for repository {repository_id} finished: {result}")
        return result
    except RepositoryNotFoundError:
        logger.warning(f"Job {kind} dropped: repository {repository_id} no longer exists")
    except Exception as e:
        logger.error(f"Job {kind} for repository {repository_id} gave up: {e}")
    finally:
        _in_flight.pop((kind, repository_id), None)
    return None


def enqueue_sync(
    repository_id: int,
    kind: str = ASSIGNABLE_USERS_JOB,
    **kwargs,
) -> asyncio.Task:
    """Schedule a background sync and return immediately.

    Args:
        repository_id: Local repository ID
        kind: "assignable_users" or "issues"
        **kwargs: Passed to the job runner (e.g. client_factory)

    Returns:
        The task running the job (an already running one for duplicates)

    Raises:
        ValueError: If kind is unknown
    """
    if kind not in JOB_RUNNERS:
        raise ValueError(f"Unknown sync job kind: {kind}")

    key = (kind, repository_id)
    running = _in_flight.get(key)
    if running is not None and not running.done():
        logger.debug(f"Job {kind} for repository {repository_id} already running, coalesced")
        return running

    task = asyncio.create_task(
        _run_job(kind, repository_id, **kwargs),
        name=f"sync_{kind}_{repository_id}",
    )
    _in_flight[key] = task
    return task


def in_flight_jobs() -> list[asyncio.Task]:
    return [task for task in _in_flight.values() if not task.done()]


async def drain_jobs() -> None:
    """Wait for every in-flight job to finish."""
    while tasks := in_flight_jobs():
        await asyncio.gather(*tasks, return_exceptions=True)


async def sync_stale_repositories(limit: int = STALE_SCAN_BATCH_SIZE) -> int:
    """Enqueue issue and assignable user syncs for stale repositories.

    Returns:
        Number of repositories scheduled
    """
    async with async_session_maker() as db:
        repositories = await get_stale_repositories(db, limit=limit)
        repository_ids = [repository.id for repository in repositories]

    for repository_id in repository_ids:
        enqueue_sync(repository_id, ISSUES_JOB)
        enqueue_sync(repository_id, ASSIGNABLE_USERS_JOB)

    if repository_ids:
        logger.info(f"Scheduled sync for {len(repository_ids)} stale repositories")
    return len(repository_ids)
