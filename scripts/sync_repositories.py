#!/usr/bin/env python3
"""Sync cached GitHub data for repositories from the command line.

Runs the assignable users reconciliation and a full issue sync inline, with
the same retry policy as the background jobs. Without arguments every stale
repository is synced.

Usage:
    python scripts/sync_repositories.py            # all stale repositories
    python scripts/sync_repositories.py 12 42      # specific repository IDs
"""

import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.db import async_session_maker, init_db
from src.db.crud import get_stale_repositories
from src.services.github import RepositoryNotFoundError
from src.services.jobs import ASSIGNABLE_USERS_JOB, ISSUES_JOB, retry_job

logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)


async def sync_repository(repository_id: int) -> dict:
    """Run both sync jobs for one repository."""
    logger.info(f"Processing repository {repository_id}...")
    summary: dict = {"repository_id": repository_id}

    for kind in (ISSUES_JOB, ASSIGNABLE_USERS_JOB):
        try:
            result = await retry_job(kind, repository_id)
            summary[kind] = str(result)
            logger.info(f"  {kind}: {result}")
        except RepositoryNotFoundError:
            logger.error(f"  Repository {repository_id} not found")
            return {**summary, "error": "not_found"}
        except Exception as e:
            summary[kind] = f"failed: {e}"
            logger.error(f"  {kind} failed: {e}")

    return summary


async def main():
    """Main entry point."""
    logger.info("=" * 60)
    logger.info("Repository Sync Script")
    logger.info("=" * 60)

    await init_db()

    repository_ids = [int(arg) for arg in sys.argv[1:]]
    if not repository_ids:
        async with async_session_maker() as db:
            repositories = await get_stale_repositories(db, limit=None)
            repository_ids = [repository.id for repository in repositories]

    if not repository_ids:
        logger.info("All repositories are fresh")
        return

    logger.info(f"Syncing {len(repository_ids)} repositories\n")

    failed = 0
    for repository_id in repository_ids:
        summary = await sync_repository(repository_id)
        if "error" in summary:
            failed += 1

    logger.info("=" * 60)
    logger.info(f"Done: {len(repository_ids) - failed} synced, {failed} missing")
    logger.info("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
