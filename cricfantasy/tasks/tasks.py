"""
Celery background tasks
"""

import asyncio
import logging
from typing import Dict
from uuid import UUID

import redis.asyncio as redis
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from cricfantasy.celery_app import celery
from cricfantasy.core.config import settings
from cricfantasy.core.exceptions import CricFantasyError
from cricfantasy.db.session import create_session_factory
from cricfantasy.services.finalization import finalize_contest
from cricfantasy.services.reconciliation_scheduler import ReconciliationScheduler

# Configure logging
logger = logging.getLogger(__name__)

# Rejected input is final; everything else may be an infrastructure hiccup
NON_RETRYABLE_ERRORS = (ValueError, CricFantasyError)


async def _with_session_factory(work):
    """Run `work(session_factory)` on an engine owned by the current event loop."""
    engine = create_async_engine(settings.database_url, poolclass=NullPool)
    try:
        return await work(create_session_factory(engine))
    finally:
        await engine.dispose()


@celery.task(bind=True, max_retries=3, default_retry_delay=60)
def finalize_contest_task(self, contest_id: str) -> Dict:
    """
    Finalize a contest in the background.

    Args:
        contest_id: Contest UUID as string
    """
    try:
        logger.info(f"Finalizing contest {contest_id} in background")
        contest_uuid = UUID(contest_id)

        async def _process(session_factory):
            return await finalize_contest(session_factory, contest_uuid, actor="celery")

        return asyncio.run(_with_session_factory(_process))

    except NON_RETRYABLE_ERRORS as exc:
        logger.error(f"Finalization of contest {contest_id} rejected: {exc}")
        return {"success": False, "contest_id": contest_id, "error": str(exc)}
    except (SQLAlchemyError, OSError) as exc:
        logger.error(f"Error finalizing contest {contest_id}: {exc}")
        raise self.retry(exc=exc, countdown=60 * (2 ** self.request.retries))  # Exponential backoff


@celery.task(bind=True, max_retries=3, default_retry_delay=60)
def reconcile_payouts_task(self, dry_run: bool = False) -> Dict:
    """
    Run one wallet/transaction reconciliation sweep.

    The redis lock shared with the API process keeps this from overlapping
    the in-process timer.
    """
    logger.info(f"Running payout reconciliation (dry_run={dry_run})")

    async def _process(session_factory):
        client = redis.from_url(settings.redis_url, decode_responses=True)
        try:
            scheduler = ReconciliationScheduler(session_factory, redis_client=client)
            return await scheduler.run_now(dry_run=dry_run, actor="celery")
        finally:
            await client.aclose()

    result = asyncio.run(_with_session_factory(_process))
    if result.get("success") is False:
        logger.error(f"Reconciliation task failed: {result.get('error')}")
        raise self.retry(countdown=60 * (2 ** self.request.retries))
    return result
