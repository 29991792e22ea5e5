"""
Periodic reconciliation runner.

The scheduler owns the APScheduler timer and the "run in flight" state. Only
one sweep runs at a time: a local asyncio lock guards this process and, when
a redis client is configured, a redis lock guards every process sharing the
database (API workers, Celery workers, the CLI).
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import async_sessionmaker

from cricfantasy.core.config import settings
from cricfantasy.core.metrics import reconciliation_runs_total, reconciliation_scheduler_running
from cricfantasy.core.redis_client import RECONCILIATION_LOCK_KEY
from cricfantasy.repos.audit_log_repo import create_audit_log
from cricfantasy.services.reconciliation import run_wallet_transaction_fix

logger = logging.getLogger(__name__)

JOB_ID = "wallet_transaction_reconciliation"


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class ReconciliationScheduler:
    """
    Runs the wallet/transaction sweep every `interval_minutes`.

    An overlapping trigger (timer tick, admin force-fix, another process)
    returns {"skipped": True, "reason": ...} instead of sweeping.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        interval_minutes: Optional[int] = None,
        concurrency: Optional[int] = None,
        redis_client=None,
        lock_timeout: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.interval_minutes = interval_minutes or settings.reconciliation_interval_minutes
        self.concurrency = concurrency or settings.reconciliation_concurrency
        self.redis_client = redis_client
        self.lock_timeout = lock_timeout or settings.reconciliation_lock_timeout_seconds

        self.scheduler: Optional[AsyncIOScheduler] = None
        self.running = False
        self.last_run: Optional[datetime] = None
        self.last_result: Optional[Dict] = None
        self.last_error: Optional[str] = None

        self._lock = asyncio.Lock()
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    async def start(self, run_immediately: bool = True):
        """Start the timer; with run_immediately the first sweep fires now."""
        if self.running:
            logger.warning("Reconciliation scheduler already running")
            return

        self.scheduler = AsyncIOScheduler(
            timezone=timezone.utc,
            job_defaults={
                'coalesce': True,
                'max_instances': 1,
                'misfire_grace_time': 300
            }
        )
        job_kwargs = {}
        if run_immediately:
            job_kwargs["next_run_time"] = datetime.now(timezone.utc)
        self.scheduler.add_job(
            self._scheduled_run,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=JOB_ID,
            name="Wallet/transaction reconciliation",
            replace_existing=True,
            **job_kwargs
        )
        self.scheduler.start()
        self.running = True
        reconciliation_scheduler_running.set(1)
        logger.info(f"Reconciliation scheduler started (every {self.interval_minutes} minutes)")

    async def stop(self):
        """Stop the timer and ask an in-flight sweep to stop before its next unit of work."""
        if self._stop_event is not None:
            self._stop_event.set()
        if not self.running:
            return

        logger.info("Stopping reconciliation scheduler...")
        self.scheduler.shutdown(wait=False)
        self.scheduler = None
        self.running = False
        reconciliation_scheduler_running.set(0)
        logger.info("Reconciliation scheduler stopped")

    async def _scheduled_run(self):
        await self.run_now(actor="scheduler")

    async def run_now(self, dry_run: bool = False, actor: Optional[str] = None) -> Dict:
        """
        Run one sweep unless another one is in flight.

        Errors are logged and kept in last_error; they are returned, not raised,
        so the timer keeps firing.
        """
        if self._lock.locked():
            logger.warning("Reconciliation already in progress in this process, skipping")
            reconciliation_runs_total.labels(outcome="skipped").inc()
            return {"skipped": True, "reason": "reconciliation already in progress"}

        async with self._lock:
            redis_lock = None
            if self.redis_client is not None:
                redis_lock = self.redis_client.lock(RECONCILIATION_LOCK_KEY, timeout=self.lock_timeout)
                try:
                    acquired = await redis_lock.acquire(blocking=False)
                except RedisError as e:
                    logger.error(f"Could not reach redis for the reconciliation lock: {e}")
                    self.last_error = f"redis unavailable: {e}"
                    reconciliation_runs_total.labels(outcome="error").inc()
                    return {"success": False, "error": self.last_error}
                if not acquired:
                    logger.warning("Reconciliation running in another process, skipping")
                    reconciliation_runs_total.labels(outcome="skipped").inc()
                    return {"skipped": True, "reason": "reconciliation running in another process"}

            self._stop_event = asyncio.Event()
            self.last_run = datetime.now(timezone.utc)
            try:
                result = await run_wallet_transaction_fix(
                    self.session_factory,
                    dry_run=dry_run,
                    concurrency=self.concurrency,
                    stop_event=self._stop_event,
                )
                if actor and not dry_run:
                    await self._audit(actor, result)
                self.last_result = {k: v for k, v in result.items() if k not in ("gaps", "failed_payouts")}
                self.last_error = None
                reconciliation_runs_total.labels(outcome="success").inc()
                return {"success": True, **result}
            except Exception as e:
                logger.exception(f"Reconciliation run failed: {e}")
                self.last_error = str(e)
                reconciliation_runs_total.labels(outcome="error").inc()
                return {"success": False, "error": str(e)}
            finally:
                self._stop_event = None
                if redis_lock is not None:
                    try:
                        await redis_lock.release()
                    except RedisError as e:
                        logger.warning(f"Could not release the reconciliation lock: {e}")

    async def _audit(self, actor: str, result: Dict):
        async with self.session_factory() as session:
            await create_audit_log(
                session,
                action="payout_reconciliation",
                details={k: v for k, v in result.items() if k not in ("gaps", "failed_payouts")},
                actor=actor,
            )
            await session.commit()

    def status(self) -> Dict:
        next_run = None
        if self.scheduler is not None:
            job = self.scheduler.get_job(JOB_ID)
            next_run = job.next_run_time if job else None
        return {
            "running": self.running,
            "in_flight": self.in_flight,
            "interval_minutes": self.interval_minutes,
            "last_run": _isoformat(self.last_run),
            "next_run": _isoformat(next_run),
            "last_result": self.last_result,
            "last_error": self.last_error,
        }
