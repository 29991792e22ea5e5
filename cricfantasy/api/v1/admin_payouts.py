"""
Admin payout reconciliation API endpoints
"""

import logging

from fastapi import APIRouter, HTTPException, Query, Request, status, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cricfantasy.core.config import settings
from cricfantasy.db.session import get_db
from cricfantasy.services.reconciliation import build_prize_monitor_report
from cricfantasy.services.reconciliation_scheduler import ReconciliationScheduler

logger = logging.getLogger(__name__)

router = APIRouter()


def get_reconciliation_scheduler(request: Request) -> ReconciliationScheduler:
    scheduler = getattr(request.app.state, "reconciliation_scheduler", None)
    if scheduler is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Reconciliation scheduler is not configured"
        )
    return scheduler


@router.post("/payouts/force-fix")
async def force_fix_payouts(
    dry_run: bool = Query(False),
    scheduler: ReconciliationScheduler = Depends(get_reconciliation_scheduler)
):
    """
    Run the wallet/transaction sweep now (admin only).

    Returns 409 when a sweep is already running here or in another process.
    """
    result = await scheduler.run_now(dry_run=dry_run, actor="admin_force_fix")
    if result.get("skipped"):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=result["reason"])
    if not result.get("success"):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Reconciliation failed: {result.get('error')}"
        )
    return result


@router.get("/payouts/scheduler")
async def scheduler_status(scheduler: ReconciliationScheduler = Depends(get_reconciliation_scheduler)):
    return scheduler.status()


@router.post("/payouts/scheduler/start")
async def start_scheduler(
    run_immediately: bool = Query(False),
    scheduler: ReconciliationScheduler = Depends(get_reconciliation_scheduler)
):
    await scheduler.start(run_immediately=run_immediately)
    return scheduler.status()


@router.post("/payouts/scheduler/stop")
async def stop_scheduler(scheduler: ReconciliationScheduler = Depends(get_reconciliation_scheduler)):
    await scheduler.stop()
    return scheduler.status()


@router.get("/payouts/monitor")
async def prize_monitor(
    days: int = Query(None, ge=1, le=365),
    session: AsyncSession = Depends(get_db)
):
    """Report missed prizes and unpaid gaps of recently finalized contests."""
    return await build_prize_monitor_report(session, days or settings.prize_monitor_days)
