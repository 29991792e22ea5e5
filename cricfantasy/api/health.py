"""
Health check endpoints
"""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint
    Returns HTTP 200 with status ok and whether the reconciliation timer runs
    """
    scheduler = getattr(request.app.state, "reconciliation_scheduler", None)
    return {
        "status": "ok",
        "reconciliation_scheduler": "running" if scheduler is not None and scheduler.running else "stopped"
    }
