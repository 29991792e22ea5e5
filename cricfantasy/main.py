"""
CricFantasy FastAPI Application
Main entry point for the payout service
"""

import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from cricfantasy.core.config import settings

# Sentry integration
if settings.sentry_dsn:
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
    from sentry_sdk.integrations.redis import RedisIntegration

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        integrations=[
            FastApiIntegration(),
            SqlalchemyIntegration(),
            RedisIntegration(),
        ],
        traces_sample_rate=0.1,
        environment=settings.app_env,
    )

from cricfantasy.api.health import router as health_router
from cricfantasy.api.v1.admin_contest import router as admin_contest_router
from cricfantasy.api.v1.admin_payouts import router as admin_payouts_router
from cricfantasy.core.metrics import http_requests_total, http_request_duration_seconds
from cricfantasy.core.redis_client import redis_client
from cricfantasy.db.session import AsyncSessionLocal
from cricfantasy.services.reconciliation_scheduler import ReconciliationScheduler

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create FastAPI app instance
app = FastAPI(
    title="CricFantasy API",
    description="Contest finalization and prize payouts",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.state.reconciliation_scheduler = ReconciliationScheduler(
    AsyncSessionLocal,
    interval_minutes=settings.reconciliation_interval_minutes,
    concurrency=settings.reconciliation_concurrency,
    redis_client=redis_client,
)


@app.on_event("startup")
async def startup_event():
    """Start the reconciliation timer"""
    if settings.reconciliation_enabled:
        await app.state.reconciliation_scheduler.start(
            run_immediately=settings.reconciliation_run_on_start
        )
    else:
        logger.info("Reconciliation scheduler disabled by configuration")


@app.on_event("shutdown")
async def shutdown_event():
    """Stop the reconciliation timer and any in-flight sweep"""
    await app.state.reconciliation_scheduler.stop()


# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Add metrics middleware
@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    start_time = time.time()
    response = None
    try:
        response = await call_next(request)
        return response
    finally:
        duration = time.time() - start_time
        status_code = response.status_code if response is not None else 500
        http_requests_total.labels(
            method=request.method,
            endpoint=request.url.path,
            status=status_code
        ).inc()
        http_request_duration_seconds.labels(
            method=request.method,
            endpoint=request.url.path
        ).observe(duration)


# Add metrics endpoint
@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint"""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


# Include routers
app.include_router(health_router, prefix=settings.api_v1_prefix, tags=["health"])
app.include_router(admin_contest_router, prefix=f"{settings.api_v1_prefix}/admin", tags=["admin-contest"])
app.include_router(admin_payouts_router, prefix=f"{settings.api_v1_prefix}/admin", tags=["admin-payouts"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
