"""
Celery application for offloaded finalization and reconciliation runs
"""

import os
from celery import Celery
from cricfantasy.core.config import settings

PAYOUT_QUEUE = "payouts"

# REDIS_URL is the fallback broker and backend
broker_url = os.environ.get('CELERY_BROKER_URL', os.environ.get('REDIS_URL', settings.celery_broker_url))
backend_url = os.environ.get('CELERY_RESULT_BACKEND', os.environ.get('REDIS_URL', settings.celery_result_backend))

celery = Celery(
    "cricfantasy",
    broker=broker_url,
    backend=backend_url,
    include=["cricfantasy.tasks.tasks"]
)

celery.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    # A mega contest pays thousands of winners one by one
    task_time_limit=60 * 60,
    task_soft_time_limit=55 * 60,
    # Payout tasks are idempotent, so a redelivered task is safe
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    worker_concurrency=int(os.getenv("CELERY_WORKER_CONCURRENCY", 2)),
    result_expires=24 * 3600,
    task_routes={"cricfantasy.tasks.tasks.*": {"queue": PAYOUT_QUEUE}},
    task_default_queue=PAYOUT_QUEUE,
)

# Run tasks inline under test
if settings.app_env == "testing":
    celery.conf.task_always_eager = True
    celery.conf.task_eager_propagates = True
