import os
import redis.asyncio as redis
from cricfantasy.core.config import settings

REDIS_URL = os.environ.get("REDIS_URL", settings.redis_url)
redis_client = redis.from_url(REDIS_URL, decode_responses=True)

# Shared key so the in-process timer, Celery workers and admin force-fix
# requests never sweep at the same time.
RECONCILIATION_LOCK_KEY = "cricfantasy:reconciliation:sweep"
