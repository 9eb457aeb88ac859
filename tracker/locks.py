import logging
import time
from contextlib import contextmanager

import redis
from django.conf import settings

logger = logging.getLogger(__name__)

_redis_clients = {}


def _get_redis_client(url: str):
    client = _redis_clients.get(url)
    if client is None:
        client = redis.Redis.from_url(url)
        _redis_clients[url] = client
    return client


def get_lock_url() -> str:
    url = getattr(settings, "TRACKER_LOCK_URL", None)
    if url is None:
        url = getattr(settings, "CELERY_BROKER_URL", "")
    return url


@contextmanager
def handle_lock(handle: str, ttl_seconds: int | None = None):
    """
    Yield True when this process may ingest ``handle``.

    Locking is skipped when the lock URL is empty. A Redis failure is
    logged and treated as acquired.
    """
    url = get_lock_url()
    if not url:
        yield True
        return

    ttl = ttl_seconds or getattr(settings, "TRACKER_LOCK_TTL_SECONDS", 600)
    key = f"tracker:ingest:{handle.lower()}"
    acquired = False
    try:
        client = _get_redis_client(url)
        acquired = bool(client.set(key, str(time.time()), nx=True, ex=ttl))
    except redis.RedisError:
        logger.exception("Lock failure for %s; continuing without lock.", key)
        yield True
        return

    try:
        yield acquired
    finally:
        if acquired:
            try:
                client.delete(key)
            except redis.RedisError:
                logger.exception("Could not release lock %s; it expires in %ss.", key, ttl)
