from __future__ import annotations

import hashlib
import json
import logging
from typing import Any

import redis
from ..core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

CACHE_PREFIX = "boost:"


def _get_sync_redis() -> redis.Redis:
    """
    Fresh client per call; Celery workers run each task in a new event loop.
    """
    return redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_timeout=5,
        socket_connect_timeout=5,
    )


def make_cache_key(namespace: str, *parts: Any) -> str:
    """Stable key for arbitrary (JSON-serialisable) parts, e.g. search params."""
    digest = hashlib.sha256(
        json.dumps(parts, sort_keys=True, default=str).encode()
    ).hexdigest()[:32]
    return f"{CACHE_PREFIX}{namespace}:{digest}"


async def cached_get(
    key: str,
    set_value: Any | None = None,
    ttl: int | None = None,
) -> Any:
    """
    Redis-backed TTL cache.

        value = await cached_get(key)                   # read, None on miss
        await cached_get(key, set_value=value, ttl=60)  # write

    Redis being unavailable is a cache miss, never an error.
    """
    client = _get_sync_redis()
    try:
        if set_value is None:
            val = client.get(key)
            return json.loads(val) if val is not None else None

        client.set(key, json.dumps(set_value), ex=ttl)
        return set_value
    except redis.RedisError:
        logger.warning("Cache unavailable", extra={"step": "cache"})
        return None
    finally:
        client.close()
