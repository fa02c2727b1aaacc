"""
utils/cache.py - Optional Redis cache

Read-mostly data (notification lists, platform settings) is cached here.
Without REDIS_URL, or while Redis is unreachable, every call is a miss
and callers read from the database as usual.

    from utils.cache import cache, notification_keys

    cache.set(key, data, ttl=10)
    cache.delete(*notification_keys(user_id))
"""

import json
import logging
import time
from typing import Any, Optional, Tuple

import redis
from config import settings

logger = logging.getLogger(__name__)

SETTINGS_KEY = "platform:settings"

_redis_client: Optional[redis.Redis] = None
_redis_last_fail: float = 0.0
_REDIS_RETRY_INTERVAL = 60.0        # seconds before reconnecting after a failure


def notification_keys(user_id: int) -> Tuple[str, str]:
    return f"notifications:list:{user_id}", f"notifications:unread:{user_id}"


def _get_redis() -> Optional[redis.Redis]:
    """Return a Redis client, or None if Redis is disabled / unreachable."""
    global _redis_client, _redis_last_fail

    if not settings.REDIS_ENABLED or not settings.REDIS_URL:
        return None
    if _redis_client is not None:
        return _redis_client

    now = time.time()
    if now - _redis_last_fail < _REDIS_RETRY_INTERVAL:
        return None

    try:
        client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=3,
            socket_timeout=2,
        )
        client.ping()
        logger.info("✅ Redis connected")
        _redis_client = client
        return client
    except Exception as e:
        _redis_last_fail = now
        logger.warning(f"⚠️ Redis unavailable, running without cache: {e}")
        return None


class Cache:
    """JSON values in Redis; every failure degrades to a miss."""

    def get(self, key: str) -> Optional[Any]:
        r = _get_redis()
        if r is None:
            return None
        try:
            raw = r.get(key)
            return None if raw is None else json.loads(raw)
        except Exception as e:
            logger.warning(f"Cache GET failed for {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl: int = 30) -> bool:
        r = _get_redis()
        if r is None:
            return False
        try:
            r.setex(key, ttl, json.dumps(value, default=str))
            return True
        except Exception as e:
            logger.warning(f"Cache SET failed for {key}: {e}")
            return False

    def delete(self, *keys: str) -> bool:
        r = _get_redis()
        if r is None or not keys:
            return False
        try:
            r.delete(*keys)
            return True
        except Exception as e:
            logger.warning(f"Cache DELETE failed for {keys}: {e}")
            return False

    def ping(self) -> bool:
        r = _get_redis()
        if r is None:
            return False
        try:
            return bool(r.ping())
        except Exception:
            return False

    @property
    def enabled(self) -> bool:
        return _get_redis() is not None


cache = Cache()
