"""Cache service with Protocol pattern for dependency injection.

Provides RedisCacheService (real cache) and NullCacheService (no-op fallback).
Generated letter drafts are cached as JSON; the reminder sweep uses the lock
primitives to keep one sweep per deployment.
"""

import json
import logging
import secrets
from typing import Protocol

import redis

from ..config import settings

logger = logging.getLogger(__name__)

# Compare-and-delete so a lock is only released by the holder that set it
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class CacheService(Protocol):
    """Cache service interface."""

    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str, ttl: int) -> None: ...
    def get_json(self, key: str) -> dict | None: ...
    def set_json(self, key: str, data: dict, ttl: int) -> None: ...
    def acquire_lock(self, name: str, ttl: int) -> str | None: ...
    def release_lock(self, name: str, holder: str) -> None: ...


class RedisCacheService:
    """Redis-backed cache implementation."""

    def __init__(self, redis_url: str) -> None:
        self._client = redis.from_url(redis_url, decode_responses=True)
        self._client.ping()

    def get(self, key: str) -> str | None:
        try:
            return self._client.get(key)
        except redis.RedisError:
            return None

    def set(self, key: str, value: str, ttl: int) -> None:
        try:
            self._client.setex(key, ttl, value)
        except redis.RedisError:
            logger.warning("Cache write failed for %s", key)

    def get_json(self, key: str) -> dict | None:
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Discarding unreadable cache entry %s", key)
            return None

    def set_json(self, key: str, data: dict, ttl: int) -> None:
        self.set(key, json.dumps(data, ensure_ascii=False), ttl)

    def acquire_lock(self, name: str, ttl: int) -> str | None:
        """Take a named lock for ttl seconds. Returns the holder id, or None if taken."""
        holder = secrets.token_hex(8)
        try:
            acquired = self._client.set(f"lock:{name}", holder, nx=True, ex=ttl)
        except redis.RedisError:
            # Overlapping sweeps are tolerated, run unlocked
            logger.warning("Redis unavailable, running %s without lock", name)
            return holder
        return holder if acquired else None

    def release_lock(self, name: str, holder: str) -> None:
        try:
            self._client.eval(_RELEASE_SCRIPT, 1, f"lock:{name}", holder)
        except redis.RedisError:
            logger.warning("Failed to release lock %s", name)


class NullCacheService:
    """No-op cache for when Redis is unavailable."""

    def get(self, key: str) -> str | None:
        return None

    def set(self, key: str, value: str, ttl: int) -> None:
        pass

    def get_json(self, key: str) -> dict | None:
        return None

    def set_json(self, key: str, data: dict, ttl: int) -> None:
        pass

    def acquire_lock(self, name: str, ttl: int) -> str | None:
        return "local"

    def release_lock(self, name: str, holder: str) -> None:
        pass


def create_cache_service() -> CacheService:
    """Factory: create the appropriate cache service based on configuration."""
    if not settings.redis_url:
        return NullCacheService()
    try:
        return RedisCacheService(settings.redis_url)
    except redis.RedisError:
        logger.warning("Redis not reachable at startup, using NullCacheService")
        return NullCacheService()
