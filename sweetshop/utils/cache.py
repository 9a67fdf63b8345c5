import json
import logging
import redis
from typing import Any, Callable, Optional

from sweetshop.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# Create Redis client; connection is lazy, so an absent Redis only costs a failed lookup
redis_client = redis.from_url(
    settings.REDIS_URL,
    decode_responses=True,
    socket_connect_timeout=1,
    socket_timeout=1,
)


class CacheService:
    """
    Redis cache service for sweet details.

    Every operation degrades to a miss (or a no-op) when Redis is unreachable,
    so callers always fall back to the database.
    """

    def __init__(self, client: redis.Redis = None, ttl: int = None):
        self.client = client or redis_client
        self.ttl = ttl or settings.CACHE_TTL

    def _make_key(self, prefix: str, key: str) -> str:
        """Create a namespaced cache key."""
        return f"{prefix}:{key}"

    def get(self, prefix: str, key: str) -> Optional[Any]:
        """
        Get a value from cache.

        Args:
            prefix: Cache key prefix (e.g., 'sweet')
            key: Unique identifier

        Returns:
            Cached value or None if not found
        """
        cache_key = self._make_key(prefix, key)
        try:
            value = self.client.get(cache_key)
            if value:
                return json.loads(value)
            return None
        except (redis.RedisError, json.JSONDecodeError) as e:
            logger.debug(f"Cache read failed for {cache_key}: {e}")
            return None

    def _version_key(self, prefix: str, key: str) -> str:
        return f"{prefix}:{key}:version"

    def get_or_load(self, prefix: str, key: str, loader: Callable[[], Any]) -> Any:
        """
        Read-through lookup that never stores a value older than the last invalidate().

        The entry's version key is WATCHed before the loader runs. An
        invalidate() landing between the load and the write bumps that key,
        so the write aborts with WatchError and the next read reloads.
        Exceptions raised by the loader propagate unchanged.
        """
        cached = self.get(prefix, key)
        if cached is not None:
            return cached

        cache_key = self._make_key(prefix, key)
        pipe = None
        try:
            pipe = self.client.pipeline()
            pipe.watch(self._version_key(prefix, key))
        except redis.RedisError as e:
            logger.debug(f"Cache unavailable for {cache_key}: {e}")
            if pipe is not None:
                pipe.reset()
            return loader()

        try:
            value = loader()
            try:
                pipe.multi()
                pipe.setex(cache_key, self.ttl, json.dumps(value, default=str))
                pipe.execute()
            except redis.WatchError:
                logger.debug(f"Cache write skipped for {cache_key}: invalidated during load")
            except (redis.RedisError, TypeError) as e:
                logger.debug(f"Cache write failed for {cache_key}: {e}")
            return value
        finally:
            pipe.reset()

    def invalidate(self, prefix: str, key: str) -> bool:
        """
        Drop an entry and bump its version so in-flight loads cannot re-store it.
        Returns False if Redis could not be reached.
        """
        cache_key = self._make_key(prefix, key)
        version_key = self._version_key(prefix, key)
        try:
            pipe = self.client.pipeline()
            pipe.incr(version_key)
            pipe.expire(version_key, self.ttl)
            pipe.delete(cache_key)
            pipe.execute()
            return True
        except redis.RedisError as e:
            logger.warning(f"Cache invalidation failed for {cache_key}: {e}")
            return False

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.RedisError:
            return False


# Singleton cache service instance
cache_service = CacheService()
