"""
Query Cache with Group Invalidation

Caches query results under ``<prefix>:<query_key>[:<part>...]``.
Invalidating a query key deletes every cached entry of that group and
broadcasts ``{"queryKey": [key]}`` so connected views refetch.
"""

import json
from typing import Any, Awaitable, Callable, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from fleetops.config import settings
from fleetops.core.redis_client import RedisPubSub, get_redis
from fleetops.observability.logger import get_logger

logger = get_logger(__name__, component="query_cache")


class QueryCache:
    """Redis-backed cache of query results grouped by query key."""

    def __init__(
        self,
        redis: Redis | None = None,
        pubsub: RedisPubSub | None = None,
        prefix: str | None = None,
        channel: str | None = None,
    ):
        self.redis = redis or get_redis()
        self.pubsub = pubsub or RedisPubSub(self.redis)
        self.prefix = prefix or settings.query_cache_prefix
        self.channel = channel or settings.invalidation_channel

    def _key(self, query_key: str, *parts: Any) -> str:
        """Generate prefixed key."""
        return ":".join([self.prefix, query_key, *(str(p) for p in parts)])

    async def get(self, query_key: str, *parts: Any) -> Optional[Any]:
        """Get value from cache. Returns None if not found."""
        try:
            value = await self.redis.get(self._key(query_key, *parts))
            if value:
                return json.loads(value)
            return None
        except (RedisError, json.JSONDecodeError):
            return None

    async def set(
        self,
        query_key: str,
        value: Any,
        *parts: Any,
        ttl: Optional[int] = None,
    ) -> bool:
        """Store a JSON-serializable value. Returns False on failure."""
        try:
            serialized = json.dumps(value)
            full_key = self._key(query_key, *parts)
            if ttl:
                await self.redis.setex(full_key, ttl, serialized)
            else:
                await self.redis.set(full_key, serialized)
            return True
        except (RedisError, TypeError) as e:
            logger.error("Cache set failed", query_key=query_key, error=str(e))
            return False

    async def get_or_set(
        self,
        query_key: str,
        factory: Callable[[], Awaitable[Any]],
        *parts: Any,
        ttl: Optional[int] = None,
    ) -> Any:
        """Get value from cache or compute and store it."""
        value = await self.get(query_key, *parts)
        if value is not None:
            return value

        value = await factory()
        await self.set(query_key, value, *parts, ttl=ttl)
        return value

    async def invalidate(self, query_key: str) -> int:
        """
        Drop every cached entry of a query group and notify views.

        Returns:
            Number of cache entries deleted
        """
        deleted = 0
        try:
            base = self._key(query_key)
            keys = [
                key
                async for key in self.redis.scan_iter(match=f"{base}*")
                if key == base or key.startswith(f"{base}:")
            ]
            if keys:
                deleted = await self.redis.delete(*keys)
        except RedisError as e:
            logger.error("Cache invalidation failed", query_key=query_key, error=str(e))

        await self.pubsub.publish(self.channel, {"queryKey": [query_key]})
        logger.debug("Query invalidated", query_key=query_key, deleted=deleted)
        return deleted


_query_cache: QueryCache | None = None


def get_query_cache() -> QueryCache:
    """Get the shared query cache."""
    global _query_cache
    if _query_cache is None:
        _query_cache = QueryCache()
    return _query_cache
