"""
Redis Client for the Change Feed and Query Cache

Provides Redis connectivity for:
- Pub/Sub: row change notifications relayed from the backend
- Pub/Sub: cache invalidation broadcasts to connected views
- Caching: query results keyed by query group
"""

import json
from typing import Any, AsyncIterator, Optional

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from fleetops.config import settings
from fleetops.observability.logger import get_logger

logger = get_logger(__name__, component="redis")


# Connection pool and client singletons
_redis_pool: Optional[ConnectionPool] = None
_redis_client: Optional[Redis] = None


def get_redis_pool() -> ConnectionPool:
    """Get or create Redis connection pool."""
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = ConnectionPool.from_url(
            settings.redis_url,
            decode_responses=True,
            max_connections=10,
        )
        logger.info("Redis pool created", url=settings.redis_url)
    return _redis_pool


def get_redis() -> Redis:
    """
    Get Redis client instance.

    Usage:
        redis = get_redis()
        await redis.set("key", "value")
    """
    global _redis_client
    if _redis_client is None:
        _redis_client = Redis(connection_pool=get_redis_pool())
    return _redis_client


async def close_redis() -> None:
    """Close Redis connections gracefully."""
    global _redis_client, _redis_pool

    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None

    if _redis_pool:
        await _redis_pool.aclose()
        _redis_pool = None

    logger.info("Redis connections closed")


class RedisPubSub:
    """
    Helper class for Redis Pub/Sub.

    Pub/Sub requires a SEPARATE Redis connection per subscriber
    to avoid blocking the main connection pool.

    Usage (Publisher):
        pubsub = RedisPubSub()
        await pubsub.publish("realtime:public:validation_etapes", {"eventType": "UPDATE", ...})

    Usage (Subscriber):
        async for message in pubsub.subscribe("realtime:public:validation_etapes"):
            handle(message)
    """

    def __init__(self, redis: Redis | None = None):
        self.redis = redis or get_redis()

    async def publish(self, channel: str, message: dict) -> int:
        """
        Publish a message to a channel.

        Returns:
            Number of subscribers that received the message (0 if none or on error)
        """
        try:
            return await self.redis.publish(channel, json.dumps(message))
        except (RedisError, TypeError) as e:
            logger.error("Publish failed", channel=channel, error=str(e))
            return 0

    async def subscribe(self, channel: str) -> AsyncIterator[dict[str, Any]]:
        """
        Subscribe to a channel and yield decoded messages.

        Creates a dedicated connection for the subscription; it is
        released when the consumer stops iterating or is cancelled.
        """
        pubsub_redis = Redis(
            connection_pool=ConnectionPool.from_url(
                settings.redis_url,
                decode_responses=True,
                max_connections=2,
            )
        )
        pubsub = pubsub_redis.pubsub()

        try:
            await pubsub.subscribe(channel)
            logger.debug("Subscribed to channel", channel=channel)

            async for raw_message in pubsub.listen():
                if raw_message["type"] != "message":
                    continue
                try:
                    yield json.loads(raw_message["data"])
                except json.JSONDecodeError:
                    logger.warning("Dropping malformed message", channel=channel)

        except RedisError as e:
            logger.error("Subscription error", channel=channel, error=str(e))
            raise

        finally:
            try:
                await pubsub.unsubscribe(channel)
                await pubsub.aclose()
                await pubsub_redis.aclose()
            except RedisError as e:
                logger.debug("Subscription cleanup failed", channel=channel, error=str(e))


def get_redis_pubsub() -> RedisPubSub:
    """Get a RedisPubSub instance."""
    return RedisPubSub()


async def check_redis_health() -> bool:
    """
    Check if Redis connection is healthy.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        await get_redis().ping()
        return True
    except (RedisError, OSError):
        return False
