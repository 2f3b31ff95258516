"""
FleetOps Core - Infrastructure

Core infrastructure components shared across the application:
- Backend: REST / RPC / auth client for the hosted backend
- Redis: change-feed transport and query cache
- Scheduler: clock and one-shot timers
"""

from fleetops.core.backend import (
    AuthenticationError,
    BackendClient,
    BackendError,
    close_backend_client,
    get_backend_client,
)
from fleetops.core.redis_client import (
    RedisPubSub,
    check_redis_health,
    close_redis,
    get_redis,
    get_redis_pubsub,
)
from fleetops.core.realtime import ChangeEvent, ChangeFeed, ChangeFilter, Subscription
from fleetops.core.query_cache import QueryCache, get_query_cache
from fleetops.core.scheduler import AsyncioScheduler, Scheduler, TimerHandle

__all__ = [
    # Backend
    "AuthenticationError",
    "BackendClient",
    "BackendError",
    "close_backend_client",
    "get_backend_client",
    # Redis
    "RedisPubSub",
    "check_redis_health",
    "close_redis",
    "get_redis",
    "get_redis_pubsub",
    "ChangeEvent",
    "ChangeFeed",
    "ChangeFilter",
    "Subscription",
    "QueryCache",
    "get_query_cache",
    # Scheduling
    "AsyncioScheduler",
    "Scheduler",
    "TimerHandle",
]
