"""
Change Feed - Row Change Notifications

Row-level change events (INSERT / UPDATE / DELETE) from the backend's
storage layer are relayed onto Redis channels named
``<prefix>:<schema>:<table>``. Each payload is a JSON object:

    {
        "eventType": "UPDATE",
        "schema": "public",
        "table": "validation_etapes",
        "commit_timestamp": "2024-01-15T10:30:00Z",
        "new": {...},
        "old": {...}
    }

ChangeFeed turns those channels into filtered callback subscriptions.
"""

import asyncio
import inspect
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from redis.exceptions import RedisError

from fleetops.config import settings
from fleetops.core.redis_client import RedisPubSub, get_redis_pubsub
from fleetops.observability.logger import get_logger

logger = get_logger(__name__, component="realtime")

CHANGE_EVENTS = ("INSERT", "UPDATE", "DELETE")


@dataclass
class ChangeEvent:
    """A single row change delivered by the feed."""

    event_type: str
    schema: str
    table: str
    new: dict[str, Any] = field(default_factory=dict)
    old: dict[str, Any] = field(default_factory=dict)
    commit_timestamp: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ChangeEvent":
        event_type = str(payload.get("eventType") or payload.get("type") or "").upper()
        if event_type not in CHANGE_EVENTS:
            raise ValueError(f"Unknown change event type: {event_type!r}")
        return cls(
            event_type=event_type,
            schema=payload.get("schema", "public"),
            table=payload.get("table", ""),
            new=payload.get("new") or {},
            old=payload.get("old") or {},
            commit_timestamp=payload.get("commit_timestamp"),
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "eventType": self.event_type,
            "schema": self.schema,
            "table": self.table,
            "commit_timestamp": self.commit_timestamp,
            "new": self.new,
            "old": self.old,
        }


@dataclass(frozen=True)
class ChangeFilter:
    """Which changes a subscription receives. ``event="*"`` matches all."""

    table: str
    event: str = "*"
    schema: str = "public"

    def channel(self, prefix: str) -> str:
        return f"{prefix}:{self.schema}:{self.table}"

    def matches(self, change: ChangeEvent) -> bool:
        if change.schema != self.schema or change.table != self.table:
            return False
        return self.event == "*" or change.event_type == self.event.upper()


ChangeCallback = Callable[[ChangeEvent], Awaitable[None] | None]


@dataclass
class Subscription:
    """Handle for an active change-feed subscription."""

    change_filter: ChangeFilter
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    task: asyncio.Task | None = None
    retries: int = 0

    @property
    def active(self) -> bool:
        return self.task is not None and not self.task.done()


class ChangeFeed:
    """
    Subscribe to row changes relayed over Redis pub/sub.

    A lost Redis connection is retried with exponential backoff, from
    ``retry_delay`` up to ``max_retry_delay`` seconds, for as long as the
    subscription is active.

    Example:
        feed = ChangeFeed()
        sub = feed.subscribe(
            ChangeFilter(table="validation_etapes", event="UPDATE"),
            on_change,
        )
        ...
        await feed.unsubscribe(sub)
    """

    def __init__(
        self,
        pubsub: RedisPubSub | None = None,
        prefix: str | None = None,
        retry_delay: float | None = None,
        max_retry_delay: float | None = None,
    ):
        self.pubsub = pubsub or get_redis_pubsub()
        self.prefix = prefix or settings.realtime_channel_prefix
        self.retry_delay = settings.realtime_retry_seconds if retry_delay is None else retry_delay
        self.max_retry_delay = settings.realtime_retry_max_seconds if max_retry_delay is None else max_retry_delay
        self._subscriptions: dict[str, Subscription] = {}

    def subscribe(self, change_filter: ChangeFilter, callback: ChangeCallback) -> Subscription:
        """Start delivering matching changes to ``callback``. Must run inside an event loop."""
        subscription = Subscription(change_filter=change_filter)
        subscription.task = asyncio.create_task(self._listen(subscription, callback))
        subscription.task.add_done_callback(lambda task: self._listener_done(subscription, task))
        self._subscriptions[subscription.id] = subscription

        logger.info(
            "Change feed subscribed",
            channel=change_filter.channel(self.prefix),
            filter_event=change_filter.event,
        )
        return subscription

    async def unsubscribe(self, subscription: Subscription) -> None:
        """Cancel the subscription's listener and release its connection."""
        self._subscriptions.pop(subscription.id, None)
        task = subscription.task
        if task is None or task.done():
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

        logger.info("Change feed unsubscribed", channel=subscription.change_filter.channel(self.prefix))

    async def close(self) -> None:
        for subscription in list(self._subscriptions.values()):
            await self.unsubscribe(subscription)

    async def publish(self, change: ChangeEvent) -> int:
        """Relay a change onto its channel (used by the backend bridge and tests)."""
        channel = ChangeFilter(table=change.table, schema=change.schema).channel(self.prefix)
        return await self.pubsub.publish(channel, change.to_payload())

    def _listener_done(self, subscription: Subscription, task: asyncio.Task) -> None:
        """Collect the outcome of a listener task that stopped on its own."""
        if task.cancelled():
            return
        self._subscriptions.pop(subscription.id, None)
        error = task.exception()
        if error is not None:
            logger.error(
                "Change feed listener died",
                channel=subscription.change_filter.channel(self.prefix),
                error=str(error),
            )

    async def _listen(self, subscription: Subscription, callback: ChangeCallback) -> None:
        channel = subscription.change_filter.channel(self.prefix)
        delay = self.retry_delay

        while True:
            try:
                async for payload in self.pubsub.subscribe(channel):
                    subscription.retries = 0
                    delay = self.retry_delay
                    await self._deliver(subscription, callback, payload)
                logger.warning("Change feed stream ended", channel=channel)
            except (RedisError, OSError) as e:
                logger.warning(
                    "Change feed connection lost",
                    channel=channel,
                    error=str(e),
                    retry_in_s=delay,
                )

            subscription.retries += 1
            await asyncio.sleep(delay)
            delay = min(delay * 2, self.max_retry_delay)

    async def _deliver(self, subscription: Subscription, callback: ChangeCallback, payload: dict[str, Any]) -> None:
        channel = subscription.change_filter.channel(self.prefix)
        try:
            change = ChangeEvent.from_payload(payload)
        except ValueError as e:
            logger.warning("Ignoring malformed change", channel=channel, error=str(e))
            return

        if not subscription.change_filter.matches(change):
            return

        try:
            result = callback(change)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error("Change handler failed", channel=channel, error=str(e))
