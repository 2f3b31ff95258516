"""
Auto-Sync Listener

Watches validation step updates and resyncs vehicle statuses:

    Idle --(UPDATE on validation_etapes)--> Pending (timer armed)
         --(timer fires)--> Syncing --> Idle

Each reconciliation pass syncs every vehicle, then invalidates the
``vehicules``, ``validation-workflows`` and ``fleet-stats`` query groups
so dependent views refetch. A failed pass is logged and counted; the
next notification triggers another attempt.

Timer policy:
- overlap (default): every notification arms its own timer, so a burst
  of notifications can produce several overlapping passes.
- debounce: a notification cancels the pending timer and re-arms it, so
  a burst collapses into one pass after the last notification.
"""

from enum import Enum
from typing import Any

from fleetops.config import settings
from fleetops.core.query_cache import QueryCache
from fleetops.core.realtime import ChangeEvent, ChangeFeed, ChangeFilter, Subscription
from fleetops.core.scheduler import Scheduler, TimerHandle
from fleetops.observability.logger import get_logger
from fleetops.observability.metrics import MetricsTimer, metrics_collector
from fleetops.observability.tracer import trace_operation
from fleetops.services.vehicle_sync import VehicleSyncService

logger = get_logger(__name__, component="auto_sync")

VALIDATION_CHANGES = ChangeFilter(table="validation_etapes", event="UPDATE", schema="public")
INVALIDATED_QUERIES = ("vehicules", "validation-workflows", "fleet-stats")


class SyncPolicy(str, Enum):
    OVERLAP = "overlap"
    DEBOUNCE = "debounce"


class SyncState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SYNCING = "syncing"


class AutoSyncListener:
    """
    Change-feed driven vehicle resync.

    Example:
        listener = AutoSyncListener(feed, sync_service, cache, scheduler)
        await listener.start()
        ...
        await listener.stop()
    """

    def __init__(
        self,
        feed: ChangeFeed,
        sync_service: VehicleSyncService,
        cache: QueryCache,
        scheduler: Scheduler,
        delay: float | None = None,
        policy: SyncPolicy | str | None = None,
    ):
        self.feed = feed
        self.sync_service = sync_service
        self.cache = cache
        self.scheduler = scheduler
        self.delay = settings.sync_delay_seconds if delay is None else delay
        self.policy = SyncPolicy(policy or settings.sync_policy)

        self._subscription: Subscription | None = None
        self._timers: list[TimerHandle] = []
        self._running = 0
        self.completed_passes = 0
        self.failed_passes = 0

    @property
    def listening(self) -> bool:
        """True while the feed subscription is alive (connected or retrying)."""
        return self._subscription is not None and self._subscription.active

    @property
    def state(self) -> SyncState:
        if self._running:
            return SyncState.SYNCING
        if any(timer.active for timer in self._timers):
            return SyncState.PENDING
        return SyncState.IDLE

    async def start(self) -> None:
        """Subscribe to validation step updates. A no-op while already listening."""
        if self.listening:
            return
        self._subscription = self.feed.subscribe(VALIDATION_CHANGES, self.handle_change)
        logger.info("Auto-sync started", delay_s=self.delay, policy=self.policy.value)

    async def stop(self) -> None:
        """
        Cancel the feed subscription.

        Timers already armed are left to fire; their pass may still run
        after stop() returns.
        """
        if self._subscription is None:
            return
        await self.feed.unsubscribe(self._subscription)
        self._subscription = None
        logger.info("Auto-sync stopped")

    def handle_change(self, change: ChangeEvent) -> None:
        """Arm a reconciliation timer for an incoming notification."""
        logger.info(
            "Validation step changed",
            step_id=change.new.get("id"),
            status=change.new.get("statut"),
        )

        self._timers = [timer for timer in self._timers if timer.active]
        if self.policy is SyncPolicy.DEBOUNCE:
            for timer in self._timers:
                self.scheduler.cancel_timer(timer)
            self._timers.clear()

        self._timers.append(self.scheduler.set_timer(self.delay, self.reconcile, name="auto_sync"))

    async def reconcile(self) -> None:
        """Run one sync pass and invalidate dependent queries. Never raises."""
        self._running += 1
        error = False
        with MetricsTimer() as timer:
            try:
                with trace_operation("auto_sync.reconcile", {"policy": self.policy.value}) as span:
                    summary = await self.sync_service.sync_all_vehicles()
                    span.set_attribute("vehicles", summary.total)

                    for query_key in INVALIDATED_QUERIES:
                        await self.cache.invalidate(query_key)

                self.completed_passes += 1
                logger.info("Automatic sync finished", synced=summary.synced, failed=summary.failed)

            except Exception as e:
                error = True
                self.failed_passes += 1
                logger.error("Automatic sync failed", error=str(e))

            finally:
                self._running -= 1

        metrics_collector.record_sync(timer.duration_ms, error)

    def status(self) -> dict[str, Any]:
        return {
            "listening": self.listening,
            "feed_retries": self._subscription.retries if self._subscription is not None else 0,
            "state": self.state.value,
            "policy": self.policy.value,
            "delay_s": self.delay,
            "completed_passes": self.completed_passes,
            "failed_passes": self.failed_passes,
        }
