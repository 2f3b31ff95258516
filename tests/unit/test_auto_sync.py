"""
Unit Tests for the Auto-Sync Listener

Notifications arm reconciliation timers on the virtual scheduler; the
tests advance time to run the passes.

Under the default "overlap" policy every notification arms its own
timer, so a burst of N updates runs N passes. The "debounce" policy
cancels the pending timer and runs a single pass after the burst.
"""

from unittest.mock import AsyncMock

import pytest

from fleetops.core.backend import BackendError
from fleetops.core.realtime import ChangeEvent
from fleetops.observability.metrics import metrics_collector
from fleetops.services.auto_sync import (
    INVALIDATED_QUERIES,
    VALIDATION_CHANGES,
    AutoSyncListener,
    SyncPolicy,
    SyncState,
)
from fleetops.services.vehicle_sync import SyncResult, SyncSummary


def step_update(step_id: str = "step-1", status: str = "valide") -> ChangeEvent:
    return ChangeEvent(
        event_type="UPDATE",
        schema="public",
        table="validation_etapes",
        new={"id": step_id, "statut": status},
        old={"id": step_id, "statut": "en_attente"},
    )


@pytest.fixture
def sync_service():
    mock = AsyncMock()
    mock.sync_all_vehicles.return_value = SyncSummary(
        results=[SyncResult(vehicle_id="veh-1", success=True, message="ok")]
    )
    return mock


@pytest.fixture
def make_listener(mock_feed, sync_service, mock_cache, scheduler):
    def _make(policy=SyncPolicy.OVERLAP, delay=1.0) -> AutoSyncListener:
        return AutoSyncListener(
            feed=mock_feed,
            sync_service=sync_service,
            cache=mock_cache,
            scheduler=scheduler,
            delay=delay,
            policy=policy,
        )

    return _make


class TestSubscription:
    """Tests for start() / stop()."""

    @pytest.mark.asyncio
    async def test_start_subscribes_to_step_updates(self, make_listener, mock_feed):
        """Test the listener subscribes once to validation step updates."""
        listener = make_listener()

        await listener.start()
        await listener.start()

        mock_feed.subscribe.assert_called_once_with(VALIDATION_CHANGES, listener.handle_change)
        assert listener.listening is True

    @pytest.mark.asyncio
    async def test_stop_unsubscribes(self, make_listener, mock_feed):
        """Test stop() cancels the feed subscription."""
        listener = make_listener()
        await listener.start()

        await listener.stop()

        mock_feed.unsubscribe.assert_awaited_once_with(mock_feed.subscribe.return_value)
        assert listener.listening is False

    @pytest.mark.asyncio
    async def test_stop_leaves_armed_timer(self, make_listener, scheduler, sync_service):
        """Test a timer armed before stop() still runs its pass."""
        listener = make_listener()
        await listener.start()
        listener.handle_change(step_update())

        await listener.stop()
        await scheduler.advance(1.0)

        sync_service.sync_all_vehicles.assert_awaited_once()


class TestReconciliation:
    """Tests for the delayed reconciliation pass."""

    @pytest.mark.asyncio
    async def test_pass_runs_after_delay(self, make_listener, scheduler, sync_service, mock_cache):
        """Test a notification syncs all vehicles after the delay, then invalidates queries."""
        listener = make_listener(delay=1.0)

        listener.handle_change(step_update())
        assert listener.state is SyncState.PENDING

        await scheduler.advance(0.5)
        sync_service.sync_all_vehicles.assert_not_awaited()

        await scheduler.advance(0.5)
        sync_service.sync_all_vehicles.assert_awaited_once()
        assert [c.args[0] for c in mock_cache.invalidate.await_args_list] == list(INVALIDATED_QUERIES)
        assert listener.state is SyncState.IDLE
        assert listener.completed_passes == 1

    @pytest.mark.asyncio
    async def test_sync_failure_does_not_escape(self, make_listener, scheduler, sync_service, mock_cache):
        """Test a rejected sync is caught inside the pass and never raised."""
        sync_service.sync_all_vehicles.side_effect = BackendError("rpc failed")
        listener = make_listener()

        listener.handle_change(step_update())
        await scheduler.advance(1.0)

        assert listener.failed_passes == 1
        assert listener.completed_passes == 0
        mock_cache.invalidate.assert_not_awaited()
        assert metrics_collector.sync_metrics.errors == 1

    @pytest.mark.asyncio
    async def test_invalidation_failure_is_contained(self, make_listener, scheduler, mock_cache):
        """Test an invalidation error counts as a failed pass."""
        mock_cache.invalidate.side_effect = RuntimeError("redis gone")
        listener = make_listener()

        listener.handle_change(step_update())
        await scheduler.advance(1.0)

        assert listener.failed_passes == 1

    @pytest.mark.asyncio
    async def test_handler_never_raises_on_failure(self, make_listener, scheduler, sync_service):
        """Test later notifications are still handled after a failed pass."""
        sync_service.sync_all_vehicles.side_effect = [BackendError("down"), SyncSummary()]
        listener = make_listener()

        listener.handle_change(step_update("a"))
        await scheduler.advance(1.0)
        listener.handle_change(step_update("b"))
        await scheduler.advance(1.0)

        assert listener.failed_passes == 1
        assert listener.completed_passes == 1


class TestBurstPolicy:
    """Tests for bursts of notifications under each policy."""

    @pytest.mark.asyncio
    async def test_overlap_runs_one_pass_per_notification(self, make_listener, scheduler, sync_service):
        """Test the overlap policy keeps every timer: three updates, three passes."""
        listener = make_listener(policy=SyncPolicy.OVERLAP)

        for step_id in ("a", "b", "c"):
            listener.handle_change(step_update(step_id))
            await scheduler.advance(0.25)

        await scheduler.advance(1.0)

        assert sync_service.sync_all_vehicles.await_count == 3

    @pytest.mark.asyncio
    async def test_debounce_coalesces_burst(self, make_listener, scheduler, sync_service):
        """Test the debounce policy re-arms the timer: three updates, one pass."""
        listener = make_listener(policy=SyncPolicy.DEBOUNCE)

        for step_id in ("a", "b", "c"):
            listener.handle_change(step_update(step_id))
            await scheduler.advance(0.25)

        await scheduler.advance(0.5)
        sync_service.sync_all_vehicles.assert_not_awaited()

        await scheduler.advance(0.25)
        sync_service.sync_all_vehicles.assert_awaited_once()

    def test_policy_from_string(self, make_listener):
        """Test policies may be given as configuration strings."""
        assert make_listener(policy="debounce").policy is SyncPolicy.DEBOUNCE


class TestStatus:
    """Tests for status()."""

    @pytest.mark.asyncio
    async def test_status_reports_counters(self, make_listener, scheduler):
        """Test status() exposes policy, state and pass counters."""
        listener = make_listener()
        await listener.start()
        listener.handle_change(step_update())
        await scheduler.advance(1.0)

        status = listener.status()

        assert status["listening"] is True
        assert status["state"] == "idle"
        assert status["policy"] == "overlap"
        assert status["completed_passes"] == 1
