"""
Unit Tests for Vehicle Status Synchronization

Tests status derivation from workflow steps and the sync service
against a mocked backend.
"""

import pytest

from fleetops.core.backend import BackendError
from fleetops.models.vehicle import VehicleStatus
from fleetops.services.vehicle_sync import VehicleSyncService, derive_vehicle_status


def workflow(*statuses: str) -> dict:
    return {
        "id": "wf-1",
        "vehicule_id": "veh-1",
        "statut_global": "en_cours",
        "etapes": [
            {"id": f"step-{i}", "etape": etape, "statut": status}
            for i, (etape, status) in enumerate(zip(["maintenance", "administratif", "hsecq", "obc"], statuses))
        ],
    }


class TestDeriveVehicleStatus:
    """Tests for derive_vehicle_status."""

    def test_all_validated(self):
        """Test a fully validated workflow makes the vehicle available."""
        assert derive_vehicle_status(["valide"] * 4) == (VehicleStatus.AVAILABLE, False)

    def test_any_rejected(self):
        """Test a single rejection makes the vehicle unavailable."""
        assert derive_vehicle_status(["valide", "rejete", "en_attente"]) == (VehicleStatus.UNAVAILABLE, False)

    def test_pending(self):
        """Test pending steps keep validation required."""
        assert derive_vehicle_status(["valide", "en_attente"]) == (VehicleStatus.VALIDATION_REQUIRED, True)

    def test_no_steps(self):
        """Test a workflow without steps counts as fully validated."""
        assert derive_vehicle_status([]) == (VehicleStatus.AVAILABLE, False)


class TestVehicleSyncService:
    """Tests for VehicleSyncService."""

    @pytest.mark.asyncio
    async def test_sync_vehicle_updates_row(self, mock_backend):
        """Test the derived status is written to the vehicle row."""
        mock_backend.select.return_value = [workflow("valide", "valide", "valide", "valide")]
        service = VehicleSyncService(mock_backend)

        result = await service.sync_vehicle_status("veh-1")

        assert result.success is True
        assert result.new_status is VehicleStatus.AVAILABLE

        table, values = mock_backend.update.call_args.args
        assert table == "vehicules"
        assert values["statut"] == "disponible"
        assert values["validation_requise"] is False
        assert mock_backend.update.call_args.kwargs["filters"] == {"id": "veh-1"}

    @pytest.mark.asyncio
    async def test_latest_workflow_query(self, mock_backend):
        """Test the most recent workflow is requested with its steps."""
        service = VehicleSyncService(mock_backend)

        await service.get_latest_workflow("veh-9")

        kwargs = mock_backend.select.call_args.kwargs
        assert mock_backend.select.call_args.args[0] == "validation_workflows"
        assert kwargs["filters"] == {"vehicule_id": "veh-9"}
        assert kwargs["order"] == "created_at.desc"
        assert kwargs["limit"] == 1

    @pytest.mark.asyncio
    async def test_missing_workflow(self, mock_backend):
        """Test a vehicle without workflow is reported, not updated."""
        mock_backend.select.return_value = []
        service = VehicleSyncService(mock_backend)

        result = await service.sync_vehicle_status("veh-1")

        assert result.success is False
        mock_backend.update.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_failure_is_reported(self, mock_backend):
        """Test backend failures become unsuccessful results."""
        mock_backend.select.return_value = [workflow("rejete")]
        mock_backend.update.side_effect = BackendError("permission denied", status_code=403)
        service = VehicleSyncService(mock_backend)

        result = await service.sync_vehicle_status("veh-1")

        assert result.success is False
        assert result.new_status is None

    @pytest.mark.asyncio
    async def test_sync_all(self, mock_backend):
        """Test every listed vehicle is synced and summarized."""

        async def select(table, **kwargs):
            if table == "vehicules":
                return [{"id": "veh-1"}, {"id": "veh-2"}]
            if kwargs["filters"]["vehicule_id"] == "veh-1":
                return [workflow("valide", "en_attente")]
            return []

        mock_backend.select.side_effect = select
        service = VehicleSyncService(mock_backend)

        summary = await service.sync_all_vehicles()

        assert summary.total == 2
        assert summary.synced == 1
        assert summary.failed == 1
        assert summary.results[0].new_status is VehicleStatus.VALIDATION_REQUIRED

    @pytest.mark.asyncio
    async def test_sync_all_is_traced(self, mock_backend, record_spans):
        """Test a sync pass opens one span carrying the vehicle counts."""
        calls, span = record_spans("fleetops.services.vehicle_sync.trace_operation")
        mock_backend.select.side_effect = lambda table, **kwargs: (
            [{"id": "veh-1"}] if table == "vehicules" else [workflow("valide")]
        )

        await VehicleSyncService(mock_backend).sync_all_vehicles()

        assert calls == [("vehicle_sync.sync_all", None)]
        span.set_attribute.assert_any_call("vehicles", 1)
        span.set_attribute.assert_any_call("failed", 0)

    @pytest.mark.asyncio
    async def test_sync_all_list_failure_raises(self, mock_backend):
        """Test a failure to list vehicles propagates."""
        mock_backend.select.side_effect = BackendError("timeout")
        service = VehicleSyncService(mock_backend)

        with pytest.raises(BackendError):
            await service.sync_all_vehicles()

    @pytest.mark.asyncio
    async def test_sync_is_idempotent(self, mock_backend):
        """Test syncing twice writes the same values."""
        mock_backend.select.return_value = [workflow("valide", "rejete")]
        service = VehicleSyncService(mock_backend)

        await service.sync_vehicle_status("veh-1")
        await service.sync_vehicle_status("veh-1")

        first, second = (c.args[1] for c in mock_backend.update.call_args_list)
        assert first["statut"] == second["statut"] == "indisponible"
        assert first["validation_requise"] == second["validation_requise"]
