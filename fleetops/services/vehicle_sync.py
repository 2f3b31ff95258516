"""
Vehicle Status Synchronization

Mirrors the outcome of each vehicle's latest validation workflow onto
the vehicle row:

- any rejected step          -> indisponible
- every step validated       -> disponible (also when there are no steps)
- otherwise (still pending)  -> validation_requise

Syncing is idempotent: running it twice leaves the same state.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

from fleetops.core.backend import BackendClient, BackendError, get_backend_client
from fleetops.models.vehicle import StepStatus, VehicleStatus
from fleetops.observability.logger import get_logger
from fleetops.observability.tracer import trace_operation

logger = get_logger(__name__, service="vehicle_sync")

VEHICLES_TABLE = "vehicules"
WORKFLOWS_TABLE = "validation_workflows"


def derive_vehicle_status(step_statuses: Iterable[str]) -> tuple[VehicleStatus, bool]:
    """
    Compute (status, validation_required) from a workflow's step statuses.

    A workflow with no steps counts as fully validated.
    """
    statuses = list(step_statuses)
    if any(s == StepStatus.REJECTED.value for s in statuses):
        return VehicleStatus.UNAVAILABLE, False
    if all(s == StepStatus.VALIDATED.value for s in statuses):
        return VehicleStatus.AVAILABLE, False
    return VehicleStatus.VALIDATION_REQUIRED, True


@dataclass
class SyncResult:
    """Outcome of syncing one vehicle."""

    vehicle_id: str
    success: bool
    message: str
    new_status: VehicleStatus | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "vehicle_id": self.vehicle_id,
            "success": self.success,
            "message": self.message,
            "new_status": self.new_status.value if self.new_status else None,
        }


@dataclass
class SyncSummary:
    """Outcome of a full sync pass."""

    results: list[SyncResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def synced(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return self.total - self.synced

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "synced": self.synced,
            "failed": self.failed,
            "results": [r.to_dict() for r in self.results],
        }


class VehicleSyncService:
    """Keeps ``vehicules.statut`` in line with validation workflows."""

    def __init__(self, backend: BackendClient | None = None):
        self.backend = backend or get_backend_client()

    async def get_latest_workflow(self, vehicle_id: str) -> dict[str, Any] | None:
        rows = await self.backend.select(
            WORKFLOWS_TABLE,
            columns="id,vehicule_id,statut_global,etapes:validation_etapes(id,etape,statut)",
            filters={"vehicule_id": vehicle_id},
            order="created_at.desc",
            limit=1,
        )
        return rows[0] if rows else None

    async def sync_vehicle_status(self, vehicle_id: str) -> SyncResult:
        """
        Sync one vehicle from its latest workflow.

        Never raises for backend failures; the result carries success=False.
        """
        logger.debug("Syncing vehicle status", vehicle_id=vehicle_id)

        try:
            workflow = await self.get_latest_workflow(vehicle_id)
        except BackendError as e:
            logger.error("Workflow lookup failed", vehicle_id=vehicle_id, error=str(e))
            return SyncResult(vehicle_id, False, "Erreur lors de la synchronisation")

        if not workflow:
            return SyncResult(vehicle_id, False, "Aucun workflow de validation trouvé")

        steps = workflow.get("etapes") or []
        status, validation_required = derive_vehicle_status(step.get("statut") for step in steps)

        try:
            await self.backend.update(
                VEHICLES_TABLE,
                {
                    "statut": status.value,
                    "validation_requise": validation_required,
                    "updated_at": datetime.now(timezone.utc).isoformat(),
                },
                filters={"id": vehicle_id},
            )
        except BackendError as e:
            logger.error("Vehicle update failed", vehicle_id=vehicle_id, error=str(e))
            return SyncResult(vehicle_id, False, "Erreur lors de la synchronisation")

        logger.info("Vehicle synced", vehicle_id=vehicle_id, status=status.value)
        return SyncResult(vehicle_id, True, f"Véhicule synchronisé: {status.value}", status)

    async def get_all_vehicles(self) -> list[dict[str, Any]]:
        """List vehicles to sync. Raises BackendError if the list cannot be read."""
        return await self.backend.select(
            VEHICLES_TABLE,
            columns="id,numero,statut,validation_requise",
            order="numero",
        )

    async def sync_all_vehicles(self) -> SyncSummary:
        """
        Sync every vehicle.

        Raises:
            BackendError: If the vehicle list cannot be loaded
        """
        with trace_operation("vehicle_sync.sync_all") as span:
            vehicles = await self.get_all_vehicles()
            summary = SyncSummary()
            for vehicle in vehicles:
                summary.results.append(await self.sync_vehicle_status(str(vehicle["id"])))
            span.set_attribute("vehicles", summary.total)
            span.set_attribute("failed", summary.failed)

        logger.info(
            "Vehicle sync pass finished",
            total=summary.total,
            synced=summary.synced,
            failed=summary.failed,
        )
        return summary
