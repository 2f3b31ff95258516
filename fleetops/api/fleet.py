"""
Fleet API

Vehicle status synchronization and fleet statistics.
"""

from collections import Counter

from fastapi import APIRouter, Depends, HTTPException

from fleetops.api.deps import get_auto_sync, get_cache, get_current_user, get_sync_service, require_permission, require_role
from fleetops.core.backend import BackendError
from fleetops.core.query_cache import QueryCache
from fleetops.models.user import Permission, User, UserRole
from fleetops.observability.logger import get_logger
from fleetops.services.auto_sync import INVALIDATED_QUERIES, AutoSyncListener
from fleetops.services.vehicle_sync import VehicleSyncService

logger = get_logger(__name__, component="fleet_api")

router = APIRouter(prefix="/api/v1", tags=["fleet"])

FLEET_STATS_TTL = 60


@router.post("/sync/vehicles")
async def sync_vehicles(
    service: VehicleSyncService = Depends(get_sync_service),
    cache: QueryCache = Depends(get_cache),
    user: User = Depends(require_role(UserRole.ADMIN)),
):
    """Recompute every vehicle's status from its latest validation workflow (admin only)."""
    try:
        summary = await service.sync_all_vehicles()
    except BackendError as e:
        logger.error("Manual sync failed", error=str(e))
        raise HTTPException(status_code=502, detail=e.message)

    for query_key in INVALIDATED_QUERIES:
        await cache.invalidate(query_key)

    logger.info("Manual sync completed", user_id=user.id, synced=summary.synced, failed=summary.failed)
    return summary.to_dict()


@router.post("/sync/vehicles/{vehicle_id}")
async def sync_vehicle(
    vehicle_id: str,
    service: VehicleSyncService = Depends(get_sync_service),
    cache: QueryCache = Depends(get_cache),
    user: User = Depends(require_role(UserRole.ADMIN)),
):
    """Recompute one vehicle's status (admin only)."""
    result = await service.sync_vehicle_status(vehicle_id)
    if result.success:
        for query_key in INVALIDATED_QUERIES:
            await cache.invalidate(query_key)
    return result.to_dict()


@router.get("/sync/status")
async def sync_status(
    listener: AutoSyncListener | None = Depends(get_auto_sync),
    user: User = Depends(get_current_user),
):
    """State of the background auto-sync listener."""
    if listener is None:
        return {"enabled": False}
    return {"enabled": True, **listener.status()}


@router.get("/fleet/stats")
async def fleet_stats(
    service: VehicleSyncService = Depends(get_sync_service),
    cache: QueryCache = Depends(get_cache),
    user: User = Depends(require_permission(Permission.TRANSPORT)),
):
    """Vehicle counts per status, cached until the next sync invalidates them."""

    async def compute() -> dict:
        vehicles = await service.get_all_vehicles()
        by_status = Counter(v.get("statut") or "inconnu" for v in vehicles)
        return {
            "total": len(vehicles),
            "by_status": dict(by_status),
            "validation_required": sum(1 for v in vehicles if v.get("validation_requise")),
        }

    try:
        return await cache.get_or_set("fleet-stats", compute, ttl=FLEET_STATS_TTL)
    except BackendError as e:
        logger.error("Fleet stats failed", error=str(e))
        raise HTTPException(status_code=502, detail=e.message)
