"""
FleetOps Core - Services

Business logic services:
- Alert Service: document expiry classification
- Vehicle Sync: vehicle status from validation workflows
- Auto-Sync: change-feed driven resync with cache invalidation
- Session Timeout: idle warning and expiry for a session
"""

from fleetops.services.alert_service import DocumentAlertService, compute_alerts
from fleetops.services.auto_sync import AutoSyncListener, SyncPolicy
from fleetops.services.session_timeout import SessionState, SessionTimeoutManager
from fleetops.services.vehicle_sync import VehicleSyncService

__all__ = [
    "DocumentAlertService",
    "compute_alerts",
    "AutoSyncListener",
    "SyncPolicy",
    "SessionState",
    "SessionTimeoutManager",
    "VehicleSyncService",
]
