"""
FleetOps Core - API Routes

FastAPI router modules for the FleetOps API:
- Alerts: document expiry alerts
- Access: current user's permissions
- Fleet: vehicle status sync and statistics
- WebSocket: session timeout and cache invalidation
"""

from fleetops.api.access import router as access_router
from fleetops.api.alerts import router as alerts_router
from fleetops.api.fleet import router as fleet_router
from fleetops.api.websocket import router as websocket_router

__all__ = [
    "access_router",
    "alerts_router",
    "fleet_router",
    "websocket_router",
]
