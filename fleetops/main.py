"""
FleetOps Core - FastAPI Application

Main entry point for the FleetOps API.
Serves document alerts, permissions and fleet sync endpoints, and runs
the auto-sync listener in the background.
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from fleetops.api import access_router, alerts_router, fleet_router, websocket_router
from fleetops.api.websocket import manager as websocket_manager
from fleetops.config import settings
from fleetops.core.backend import BackendError, close_backend_client, get_backend_client
from fleetops.core.query_cache import get_query_cache
from fleetops.core.realtime import ChangeFeed
from fleetops.core.redis_client import check_redis_health, close_redis, get_redis_pubsub
from fleetops.core.scheduler import AsyncioScheduler
from fleetops.observability.logger import get_logger, setup_logging
from fleetops.observability.metrics import metrics_collector
from fleetops.observability.tracer import setup_tracing
from fleetops.services.auto_sync import AutoSyncListener
from fleetops.services.vehicle_sync import VehicleSyncService

setup_logging()
setup_tracing()

logger = get_logger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    logger.info("Starting FleetOps Core", env=settings.app_env)

    backend = get_backend_client()
    app.state.auto_sync = None

    if await backend.health_check():
        logger.info("Backend connection healthy")
    else:
        logger.warning("Backend not available - alerts and sync may not work")

    redis_healthy = await check_redis_health()
    if redis_healthy:
        logger.info("Redis connection healthy")
    else:
        logger.warning("Redis not available - realtime updates may not work")

    sync_service = VehicleSyncService(backend)
    feed = ChangeFeed(get_redis_pubsub())
    scheduler = AsyncioScheduler()

    if settings.initial_sync_on_startup:
        try:
            summary = await sync_service.sync_all_vehicles()
            logger.info("Initial vehicle sync done", synced=summary.synced, failed=summary.failed)
        except BackendError as e:
            logger.warning("Initial vehicle sync skipped", error=str(e))

    if settings.auto_sync_enabled:
        listener = AutoSyncListener(feed, sync_service, get_query_cache(), scheduler)
        await listener.start()
        app.state.auto_sync = listener

    yield

    logger.info("Shutting down FleetOps Core")
    if app.state.auto_sync is not None:
        await app.state.auto_sync.stop()
    await scheduler.drain()
    await feed.close()
    await close_redis()
    await close_backend_client()


app = FastAPI(
    title="FleetOps Core",
    description="""
    Operations backend for a transport fleet.

    Features:
    - Role and module permissions
    - Vehicle and driver document expiry alerts
    - Vehicle status sync from validation workflows
    - Idle session timeout
    """,
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(websocket_router, prefix="/api/v1")
app.include_router(alerts_router)
app.include_router(access_router)
app.include_router(fleet_router)


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    services: dict[str, bool]


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    backend_healthy = await get_backend_client().health_check()
    redis_healthy = await check_redis_health()
    all_healthy = backend_healthy and redis_healthy

    return HealthResponse(
        status="healthy" if all_healthy else "degraded",
        version=VERSION,
        services={
            "backend": backend_healthy,
            "redis": redis_healthy,
            "api": True,
        },
    )


@app.get("/metrics")
async def get_metrics():
    """Get application metrics."""
    summary = metrics_collector.get_summary()
    listener = getattr(app.state, "auto_sync", None)
    summary["auto_sync"] = listener.status() if listener is not None else {"enabled": False}
    summary["websocket_connections"] = len(websocket_manager.active_connections)
    return summary


def main():
    """Run the application."""
    uvicorn.run(
        "fleetops.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
