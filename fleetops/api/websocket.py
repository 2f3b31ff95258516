"""
WebSocket API for Session Timeout and Cache Invalidation

Provides WebSocket endpoints for:
- Idle session timeout (warning prompt, extension, forced logout)
- Query invalidation notices after a background sync
"""

import uuid
from typing import Callable

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect

from fleetops.api.deps import get_backend, resolve_user
from fleetops.config import settings
from fleetops.core.backend import BackendClient, BackendError
from fleetops.core.redis_client import get_redis_pubsub
from fleetops.core.scheduler import AsyncioScheduler, Scheduler
from fleetops.observability.logger import LogContext, get_logger
from fleetops.services.session_timeout import SessionTimeoutManager

logger = get_logger(__name__, component="websocket")

router = APIRouter(tags=["websocket"])

# Close code sent when the token is rejected
POLICY_VIOLATION = 4401


class ConnectionManager:
    """
    Manage WebSocket connections.

    Tracks active connections for the metrics endpoint.
    """

    def __init__(self):
        self.active_connections: dict[str, WebSocket] = {}

    async def connect(self, connection_id: str, websocket: WebSocket):
        """Accept a WebSocket connection."""
        await websocket.accept()
        self.active_connections[connection_id] = websocket
        logger.info("WebSocket connected", connection_id=connection_id[:8])

    def disconnect(self, connection_id: str):
        """Remove a WebSocket connection."""
        if connection_id in self.active_connections:
            del self.active_connections[connection_id]
            logger.info("WebSocket disconnected", connection_id=connection_id[:8])


manager = ConnectionManager()


class WebSocketSessionChannel:
    """
    Warning prompt and redirect delivered over a WebSocket.

    Holds the accept / decline callbacks of the last warning until the
    client answers it.
    """

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self._accept: Callable[[], None] | None = None
        self._decline: Callable[[], None] | None = None

    async def present_warning(self, remaining_seconds: float, accept, decline) -> None:
        self._accept = accept
        self._decline = decline
        await self.websocket.send_json({
            "type": "session_warning",
            "remaining_seconds": remaining_seconds,
            "message": f"Votre session expire dans {int(remaining_seconds // 60)} minutes",
        })

    async def redirect(self, location: str) -> None:
        await self.websocket.send_json({"type": "redirect", "location": location})

    def answer(self, accepted: bool) -> bool:
        """Run the pending warning callback; returns False if no warning is pending."""
        callback = self._accept if accepted else self._decline
        self._accept = self._decline = None
        if callback is None:
            return False
        callback()
        return True


def get_session_scheduler() -> Scheduler:
    return AsyncioScheduler()


@router.websocket("/ws/session")
async def session_websocket(
    websocket: WebSocket,
    token: str = Query(...),
    backend: BackendClient = Depends(get_backend),
    scheduler: Scheduler = Depends(get_session_scheduler),
):
    """
    WebSocket endpoint for the idle session timeout.

    Browsers cannot set headers on WebSocket requests, so the access
    token is passed as the ``token`` query parameter.

    Client Messages:
        {"type": "activity", "event": "keypress"}
        {"type": "accept"}      - answer to a warning, keeps the session
        {"type": "decline"}     - answer to a warning, lets it expire
        {"type": "logout"}
        {"type": "status"}

    Server Messages:
        {"type": "connected", "session": {...}}
        {"type": "session_warning", "remaining_seconds": 300, "message": "..."}
        {"type": "redirect", "location": "/login"}
        {"type": "status", "session": {...}}
    """
    try:
        user = await resolve_user(backend, token)
    except (BackendError, ValueError) as e:
        logger.warning("Session socket rejected", error=str(e))
        # Close codes only reach the client after the handshake
        await websocket.accept()
        await websocket.close(code=POLICY_VIOLATION)
        return

    connection_id = f"session:{uuid.uuid4()}"
    await manager.connect(connection_id, websocket)

    channel = WebSocketSessionChannel(websocket)
    session = SessionTimeoutManager(
        scheduler=scheduler,
        sign_out=lambda: backend.sign_out(token),
        navigator=channel,
        notifier=channel,
    )
    with LogContext(user_id=user.id, connection_id=connection_id):
        session.start()

        try:
            await websocket.send_json({"type": "connected", "user_id": user.id, "session": session.status()})

            while True:
                message = await websocket.receive_json()
                kind = message.get("type")

                if kind == "activity":
                    session.record_activity(message.get("event", ""))
                elif kind in ("accept", "decline"):
                    channel.answer(kind == "accept")
                elif kind == "logout":
                    await session.end()
                    break
                elif kind == "status":
                    await websocket.send_json({"type": "status", "session": session.status()})
                else:
                    logger.debug("Unknown session message", type=kind)

        except WebSocketDisconnect:
            logger.info("Client disconnected", connection_id=connection_id[:16])

        finally:
            if session.active:
                session.detach()
            manager.disconnect(connection_id)


@router.websocket("/ws/invalidations")
async def invalidations_websocket(websocket: WebSocket):
    """
    WebSocket endpoint for query invalidation notices.

    Message Format:
        {"queryKey": ["vehicules"]}

    Clients refetch the named queries when a notice arrives.
    """
    connection_id = f"invalidations:{uuid.uuid4()}"
    await manager.connect(connection_id, websocket)
    pubsub = get_redis_pubsub()

    try:
        await websocket.send_json({
            "type": "connected",
            "channel": settings.invalidation_channel,
        })

        async for notice in pubsub.subscribe(settings.invalidation_channel):
            await websocket.send_json(notice)

    except WebSocketDisconnect:
        logger.info("Client disconnected", connection_id=connection_id[:16])

    except Exception as e:
        logger.error("WebSocket error", connection_id=connection_id[:16], error=str(e))

    finally:
        manager.disconnect(connection_id)
