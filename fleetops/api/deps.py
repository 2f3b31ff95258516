"""
API Dependencies

Resolves the bearer token into an application User and gates routes
on roles and module permissions.
"""

from typing import Callable

from fastapi import Depends, Header, HTTPException, Request

from fleetops.core.backend import AuthenticationError, BackendClient, BackendError, get_backend_client
from fleetops.core.query_cache import QueryCache, get_query_cache
from fleetops.models.user import Permission, User, UserRole
from fleetops.observability.logger import get_logger
from fleetops.permissions import has_permission, has_role
from fleetops.services.alert_service import DocumentAlertService
from fleetops.services.auto_sync import AutoSyncListener
from fleetops.services.vehicle_sync import VehicleSyncService

logger = get_logger(__name__, component="api_deps")

USERS_TABLE = "users"


def get_backend() -> BackendClient:
    return get_backend_client()


def get_cache() -> QueryCache:
    return get_query_cache()


def get_alert_service(backend: BackendClient = Depends(get_backend)) -> DocumentAlertService:
    return DocumentAlertService(backend)


def get_sync_service(backend: BackendClient = Depends(get_backend)) -> VehicleSyncService:
    return VehicleSyncService(backend)


def get_auto_sync(request: Request) -> AutoSyncListener | None:
    return getattr(request.app.state, "auto_sync", None)


def bearer_token(authorization: str | None) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Missing bearer token")
    return authorization.split(" ", 1)[1].strip()


async def resolve_user(backend: BackendClient, access_token: str) -> User:
    """
    Load the application user behind an access token.

    Raises:
        AuthenticationError: Token rejected or no matching active user
        BackendError: Backend unavailable
        ValueError: Stored roles or permissions are not recognised
    """
    identity = await backend.get_user(access_token)
    email = (identity or {}).get("email")
    if not email:
        raise AuthenticationError("Token has no associated email", status_code=401)

    rows = await backend.select(USERS_TABLE, filters={"email": email}, limit=1)
    if not rows:
        raise AuthenticationError("No application user for this account", status_code=401)

    user = User.from_row(rows[0])
    if not user.is_active:
        raise AuthenticationError("User account is inactive", status_code=401)
    return user


async def get_current_user(
    authorization: str | None = Header(None),
    backend: BackendClient = Depends(get_backend),
) -> User:
    """FastAPI dependency returning the authenticated user."""
    token = bearer_token(authorization)
    try:
        return await resolve_user(backend, token)
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail=e.message)
    except BackendError as e:
        logger.error("User lookup failed", error=str(e))
        raise HTTPException(status_code=502, detail="Backend unavailable")
    except ValueError as e:
        logger.warning("Unsupported user record", error=str(e))
        raise HTTPException(status_code=403, detail=str(e))


def require_permission(permission: Permission) -> Callable:
    """Dependency factory: 403 unless the user has the module permission."""

    async def dependency(user: User = Depends(get_current_user)) -> User:
        if not has_permission(user, permission):
            raise HTTPException(status_code=403, detail=f"Permission required: {permission.value}")
        return user

    return dependency


def require_role(role: UserRole) -> Callable:
    """Dependency factory: 403 unless the user has the role (admins always pass)."""

    async def dependency(user: User = Depends(get_current_user)) -> User:
        if not has_role(user, role):
            raise HTTPException(status_code=403, detail=f"Role required: {role.value}")
        return user

    return dependency
