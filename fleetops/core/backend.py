"""
Backend Client - Hosted Relational Backend over REST

Thin async wrapper around the hosted backend's HTTP surface:
- REST: select / insert / update / delete on named relations
- RPC: named remote procedures
- Auth: resolve a user from an access token, sign a session out

All failures surface as BackendError so callers deal with a single
exception type.
"""

from typing import Any

import httpx

from fleetops.config import settings
from fleetops.observability.logger import get_logger
from fleetops.observability.metrics import MetricsTimer, metrics_collector
from fleetops.observability.tracer import trace_operation

logger = get_logger(__name__, component="backend")


class BackendError(Exception):
    """Raised when the backend rejects a request or cannot be reached."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "status_code": self.status_code,
            "code": self.code,
            "details": self.details,
        }


class AuthenticationError(BackendError):
    """Access token missing, invalid or expired."""


def _eq_filters(filters: dict[str, Any] | None) -> dict[str, str]:
    """Translate {column: value} into PostgREST equality filters."""
    params: dict[str, str] = {}
    for column, value in (filters or {}).items():
        if value is None:
            params[column] = "is.null"
        elif isinstance(value, bool):
            params[column] = f"eq.{str(value).lower()}"
        elif isinstance(value, (list, tuple, set)):
            params[column] = f"in.({','.join(str(v) for v in value)})"
        else:
            params[column] = f"eq.{value}"
    return params


class BackendClient:
    """
    Async client for the hosted backend.

    Example:
        client = BackendClient()
        rows = await client.select("vehicules", columns="id,numero,statut", order="numero")
        await client.update("vehicules", {"statut": "disponible"}, filters={"id": vehicle_id})
        result = await client.rpc("is_admin", {"user_id": user_id})
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        service_key: str | None = None,
        timeout: float | None = None,
        schema: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize backend client.

        Args:
            base_url: Backend root URL (defaults to settings)
            api_key: Public (anon) key sent as the apikey header
            service_key: Key used as bearer for server-side data access
            timeout: Request timeout in seconds
            schema: Database schema sent as the PostgREST profile (defaults to settings)
            transport: Optional httpx transport (tests use MockTransport)
        """
        self.base_url = (base_url or settings.backend_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.backend_anon_key
        self.service_key = service_key if service_key is not None else settings.backend_service_key
        self.schema = schema or settings.backend_schema

        headers = {"apikey": self.api_key}
        if self.service_key:
            headers["Authorization"] = f"Bearer {self.service_key}"

        self.http_client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout or settings.backend_timeout_seconds,
            transport=transport,
        )

        logger.info("Backend client initialized", base_url=self.base_url)

    async def close(self) -> None:
        """Close HTTP client."""
        await self.http_client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> Any:
        error = False
        span_attributes = {"method": method, "path": path}
        with MetricsTimer() as timer, trace_operation(f"backend.{operation}", span_attributes) as span:
            try:
                response = await self.http_client.request(method, path, **kwargs)
                span.set_attribute("status_code", response.status_code)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                error = True
                raise self._error_from_response(e.response) from e
            except httpx.HTTPError as e:
                error = True
                logger.error("Backend unreachable", operation=operation, error=str(e))
                raise BackendError(f"Backend request failed: {e}") from e
            finally:
                metrics_collector.record_backend_call(operation, timer.duration_ms, error)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    @staticmethod
    def _error_from_response(response: httpx.Response) -> BackendError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {"details": body}

        message = (
            body.get("message")
            or body.get("msg")
            or body.get("error_description")
            or body.get("error")
            or response.reason_phrase
            or "Backend error"
        )
        error_cls = AuthenticationError if response.status_code == 401 else BackendError
        logger.warning(
            "Backend request rejected",
            status_code=response.status_code,
            message=message,
        )
        return error_cls(
            message,
            status_code=response.status_code,
            code=body.get("code"),
            details=body.get("details") or body.get("hint"),
        )

    # -- REST --

    def _profile(self, method: str, **headers: str) -> dict[str, str]:
        """PostgREST schema selection: Accept-Profile on reads, Content-Profile on writes."""
        name = "Accept-Profile" if method == "GET" else "Content-Profile"
        return {name: self.schema, **headers}

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        order: str | None = None,
        limit: int | None = None,
        params: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        """
        Read rows from a relation.

        Args:
            table: Relation name
            columns: PostgREST select expression (embedded resources allowed)
            filters: Equality filters {column: value}
            order: Order expression, e.g. "created_at.desc"
            limit: Maximum number of rows
            params: Extra raw query parameters (e.g. {"date_expiration": "not.is.null"})

        Returns:
            List of row dictionaries
        """
        query = {"select": columns, **_eq_filters(filters), **(params or {})}
        if order:
            query["order"] = order
        if limit is not None:
            query["limit"] = str(limit)

        data = await self._request(
            "select", "GET", f"/rest/v1/{table}", params=query, headers=self._profile("GET")
        )
        return data or []

    async def insert(
        self,
        table: str,
        values: dict[str, Any] | list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        """Insert one or more rows and return the stored representation."""
        data = await self._request(
            "insert",
            "POST",
            f"/rest/v1/{table}",
            json=values,
            headers=self._profile("POST", Prefer="return=representation"),
        )
        return data or []

    async def update(
        self,
        table: str,
        values: dict[str, Any],
        filters: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """Update rows matching the equality filters."""
        if not filters:
            raise ValueError("update requires at least one filter")
        data = await self._request(
            "update",
            "PATCH",
            f"/rest/v1/{table}",
            params=_eq_filters(filters),
            json=values,
            headers=self._profile("PATCH", Prefer="return=representation"),
        )
        return data or []

    async def delete(self, table: str, filters: dict[str, Any]) -> None:
        """Delete rows matching the equality filters."""
        if not filters:
            raise ValueError("delete requires at least one filter")
        await self._request(
            "delete",
            "DELETE",
            f"/rest/v1/{table}",
            params=_eq_filters(filters),
            headers=self._profile("DELETE"),
        )

    async def rpc(self, name: str, args: dict[str, Any] | None = None) -> Any:
        """Invoke a named remote procedure."""
        logger.debug("RPC call", rpc=name)
        return await self._request(
            "rpc", "POST", f"/rest/v1/rpc/{name}", json=args or {}, headers=self._profile("POST")
        )

    # -- Auth --

    async def get_user(self, access_token: str) -> dict[str, Any]:
        """
        Resolve the auth identity behind an access token.

        Raises:
            AuthenticationError: If the token is rejected
        """
        if not access_token:
            raise AuthenticationError("Missing access token", status_code=401)
        return await self._request(
            "auth.get_user",
            "GET",
            "/auth/v1/user",
            headers={"Authorization": f"Bearer {access_token}"},
        )

    async def sign_out(self, access_token: str) -> None:
        """Revoke the session behind an access token."""
        await self._request(
            "auth.sign_out",
            "POST",
            "/auth/v1/logout",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        logger.info("Session signed out")

    async def health_check(self) -> bool:
        """Check that the backend answers on its auth health endpoint."""
        try:
            response = await self.http_client.get("/auth/v1/health")
            return response.status_code < 500
        except httpx.HTTPError:
            return False


_backend_client: BackendClient | None = None


def get_backend_client() -> BackendClient:
    """Get the shared backend client."""
    global _backend_client
    if _backend_client is None:
        _backend_client = BackendClient()
    return _backend_client


async def close_backend_client() -> None:
    global _backend_client
    if _backend_client is not None:
        await _backend_client.close()
        _backend_client = None
