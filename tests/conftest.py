"""
Pytest Configuration and Fixtures

Shared fixtures for FleetOps Core tests.
"""

import inspect
import os
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

# Set test environment before importing app
os.environ["APP_ENV"] = "development"
os.environ["BACKEND_URL"] = "http://backend.test"
os.environ["BACKEND_ANON_KEY"] = "test-anon-key"
os.environ["BACKEND_SERVICE_KEY"] = "test-service-key"
os.environ["ENABLE_TRACING"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"

from fleetops.core.scheduler import TimerHandle  # noqa: E402
from fleetops.models.user import User  # noqa: E402
from fleetops.observability.metrics import metrics_collector  # noqa: E402


class VirtualScheduler:
    """
    Scheduler with a manually advanced clock.

    ``advance(seconds)`` fires every timer due within the window in
    deadline order (ties in arming order) and awaits coroutine
    callbacks before moving on.
    """

    def __init__(self, start: datetime):
        self.current = start
        self.elapsed = 0.0
        self.fired: list[str] = []
        self._timers: list[tuple[float, int, TimerHandle, Callable[[], Any]]] = []
        self._seq = 0

    def now(self) -> datetime:
        return self.current

    def set_timer(self, delay: float, callback: Callable[[], Any], name: str = "timer") -> TimerHandle:
        handle = TimerHandle(delay, name=name)
        self._seq += 1
        self._timers.append((self.elapsed + delay, self._seq, handle, callback))
        return handle

    def cancel_timer(self, handle: TimerHandle | None) -> None:
        if handle is not None:
            handle.cancel()

    @property
    def armed(self) -> list[TimerHandle]:
        return [handle for _, _, handle, _ in self._timers if handle.active]

    async def advance(self, seconds: float) -> None:
        target = self.elapsed + seconds
        while True:
            self._timers = [t for t in self._timers if t[2].active]
            due = sorted((t for t in self._timers if t[0] <= target), key=lambda t: (t[0], t[1]))
            if not due:
                break

            when, _, handle, callback = due[0]
            self._move_to(when)
            handle.fired = True
            self.fired.append(handle.name)
            result = callback()
            if inspect.isawaitable(result):
                await result

        self._move_to(target)

    def _move_to(self, when: float) -> None:
        self.current += timedelta(seconds=when - self.elapsed)
        self.elapsed = when


@pytest.fixture(autouse=True)
def reset_metrics():
    """Start every test with empty metrics."""
    metrics_collector.reset()
    yield
    metrics_collector.reset()


@pytest.fixture
def now() -> datetime:
    """Fixed reference instant: 2024-06-15 10:00 UTC."""
    return datetime(2024, 6, 15, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def scheduler(now) -> VirtualScheduler:
    return VirtualScheduler(now)


@pytest.fixture
def record_spans(monkeypatch):
    """Replace ``trace_operation`` in a module; returns (span calls, span mock)."""

    def _record(target: str):
        calls: list[tuple[str, dict | None]] = []
        span = MagicMock(name="span")

        @contextmanager
        def fake_trace(name, attributes=None):
            calls.append((name, attributes))
            yield span

        monkeypatch.setattr(target, fake_trace)
        return calls, span

    return _record


@pytest.fixture
def make_user() -> Callable[..., User]:
    """Factory building users from backend-shaped rows."""

    def _make(roles=("transport",), permissions=("transport",), **extra) -> User:
        row = {
            "id": extra.pop("id", "user-1"),
            "email": extra.pop("email", "user@fleet.test"),
            "roles": list(roles),
            "permissions": list(permissions),
            **extra,
        }
        return User.from_row(row)

    return _make


@pytest.fixture
def admin_user(make_user) -> User:
    return make_user(roles=("admin",), permissions=(), id="admin-1", email="admin@fleet.test")


@pytest.fixture
def hseq_user(make_user) -> User:
    return make_user(roles=("hsecq",), permissions=("hsecq",), id="hseq-1", email="hseq@fleet.test")


@pytest.fixture
def transport_user(make_user) -> User:
    return make_user(roles=("transport",), permissions=("transport",))


@pytest.fixture
def mock_backend():
    """Mock backend client for testing."""
    mock = AsyncMock()
    mock.health_check.return_value = True
    mock.select.return_value = []
    mock.update.return_value = []
    mock.sign_out.return_value = None
    return mock


@pytest.fixture
def mock_cache():
    """Mock query cache for testing."""
    mock = AsyncMock()
    mock.get.return_value = None
    mock.invalidate.return_value = 0
    return mock


@pytest.fixture
def mock_feed():
    """Mock change feed; ``subscribe`` records the callback it was given."""
    mock = MagicMock()
    mock.subscribe.return_value = MagicMock(name="subscription", active=True, retries=0)
    mock.unsubscribe = AsyncMock()
    mock.close = AsyncMock()
    return mock


@pytest.fixture
def mock_redis():
    """Mock Redis client for testing."""
    mock = AsyncMock()
    mock.ping.return_value = True
    mock.get.return_value = None
    mock.set.return_value = True
    mock.setex.return_value = True
    mock.delete.return_value = 0
    mock.publish.return_value = 1
    return mock


@pytest.fixture
def sample_vehicle_documents() -> list[dict]:
    """``documents_vehicules`` rows as returned by the backend."""
    return [
        {
            "id": "vd-1",
            "vehicule_id": "veh-1",
            "nom": "Assurance 2024",
            "type": "assurance",
            "date_expiration": "2024-06-10",
            "vehicules": {"numero": "TRK-001", "immatriculation": "AB-123-CD"},
        },
        {
            "id": "vd-2",
            "vehicule_id": "veh-2",
            "nom": "Visite technique",
            "type": "visite_technique",
            "date_expiration": "2024-07-01",
            "vehicules": {"numero": "TRK-002", "immatriculation": "EF-456-GH"},
        },
        {
            "id": "vd-3",
            "vehicule_id": "veh-3",
            "nom": "Carte grise",
            "type": "carte_grise",
            "date_expiration": "2025-01-01",
            "vehicules": {"numero": "TRK-003", "immatriculation": "IJ-789-KL"},
        },
    ]


@pytest.fixture
def sample_driver_documents() -> list[dict]:
    """``documents_chauffeurs`` rows as returned by the backend."""
    return [
        {
            "id": "dd-1",
            "chauffeur_id": "drv-1",
            "nom": "Permis C",
            "type": "permis",
            "date_expiration": "2024-06-20",
            "chauffeurs": {"prenom": "Amadou", "nom": "Diallo"},
        },
    ]


@pytest.fixture
def api_client(mock_backend, mock_cache):
    """
    Test client with backend and cache dependencies overridden.

    The lifespan is not entered, so no background listener starts.
    """
    from fleetops.api.deps import get_backend, get_cache
    from fleetops.main import app

    app.dependency_overrides[get_backend] = lambda: mock_backend
    app.dependency_overrides[get_cache] = lambda: mock_cache
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login_as(mock_backend):
    """Make the mocked backend resolve any bearer token to the given user row."""

    def _login(tables: dict[str, list] | None = None, **row) -> dict[str, str]:
        row.setdefault("id", "user-1")
        row.setdefault("email", "user@fleet.test")
        mock_backend.get_user.return_value = {"id": "auth-1", "email": row["email"]}
        rows_by_table = {**(tables or {}), "users": [row]}

        async def select(table, *args, **kwargs):
            return rows_by_table.get(table, [])

        mock_backend.select.side_effect = select
        return {"Authorization": "Bearer test-token"}

    return _login
