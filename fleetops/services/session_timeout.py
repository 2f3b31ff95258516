"""
Session Timeout Manager

Idle timeout for an authenticated session:

    stopped --start()--> running --(T - 5 min)--> warned --(T)--> expired --> stopped

- start() arms a warning timer at T - warning_lead and an expiry timer at T.
- Tracked user activity calls extend(), a full reset of both timers.
- The warning is a non-blocking notification with accept / decline
  callbacks; accepting extends, declining lets the expiry timer run.
- Expiry (or end()) logs out: the backend session is signed out on a
  best-effort basis, then the client is always redirected to the login
  route.

One manager instance belongs to one session; the application shell
creates it and injects it where needed.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Protocol

from fleetops.config import settings
from fleetops.core.scheduler import Scheduler, TimerHandle
from fleetops.observability.logger import get_logger
from fleetops.observability.metrics import metrics_collector

logger = get_logger(__name__, component="session_timeout")

TRACKED_ACTIVITY = frozenset({"pointerdown", "pointermove", "keypress", "scroll", "touchstart"})


class SessionState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    WARNED = "warned"
    EXPIRED = "expired"


class WarningNotifier(Protocol):
    """Shows the "session about to expire" prompt without blocking."""

    def present_warning(
        self,
        remaining_seconds: float,
        accept: Callable[[], None],
        decline: Callable[[], None],
    ) -> Awaitable[None] | None:
        ...


class Navigator(Protocol):
    """Sends the client to another route."""

    def redirect(self, location: str) -> Awaitable[None] | None:
        ...


SignOut = Callable[[], Awaitable[Any]]


class SessionTimeoutManager:
    """
    Warning and expiry timers for one authenticated session.

    Example:
        manager = SessionTimeoutManager(
            scheduler=AsyncioScheduler(),
            sign_out=lambda: backend.sign_out(access_token),
            navigator=navigator,
            notifier=notifier,
        )
        manager.start()
        manager.record_activity("keypress")
        await manager.end()
    """

    def __init__(
        self,
        scheduler: Scheduler,
        sign_out: SignOut,
        navigator: Navigator,
        notifier: WarningNotifier,
        timeout: float | None = None,
        warning_lead: float | None = None,
        login_path: str | None = None,
    ):
        self.scheduler = scheduler
        self.sign_out = sign_out
        self.navigator = navigator
        self.notifier = notifier
        self.timeout = settings.session_timeout_seconds if timeout is None else timeout
        self.warning_lead = settings.session_warning_seconds if warning_lead is None else warning_lead
        self.login_path = login_path or settings.login_path

        if not 0 <= self.warning_lead < self.timeout:
            raise ValueError("warning_lead must be shorter than the session timeout")

        self.state = SessionState.STOPPED
        self.last_activity: datetime | None = None
        self._warning_timer: TimerHandle | None = None
        self._expiry_timer: TimerHandle | None = None

    @property
    def active(self) -> bool:
        return self.state in (SessionState.RUNNING, SessionState.WARNED)

    def start(self) -> None:
        """(Re)arm both timers from now."""
        self._clear_timers()
        self._warning_timer = self.scheduler.set_timer(
            self.timeout - self.warning_lead, self._on_warning, name="session_warning"
        )
        self._expiry_timer = self.scheduler.set_timer(
            self.timeout, self._on_expiry, name="session_expiry"
        )
        self.last_activity = self.scheduler.now()
        if self.state is SessionState.STOPPED:
            metrics_collector.record_session_event("started")
        self.state = SessionState.RUNNING

    def extend(self) -> bool:
        """
        Reset both timers to the full timeout.

        Ignored once the session has ended; returns whether timers were reset.
        """
        if not self.active:
            logger.debug("Extend ignored, session not active", state=self.state.value)
            return False
        self.start()
        return True

    def record_activity(self, event: str) -> bool:
        """Extend the session for tracked input events; other events are ignored."""
        if event not in TRACKED_ACTIVITY:
            return False
        return self.extend()

    async def end(self) -> None:
        """Cancel the timers and log out immediately, skipping the warning."""
        self._clear_timers()
        await self._logout(reason="ended")

    def detach(self) -> None:
        """Drop the timers without logging out (the client went away)."""
        self._clear_timers()
        self.state = SessionState.STOPPED

    def _clear_timers(self) -> None:
        self.scheduler.cancel_timer(self._warning_timer)
        self.scheduler.cancel_timer(self._expiry_timer)
        self._warning_timer = None
        self._expiry_timer = None

    def _on_warning(self) -> Awaitable[None] | None:
        self.state = SessionState.WARNED
        metrics_collector.record_session_event("warned")
        logger.info("Session expiring soon", remaining_s=self.warning_lead)
        return self.notifier.present_warning(self.warning_lead, self._accept_warning, self._decline_warning)

    def _accept_warning(self) -> None:
        logger.info("Session extension accepted")
        self.extend()

    def _decline_warning(self) -> None:
        logger.info("Session extension declined")

    async def _on_expiry(self) -> None:
        self.state = SessionState.EXPIRED
        self._warning_timer = None
        self._expiry_timer = None
        await self._logout(reason="expired")

    async def _logout(self, reason: str) -> None:
        metrics_collector.record_session_event(reason)
        try:
            await self.sign_out()
        except Exception as e:
            metrics_collector.record_session_event("logout_failed")
            logger.error("Logout error", reason=reason, error=str(e))
        finally:
            self.state = SessionState.STOPPED

        result = self.navigator.redirect(self.login_path)
        if result is not None:
            await result
        logger.info("Session closed", reason=reason)

    def status(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "timeout_s": self.timeout,
            "warning_lead_s": self.warning_lead,
            "last_activity": self.last_activity.isoformat() if self.last_activity else None,
        }
