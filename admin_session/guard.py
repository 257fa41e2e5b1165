"""
Session guard for the protected admin area.

mount() decides between rendering (READY) and sending the user to the login
surface (REDIRECTING), then keeps the session alive with a background task
that renews shortly before the access token expires. unmount() cancels it.
"""
import asyncio
import inspect
import logging
from collections.abc import Callable
from enum import Enum
from urllib.parse import urlencode

from admin_session.config import MIN_RENEWAL_DELAY_SECONDS, RENEWAL_LEAD_SECONDS
from admin_session.session import SessionManager

logger = logging.getLogger(__name__)


class GuardState(str, Enum):
    INITIALIZING = "initializing"
    READY = "ready"
    REDIRECTING = "redirecting"


class SessionGuard:
    def __init__(
        self,
        session: SessionManager,
        *,
        login_route: str = "/admin",
        destination: str | None = None,
        navigate: Callable[[str], object] | None = None,
        lead_seconds: float = RENEWAL_LEAD_SECONDS,
        min_delay: float = MIN_RENEWAL_DELAY_SECONDS,
    ) -> None:
        self.session = session
        self.login_route = login_route
        self.destination = destination
        self.navigate = navigate
        self.lead_seconds = lead_seconds
        self.min_delay = min_delay
        self.state = GuardState.INITIALIZING
        self.redirect_location: str | None = None
        self._mounted = False
        self._task: asyncio.Task | None = None

    async def __aenter__(self) -> "SessionGuard":
        await self.mount()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.unmount()

    @property
    def mounted(self) -> bool:
        return self._mounted

    @property
    def login_location(self) -> str:
        """Login route, carrying the attempted destination for post-login return."""
        if not self.destination:
            return self.login_route
        return f"{self.login_route}?{urlencode({'next': self.destination})}"

    async def mount(self) -> GuardState:
        self._mounted = True
        if not self.session.get_access_token():
            await self._redirect()
            return self.state

        # Token may have expired while the tab sat idle; outcome doesn't block rendering
        await self.session.renew()
        if not self._mounted:
            return self.state
        self.state = GuardState.READY
        self._task = asyncio.ensure_future(self._keep_alive())
        return self.state

    async def unmount(self) -> None:
        self._mounted = False
        task, self._task = self._task, None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def next_delay(self) -> float:
        """Seconds until the next background renewal. Unknown expiry counts as expired."""
        exp = self.session.access_token_expiry()
        if exp is None:
            return self.min_delay
        return max(self.min_delay, exp - self.lead_seconds - self.session.clock())

    async def _keep_alive(self) -> None:
        while True:
            delay = self.next_delay()
            logger.debug("Next access token renewal in %.1fs", delay)
            await asyncio.sleep(delay)
            refresh = self.session.get_refresh_token()
            if await self.session.renew() is not None:
                continue
            current = self.session.get_refresh_token()
            if current and current != refresh:
                # Replaced by a new login while renewing; keep it and reschedule
                continue
            if current:
                logger.warning("Background renewal failed; evicting session")
                self.session.clear_tokens()
            await self._redirect()
            return

    async def _redirect(self) -> None:
        self.state = GuardState.REDIRECTING
        self.redirect_location = self.login_location
        if self.navigate is not None:
            result = self.navigate(self.redirect_location)
            if inspect.isawaitable(result):
                await result
