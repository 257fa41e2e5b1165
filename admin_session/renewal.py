"""
Renewal coordinator: exchanges the stored refresh token for a new access token.
All renewal paths (background keep-alive, ensure-fresh, 401 retry) go through
renew(), which coalesces concurrent callers onto one backend call.
"""
import asyncio
import logging

import httpx

from admin_session.config import REFRESH_PATH, RENEWAL_BACKOFF_SECONDS, RENEWAL_RETRIES
from admin_session.errors import RenewalError, RenewalRejected, RenewalUnreachable
from admin_session.singleflight import SingleFlight
from admin_session.token_store import TokenStore

logger = logging.getLogger(__name__)


class RenewalCoordinator:
    """
    Only writer of the access slot after login. Never evicts: a failed renewal
    returns None and leaves the decision to the caller (guard, request wrapper).
    """

    def __init__(
        self,
        store: TokenStore,
        http: httpx.AsyncClient,
        *,
        refresh_path: str = REFRESH_PATH,
        retries: int = RENEWAL_RETRIES,
        backoff_seconds: float = RENEWAL_BACKOFF_SECONDS,
    ) -> None:
        self.store = store
        self.http = http
        self.refresh_path = refresh_path
        self.retries = max(0, retries)
        self.backoff_seconds = backoff_seconds
        self.last_error: RenewalError | None = None
        self._flight: SingleFlight[str | None] = SingleFlight()

    @property
    def in_flight(self) -> bool:
        return self._flight.in_flight

    async def renew(self) -> str | None:
        """
        New access token, or None (no refresh token stored, renewal failed, or the
        shared renewal was aborted by login/logout). Cancelling the caller itself
        still raises CancelledError.
        """
        if not self._flight.in_flight and not self.store.get_refresh_token():
            return None
        try:
            return await self._flight.run(self._renew)
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            logger.debug("Shared renewal was aborted; resolving waiter with None")
            return None

    async def cancel(self) -> None:
        await self._flight.cancel()

    async def _renew(self) -> str | None:
        refresh = self.store.get_refresh_token()
        if not refresh:
            return None
        try:
            access = await self._exchange(refresh)
        except RenewalError as e:
            self.last_error = e
            logger.warning("Token renewal failed: %s", e)
            return None
        self.last_error = None
        if access:
            logger.info("Access token renewed")
        return access

    async def _exchange(self, refresh: str) -> str | None:
        r = await self._post(refresh)
        if not r.is_success:
            raise RenewalRejected(r.status_code)
        try:
            data = r.json()
        except ValueError:
            raise RenewalRejected(r.status_code, "Renewal response is not JSON")
        if not isinstance(data, dict) or not data.get("access"):
            raise RenewalRejected(r.status_code, "Renewal response has no access token")
        access = data["access"]
        current = self.store.get_refresh_token()
        if current != refresh:
            # Pair was replaced (login) or evicted (logout) while the call was in flight
            logger.info("Credentials changed during renewal; discarding result")
            return self.store.get_access_token() if current else None
        # Keep the stored refresh token unless the backend rotated it
        rotated = data.get("refresh")
        self.store.set_tokens(access, rotated or refresh)
        return access

    async def _post(self, refresh: str) -> httpx.Response:
        attempt = 0
        while True:
            try:
                return await self.http.post(self.refresh_path, json={"refresh": refresh})
            except httpx.HTTPError as e:
                if attempt >= self.retries:
                    raise RenewalUnreachable(f"Renewal endpoint unreachable: {e}") from e
                attempt += 1
                delay = self.backoff_seconds * (2 ** (attempt - 1))
                logger.info("Renewal attempt %s failed (%s); retrying in %.1fs", attempt, e, delay)
                await asyncio.sleep(delay)
