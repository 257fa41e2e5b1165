"""
Admin session manager: the capability surface used by pages and routes.
Holds the credential store, the renewal coordinator and the HTTP client; one
instance per session (no module-level state).
"""
import logging
import time
from collections.abc import Callable
from typing import Any

import httpx

from admin_session.claims import get_expiry
from admin_session.config import (
    API_BASE_URL,
    FRESHNESS_MARGIN_SECONDS,
    LOGIN_PATH,
    REFRESH_PATH,
    RENEWAL_BACKOFF_SECONDS,
    RENEWAL_RETRIES,
    REQUEST_TIMEOUT_SECONDS,
    TOKEN_STORAGE_PATH,
)
from admin_session.errors import LoginFailed, RequestAuthorizationFailure
from admin_session.renewal import RenewalCoordinator
from admin_session.staleness import SessionState, classify, is_stale
from admin_session.token_store import FileStorage, MemoryStorage, TokenStore

logger = logging.getLogger(__name__)


class SessionManager:
    def __init__(
        self,
        *,
        http: httpx.AsyncClient | None = None,
        store: TokenStore | None = None,
        base_url: str = API_BASE_URL,
        login_path: str = LOGIN_PATH,
        refresh_path: str = REFRESH_PATH,
        freshness_margin: float = FRESHNESS_MARGIN_SECONDS,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        renewal_retries: int = RENEWAL_RETRIES,
        renewal_backoff: float = RENEWAL_BACKOFF_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if store is None:
            storage = FileStorage(TOKEN_STORAGE_PATH) if TOKEN_STORAGE_PATH else MemoryStorage()
            store = TokenStore(storage)
        self._owns_http = http is None
        self.http = http if http is not None else httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self.store = store
        self.login_path = login_path
        self.freshness_margin = freshness_margin
        self.clock = clock
        self.renewal = RenewalCoordinator(
            store,
            self.http,
            refresh_path=refresh_path,
            retries=renewal_retries,
            backoff_seconds=renewal_backoff,
        )

    async def __aenter__(self) -> "SessionManager":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Abort any in-flight renewal; close the HTTP client if we created it."""
        await self.renewal.cancel()
        if self._owns_http:
            await self.http.aclose()

    # --- credential store surface ---

    def set_tokens(self, access: str, refresh: str) -> None:
        self.store.set_tokens(access, refresh)

    def get_access_token(self) -> str | None:
        """Raw read for display/debugging. Use ensure_fresh_access_token() for requests."""
        return self.store.get_access_token()

    def get_refresh_token(self) -> str | None:
        return self.store.get_refresh_token()

    def clear_tokens(self) -> None:
        self.store.clear_tokens()

    def access_token_expiry(self) -> int | None:
        return get_expiry(self.store.get_access_token())

    def is_access_token_expired(self, margin_seconds: float = 0) -> bool:
        return is_stale(self.access_token_expiry(), margin_seconds, self.clock())

    @property
    def state(self) -> SessionState:
        return classify(
            self.store.get_access_token(),
            margin_seconds=self.freshness_margin,
            now=self.clock(),
            renewing=self.renewal.in_flight,
        )

    # --- login / logout ---

    async def login(self, email: str, password: str) -> None:
        """Exchange credentials for a token pair and store it. Raises LoginFailed."""
        try:
            r = await self.http.post(self.login_path, json={"email": email.strip(), "password": password})
        except httpx.HTTPError as e:
            raise LoginFailed(f"Login request failed: {e}") from e
        try:
            data = r.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        if not r.is_success:
            raise LoginFailed(str(data.get("detail") or r.status_code), status_code=r.status_code)
        access = data.get("access")
        refresh = data.get("refresh")
        if not access or not refresh:
            raise LoginFailed("Missing tokens", status_code=r.status_code)
        await self.renewal.cancel()
        self.store.set_tokens(access, refresh)
        logger.info("Admin login succeeded")

    async def logout(self) -> None:
        """Drop the session. An in-flight renewal is aborted so it cannot restore tokens."""
        await self.renewal.cancel()
        self.store.clear_tokens()
        logger.info("Admin session cleared")

    # --- renewal ---

    async def renew(self) -> str | None:
        return await self.renewal.renew()

    async def ensure_fresh_access_token(self) -> str | None:
        """Stored token if it is outside the freshness margin, else a renewed one (or None)."""
        access = self.store.get_access_token()
        if not is_stale(get_expiry(access), self.freshness_margin, self.clock()):
            return access
        return await self.renewal.renew()

    # --- authenticated requests ---

    async def fetch_with_auth(self, url: str | httpx.URL, *, method: str = "GET", **kwargs: Any) -> httpx.Response:
        """
        Send a request with the bearer token. On 401, renew once and resend once
        (without Authorization if renewal failed). A second 401 is returned as-is.
        """
        headers = dict(kwargs.pop("headers", None) or {})
        token = await self.ensure_fresh_access_token()
        r = await self.http.request(method, url, headers=_with_bearer(headers, token), **kwargs)
        if r.status_code != httpx.codes.UNAUTHORIZED:
            return r

        logger.debug("%s %s returned 401; renewing and retrying once", method, url)
        await r.aclose()
        token = await self.renewal.renew()
        return await self.http.request(method, url, headers=_with_bearer(headers, token), **kwargs)

    async def fetch_json_with_auth(self, url: str | httpx.URL, *, method: str = "GET", **kwargs: Any) -> Any:
        """fetch_with_auth + status check + JSON body. Raises RequestAuthorizationFailure on a final 401."""
        r = await self.fetch_with_auth(url, method=method, **kwargs)
        if r.status_code == httpx.codes.UNAUTHORIZED:
            raise RequestAuthorizationFailure(r)
        r.raise_for_status()
        if not r.content:
            return None
        return r.json()


def _with_bearer(headers: dict, token: str | None) -> dict:
    merged = {k: v for k, v in headers.items() if k.lower() != "authorization"}
    if token:
        merged["Authorization"] = f"Bearer {token}"
    return merged
