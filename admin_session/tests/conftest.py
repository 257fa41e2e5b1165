"""
Shared fixtures for admin_session: unsigned JWT-shaped tokens, a frozen clock and
a SessionManager wired to an httpx client that respx can intercept.
"""
import json
from base64 import urlsafe_b64encode

import httpx
import pytest

from admin_session.session import SessionManager

BASE_URL = "http://backend.test"


def _b64(data: dict) -> str:
    return urlsafe_b64encode(json.dumps(data).encode("utf-8")).rstrip(b"=").decode("ascii")


@pytest.fixture
def now() -> int:
    return 1_700_000_000


@pytest.fixture
def clock(now):
    return lambda: now


@pytest.fixture
def make_token():
    """Factory for unsigned JWT-shaped tokens; the client never verifies signatures."""

    def _make(exp: int | None, sub: str = "1") -> str:
        payload = {"sub": sub}
        if exp is not None:
            payload["exp"] = exp
        return f"{_b64({'alg': 'HS256', 'typ': 'JWT'})}.{_b64(payload)}.sig"

    return _make


@pytest.fixture
def base_url() -> str:
    return BASE_URL


@pytest.fixture
async def session(clock):
    async with httpx.AsyncClient(base_url=BASE_URL) as http:
        yield SessionManager(http=http, clock=clock, freshness_margin=30)
