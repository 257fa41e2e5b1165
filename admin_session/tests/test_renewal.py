"""Tests for the renewal coordinator (single-flight renewal, no eviction on failure)."""
import asyncio
import json

import httpx
import pytest
from respx import MockRouter

from admin_session.errors import RenewalRejected, RenewalUnreachable
from admin_session.renewal import RenewalCoordinator
from admin_session.token_store import TokenStore

REFRESH_URL = "http://backend.test/api/users/token/refresh/"


@pytest.fixture
async def http(base_url):
    async with httpx.AsyncClient(base_url=base_url) as client:
        yield client


@pytest.fixture
def store():
    return TokenStore()


@pytest.fixture
def coordinator(store, http):
    return RenewalCoordinator(store, http, backoff_seconds=0)


@pytest.mark.asyncio
async def test_no_refresh_token_no_network_call(coordinator, respx_mock: MockRouter):
    assert await coordinator.renew() is None
    assert len(respx_mock.calls) == 0


@pytest.mark.asyncio
async def test_success_stores_new_access_and_keeps_refresh(coordinator, store, respx_mock: MockRouter):
    store.set_tokens("old-at", "rt")
    route = respx_mock.post(REFRESH_URL).mock(return_value=httpx.Response(200, json={"access": "new-at"}))

    assert await coordinator.renew() == "new-at"
    assert route.call_count == 1
    assert json.loads(route.calls.last.request.content) == {"refresh": "rt"}
    assert store.get_access_token() == "new-at"
    assert store.get_refresh_token() == "rt"
    assert coordinator.last_error is None


@pytest.mark.asyncio
async def test_rotated_refresh_token_is_persisted(coordinator, store, respx_mock: MockRouter):
    store.set_tokens("old-at", "rt-1")
    respx_mock.post(REFRESH_URL).mock(
        return_value=httpx.Response(200, json={"access": "new-at", "refresh": "rt-2"})
    )

    assert await coordinator.renew() == "new-at"
    assert store.get_refresh_token() == "rt-2"


@pytest.mark.asyncio
async def test_three_concurrent_callers_one_network_call(coordinator, store, respx_mock: MockRouter):
    store.set_tokens("old-at", "rt")
    route = respx_mock.post(REFRESH_URL).mock(return_value=httpx.Response(200, json={"access": "new-at"}))

    results = await asyncio.gather(coordinator.renew(), coordinator.renew(), coordinator.renew())

    assert route.call_count == 1
    assert results == ["new-at", "new-at", "new-at"]


@pytest.mark.asyncio
async def test_concurrent_callers_share_failure(coordinator, store, respx_mock: MockRouter):
    store.set_tokens("old-at", "rt")
    route = respx_mock.post(REFRESH_URL).mock(return_value=httpx.Response(401, json={"detail": "bad"}))

    results = await asyncio.gather(*(coordinator.renew() for _ in range(4)))

    assert route.call_count == 1
    assert results == [None] * 4


@pytest.mark.asyncio
async def test_sequential_renewals_each_call_backend(coordinator, store, respx_mock: MockRouter):
    store.set_tokens("old-at", "rt")
    route = respx_mock.post(REFRESH_URL).mock(
        side_effect=[
            httpx.Response(200, json={"access": "at-1"}),
            httpx.Response(200, json={"access": "at-2"}),
        ]
    )

    assert await coordinator.renew() == "at-1"
    assert await coordinator.renew() == "at-2"
    assert route.call_count == 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(401, json={"detail": "Token is invalid or expired"}),
        httpx.Response(500, text="oops"),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"detail": "no access here"}),
        httpx.Response(200, json=["access"]),
    ],
)
async def test_rejection_returns_none_without_eviction(coordinator, store, respx_mock: MockRouter, response):
    store.set_tokens("old-at", "rt")
    respx_mock.post(REFRESH_URL).mock(return_value=response)

    assert await coordinator.renew() is None
    assert store.get_access_token() == "old-at"
    assert store.get_refresh_token() == "rt"
    assert isinstance(coordinator.last_error, RenewalRejected)


@pytest.mark.asyncio
async def test_transport_failure_returns_none(coordinator, store, respx_mock: MockRouter):
    store.set_tokens("old-at", "rt")
    respx_mock.post(REFRESH_URL).mock(side_effect=httpx.ConnectError("refused"))

    assert await coordinator.renew() is None
    assert store.get_access_token() == "old-at"
    assert isinstance(coordinator.last_error, RenewalUnreachable)


@pytest.mark.asyncio
async def test_bounded_retry_on_transport_failure(store, http, respx_mock: MockRouter):
    coordinator = RenewalCoordinator(store, http, retries=2, backoff_seconds=0)
    store.set_tokens("old-at", "rt")
    route = respx_mock.post(REFRESH_URL).mock(
        side_effect=[httpx.ConnectError("refused"), httpx.ReadTimeout("slow"), httpx.Response(200, json={"access": "new-at"})]
    )

    assert await coordinator.renew() == "new-at"
    assert route.call_count == 3


@pytest.mark.asyncio
async def test_rejection_is_not_retried(store, http, respx_mock: MockRouter):
    coordinator = RenewalCoordinator(store, http, retries=3, backoff_seconds=0)
    store.set_tokens("old-at", "rt")
    route = respx_mock.post(REFRESH_URL).mock(return_value=httpx.Response(401))

    assert await coordinator.renew() is None
    assert route.call_count == 1


@pytest.mark.asyncio
async def test_eviction_during_renewal_is_not_undone(coordinator, store, respx_mock: MockRouter):
    store.set_tokens("old-at", "rt")

    def evict_then_answer(request):
        store.clear_tokens()
        return httpx.Response(200, json={"access": "new-at"})

    respx_mock.post(REFRESH_URL).mock(side_effect=evict_then_answer)

    assert await coordinator.renew() is None
    assert store.get_access_token() is None
    assert store.get_refresh_token() is None
