"""Test fixtures — scripted transports, in-memory stores, in-process backends.

Learn: two levels of fake backend:

1. ScriptedBackend → an httpx.MockTransport whose responses are queued per
   (method, path). Used to drive the controller's state machine precisely:
   "first /auth/me is a 401, the refresh is a 200, the replay is a 200".
2. The real reference backend (continuum.backend.create_app) served
   in-process through httpx.ASGITransport — no sockets, no uvicorn.

Nothing here touches the real credentials file: every store is a
MemoryBackend unless a test asks for a tmp_path file.
"""

import json
from collections import defaultdict, deque

import httpx
import pytest
import pytest_asyncio

from continuum.auth.store import CredentialStore, MemoryBackend
from continuum.auth.tokens import CredentialPair
from continuum.backend import create_app
from continuum.client.context import TenantContext
from continuum.client.controller import SessionController
from continuum.client.descriptor import Audience
from continuum.client.dispatcher import RequestDispatcher
from continuum.client.router import AudienceRouter
from continuum.config import Settings

CUSTOMER_URL = "http://customer.test/api"
ADMIN_URL = "http://admin.test/api"


class ScriptedBackend:
    """Queue responses per (method, path); record every request received."""

    def __init__(self, prefix: str = "/api"):
        self.prefix = prefix
        self.queues: dict[tuple[str, str], deque] = defaultdict(deque)
        self.requests: list[httpx.Request] = []
        self.transport = httpx.MockTransport(self._handle)

    def queue(self, method: str, path: str, *responses) -> "ScriptedBackend":
        """Each item: httpx.Response, (status, json) tuple, exception, or callable(request)."""
        self.queues[(method.upper(), path)].extend(responses)
        return self

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method.upper() and r.url.path == self.prefix + path
        ]

    def body(self, request: httpx.Request) -> dict:
        return json.loads(request.content)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path[len(self.prefix):]
        queue = self.queues.get((request.method, path))
        if not queue:
            return httpx.Response(404, json={"message": f"no script for {request.method} {path}"})
        item = queue.popleft()
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(request)
        if isinstance(item, tuple):
            status, payload = item
            return httpx.Response(status, json=payload)
        return item


def tokens_body(access: str, refresh: str | None = None) -> dict:
    tokens = {"accessToken": access}
    if refresh:
        tokens["refreshToken"] = refresh
    return {"success": True, "data": {"tokens": tokens}}


@pytest.fixture()
def test_settings(tmp_path):
    return Settings(
        customer_api_url=CUSTOMER_URL,
        admin_api_url=ADMIN_URL,
        credentials_path=tmp_path / "credentials.json",
        request_timeout_seconds=5.0,
    )


@pytest.fixture()
def store():
    return CredentialStore(MemoryBackend())


@pytest.fixture()
def tenant():
    return TenantContext()


@pytest.fixture()
def redirects():
    """Records every URL the redirect port was asked to navigate to."""
    return []


@pytest.fixture()
def scripted():
    return ScriptedBackend()


@pytest_asyncio.fixture()
async def controller(scripted, store, tenant, redirects):
    """Customer controller wired to the scripted backend."""
    dispatcher = RequestDispatcher(CUSTOMER_URL, transport=scripted.transport)
    ctrl = SessionController(
        dispatcher,
        store.scoped(Audience.CUSTOMER),
        tenant,
        login_url="/customer-services/login",
        redirect=redirects.append,
    )
    yield ctrl
    await dispatcher.aclose()


@pytest.fixture()
def signed_in(store):
    """Store a customer session with an (assumed) expired access token."""
    store.set(
        Audience.CUSTOMER,
        CredentialPair(access_token="old-access", refresh_token="refresh-1"),
    )
    return store


# ─── Reference backend ──────────────────────────────────


@pytest.fixture()
def backends(test_settings):
    return {audience: create_app(audience, test_settings) for audience in Audience}


@pytest_asyncio.fixture()
async def router(backends, store, tenant, redirects, test_settings):
    """AudienceRouter talking to both reference backends in-process."""
    r = AudienceRouter(
        store,
        tenant,
        config=test_settings,
        redirect=redirects.append,
        transport=lambda audience: httpx.ASGITransport(app=backends[audience]),
    )
    yield r
    await r.aclose()


@pytest_asyncio.fixture()
async def backend_client(backends):
    """Raw HTTP client against the customer reference backend."""
    transport = httpx.ASGITransport(app=backends[Audience.CUSTOMER])
    async with httpx.AsyncClient(transport=transport, base_url="http://test/api") as ac:
        yield ac
