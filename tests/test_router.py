"""Audience router — per-audience wiring, verb helpers, isolation."""

import httpx
import pytest
import pytest_asyncio

from conftest import tokens_body
from continuum.auth.tokens import CredentialPair
from continuum.client.descriptor import Audience
from continuum.client.router import AudienceRouter
from continuum.errors import AuthExpired, HttpError


@pytest_asyncio.fixture()
async def scripted_router(scripted, store, tenant, redirects, test_settings):
    r = AudienceRouter(
        store,
        tenant,
        config=test_settings,
        redirect=redirects.append,
        transport=scripted.transport,
    )
    yield r
    await r.aclose()


def _sign_in_both(store):
    store.set(Audience.CUSTOMER, CredentialPair(access_token="c-access", refresh_token="c-refresh"))
    store.set(Audience.ADMIN, CredentialPair(access_token="a-access", refresh_token="a-refresh"))


@pytest.mark.asyncio
async def test_each_audience_has_its_own_base_url_and_token(scripted, scripted_router, store):
    _sign_in_both(store)
    scripted.queue("GET", "/users", (200, {"who": "customer"}), (200, {"who": "admin"}))

    await scripted_router.customer.get("/users")
    await scripted_router.admin.get("/users")

    customer_req, admin_req = scripted.calls("GET", "/users")
    assert customer_req.url.host == "customer.test"
    assert customer_req.headers["Authorization"] == "Bearer c-access"
    assert admin_req.url.host == "admin.test"
    assert admin_req.headers["Authorization"] == "Bearer a-access"


@pytest.mark.asyncio
async def test_request_by_audience(scripted, scripted_router, store):
    _sign_in_both(store)
    scripted.queue("POST", "/tenants", (201, {"id": "t1"}))

    result = await scripted_router.request(Audience.ADMIN, "POST", "/tenants", {"name": "Acme"})

    assert result == {"id": "t1"}
    assert scripted.body(scripted.calls("POST", "/tenants")[0]) == {"name": "Acme"}


@pytest.mark.asyncio
async def test_client_lookup_accepts_plain_strings(scripted_router):
    assert scripted_router.client("admin") is scripted_router.admin
    assert scripted_router.client(Audience.CUSTOMER) is scripted_router.customer


@pytest.mark.asyncio
@pytest.mark.parametrize("verb", ["put", "patch"])
async def test_body_verbs(scripted, scripted_router, store, verb):
    _sign_in_both(store)
    scripted.queue(verb.upper(), "/profile", (200, {"ok": True}))

    result = await getattr(scripted_router.customer, verb)("/profile", {"name": "Ada"})

    assert result == {"ok": True}
    assert scripted.body(scripted.calls(verb.upper(), "/profile")[0]) == {"name": "Ada"}


@pytest.mark.asyncio
async def test_delete_with_empty_response(scripted, scripted_router, store):
    _sign_in_both(store)
    scripted.queue("DELETE", "/notes/3", httpx.Response(204))

    assert await scripted_router.customer.delete("/notes/3") is None


@pytest.mark.asyncio
async def test_extra_headers_are_sent(scripted, scripted_router, store):
    _sign_in_both(store)
    scripted.queue("GET", "/reports", (200, []))

    await scripted_router.admin.get("/reports", headers={"Accept-Language": "fr"})

    assert scripted.calls("GET", "/reports")[0].headers["Accept-Language"] == "fr"


@pytest.mark.asyncio
async def test_upload_sends_multipart_with_credentials(scripted, scripted_router, store):
    _sign_in_both(store)
    scripted.queue("POST", "/documents", (201, {"id": "doc-1"}))

    result = await scripted_router.customer.upload(
        "/documents", "cv.pdf", b"%PDF-1.4", content_type="application/pdf",
        fields={"kind": "resume"},
    )

    sent = scripted.calls("POST", "/documents")[0]
    assert result == {"id": "doc-1"}
    assert sent.headers["Content-Type"].startswith("multipart/form-data")
    assert sent.headers["Authorization"] == "Bearer c-access"
    assert b'filename="cv.pdf"' in sent.content
    assert b"resume" in sent.content


@pytest.mark.asyncio
async def test_upload_replayed_after_refresh(scripted, scripted_router, store):
    _sign_in_both(store)
    scripted.queue("POST", "/documents", (401, {}), (201, {"id": "doc-1"}))
    scripted.queue("POST", "/auth/refresh", (200, tokens_body("c-access-2", "c-refresh-2")))

    result = await scripted_router.customer.upload("/documents", "a.txt", b"hello")

    assert result == {"id": "doc-1"}
    replay = scripted.calls("POST", "/documents")[1]
    assert replay.headers["Authorization"] == "Bearer c-access-2"
    assert b"hello" in replay.content


@pytest.mark.asyncio
async def test_batch_keeps_input_order(scripted, scripted_router, store):
    _sign_in_both(store)
    scripted.queue("GET", "/a", (200, {"n": 1}))
    scripted.queue("GET", "/b", (200, {"n": 2}))

    client = scripted_router.customer
    results = await client.batch([lambda: client.get("/a"), lambda: client.get("/b")])

    assert results == [{"n": 1}, {"n": 2}]


@pytest.mark.asyncio
async def test_batch_propagates_first_failure(scripted, scripted_router, store):
    _sign_in_both(store)
    scripted.queue("GET", "/a", (200, {"n": 1}))
    scripted.queue("GET", "/b", (500, {"message": "boom"}))

    client = scripted_router.customer
    with pytest.raises(HttpError):
        await client.batch([lambda: client.get("/a"), lambda: client.get("/b")])


# ─── Isolation ───────────────────────────────────────────


@pytest.mark.asyncio
async def test_customer_session_end_leaves_admin_intact(scripted, scripted_router, store, redirects):
    _sign_in_both(store)
    scripted.queue("GET", "/orders", (401, {}))
    scripted.queue("POST", "/auth/refresh", (401, {"message": "revoked"}))

    with pytest.raises(AuthExpired):
        await scripted_router.customer.get("/orders")

    assert store.get(Audience.CUSTOMER) is None
    assert store.get(Audience.ADMIN) == CredentialPair(
        access_token="a-access", refresh_token="a-refresh"
    )
    assert redirects == ["/customer-services/login"]


@pytest.mark.asyncio
async def test_admin_session_end_redirects_to_admin_login(scripted, scripted_router, store, redirects):
    _sign_in_both(store)
    scripted.queue("GET", "/tenants", (401, {}))
    scripted.queue("POST", "/auth/refresh", (401, {}))

    with pytest.raises(AuthExpired) as exc:
        await scripted_router.admin.get("/tenants")

    assert exc.value.audience == "admin"
    assert store.get(Audience.CUSTOMER) is not None
    assert redirects == ["/admin-server/login"]


@pytest.mark.asyncio
async def test_refresh_uses_the_audience_own_refresh_token(scripted, scripted_router, store):
    _sign_in_both(store)
    scripted.queue("GET", "/tenants", (401, {}), (200, []))
    scripted.queue("POST", "/auth/refresh", (200, tokens_body("a-access-2", "a-refresh-2")))

    await scripted_router.admin.get("/tenants")

    exchange = scripted.calls("POST", "/auth/refresh")[0]
    assert exchange.url.host == "admin.test"
    assert scripted.body(exchange)["refreshToken"] == "a-refresh"
    assert store.get(Audience.CUSTOMER).access_token == "c-access"


# ─── Construction ────────────────────────────────────────


@pytest.mark.asyncio
async def test_from_settings_uses_credentials_file_and_default_tenant(test_settings):
    config = test_settings.model_copy(update={"default_tenant": "acme"})
    async with AudienceRouter.from_settings(config) as r:
        r.store.set(Audience.ADMIN, CredentialPair(access_token="a", refresh_token="r"))
        assert r.tenant.current() == "acme"

    assert config.credentials_path.exists()
