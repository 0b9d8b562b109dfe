"""Audience router — two fully independent clients, customer and admin.

Learn: the platform talks to two backends that authenticate separately.
Each audience gets its own dispatcher (base URL), its own slice of the
credential store, its own login/home redirect targets and its own
controller. The only thing they share is the tenant context, which is
process-wide by definition.

Usage:

    async with AudienceRouter.from_settings(redirect=go_to) as router:
        await router.customer.auth.login("ada@example.com", "pw")
        me = await router.request(Audience.CUSTOMER, "GET", "/auth/me")
        orgs = await router.admin.get("/tenants")
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional, Union

import httpx

from continuum.auth.store import CredentialStore, FileBackend
from continuum.client.auth_api import AuthApi
from continuum.client.context import TenantContext
from continuum.client.controller import Redirect, SessionController
from continuum.client.descriptor import Audience, RequestDescriptor
from continuum.client.dispatcher import RequestDispatcher
from continuum.config import Settings, settings as default_settings

Transport = Union[httpx.AsyncBaseTransport, Callable[[Audience], httpx.AsyncBaseTransport]]


class AudienceClient:
    """Verb helpers + auth calls for one audience."""

    def __init__(self, controller: SessionController, auth: AuthApi):
        self.controller = controller
        self.auth = auth
        self.audience = controller.audience

    async def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        *,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        return await self.controller.request(
            RequestDescriptor(
                method=method,
                path=path,
                audience=self.audience,
                body=body,
                headers=headers or {},
            )
        )

    async def get(self, path: str, **kwargs) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, body: Any = None, **kwargs) -> Any:
        return await self.request("POST", path, body, **kwargs)

    async def put(self, path: str, body: Any = None, **kwargs) -> Any:
        return await self.request("PUT", path, body, **kwargs)

    async def patch(self, path: str, body: Any = None, **kwargs) -> Any:
        return await self.request("PATCH", path, body, **kwargs)

    async def delete(self, path: str, **kwargs) -> Any:
        return await self.request("DELETE", path, **kwargs)

    async def upload(
        self,
        path: str,
        filename: str,
        content: bytes,
        *,
        content_type: str = "application/octet-stream",
        fields: Optional[dict[str, str]] = None,
    ) -> Any:
        """POST a single file as multipart/form-data under the ``file`` field."""
        return await self.controller.request(
            RequestDescriptor(
                method="POST",
                path=path,
                audience=self.audience,
                body=fields,
                files={"file": (filename, content, content_type)},
            )
        )

    async def batch(self, requests: list[Callable[[], Awaitable[Any]]]) -> list[Any]:
        """Run several request thunks concurrently; results in input order."""
        return list(await asyncio.gather(*(make() for make in requests)))


class AudienceRouter:
    """Entry point for the application: one AudienceClient per audience."""

    def __init__(
        self,
        store: CredentialStore,
        tenant: TenantContext,
        *,
        config: Settings = default_settings,
        redirect: Optional[Redirect] = None,
        transport: Optional[Transport] = None,
    ):
        self.store = store
        self.tenant = tenant
        self._clients = {
            audience: self._build(audience, config, redirect, transport)
            for audience in Audience
        }

    @classmethod
    def from_settings(
        cls,
        config: Settings = default_settings,
        *,
        redirect: Optional[Redirect] = None,
        transport: Optional[Transport] = None,
    ) -> "AudienceRouter":
        """Router backed by the durable credentials file from config."""
        return cls(
            CredentialStore(FileBackend(config.credentials_path)),
            TenantContext(config.default_tenant),
            config=config,
            redirect=redirect,
            transport=transport,
        )

    def _build(
        self,
        audience: Audience,
        config: Settings,
        redirect: Optional[Redirect],
        transport: Optional[Transport],
    ) -> AudienceClient:
        if callable(transport) and not isinstance(transport, httpx.AsyncBaseTransport):
            transport = transport(audience)
        dispatcher = RequestDispatcher(
            config.api_url(audience),
            timeout=config.request_timeout_seconds,
            transport=transport,
        )
        controller = SessionController(
            dispatcher,
            self.store.scoped(audience),
            self.tenant,
            login_url=config.login_url(audience),
            redirect=redirect,
            wipe_on_refresh_exhausted=config.wipe_on_refresh_exhausted,
        )
        auth = AuthApi(controller, home_url=config.home_url(audience), redirect=redirect)
        return AudienceClient(controller, auth)

    @property
    def customer(self) -> AudienceClient:
        return self._clients[Audience.CUSTOMER]

    @property
    def admin(self) -> AudienceClient:
        return self._clients[Audience.ADMIN]

    def client(self, audience: Audience) -> AudienceClient:
        return self._clients[Audience(audience)]

    async def request(
        self,
        audience: Audience,
        method: str,
        path: str,
        body: Any = None,
    ) -> Any:
        return await self.client(audience).request(method, path, body)

    async def aclose(self) -> None:
        for client in self._clients.values():
            await client.controller.dispatcher.aclose()

    async def __aenter__(self) -> "AudienceRouter":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()
