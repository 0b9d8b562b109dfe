"""Session continuity controller — attach, refresh once, replay, or end the session.

Learn: this wraps a RequestDispatcher with the intercept/refresh/retry
protocol. For a single request the steps are strictly sequential:

    attach credentials → send → (401) refresh → replay

1. Attach: Bearer access token (if stored) + X-Tenant-ID (if a tenant is
   active). The tenant is captured once, so the replay carries the same one.
2. 2xx → payload returned, credentials untouched.
3. 401 on a first attempt → exchange the refresh token via POST
   /auth/refresh (sent straight to the dispatcher, never through this
   retry logic), store the new tokens, mark the descriptor retried, replay.
4. Any other non-2xx → raised unchanged. A 401 on the replay →
   RefreshExhausted; no second refresh, ever.
5. Refresh impossible (no refresh token) or failed → terminal: wipe this
   audience's credentials, clear the tenant, call the redirect port with
   the login entry point, raise AuthExpired.

Concurrent requests that hit 401 while an exchange is already in flight
wait for that same exchange instead of starting another one. Each still
gets exactly one replay of its own.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional, Union

import structlog

from continuum.auth.store import ScopedCredentials
from continuum.auth.tokens import CredentialPair, extract_tokens
from continuum.client.context import TENANT_HEADER, TenantContext
from continuum.client.descriptor import Phase, RequestDescriptor
from continuum.client.dispatcher import RequestDispatcher, decode_body
from continuum.errors import (
    AuthExpired,
    HttpError,
    NetworkError,
    RefreshExhausted,
)

logger = structlog.get_logger()

REFRESH_PATH = "/auth/refresh"

# Host-supplied navigation hook: called with the URL to land on
Redirect = Callable[[str], Union[None, Awaitable[None]]]


class SessionController:
    """Wraps one audience's dispatcher with the refresh-and-replay protocol."""

    def __init__(
        self,
        dispatcher: RequestDispatcher,
        credentials: ScopedCredentials,
        tenant: TenantContext,
        *,
        login_url: str,
        redirect: Optional[Redirect] = None,
        wipe_on_refresh_exhausted: bool = False,
    ):
        self.dispatcher = dispatcher
        self.credentials = credentials
        self.tenant = tenant
        self.audience = credentials.audience
        self.login_url = login_url
        self.redirect = redirect
        self.wipe_on_refresh_exhausted = wipe_on_refresh_exhausted
        self._inflight_refresh: Optional[asyncio.Task] = None

    # ─── Request / replay ─────────────────────────────────

    async def request(self, descriptor: RequestDescriptor) -> Any:
        """Send a request, recovering from one expired access token."""
        if descriptor.audience is not self.audience:
            raise ValueError(
                f"{descriptor.audience.value} request routed to "
                f"{self.audience.value} controller"
            )

        if descriptor.phase is not Phase.REPLAYING:
            descriptor.tenant_id = self.tenant.current()

        descriptor.phase = Phase.AWAITING_RESPONSE
        try:
            response = await self.dispatcher.send(descriptor, self._headers(descriptor))
        except HttpError as e:
            if e.status != 401 or not descriptor.authenticate:
                descriptor.phase = Phase.IDLE
                raise
            if descriptor.retried_once:
                raise await self._exhausted(descriptor)
            await self._recover(descriptor)
            descriptor.retried_once = True
            descriptor.phase = Phase.REPLAYING
            logger.info(
                "continuum.request_replayed",
                audience=self.audience.value,
                method=descriptor.method,
                path=descriptor.path,
            )
            return await self.request(descriptor)
        except NetworkError:
            descriptor.phase = Phase.IDLE
            raise

        descriptor.phase = Phase.IDLE
        return decode_body(response)

    def _headers(self, descriptor: RequestDescriptor) -> dict[str, str]:
        headers = dict(descriptor.headers)
        pair = self.credentials.get()
        if pair:
            headers["Authorization"] = f"Bearer {pair.access_token}"
        if descriptor.tenant_id:
            headers[TENANT_HEADER] = descriptor.tenant_id
        return headers

    async def _recover(self, descriptor: RequestDescriptor) -> None:
        descriptor.phase = Phase.REFRESHING
        try:
            await self.refresh()
        except AuthExpired:
            descriptor.phase = Phase.FAILED_TERMINAL
            raise

    async def _exhausted(self, descriptor: RequestDescriptor) -> RefreshExhausted:
        logger.warning(
            "continuum.refresh_exhausted",
            audience=self.audience.value,
            method=descriptor.method,
            path=descriptor.path,
        )
        descriptor.phase = Phase.FAILED_TERMINAL
        if self.wipe_on_refresh_exhausted:
            await self.terminate("refresh_exhausted")
        return RefreshExhausted(
            self.audience.value,
            "request rejected again after refreshing credentials",
            status=401,
        )

    # ─── Refresh ──────────────────────────────────────────

    async def refresh(self) -> CredentialPair:
        """Exchange the stored refresh token for new credentials.

        Joins an exchange already in flight for this audience. On failure
        the session is terminated and AuthExpired is raised.
        """
        task = self._inflight_refresh
        if task is None or task.done():
            task = asyncio.ensure_future(self._exchange())
            self._inflight_refresh = task
        try:
            # cancelling one waiter leaves the exchange running for the others
            return await asyncio.shield(task)
        finally:
            if self._inflight_refresh is task and task.done():
                self._inflight_refresh = None

    async def _exchange(self) -> CredentialPair:
        pair = self.credentials.get()
        if pair is None or not pair.refresh_token:
            logger.info("continuum.refresh_unavailable", audience=self.audience.value)
            await self.terminate("no_refresh_token")
            raise AuthExpired(self.audience.value, "no refresh token available", status=401)

        logger.info("continuum.refresh_started", audience=self.audience.value)
        exchange = RequestDescriptor(
            method="POST",
            path=REFRESH_PATH,
            audience=self.audience,
            body={
                "refreshToken": pair.refresh_token,
                "oldAccessToken": pair.access_token,
            },
            authenticate=False,
        )
        try:
            response = await self.dispatcher.send(exchange, {})
        except HttpError as e:
            logger.warning(
                "continuum.refresh_rejected",
                audience=self.audience.value,
                status=e.status,
            )
            await self.terminate("refresh_rejected")
            raise AuthExpired(self.audience.value, "refresh rejected", status=e.status) from e
        except NetworkError as e:
            logger.warning("continuum.refresh_unreachable", audience=self.audience.value)
            await self.terminate("refresh_unreachable")
            raise AuthExpired(self.audience.value, "refresh endpoint unreachable") from e

        access, refresh = extract_tokens(decode_body(response))
        if not access:
            logger.warning("continuum.refresh_malformed", audience=self.audience.value)
            await self.terminate("refresh_malformed")
            raise AuthExpired(self.audience.value, "no access token in refresh response")

        rotated = pair.rotated(access, refresh)
        self.credentials.set(rotated)
        logger.info(
            "continuum.refresh_succeeded",
            audience=self.audience.value,
            refresh_rotated=bool(refresh),
        )
        return rotated

    # ─── Terminal failure ─────────────────────────────────

    async def terminate(self, reason: str) -> None:
        """End the session: wipe credentials + tenant, then redirect to login."""
        logger.warning(
            "continuum.session_terminated",
            audience=self.audience.value,
            reason=reason,
            redirect_to=self.login_url,
        )
        self.credentials.clear()
        self.tenant.clear()
        await navigate(self.redirect, self.login_url)


async def navigate(redirect: Optional[Redirect], url: str) -> None:
    """Invoke a redirect port that may be sync or async."""
    if redirect is None:
        return
    result = redirect(url)
    if inspect.isawaitable(result):
        await result
