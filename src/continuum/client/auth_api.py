"""Auth convenience calls for one audience.

Learn: everything here goes through SessionController.request(). Calls
that establish or end a session (login, register, password reset,
email verification, logout) are sent with authenticate=False: a 401 from
a login form means "wrong password", not "token expired", so it must
never trigger a refresh or wipe a session.

Routes (relative to the audience's base URL):
- POST /auth/login → tokens + user
- POST /auth/register → user (tokens if verification isn't required)
- POST /auth/logout → revoke server-side (best effort)
- POST /auth/forgot-password, /auth/reset-password, /auth/verify-email
- GET /auth/me → current user
"""

from datetime import datetime
from typing import Any, Optional

import structlog
from pydantic import BaseModel

from continuum.auth.tokens import (
    CredentialPair,
    extract_tokens,
    require_pair,
    token_expiry,
    unwrap,
)
from continuum.client.controller import Redirect, SessionController, navigate
from continuum.client.descriptor import RequestDescriptor
from continuum.errors import ContinuumError

logger = structlog.get_logger()


class LoginResult(BaseModel):
    user: Optional[dict] = None
    user_type: Optional[str] = None
    access_token: str
    refresh_token: str


class AuthApi:
    def __init__(
        self,
        controller: SessionController,
        *,
        home_url: str,
        redirect: Optional[Redirect] = None,
    ):
        self.controller = controller
        self.credentials = controller.credentials
        self.audience = controller.audience
        self.home_url = home_url
        self.redirect = redirect

    async def _call(
        self,
        method: str,
        path: str,
        body: Any = None,
        *,
        authenticate: bool = True,
    ) -> Any:
        return await self.controller.request(
            RequestDescriptor(
                method=method,
                path=path,
                audience=self.audience,
                body=body,
                authenticate=authenticate,
            )
        )

    # ─── Session lifecycle ────────────────────────────────

    async def login(self, email: str, password: str) -> LoginResult:
        """Email/password login. Stores both tokens and caches the user."""
        response = await self._call(
            "POST", "/auth/login", {"email": email, "password": password},
            authenticate=False,
        )
        pair = require_pair(response)
        body = unwrap(response)
        user = body.get("user")
        user_type = body.get("userType") or body.get("user_type")

        self.credentials.set(pair)
        self.credentials.cache_user(user, user_type)
        logger.info("continuum.login_succeeded", audience=self.audience.value)

        return LoginResult(
            user=user,
            user_type=user_type,
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
        )

    async def register(self, data: dict) -> Any:
        """Create an account. Some backends log the user straight in."""
        response = await self._call("POST", "/auth/register", data, authenticate=False)
        access, refresh = extract_tokens(response)
        body = unwrap(response)
        if access:
            self.credentials.set(CredentialPair(access_token=access, refresh_token=refresh))
            if isinstance(body, dict):
                self.credentials.cache_user(
                    body.get("user"), body.get("userType") or body.get("user_type")
                )
            logger.info("continuum.registered_with_session", audience=self.audience.value)
        else:
            logger.info("continuum.registered_pending_verification", audience=self.audience.value)
        return body

    async def logout(self) -> None:
        """Revoke server-side if we hold a token, then always wipe local state.

        Calling it twice leaves the store in the same (empty) state.
        """
        try:
            if self.credentials.get():
                await self._call("POST", "/auth/logout", authenticate=False)
        except ContinuumError as e:
            logger.warning(
                "continuum.logout_call_failed",
                audience=self.audience.value,
                error=str(e),
            )
        finally:
            self.clear_auth_state()
            logger.info("continuum.logged_out", audience=self.audience.value)
            await navigate(self.redirect, self.home_url)

    async def refresh_token(self) -> CredentialPair:
        """Manually refresh. Same exchange (and failure handling) as a 401."""
        return await self.controller.refresh()

    # ─── Account flows ────────────────────────────────────

    async def forgot_password(self, email: str) -> Any:
        return await self._call(
            "POST", "/auth/forgot-password", {"email": email}, authenticate=False
        )

    async def reset_password(self, token: str, password: str) -> Any:
        return await self._call(
            "POST", "/auth/reset-password",
            {"token": token, "password": password},
            authenticate=False,
        )

    async def verify_email(self, token: str, email: Optional[str] = None) -> Any:
        body = {"token": token}
        if email:
            body["email"] = email
        return await self._call("POST", "/auth/verify-email", body, authenticate=False)

    async def get_current_user(self) -> Any:
        """GET /auth/me and refresh the cached profile."""
        body = unwrap(await self._call("GET", "/auth/me"))
        if not isinstance(body, dict):
            return body
        user = body.get("user", body)
        self.credentials.cache_user(user)
        return user

    # ─── Local state ──────────────────────────────────────

    def is_authenticated(self) -> bool:
        return self.credentials.get() is not None

    def access_expires_at(self) -> Optional[datetime]:
        pair = self.credentials.get()
        return token_expiry(pair.access_token) if pair else None

    def stored_user(self) -> Optional[dict]:
        return self.credentials.cached_user()

    def user_type(self) -> Optional[str]:
        return self.credentials.user_type()

    def clear_auth_state(self) -> None:
        self.credentials.clear()
        self.controller.tenant.clear()
