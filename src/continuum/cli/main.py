"""Continuum CLI — sign in to a platform backend and make authenticated calls.

Usage:
    continuum login ada@example.com              # Customer session (prompts for password)
    continuum login --admin root@example.com     # Admin session, stored separately
    continuum whoami                             # GET /auth/me (refreshes if needed)
    continuum -v whoami                          # Same, with info logs on stderr
    continuum status                             # Which audiences have a session
    continuum request GET /consultations         # Any call, with credentials attached
    continuum request POST /notes -d '{"x": 1}' --tenant acme
    continuum logout [--admin]
    continuum serve [--admin] [--port 3001]      # Run the reference backend
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import logging
import sys
from typing import NoReturn, Optional

import click
import structlog

from continuum import __version__
from continuum.client.descriptor import Audience
from continuum.client.router import AudienceRouter
from continuum.config import settings
from continuum.errors import AuthExpired, ContinuumError, NetworkError, RequestError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _stderr_logger(*args) -> structlog.PrintLogger:
    # sys.stderr is looked up per logger, not at configure time
    return structlog.PrintLogger(sys.stderr)


def _configure_logging(verbose: bool) -> None:
    """Log lines go to stderr so stdout only carries command output."""
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.INFO if verbose else logging.WARNING
        ),
        logger_factory=_stderr_logger,
    )


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _redirect(url: str) -> None:
    """Terminal-failure / logout landing: there's no browser, so say where to go."""
    click.secho(f"Session ended. Continue at: {url}", fg="yellow", err=True)


def _router(tenant: Optional[str] = None) -> AudienceRouter:
    router = AudienceRouter.from_settings(settings, redirect=_redirect)
    if tenant:
        router.tenant.select(tenant)
    return router


def _audience(admin: bool) -> Audience:
    return Audience.ADMIN if admin else Audience.CUSTOMER


def _pretty_json(data) -> str:
    return json.dumps(data, indent=2, default=str)


def _fail(error: ContinuumError) -> NoReturn:
    if isinstance(error, AuthExpired):
        click.secho(f"Not signed in: {error.reason}", fg="red", err=True)
    elif isinstance(error, RequestError):
        click.secho(error.user_message(), fg="red", err=True)
    elif isinstance(error, NetworkError):
        click.secho("Network error. Please check your connection", fg="red", err=True)
    else:
        click.secho(str(error), fg="red", err=True)
    sys.exit(1)


admin_option = click.option(
    "--admin", is_flag=True, help="Use the admin audience instead of customer"
)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="continuum")
@click.option("--verbose", "-v", is_flag=True, help="Show info-level logs on stderr")
def main(verbose: bool):
    """Continuum — session-aware client for the platform's customer and admin APIs."""
    _configure_logging(verbose)


# ---------------------------------------------------------------------------
# continuum login / logout
# ---------------------------------------------------------------------------


@main.command()
@click.argument("email")
@click.password_option(confirmation_prompt=False)
@admin_option
def login(email: str, password: str, admin: bool):
    """Sign in and store the session for later commands."""
    _run(_login_impl(email, password, _audience(admin)))


async def _login_impl(email: str, password: str, audience: Audience):
    async with _router() as router:
        try:
            result = await router.client(audience).auth.login(email, password)
        except ContinuumError as e:
            _fail(e)
        name = (result.user or {}).get("name") or email
        click.secho(f"Signed in to {audience.value} as {name}", fg="green")
        if result.user_type:
            click.echo(f"  User type: {result.user_type}")


@main.command()
@admin_option
def logout(admin: bool):
    """End the session (server-side revoke + local wipe)."""
    _run(_logout_impl(_audience(admin)))


async def _logout_impl(audience: Audience):
    async with _router() as router:
        await router.client(audience).auth.logout()
    click.echo(f"Signed out of {audience.value}")


# ---------------------------------------------------------------------------
# continuum whoami / status
# ---------------------------------------------------------------------------


@main.command()
@admin_option
@click.option("--tenant", help="Tenant ID to act for (X-Tenant-ID)")
def whoami(admin: bool, tenant: Optional[str]):
    """Show the signed-in user as the backend sees it."""
    _run(_whoami_impl(_audience(admin), tenant))


async def _whoami_impl(audience: Audience, tenant: Optional[str]):
    async with _router(tenant) as router:
        try:
            user = await router.client(audience).auth.get_current_user()
        except ContinuumError as e:
            _fail(e)
        click.echo(_pretty_json(user))


@main.command()
def status():
    """Show which audiences currently hold a session."""
    router = _router()
    for audience in Audience:
        auth = router.client(audience).auth
        if auth.is_authenticated():
            user = auth.stored_user() or {}
            expires = auth.access_expires_at()
            line = click.style("signed in", fg="green")
            if user.get("email"):
                line += f" as {user['email']}"
            if expires:
                line += f" (access token expires {expires.isoformat()})"
        else:
            line = click.style("signed out", fg="red")
        click.echo(f"  {audience.value:10s} {line}")
    _run(router.aclose())


# ---------------------------------------------------------------------------
# continuum request
# ---------------------------------------------------------------------------


@main.command()
@click.argument("method")
@click.argument("path")
@click.option("--data", "-d", help="JSON request body")
@click.option("--tenant", help="Tenant ID to act for (X-Tenant-ID)")
@admin_option
def request(method: str, path: str, data: Optional[str], tenant: Optional[str], admin: bool):
    """Send METHOD PATH with the stored session attached."""
    try:
        body = json.loads(data) if data else None
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"not valid JSON: {e}", param_hint="--data")
    _run(_request_impl(_audience(admin), method, path, body, tenant))


async def _request_impl(audience: Audience, method: str, path: str, body, tenant: Optional[str]):
    async with _router(tenant) as router:
        try:
            payload = await router.request(audience, method, path, body)
        except ContinuumError as e:
            _fail(e)
        click.echo(_pretty_json(payload))


# ---------------------------------------------------------------------------
# continuum serve
# ---------------------------------------------------------------------------


@main.command()
@admin_option
@click.option("--host", default=None, help="Bind address (default from config)")
@click.option("--port", "-p", type=int, default=None, help="Port (default from config)")
def serve(admin: bool, host: Optional[str], port: Optional[int]):
    """Run the reference auth backend for one audience."""
    import uvicorn

    from continuum.backend import create_app

    app = create_app(_audience(admin), settings)
    uvicorn.run(app, host=host or settings.host, port=port or settings.port)


if __name__ == "__main__":
    main()
