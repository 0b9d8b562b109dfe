"""FastAPI application factory for the reference backend.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance for one audience. Per-app state (user directory, token service)
lives on app.state, so a customer app and an admin app can run side by
side in one process without sharing anything.

Every request is tagged for correlated logging: an X-Request-ID (taken
from the caller or generated), the audience, and the X-Tenant-ID the
client acted for are bound to structlog contextvars, and the request id
is echoed back on the response.
"""

import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import APIRouter, FastAPI, Request

from continuum import __version__
from continuum.backend.auth import router as auth_router
from continuum.backend.tokens import TokenService
from continuum.backend.users import UserDirectory
from continuum.client.descriptor import Audience
from continuum.config import Settings, settings as default_settings

logger = structlog.get_logger()

# What login responses report as userType, per audience
USER_TYPES = {Audience.CUSTOMER: "client", Audience.ADMIN: "admin"}


def create_app(
    audience: Audience = Audience.CUSTOMER,
    config: Settings = default_settings,
) -> FastAPI:
    """Build and return the reference backend for one audience."""
    audience = Audience(audience)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "backend.starting",
            version=__version__,
            audience=audience.value,
            environment=config.environment,
        )
        yield
        logger.info("backend.shutdown", audience=audience.value)

    app = FastAPI(
        title=f"Continuum reference backend ({audience.value})",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.audience = audience
    app.state.directory = UserDirectory(USER_TYPES[audience])
    app.state.tokens = TokenService(audience.value, config)

    @app.middleware("http")
    async def bind_request_context(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            audience=audience.value,
            tenant_id=request.headers.get("X-Tenant-ID"),
        )
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    api = APIRouter(prefix="/api")

    @api.get("/health")
    async def health_check():
        return {"status": "healthy", "audience": audience.value, "version": __version__}

    api.include_router(auth_router, tags=["auth"])
    app.include_router(api)
    return app
