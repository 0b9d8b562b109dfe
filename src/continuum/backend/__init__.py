"""Reference auth backend — the outbound contract the client talks to.

Learn: a small FastAPI app implementing the per-audience auth routes
(login, register, refresh, logout, me, password reset, email
verification). Used for local development (`continuum serve`) and for
contract tests, where it runs in-process behind httpx.ASGITransport.

One app instance serves one audience; tokens carry that audience in
their `aud` claim, so an admin token is rejected by the customer app.
"""

from continuum.backend.app import create_app

__all__ = ["create_app"]
