#!/usr/bin/env python3
"""
Continuum walkthrough — a session's whole lifecycle in one script.

Register → authenticated call → access token goes bad → transparent
refresh + replay → tenant-scoped call → logout → call after logout.
Run with: python examples/session_walkthrough.py

Requires: pip install -e .
Backend must be running: continuum serve   (customer audience, port 3001)
"""

import asyncio
import sys
import uuid

import httpx

from continuum.auth.store import CredentialStore, MemoryBackend
from continuum.client.context import TenantContext
from continuum.client.descriptor import Audience
from continuum.client.router import AudienceRouter
from continuum.config import settings
from continuum.errors import AuthExpired


def redirect(url: str) -> None:
    print(f"   → redirect to {url}")


async def main():
    run_id = uuid.uuid4().hex[:6]
    base = settings.api_url(Audience.CUSTOMER)

    # ── Health check ──────────────────────────────────────────────
    print("Checking backend health...")
    try:
        resp = httpx.get(f"{base}/health", timeout=5)
    except httpx.ConnectError:
        print(f"Backend not reachable at {base}")
        print("Start it with:  continuum serve")
        sys.exit(1)
    print(f"  {resp.json()}")

    # In-memory store so the walkthrough never touches ~/.continuum
    store = CredentialStore(MemoryBackend())
    async with AudienceRouter(store, TenantContext(), redirect=redirect) as router:
        customer = router.customer

        # ── Register (starts a session) ───────────────────────────────
        print("\n1. Registering...")
        body = await customer.auth.register({
            "email": f"demo-{run_id}@example.com",
            "name": f"Demo {run_id}",
            "password": "demo-password-123",
        })
        print(f"   User: {body['user']['email']} ({body['user']['id'][:8]}...)")

        # ── Authenticated call ────────────────────────────────────────
        print("\n2. GET /auth/me ...")
        me = await customer.auth.get_current_user()
        print(f"   Hello, {me['name']}")
        print(f"   Access token expires {customer.auth.access_expires_at()}")

        # ── Access token goes bad ─────────────────────────────────────
        print("\n3. Breaking the access token, then calling again...")
        pair = store.get(Audience.CUSTOMER)
        store.set(Audience.CUSTOMER, pair.rotated("not-a-valid-token", None))
        me = await customer.auth.get_current_user()
        rotated = store.get(Audience.CUSTOMER)
        print(f"   Still {me['name']} (refreshed and replayed)")
        print(f"   Refresh token rotated: {rotated.refresh_token != pair.refresh_token}")

        # ── Tenant context ────────────────────────────────────────────
        print("\n4. Selecting tenant 'acme'...")
        router.tenant.select("acme")
        resp = await customer.get("/auth/me")
        print(f"   Backend saw X-Tenant-ID: {resp['data']['tenantId']}")

        # ── Logout ────────────────────────────────────────────────────
        print("\n5. Logging out...")
        await customer.auth.logout()
        print(f"   Signed in: {customer.auth.is_authenticated()}")

        print("\n6. Calling after logout...")
        try:
            await customer.get("/auth/me")
        except AuthExpired as e:
            print(f"   AuthExpired: {e.reason}")

    print("\nDone.")


if __name__ == "__main__":
    asyncio.run(main())
