"""Tenant context — which organization the session is acting for.

Learn: the platform is multi-tenant; every outbound call carries the
active organization as an X-Tenant-ID header. Rather than reading some
ambient global, each controller is handed this object explicitly, so the
value a request runs under is easy to pin down in tests.
"""

from typing import Optional

import structlog

logger = structlog.get_logger()

TENANT_HEADER = "X-Tenant-ID"


class TenantContext:
    """Process-wide active tenant. Set on tenant selection, cleared on logout."""

    def __init__(self, tenant_id: Optional[str] = None):
        self._tenant_id = tenant_id or None

    def current(self) -> Optional[str]:
        return self._tenant_id

    def select(self, tenant_id: str) -> None:
        self._tenant_id = tenant_id or None
        logger.info("continuum.tenant_selected", tenant_id=self._tenant_id)

    def clear(self) -> None:
        if self._tenant_id is not None:
            logger.info("continuum.tenant_cleared", tenant_id=self._tenant_id)
        self._tenant_id = None
