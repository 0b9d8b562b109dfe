"""Request descriptors — one outbound call and its retry bookkeeping.

Learn: the descriptor is the only per-request state in the client. The
SessionController mutates it as the request moves through its phases
(attempt → refresh → replay), so after the call you can inspect exactly
what happened: whether it was replayed, which tenant it ran under, and
the last phase it reached.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class Audience(str, Enum):
    """The two independently-authenticated backend services."""

    CUSTOMER = "customer"
    ADMIN = "admin"


class Phase(str, Enum):
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"
    REFRESHING = "refreshing"
    REPLAYING = "replaying"
    FAILED_TERMINAL = "failed_terminal"


@dataclass
class RequestDescriptor:
    """A single logical request against one audience.

    ``authenticate=False`` marks calls that establish or tear down a
    session (login, register, password reset, logout). Those never enter
    the refresh protocol — a 401 there means bad input, not an expired token.
    """

    method: str
    path: str
    audience: Audience
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    files: Optional[dict[str, Any]] = None
    authenticate: bool = True
    retried_once: bool = False
    tenant_id: Optional[str] = None
    phase: Phase = Phase.IDLE

    def __post_init__(self):
        self.method = self.method.upper()
        if not self.path.startswith("/"):
            self.path = f"/{self.path}"
