"""Credential pairs and token response parsing.

Learn: backends on this platform don't agree on an envelope. Login and
refresh bodies show up as any of:

    {"data": {"tokens": {"accessToken": ..., "refreshToken": ...}}}
    {"tokens": {...}}
    {"data": {"accessToken": ...}}
    {"access_token": ..., "refresh_token": ...}

extract_tokens() unwraps all of them. Tokens are opaque to the client —
we only peek at the JWT ``exp`` claim (unverified) for diagnostics.
"""

from datetime import datetime, timezone
from typing import Any, Optional

import jwt
from pydantic import BaseModel, Field

from continuum.errors import InvalidTokenResponse


class CredentialPair(BaseModel):
    """Access + refresh token for one audience."""

    access_token: str = Field(min_length=1)
    refresh_token: Optional[str] = None

    model_config = {"frozen": True}

    def rotated(self, access_token: str, refresh_token: Optional[str]) -> "CredentialPair":
        """New pair after a refresh. Keeps the old refresh token if none was issued."""
        return CredentialPair(
            access_token=access_token,
            refresh_token=refresh_token or self.refresh_token,
        )


def unwrap(payload: Any) -> Any:
    """Strip the ``{"data": ...}`` envelope if present."""
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        return payload["data"]
    return payload


def _pick(source: dict, *keys: str) -> Optional[str]:
    for key in keys:
        value = source.get(key)
        if value:
            return str(value)
    return None


def extract_tokens(payload: Any) -> tuple[Optional[str], Optional[str]]:
    """Return ``(access_token, refresh_token)`` from any known envelope."""
    body = unwrap(payload)
    if not isinstance(body, dict):
        return None, None
    tokens = body.get("tokens") if isinstance(body.get("tokens"), dict) else body
    access = _pick(tokens, "accessToken", "access_token")
    refresh = _pick(tokens, "refreshToken", "refresh_token")
    return access, refresh


def require_pair(payload: Any) -> CredentialPair:
    """Parse a login response; both tokens must be present."""
    access, refresh = extract_tokens(payload)
    if not access or not refresh:
        raise InvalidTokenResponse(
            "Authentication failed - invalid token structure received"
        )
    return CredentialPair(access_token=access, refresh_token=refresh)


def token_expiry(token: str) -> Optional[datetime]:
    """Read the ``exp`` claim without verifying the signature.

    Returns None for opaque (non-JWT) tokens or tokens without ``exp``.
    """
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError:
        return None
    exp = claims.get("exp")
    if exp is None:
        return None
    return datetime.fromtimestamp(exp, tz=timezone.utc)
