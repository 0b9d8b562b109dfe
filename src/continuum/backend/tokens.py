"""JWT token creation and verification for the reference backend.

Learn: JWT (JSON Web Token) provides stateless authentication.
- Access token: short-lived (15min), sent as Bearer on every call
- Refresh token: long-lived (30 days), exchanged for new tokens

Every token carries:
- aud → the audience ("customer" / "admin") that minted it
- type → "access" or "refresh", so one can't stand in for the other
- jti → unique id, so logout/rotation can revoke a single token
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from continuum.config import Settings, settings as default_settings


class TokenError(Exception):
    """Raised when token verification fails."""


class TokenService:
    def __init__(self, audience: str, config: Settings = default_settings):
        self.audience = audience
        self.config = config

    def _encode(self, user_id: str, token_type: str, expires: timedelta) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user_id,
            "aud": self.audience,
            "type": token_type,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": now + expires,
        }
        return jwt.encode(
            payload, self.config.jwt_secret, algorithm=self.config.jwt_algorithm
        )

    def create_access_token(
        self, user_id: str, expires_minutes: Optional[int] = None
    ) -> str:
        if expires_minutes is None:
            expires_minutes = self.config.access_token_expire_minutes
        return self._encode(user_id, "access", timedelta(minutes=expires_minutes))

    def create_refresh_token(
        self, user_id: str, expires_days: Optional[int] = None
    ) -> str:
        if expires_days is None:
            expires_days = self.config.refresh_token_expire_days
        return self._encode(user_id, "refresh", timedelta(days=expires_days))

    def verify(self, token: str, expected_type: str) -> dict:
        """Verify signature, expiry, audience and token type.

        Returns the payload dict on success.
        Raises TokenError on failure.
        """
        try:
            payload = jwt.decode(
                token,
                self.config.jwt_secret,
                algorithms=[self.config.jwt_algorithm],
                audience=self.audience,
            )
        except jwt.ExpiredSignatureError:
            raise TokenError("Token has expired")
        except jwt.InvalidAudienceError:
            raise TokenError("Token was issued for another service")
        except jwt.InvalidTokenError as e:
            raise TokenError(f"Invalid token: {e}")

        if payload.get("type") != expected_type:
            raise TokenError(f"Expected a {expected_type} token")
        return payload
