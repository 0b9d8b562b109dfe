"""In-memory user directory for the reference backend.

Learn: no database here — the reference backend exists to exercise the
client's session protocol, not to persist business data. The directory
keeps users, revoked token ids, and one-time tokens for password reset
and email verification. Everything is lost on restart.
"""

import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from continuum.backend.password import hash_password, verify_password


class UserExistsError(Exception):
    pass


class OneTimeTokenError(Exception):
    pass


@dataclass
class UserRecord:
    email: str
    name: str
    password_hash: str
    user_type: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    email_verified: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def public(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "userType": self.user_type,
            "emailVerified": self.email_verified,
            "createdAt": self.created_at.isoformat(),
        }


class UserDirectory:
    def __init__(self, user_type: str):
        self.user_type = user_type
        self._by_email: dict[str, UserRecord] = {}
        self._by_id: dict[str, UserRecord] = {}
        self.revoked: set[str] = set()
        self.reset_tokens: dict[str, str] = {}
        self.verification_tokens: dict[str, str] = {}

    def create(self, email: str, name: str, password: str) -> UserRecord:
        key = email.lower()
        if key in self._by_email:
            raise UserExistsError(f"Email already registered: {email}")
        user = UserRecord(
            email=email,
            name=name,
            password_hash=hash_password(password),
            user_type=self.user_type,
        )
        self._by_email[key] = user
        self._by_id[user.id] = user
        self.verification_tokens[secrets.token_urlsafe(24)] = user.id
        return user

    def get(self, user_id: str) -> Optional[UserRecord]:
        return self._by_id.get(user_id)

    def find(self, email: str) -> Optional[UserRecord]:
        return self._by_email.get(email.lower())

    def authenticate(self, email: str, password: str) -> Optional[UserRecord]:
        user = self.find(email)
        if user and verify_password(password, user.password_hash):
            return user
        return None

    # ─── One-time tokens ──────────────────────────────────

    def issue_reset_token(self, email: str) -> Optional[str]:
        user = self.find(email)
        if not user:
            return None
        token = secrets.token_urlsafe(24)
        self.reset_tokens[token] = user.id
        return token

    def reset_password(self, token: str, password: str) -> UserRecord:
        user = self.get(self.reset_tokens.pop(token, ""))
        if not user:
            raise OneTimeTokenError("Invalid or expired reset token")
        user.password_hash = hash_password(password)
        return user

    def verify_email(self, token: str) -> UserRecord:
        user = self.get(self.verification_tokens.pop(token, ""))
        if not user:
            raise OneTimeTokenError("Invalid or expired verification token")
        user.email_verified = True
        return user

    def verification_token_for(self, user_id: str) -> Optional[str]:
        for token, owner in self.verification_tokens.items():
            if owner == user_id:
                return token
        return None
