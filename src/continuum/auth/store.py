"""Durable per-audience credential storage.

Learn: the store holds one record per audience:

    {"customer": {"credentials": {...}, "user": {...}, "user_type": "client"},
     "admin":    {"credentials": {...}, "user": {...}, "user_type": "admin"}}

Every write replaces a whole audience record under a lock, and the file
backend swaps the file in with os.replace(), so a reader never observes
a half-written pair. Controllers never get the store itself — they get a
ScopedCredentials view bound to one audience, which makes cross-audience
reads impossible by construction.

Storage problems (missing dir, unreadable or corrupt file) read as
"no credentials" and are logged, never raised.
"""

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from continuum.auth.tokens import CredentialPair
from continuum.client.descriptor import Audience

logger = structlog.get_logger()


class MemoryBackend:
    """Process-local backend — tests and throwaway sessions."""

    def __init__(self):
        self._data: dict[str, dict] = {}

    def load(self) -> dict[str, dict]:
        return json.loads(json.dumps(self._data))

    def save(self, data: dict[str, dict]) -> None:
        self._data = json.loads(json.dumps(data))


class FileBackend:
    """JSON file backend, survives process restarts.

    The file is created with 0600 permissions since it holds bearer tokens.
    """

    def __init__(self, path: Path):
        self.path = Path(path).expanduser()

    def load(self) -> dict[str, dict]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            logger.warning("continuum.store_unreadable", path=str(self.path), error=str(e))
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("continuum.store_corrupt", path=str(self.path), error=str(e))
            return {}
        return data if isinstance(data, dict) else {}

    def save(self, data: dict[str, dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".credentials-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.chmod(tmp, 0o600)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise


class CredentialStore:
    """get / set / clear credential pairs, keyed by audience."""

    def __init__(self, backend=None):
        self.backend = backend or MemoryBackend()
        self._lock = threading.Lock()

    # ─── Credential pairs ─────────────────────────────────

    def get(self, audience: Audience) -> Optional[CredentialPair]:
        creds = self._record(audience).get("credentials")
        if not creds:
            return None
        try:
            return CredentialPair.model_validate(creds)
        except ValidationError as e:
            logger.warning(
                "continuum.store_corrupt", audience=audience.value, errors=e.error_count()
            )
            return None

    def set(self, audience: Audience, pair: CredentialPair) -> None:
        self._update(audience, credentials=pair.model_dump())

    def clear(self, audience: Audience) -> None:
        """Drop the pair *and* the cached profile for this audience."""
        with self._lock:
            data = self._load()
            if audience.value not in data:
                return
            del data[audience.value]
            self._save(data)
        logger.info("continuum.credentials_cleared", audience=audience.value)

    # ─── Cached profile ───────────────────────────────────

    def cached_user(self, audience: Audience) -> Optional[dict]:
        user = self._record(audience).get("user")
        return user if isinstance(user, dict) else None

    def user_type(self, audience: Audience) -> Optional[str]:
        user_type = self._record(audience).get("user_type")
        return user_type if isinstance(user_type, str) else None

    def cache_user(
        self,
        audience: Audience,
        user: Optional[dict],
        user_type: Optional[str] = None,
    ) -> None:
        changes: dict[str, Any] = {}
        if user is not None:
            changes["user"] = user
        if user_type is not None:
            changes["user_type"] = user_type
        if changes:
            self._update(audience, **changes)

    def scoped(self, audience: Audience) -> "ScopedCredentials":
        return ScopedCredentials(self, audience)

    # ─── Internals ────────────────────────────────────────

    def _record(self, audience: Audience) -> dict:
        with self._lock:
            record = self._load().get(audience.value)
        return record if isinstance(record, dict) else {}

    def _update(self, audience: Audience, **changes) -> None:
        with self._lock:
            data = self._load()
            record = data.get(audience.value)
            if not isinstance(record, dict):
                record = {}
            data[audience.value] = {**record, **changes}
            self._save(data)

    def _load(self) -> dict:
        return self.backend.load()

    def _save(self, data: dict) -> None:
        try:
            self.backend.save(data)
        except OSError as e:
            logger.warning("continuum.store_write_failed", error=str(e))


class ScopedCredentials:
    """One audience's slice of the store. The only handle controllers get."""

    def __init__(self, store: CredentialStore, audience: Audience):
        self._store = store
        self.audience = audience

    def get(self) -> Optional[CredentialPair]:
        return self._store.get(self.audience)

    def set(self, pair: CredentialPair) -> None:
        self._store.set(self.audience, pair)

    def clear(self) -> None:
        self._store.clear(self.audience)

    def cached_user(self) -> Optional[dict]:
        return self._store.cached_user(self.audience)

    def user_type(self) -> Optional[str]:
        return self._store.user_type(self.audience)

    def cache_user(self, user: Optional[dict], user_type: Optional[str] = None) -> None:
        self._store.cache_user(self.audience, user, user_type)
