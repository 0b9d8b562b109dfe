"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with CONTINUUM_ prefix.
No YAML files, no file-based config — just env vars (12-factor app style).

Learn: the two audiences (customer, admin) get fully separate settings —
base URL, login entry point, home entry point. Nothing here is shared
between them except the transport timeout and the credentials file, which
is itself namespaced per audience (see continuum.auth.store).
"""

from pathlib import Path
from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings

from continuum.client.descriptor import Audience


class Settings(BaseSettings):
    """All client and reference-backend configuration. Set via CONTINUUM_* env vars."""

    # Backend audiences
    customer_api_url: str = "http://localhost:3001/api"
    admin_api_url: str = "http://localhost:3002/api"
    request_timeout_seconds: float = 30.0

    # Where the hosting app lands after a terminal auth failure / logout
    customer_login_url: str = "/customer-services/login"
    admin_login_url: str = "/admin-server/login"
    customer_home_url: str = "/customer-services"
    admin_home_url: str = "/admin-server"

    # Durable credential storage
    credentials_path: Path = Path.home() / ".continuum" / "credentials.json"

    # Tenant selected at startup (normally chosen at runtime)
    default_tenant: Optional[str] = None

    # A 401 on an already-replayed request: wipe + redirect, or just raise
    wipe_on_refresh_exhausted: bool = False

    # Reference backend (continuum.backend)
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 15
    refresh_token_expire_days: int = 30
    environment: str = "development"
    host: str = "127.0.0.1"
    port: int = 3001

    model_config = {"env_prefix": "CONTINUUM_"}

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Ensure sensitive defaults are changed in non-development environments."""
        if (
            self.environment != "development"
            and self.jwt_secret == "change-me-in-production"
        ):
            raise ValueError(
                "CONTINUUM_JWT_SECRET must be set to a secure value in "
                "non-development environments. Generate one with: "
                'python -c "import secrets; print(secrets.token_urlsafe(32))"'
            )
        return self

    def api_url(self, audience: Audience) -> str:
        if audience is Audience.ADMIN:
            return self.admin_api_url
        return self.customer_api_url

    def login_url(self, audience: Audience) -> str:
        if audience is Audience.ADMIN:
            return self.admin_login_url
        return self.customer_login_url

    def home_url(self, audience: Audience) -> str:
        if audience is Audience.ADMIN:
            return self.admin_home_url
        return self.customer_home_url


# Singleton — import this everywhere
settings = Settings()
