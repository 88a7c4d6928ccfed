"""
Client configuration
"""
import sys
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Endpoints, timeouts and token lifetime for the filter service.

    Every field can be overridden from the environment with the ``FILTER_``
    prefix (``FILTER_API_BASE_URL``, ``FILTER_REQUEST_TIMEOUT`` ...) or from a
    local ``.env`` file.
    """

    model_config = SettingsConfigDict(env_prefix="FILTER_", env_file=".env", extra="ignore")

    # Backend that runs the style transfer
    api_base_url: str = "http://localhost:3000"
    # Auth service handing out public bearer tokens
    auth_base_url: str = "http://localhost:4000"

    # Local development server, replaces api_base_url when set
    dev_server_host: Optional[str] = None
    dev_server_port: int = 3000

    request_timeout: float = 120.0  # seconds, whole upload round trip
    token_timeout: float = 30.0

    # Provider tokens live 60 minutes, cache them for 50
    token_lifetime: float = 3600.0
    token_safety_margin: float = 600.0

    identity_token: Optional[str] = None
    push_token: Optional[str] = None
    platform: str = sys.platform

    device_id_path: Path = Path.home() / ".filter_client" / "device_id"
    log_level: str = "INFO"

    @property
    def base_url(self) -> str:
        if self.dev_server_host:
            return f"http://{self.dev_server_host}:{self.dev_server_port}"
        return self.api_base_url.rstrip("/")

    @property
    def generate_url(self) -> str:
        return f"{self.base_url}/generate"

    @property
    def register_token_url(self) -> str:
        return f"{self.base_url}/register-token"

    @property
    def public_token_url(self) -> str:
        return f"{self.auth_base_url.rstrip('/')}/auth/public-token"

    @property
    def token_ttl(self) -> float:
        """Seconds a fetched token is served from cache."""
        return max(self.token_lifetime - self.token_safety_margin, 0.0)


@lru_cache
def get_settings() -> ClientSettings:
    return ClientSettings()
