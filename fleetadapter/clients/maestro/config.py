"""
Connection settings for the Maestro broker backend.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

from fleetadapter.clients.base import ClientConfig
from fleetadapter.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class MaestroConfig(ClientConfig):
    """
    Configuration for MaestroClient.

    base_url is the Maestro server address. Plain http is only accepted
    together with insecure=True.
    """

    # Required
    source_id: str = ""

    # Authentication
    token: str | None = None
    token_file: str | None = None
    client_cert_file: str | None = None
    client_key_file: str | None = None

    # Connection
    timeout: float = 10.0

    def __post_init__(self):
        """Validate configuration."""
        if not self.base_url:
            raise ConfigurationError("maestro server address is required")

        scheme = urlparse(self.base_url).scheme
        if scheme not in ("http", "https"):
            raise ConfigurationError(
                f"maestro server address must use http:// or https:// scheme "
                f"(got scheme {scheme!r} in {self.base_url!r})"
            )
        if not self.insecure and scheme != "https":
            raise ConfigurationError(
                f"maestro server address must use https:// when insecure is false (got {scheme!r}); "
                "use an https:// URL or set insecure=True for http:// connections"
            )

        if not self.source_id:
            raise ConfigurationError("maestro source_id is required")
        if bool(self.client_cert_file) != bool(self.client_key_file):
            raise ConfigurationError("client certificate and key must be set together")

    def resolve_token(self) -> str | None:
        """
        Inline token, else the contents of token_file.

        Raises:
            ConfigurationError: If the token file is unreadable or blank
        """
        if self.token:
            return self.token
        if not self.token_file:
            return None

        try:
            token = Path(self.token_file).read_text().strip()
        except OSError as e:
            raise ConfigurationError(f"failed to read token file {self.token_file}: {e}") from e
        if not token:
            raise ConfigurationError(
                f"token file {self.token_file} is empty or contains only whitespace"
            )
        return token
