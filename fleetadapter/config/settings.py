"""
Process settings for fleetadapter.

Read from FLEETADAPTER_* environment variables:

    FLEETADAPTER_KUBERNETES_ENABLED   true
    FLEETADAPTER_KUBECONFIG           (falls back to $KUBECONFIG, then in-cluster)
    FLEETADAPTER_MAESTRO_SERVER       https://maestro.example.com
    FLEETADAPTER_MAESTRO_SOURCE_ID    fleet-adapter
    FLEETADAPTER_MAESTRO_TOKEN / _TOKEN_FILE / _CA_FILE
    FLEETADAPTER_MAESTRO_CLIENT_CERT_FILE / _CLIENT_KEY_FILE
    FLEETADAPTER_MAESTRO_INSECURE     false
    FLEETADAPTER_REQUEST_TIMEOUT      30
    FLEETADAPTER_MAX_RETRIES          0
    FLEETADAPTER_DELETION_TIMEOUT     60
    FLEETADAPTER_RESOURCE_TIMEOUT     (unset: no per-resource deadline)
    FLEETADAPTER_MAX_CONCURRENCY      0 (unbounded)
    FLEETADAPTER_LOG_LEVEL            INFO
    FLEETADAPTER_LOG_JSON             false
"""

from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel, Field, SecretStr


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


class AdapterSettings(BaseModel):
    """
    Adapter settings model.

    Security:
        The broker token uses SecretStr to prevent accidental logging.
    """

    # Kubernetes
    kubernetes_enabled: bool = True
    kubeconfig: str | None = None

    # Maestro
    maestro_server: str = Field(default="", description="Maestro server address")
    maestro_source_id: str = ""
    maestro_token: SecretStr | None = None
    maestro_token_file: str | None = None
    maestro_ca_file: str | None = None
    maestro_client_cert_file: str | None = None
    maestro_client_key_file: str | None = None
    maestro_insecure: bool = False

    # Client behavior
    request_timeout: float = Field(30.0, gt=0)
    max_retries: int = Field(0, ge=0)
    deletion_timeout: float = Field(60.0, gt=0)

    # Executor
    resource_timeout: float | None = Field(None, gt=0)
    max_concurrency: int = Field(0, ge=0, description="0 means unbounded")

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    @property
    def maestro_enabled(self) -> bool:
        return bool(self.maestro_server)


@lru_cache()
def load_settings() -> AdapterSettings:
    """
    Get adapter settings from environment.

    Uses lru_cache for singleton pattern; call load_settings.cache_clear()
    after changing the environment.
    """
    resource_timeout = os.getenv("FLEETADAPTER_RESOURCE_TIMEOUT")
    return AdapterSettings(
        # Kubernetes
        kubernetes_enabled=_env_bool("FLEETADAPTER_KUBERNETES_ENABLED", "true"),
        kubeconfig=os.getenv("FLEETADAPTER_KUBECONFIG") or None,
        # Maestro
        maestro_server=os.getenv("FLEETADAPTER_MAESTRO_SERVER", ""),
        maestro_source_id=os.getenv("FLEETADAPTER_MAESTRO_SOURCE_ID", ""),
        maestro_token=os.getenv("FLEETADAPTER_MAESTRO_TOKEN") or None,
        maestro_token_file=os.getenv("FLEETADAPTER_MAESTRO_TOKEN_FILE") or None,
        maestro_ca_file=os.getenv("FLEETADAPTER_MAESTRO_CA_FILE") or None,
        maestro_client_cert_file=os.getenv("FLEETADAPTER_MAESTRO_CLIENT_CERT_FILE") or None,
        maestro_client_key_file=os.getenv("FLEETADAPTER_MAESTRO_CLIENT_KEY_FILE") or None,
        maestro_insecure=_env_bool("FLEETADAPTER_MAESTRO_INSECURE"),
        # Client behavior
        request_timeout=float(os.getenv("FLEETADAPTER_REQUEST_TIMEOUT", "30")),
        max_retries=int(os.getenv("FLEETADAPTER_MAX_RETRIES", "0")),
        deletion_timeout=float(os.getenv("FLEETADAPTER_DELETION_TIMEOUT", "60")),
        # Executor
        resource_timeout=float(resource_timeout) if resource_timeout else None,
        max_concurrency=int(os.getenv("FLEETADAPTER_MAX_CONCURRENCY", "0")),
        # Logging
        log_level=os.getenv("FLEETADAPTER_LOG_LEVEL", "INFO"),
        log_json=_env_bool("FLEETADAPTER_LOG_JSON"),
    )
