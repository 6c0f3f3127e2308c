"""
Connection settings for the direct Kubernetes backend.

Resolution order used by KubernetesConfig.auto():
    1. An explicit kubeconfig path
    2. The KUBECONFIG environment variable
    3. The in-cluster service account
"""

from __future__ import annotations

import base64
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from fleetadapter.clients.base import ClientConfig
from fleetadapter.errors import ConfigurationError

logger = logging.getLogger(__name__)

ENV_KUBECONFIG = "KUBECONFIG"

SERVICE_ACCOUNT_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")


@dataclass(frozen=True, slots=True)
class KubernetesConfig(ClientConfig):
    """Configuration for KubernetesClient."""

    # Authentication
    token: str | None = None
    client_cert_file: str | None = None
    client_key_file: str | None = None

    # PEM bundle inlined in a kubeconfig (certificate-authority-data)
    ca_data: str | None = None

    def __post_init__(self):
        """Validate configuration."""
        if not self.base_url:
            raise ConfigurationError("Kubernetes API server URL is required")
        if not self.base_url.startswith(("http://", "https://")):
            raise ConfigurationError(
                f"Kubernetes API server URL must use http or https: {self.base_url}"
            )
        if bool(self.client_cert_file) != bool(self.client_key_file):
            raise ConfigurationError("client certificate and key must be set together")

    # =========================================================================
    # Loaders
    # =========================================================================

    @classmethod
    def from_kubeconfig(cls, path: str | os.PathLike, **overrides: Any) -> KubernetesConfig:
        """
        Load the current context of a kubeconfig file.

        Supports token and token-file users, client certificate files,
        and certificate-authority / certificate-authority-data clusters.

        Raises:
            ConfigurationError: If the file is unreadable or the current
                context cannot be resolved
        """
        try:
            raw = yaml.safe_load(Path(path).read_text())
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"failed to load kubeconfig from {path}: {e}") from e

        if not isinstance(raw, dict):
            raise ConfigurationError(f"kubeconfig {path} is not a mapping")

        context_name = raw.get("current-context")
        if not context_name:
            raise ConfigurationError(f"kubeconfig {path} has no current-context")

        context = _named(raw.get("contexts"), context_name, "context", path)
        cluster = _named(raw.get("clusters"), context.get("cluster"), "cluster", path)
        user = _named(raw.get("users"), context.get("user"), "user", path, required=False)

        server = cluster.get("server")
        if not server:
            raise ConfigurationError(f"cluster {context.get('cluster')!r} in {path} has no server")

        base_dir = Path(path).parent
        token = user.get("token")
        if not token and user.get("tokenFile"):
            token_file = _resolve(base_dir, user["tokenFile"])
            try:
                token = token_file.read_text().strip()
            except OSError as e:
                raise ConfigurationError(f"failed to read tokenFile {token_file}: {e}") from e

        ca_data = None
        if cluster.get("certificate-authority-data"):
            ca_data = base64.b64decode(cluster["certificate-authority-data"]).decode("utf-8")

        values: dict[str, Any] = {
            "base_url": server,
            "token": token,
            "ca_file": _optional_path(base_dir, cluster.get("certificate-authority")),
            "ca_data": ca_data,
            "insecure": bool(cluster.get("insecure-skip-tls-verify", False)),
            "client_cert_file": _optional_path(base_dir, user.get("client-certificate")),
            "client_key_file": _optional_path(base_dir, user.get("client-key")),
        }
        values.update(overrides)

        logger.info(f"[kubernetes] Using kubeconfig from: {path} (context {context_name!r})")
        return cls(**values)

    @classmethod
    def in_cluster(cls, **overrides: Any) -> KubernetesConfig:
        """
        Build a config from the pod's service account.

        Raises:
            ConfigurationError: If not running inside a cluster
        """
        host = os.environ.get("KUBERNETES_SERVICE_HOST")
        port = os.environ.get("KUBERNETES_SERVICE_PORT", "443")
        token_path = SERVICE_ACCOUNT_DIR / "token"

        if not host or not token_path.exists():
            raise ConfigurationError(
                "failed to create in-cluster config: not running inside a cluster "
                "and no kubeconfig given"
            )

        if ":" in host:
            host = f"[{host}]"

        ca_path = SERVICE_ACCOUNT_DIR / "ca.crt"
        values: dict[str, Any] = {
            "base_url": f"https://{host}:{port}",
            "token": token_path.read_text().strip(),
            "ca_file": str(ca_path) if ca_path.exists() else None,
        }
        values.update(overrides)

        logger.info("[kubernetes] Using in-cluster configuration (ServiceAccount)")
        return cls(**values)

    @classmethod
    def auto(cls, path: str | os.PathLike | None = None, **overrides: Any) -> KubernetesConfig:
        """Explicit path, then $KUBECONFIG, then in-cluster."""
        kubeconfig = path or os.environ.get(ENV_KUBECONFIG)
        if kubeconfig:
            return cls.from_kubeconfig(kubeconfig, **overrides)
        return cls.in_cluster(**overrides)


# =============================================================================
# Helpers
# =============================================================================


def _named(
    entries: Any,
    name: str | None,
    what: str,
    path: str | os.PathLike,
    *,
    required: bool = True,
) -> dict[str, Any]:
    for entry in entries or []:
        if isinstance(entry, dict) and entry.get("name") == name:
            body = entry.get(what)
            return body if isinstance(body, dict) else {}
    if required:
        raise ConfigurationError(f"{what} {name!r} not found in kubeconfig {path}")
    return {}


def _resolve(base_dir: Path, value: str) -> Path:
    candidate = Path(value).expanduser()
    return candidate if candidate.is_absolute() else base_dir / candidate


def _optional_path(base_dir: Path, value: str | None) -> str | None:
    if not value:
        return None
    return str(_resolve(base_dir, value))
