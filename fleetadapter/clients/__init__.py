"""
Backend clients for fleetadapter.

Both clients implement the TransportClient protocol:

- KubernetesClient: direct cluster API
- MaestroClient: ManifestWork delivery through the Maestro broker
"""

from fleetadapter.clients.base import APIClient, ClientConfig
from fleetadapter.clients.factory import (
    create_kubernetes_client,
    create_maestro_client,
    create_transport_registry,
)
from fleetadapter.clients.kubernetes import KubernetesClient, KubernetesConfig
from fleetadapter.clients.maestro import MaestroClient, MaestroConfig

__all__ = [
    "APIClient",
    "ClientConfig",
    "KubernetesClient",
    "KubernetesConfig",
    "MaestroClient",
    "MaestroConfig",
    "create_kubernetes_client",
    "create_maestro_client",
    "create_transport_registry",
]
