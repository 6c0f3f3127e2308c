"""
Direct Kubernetes API backend.

Usage:
    from fleetadapter.clients.kubernetes import KubernetesClient, KubernetesConfig

    client = KubernetesClient(KubernetesConfig.auto())
"""

from fleetadapter.clients.kubernetes.client import KubernetesClient
from fleetadapter.clients.kubernetes.config import KubernetesConfig
from fleetadapter.clients.kubernetes.paths import APIResource, ResourcePathResolver

__all__ = [
    "APIResource",
    "KubernetesClient",
    "KubernetesConfig",
    "ResourcePathResolver",
]
