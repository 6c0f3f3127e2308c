"""
fleetadapter - generation-aware reconciliation of Kubernetes-style resources.

Drives rendered resources to their desired state over two delivery
backends:

- **Kubernetes**: applies resources straight to a cluster API
- **Maestro**: wraps resources in a ManifestWork envelope and hands it to
  the broker for delivery to a remote consumer cluster

Every resource carries a `hyperfleet.io/generation` annotation; the
adapter creates what is missing, updates (or recreates) what changed
generation, and skips the rest without touching the backend.

Quick Start:
    >>> from fleetadapter import ManagedResource, ResourceExecutor
    >>> from fleetadapter.clients import create_transport_registry
    >>> from fleetadapter.config import load_settings
    >>>
    >>> registry = create_transport_registry(load_settings())
    >>> executor = ResourceExecutor(registry)
    >>> results = await executor.execute_all([ManagedResource(**spec) for spec in specs])
"""

__version__ = "0.1.0"

from fleetadapter.config.schemas import ManagedResource
from fleetadapter.executor import ResourceExecutor, ResourceResult, ResourceStatus
from fleetadapter.manifest.discovery import DiscoveryConfig
from fleetadapter.manifest.generation import ApplyDecision, Operation, compare_generations
from fleetadapter.transports.protocol import (
    ApplyOptions,
    ApplyResult,
    BrokerRouting,
    NoRouting,
    TransportClient,
    TransportType,
)

__all__ = [
    "__version__",
    # Decision
    "ApplyDecision",
    "ApplyOptions",
    "ApplyResult",
    "BrokerRouting",
    "DiscoveryConfig",
    # Execution
    "ManagedResource",
    "NoRouting",
    "Operation",
    "ResourceExecutor",
    "ResourceResult",
    "ResourceStatus",
    # Transport
    "TransportClient",
    "TransportType",
    "compare_generations",
]
