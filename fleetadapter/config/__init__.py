"""
Configuration for fleetadapter.

- schemas: managed resource models handed over by the config layer
- settings: process settings from FLEETADAPTER_* environment variables
"""

from .schemas import (
    DiscoverySpec,
    MaestroTransportSpec,
    ManagedResource,
    NestedDiscovery,
    SelectorConfig,
    TransportSpec,
)
from .settings import AdapterSettings, load_settings

__all__ = [
    "AdapterSettings",
    "DiscoverySpec",
    "MaestroTransportSpec",
    "ManagedResource",
    "NestedDiscovery",
    "SelectorConfig",
    "TransportSpec",
    "load_settings",
]
