"""
fleetadapter Transport Layer.

Backend-agnostic apply/get/discover contract and the registry that maps a
transport type to its client.

Usage:
    from fleetadapter.transports import (
        ApplyOptions,
        BrokerRouting,
        TransportType,
        get_transport,
    )

    client = get_transport(TransportType.MAESTRO)
    result = await client.apply_resource(
        rendered,
        ApplyOptions(recreate_on_change=True),
        BrokerRouting(consumer="cluster-1"),
    )

Adding a backend:
    1. Implement the TransportClient protocol
    2. Add its TransportType value
    3. Register it at startup
"""

from .protocol import (
    NO_ROUTING,
    ApplyOptions,
    ApplyResult,
    BrokerRouting,
    NoRouting,
    TransportClient,
    TransportContext,
    TransportType,
)
from .registry import (
    TransportNotFoundError,
    TransportRegistry,
    get_transport,
    get_transport_registry,
    register_transport,
    reset_transport_registry,
)

__all__ = [
    "NO_ROUTING",
    "ApplyOptions",
    "ApplyResult",
    "BrokerRouting",
    "NoRouting",
    # Protocol
    "TransportClient",
    "TransportContext",
    "TransportNotFoundError",
    # Registry
    "TransportRegistry",
    "TransportType",
    "get_transport",
    "get_transport_registry",
    "register_transport",
    "reset_transport_registry",
]
