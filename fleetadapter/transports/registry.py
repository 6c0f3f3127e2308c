"""
Transport Registry for fleetadapter.

Global registry mapping a TransportType to its client. Clients are
registered once at startup (see clients.factory) and looked up per
managed resource by the executor.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fleetadapter.errors import ConfigurationError

from .protocol import TransportType

if TYPE_CHECKING:
    from .protocol import TransportClient

logger = logging.getLogger(__name__)


class TransportNotFoundError(ConfigurationError):
    """
    Raised when no client is registered for a transport type.

    This usually means a resource selects a backend that was never
    configured.
    """


class TransportRegistry:
    """
    Registry for transport clients.

    Example:
        registry = TransportRegistry()
        registry.register(KubernetesClient(config))
        client = registry.get(TransportType.KUBERNETES)
    """

    def __init__(self) -> None:
        self._clients: dict[TransportType, "TransportClient"] = {}

    def register(self, client: "TransportClient") -> None:
        """
        Register a transport client.

        An existing client for the same type is replaced.
        """
        key = TransportType(client.transport_type)
        if key in self._clients:
            logger.warning(f"Replacing existing transport client: {key.value}")
        self._clients[key] = client
        logger.info(f"Registered transport client: {key.value}")

    def get(self, transport_type: TransportType | str) -> "TransportClient":
        """
        Get the client for a transport type.

        Raises:
            TransportNotFoundError: If nothing is registered for it
        """
        try:
            key = TransportType(transport_type)
        except ValueError as e:
            raise TransportNotFoundError(f"Unknown transport type: {transport_type!r}") from e

        client = self._clients.get(key)
        if client is None:
            available = ", ".join(t.value for t in self._clients) or "(none)"
            raise TransportNotFoundError(
                f"No transport client registered for: {key.value}. Available: {available}"
            )
        return client

    def has(self, transport_type: TransportType | str) -> bool:
        try:
            return TransportType(transport_type) in self._clients
        except ValueError:
            return False

    @property
    def registered_types(self) -> list[TransportType]:
        return list(self._clients.keys())

    def unregister(self, transport_type: TransportType | str) -> bool:
        """Remove a client. Returns False if none was registered."""
        key = TransportType(transport_type)
        if key in self._clients:
            del self._clients[key]
            logger.info(f"Unregistered transport client: {key.value}")
            return True
        return False

    def clear(self) -> None:
        self._clients.clear()
        logger.debug("Cleared all transport clients")


# Global registry instance
_registry: TransportRegistry | None = None


def get_transport_registry() -> TransportRegistry:
    """Get the global registry, creating it on first access."""
    global _registry
    if _registry is None:
        _registry = TransportRegistry()
    return _registry


def get_transport(transport_type: TransportType | str) -> "TransportClient":
    """Look up a client in the global registry."""
    return get_transport_registry().get(transport_type)


def register_transport(client: "TransportClient") -> None:
    """Register a client in the global registry."""
    get_transport_registry().register(client)


def reset_transport_registry() -> None:
    """Reset the global registry (for testing)."""
    global _registry
    if _registry is not None:
        _registry.clear()
    _registry = None
