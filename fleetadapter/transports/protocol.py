"""
Transport Client Protocol for fleetadapter.

Defines the backend-agnostic interface for applying, fetching and
discovering resources. Two backends implement it:

- KubernetesClient: talks to a cluster API directly
- MaestroClient: wraps manifests in a ManifestWork envelope and hands it
  to the broker for delivery to a remote consumer

Every implementation performs generation-aware apply:
- create if the resource doesn't exist
- update if the generation changed
- skip if the generation matches (no API call at all)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol, Union, runtime_checkable

from fleetadapter.manifest.generation import Operation

if TYPE_CHECKING:
    from fleetadapter.manifest.discovery import Discovery
    from fleetadapter.manifest.objects import GroupVersionKind, Resource


class TransportType(str, Enum):
    """Delivery backend selected per managed resource."""

    KUBERNETES = "kubernetes"
    MAESTRO = "maestro"


@dataclass(frozen=True, slots=True)
class ApplyOptions:
    """
    Per-apply behavior switches.

    Attributes:
        recreate_on_change: Delete and create instead of updating in place
            when the generation changed
    """

    recreate_on_change: bool = False


@dataclass(frozen=True, slots=True)
class ApplyResult:
    """
    Outcome of an apply call.

    Attributes:
        operation: Operation that was performed
        reason: Why that operation was chosen
    """

    operation: Operation
    reason: str


# =============================================================================
# Routing context
# =============================================================================


@dataclass(frozen=True, slots=True)
class NoRouting:
    """Routing context for backends that need no addressing (direct API)."""


@dataclass(frozen=True, slots=True)
class BrokerRouting:
    """
    Routing context for broker delivery.

    Attributes:
        consumer: Name of the remote consumer (target cluster) the
            envelope is addressed to
    """

    consumer: str


TransportContext = Union[NoRouting, BrokerRouting]

NO_ROUTING = NoRouting()


# =============================================================================
# Protocol
# =============================================================================


@runtime_checkable
class TransportClient(Protocol):
    """
    Uniform apply/get/discover over a delivery backend.

    Example usage:
        client = get_transport(TransportType.KUBERNETES)
        result = await client.apply_resource(rendered, ApplyOptions(), NO_ROUTING)
        if result.operation is Operation.SKIP:
            ...

    Cancelling the awaiting task aborts any in-flight backend call.
    """

    @property
    def transport_type(self) -> TransportType:
        """Registry key of this backend."""
        ...

    async def apply_resource(
        self,
        manifest: bytes,
        options: ApplyOptions | None = None,
        target: TransportContext | None = None,
    ) -> ApplyResult:
        """
        Apply a rendered manifest.

        The backend parses the bytes into its native shape, looks up the
        existing counterpart, decides via generation comparison and
        executes the decision.

        Raises:
            StructuralParseError: If the bytes are not a valid object
            InvalidGenerationError: If the generation annotation is invalid
            TransportError: If a backend call fails
        """
        ...

    async def get_resource(
        self,
        gvk: GroupVersionKind,
        namespace: str,
        name: str,
        target: TransportContext | None = None,
    ) -> Resource:
        """
        Fetch one resource.

        Raises:
            NotFoundError: If the resource does not exist
        """
        ...

    async def discover_resources(
        self,
        gvk: GroupVersionKind,
        discovery: Discovery,
        target: TransportContext | None = None,
    ) -> list[Resource]:
        """
        Fetch by name in single-resource mode, otherwise list by selector.
        """
        ...
