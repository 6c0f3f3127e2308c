"""
Configuration Schemas for fleetadapter.

Pydantic models for managed resources as they arrive from the (external)
configuration layer, already rendered. Field aliases accept the camelCase
keys used in adapter config files:

    - name: cluster-namespace
      recreateOnChange: false
      transport:
        client: maestro
        maestro:
          targetCluster: cluster-abc
      manifest:
        apiVersion: work.open-cluster-management.io/v1
        kind: ManifestWork
        ...
      discovery:
        byName: cluster-abc-namespace
      nestedDiscoveries:
        - name: namespace
          discovery:
            bySelectors:
              labelSelector:
                hyperfleet.io/cluster-id: abc
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from fleetadapter.manifest.discovery import DiscoveryConfig
from fleetadapter.manifest.objects import GroupVersionKind, to_json_bytes
from fleetadapter.transports.protocol import (
    NO_ROUTING,
    ApplyOptions,
    BrokerRouting,
    TransportContext,
    TransportType,
)


class SelectorConfig(BaseModel):
    """Label selector given as a map."""

    model_config = ConfigDict(populate_by_name=True)

    label_selector: dict[str, str] = Field(default_factory=dict, alias="labelSelector")


class DiscoverySpec(BaseModel):
    """
    How to find a resource after it was applied.

    byName and bySelectors are mutually exclusive; that rule is enforced
    by the configuration layer before resources reach the adapter.
    """

    model_config = ConfigDict(populate_by_name=True)

    namespace: str = ""
    by_name: str = Field("", alias="byName")
    by_selectors: SelectorConfig | None = Field(None, alias="bySelectors")

    def to_discovery(self) -> DiscoveryConfig:
        labels = self.by_selectors.label_selector if self.by_selectors else {}
        return DiscoveryConfig(namespace=self.namespace, by_name=self.by_name, labels=labels)


class MaestroTransportSpec(BaseModel):
    """Broker addressing for a resource."""

    model_config = ConfigDict(populate_by_name=True)

    target_cluster: str = Field(..., alias="targetCluster", description="Consumer name")


class TransportSpec(BaseModel):
    """Which backend delivers a resource."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)

    client: TransportType = TransportType.KUBERNETES
    maestro: MaestroTransportSpec | None = None

    @model_validator(mode="after")
    def _maestro_needs_target(self) -> TransportSpec:
        if self.client is TransportType.MAESTRO and self.maestro is None:
            raise ValueError("maestro transport requires maestro.targetCluster")
        return self


class NestedDiscovery(BaseModel):
    """A named lookup for a manifest embedded in the discovered parent."""

    name: str
    discovery: DiscoverySpec


class ManagedResource(BaseModel):
    """
    One resource the adapter drives to its desired state.

    `manifest` is the fully rendered object: a Kubernetes resource for the
    kubernetes transport, a ManifestWork envelope for maestro.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, description="Stable identifier used in logs")
    manifest: dict[str, Any]
    recreate_on_change: bool = Field(False, alias="recreateOnChange")
    discovery: DiscoverySpec | None = None
    transport: TransportSpec | None = None
    nested_discoveries: list[NestedDiscovery] = Field(default_factory=list, alias="nestedDiscoveries")

    @property
    def transport_type(self) -> TransportType:
        if self.transport is None:
            return TransportType.KUBERNETES
        return self.transport.client

    @property
    def gvk(self) -> GroupVersionKind:
        return GroupVersionKind.of(self.manifest)

    def render_bytes(self) -> bytes:
        return to_json_bytes(self.manifest)

    def apply_options(self) -> ApplyOptions:
        return ApplyOptions(recreate_on_change=self.recreate_on_change)

    def routing_context(self) -> TransportContext:
        if self.transport_type is TransportType.MAESTRO and self.transport and self.transport.maestro:
            return BrokerRouting(consumer=self.transport.maestro.target_cluster)
        return NO_ROUTING
