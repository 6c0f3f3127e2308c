"""
Discovery - how to locate an existing counterpart of a desired resource.

A discovery either names one resource exactly (single-resource mode) or
describes a label set to search for. Labels are kept as a map inside the
adapter and only flattened to the "k=v,k=v" selector string at the
backend boundary.

Example:
    discovery = DiscoveryConfig(namespace="default", labels={"app": "api"})
    discovery.get_label_selector()  # "app=api"

    nested = discover_nested_manifest(work_dict, discovery)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from fleetadapter.errors import StructuralParseError
from fleetadapter.manifest.objects import Resource, get_labels, get_name, get_namespace
from fleetadapter.manifest.work import ManifestWork

logger = logging.getLogger(__name__)

ALL_NAMESPACES = "*"


@runtime_checkable
class Discovery(Protocol):
    """
    Capability contract for locating resources.

    An empty namespace means cluster-scoped or all namespaces. An empty
    name means selector-based discovery.
    """

    def get_namespace(self) -> str: ...

    def get_name(self) -> str: ...

    def get_label_selector(self) -> str: ...

    def is_single_resource(self) -> bool: ...


@dataclass(frozen=True, slots=True)
class DiscoveryConfig:
    """
    Default Discovery implementation.

    Attributes:
        namespace: Namespace to search ("" or "*" for all)
        by_name: Exact resource name; enables single-resource mode
        labels: Label map for selector-based discovery
    """

    namespace: str = ""
    by_name: str = ""
    labels: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.namespace == ALL_NAMESPACES:
            object.__setattr__(self, "namespace", "")
        object.__setattr__(self, "labels", dict(self.labels or {}))

    @classmethod
    def from_selector(cls, namespace: str = "", selector: str = "", by_name: str = "") -> DiscoveryConfig:
        """Build from a wire selector string such as "app=api,env=prod"."""
        return cls(namespace=namespace, by_name=by_name, labels=parse_label_selector(selector))

    def get_namespace(self) -> str:
        return self.namespace

    def get_name(self) -> str:
        return self.by_name

    def get_label_selector(self) -> str:
        return build_label_selector(self.labels)

    def is_single_resource(self) -> bool:
        return self.by_name != ""


# =============================================================================
# Selector helpers
# =============================================================================


def build_label_selector(labels: Mapping[str, str] | None) -> str:
    """
    Flatten a label map to a selector string.

    Keys are sorted so the same label set always yields the same string:
        {"env": "prod", "app": "x"} -> "app=x,env=prod"
    """
    if not labels:
        return ""
    return ",".join(f"{key}={labels[key]}" for key in sorted(labels))


def _selector_pairs(selector: str) -> list[tuple[str, str]]:
    pairs = []
    for pair in selector.split(","):
        key, sep, value = pair.partition("=")
        if not sep:
            continue
        pairs.append((key, value))
    return pairs


def parse_label_selector(selector: str | None) -> dict[str, str]:
    """Inverse of build_label_selector. Pairs without "=" are skipped."""
    if not selector:
        return {}
    return dict(_selector_pairs(selector))


def matches_labels(obj: Mapping[str, Any], selector: str) -> bool:
    """
    Check an object's labels against a selector string.

    An empty selector matches everything. Every well-formed pair must be
    present and equal; pairs without "=" are ignored.
    """
    if not selector:
        return True

    labels = get_labels(obj)
    if not labels:
        return False

    return all(labels.get(key) == value for key, value in _selector_pairs(selector))


def matches_discovery_criteria(obj: Mapping[str, Any], discovery: Discovery) -> bool:
    """
    Check a resource against namespace, then name or labels.

    A discovery with neither a name nor a selector matches nothing.
    """
    namespace = discovery.get_namespace()
    if namespace and get_namespace(obj) != namespace:
        return False

    if discovery.is_single_resource():
        return get_name(obj) == discovery.get_name()

    selector = discovery.get_label_selector()
    if not selector:
        return False
    return matches_labels(obj, selector)


# =============================================================================
# Nested discovery
# =============================================================================


def discover_nested_manifest(
    parent: Mapping[str, Any] | ManifestWork | None,
    discovery: Discovery | None,
) -> list[Resource]:
    """
    Find manifests embedded in an envelope that match a discovery.

    The parent is expected to carry its manifests at
    spec.workload.manifests. Matches are returned in workload order.

    Returns:
        Matching inner manifests; empty when the parent, the discovery or
        the embedded list is absent

    Raises:
        StructuralParseError: If an embedded entry is not an object; the
            error carries its index
    """
    if parent is None or discovery is None:
        return []

    if isinstance(parent, ManifestWork):
        work = parent
    else:
        if not isinstance(parent, Mapping):
            raise StructuralParseError(f"parent must be an object, got {type(parent).__name__}")
        work = ManifestWork(raw=dict(parent))

    matches = [m for m in work.manifests if matches_discovery_criteria(m, discovery)]
    logger.debug(
        f"Nested discovery in {work.name!r}: {len(matches)} match(es) "
        f"(name={discovery.get_name()!r}, selector={discovery.get_label_selector()!r})"
    )
    return matches
