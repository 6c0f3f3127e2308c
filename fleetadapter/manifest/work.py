"""
Typed view over the ManifestWork envelope.

A ManifestWork wraps an ordered list of inner manifests for delivery to a
named remote consumer through the broker:

    apiVersion: work.open-cluster-management.io/v1
    kind: ManifestWork
    metadata:
      name: cluster-abc-namespace
      annotations:
        hyperfleet.io/generation: "3"
    spec:
      workload:
        manifests:
          - apiVersion: v1
            kind: Namespace
            metadata: {...}

The envelope is stored as the raw dictionary the broker speaks, and the
inner manifests are exposed through `manifests`, which reports malformed
entries by index instead of skipping them.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from fleetadapter.constants import MANIFEST_WORK_API_VERSION, MANIFEST_WORK_KIND
from fleetadapter.errors import StructuralParseError
from fleetadapter.manifest.generation import get_generation
from fleetadapter.manifest.objects import (
    GroupVersionKind,
    Resource,
    get_annotations,
    get_kind,
    get_labels,
    get_name,
    get_namespace,
    parse_manifest,
)

MANIFEST_WORK_GVK = GroupVersionKind.from_api_version(MANIFEST_WORK_API_VERSION, MANIFEST_WORK_KIND)


@dataclass(frozen=True, slots=True)
class ManifestWork:
    """
    Immutable envelope addressed to a broker consumer.

    Construct with `ManifestWork.parse()` for rendered bytes or
    `ManifestWork.from_dict()` for an already-decoded object. The instance
    owns a private copy of the data.
    """

    raw: Resource

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ManifestWork:
        """
        Wrap a decoded ManifestWork.

        The broker often omits apiVersion/kind on responses, so they are
        filled in when absent.

        Raises:
            StructuralParseError: If the object is not a ManifestWork or has no name
        """
        if not isinstance(data, Mapping):
            raise StructuralParseError(
                f"ManifestWork must be an object, got {type(data).__name__}"
            )

        kind = get_kind(data)
        if kind and kind != MANIFEST_WORK_KIND:
            raise StructuralParseError(f"expected kind {MANIFEST_WORK_KIND}, got {kind!r}")
        if not get_name(data):
            raise StructuralParseError("ManifestWork must have metadata.name")

        raw = copy.deepcopy(dict(data))
        raw.setdefault("apiVersion", MANIFEST_WORK_API_VERSION)
        raw["kind"] = MANIFEST_WORK_KIND
        return cls(raw=raw)

    @classmethod
    def parse(cls, data: bytes | str) -> ManifestWork:
        """Parse rendered JSON or YAML bytes into a ManifestWork."""
        return cls.from_dict(parse_manifest(data))

    # =========================================================================
    # Metadata
    # =========================================================================

    @property
    def name(self) -> str:
        return get_name(self.raw)

    @property
    def namespace(self) -> str:
        return get_namespace(self.raw)

    @property
    def labels(self) -> dict[str, str]:
        return get_labels(self.raw)

    @property
    def annotations(self) -> dict[str, str]:
        return get_annotations(self.raw)

    @property
    def generation(self) -> int:
        """Tolerant generation read (0 when missing or invalid)."""
        return get_generation(self.raw)

    # =========================================================================
    # Workload
    # =========================================================================

    @property
    def manifests(self) -> list[Resource]:
        """
        Inner manifests, in workload order.

        Returns an empty list when spec.workload.manifests is absent.

        Raises:
            StructuralParseError: If the list or one of its entries is not
                object-shaped; the error carries the entry index
        """
        spec = self.raw.get("spec")
        if spec is None:
            return []
        if not isinstance(spec, Mapping):
            raise StructuralParseError(f"ManifestWork {self.name!r}: spec must be an object")

        workload = spec.get("workload")
        if workload is None:
            return []
        if not isinstance(workload, Mapping):
            raise StructuralParseError(
                f"ManifestWork {self.name!r}: spec.workload must be an object"
            )

        entries = workload.get("manifests")
        if entries is None:
            return []
        if not isinstance(entries, list):
            raise StructuralParseError(
                f"ManifestWork {self.name!r}: spec.workload.manifests must be a list"
            )

        manifests: list[Resource] = []
        for i, entry in enumerate(entries):
            if not isinstance(entry, Mapping):
                raise StructuralParseError(
                    f"{self.name!r} manifest[{i}]: unexpected type {type(entry).__name__}",
                    index=i,
                )
            manifests.append(copy.deepcopy(dict(entry)))
        return manifests

    # =========================================================================
    # Derivations
    # =========================================================================

    def with_namespace(self, namespace: str) -> ManifestWork:
        """Return a copy addressed to the given consumer namespace."""
        raw = copy.deepcopy(self.raw)
        metadata = raw.get("metadata")
        if not isinstance(metadata, dict):
            metadata = {}
            raw["metadata"] = metadata
        metadata["namespace"] = namespace
        return ManifestWork(raw=raw)

    def to_dict(self) -> Resource:
        return copy.deepcopy(self.raw)

    def merge_patch(self) -> dict[str, Any]:
        """
        JSON merge patch replacing labels, annotations and spec.

        Used for in-place updates of an existing envelope.
        """
        return {
            "metadata": {
                "labels": self.labels,
                "annotations": self.annotations,
            },
            "spec": copy.deepcopy(self.raw.get("spec") or {}),
        }
