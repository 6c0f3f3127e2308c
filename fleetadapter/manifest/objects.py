"""
Accessors for resource-shaped objects.

Resources flow through fleetadapter as plain dictionaries in Kubernetes
object shape:

    {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": ..., "namespace": ..., "labels": {...}, "annotations": {...}},
        "spec": {...},
        "status": {...},
    }

The helpers here read that shape tolerantly (missing sections read as empty)
and parse rendered bytes into it.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import yaml

from fleetadapter.errors import StructuralParseError

Resource = dict[str, Any]


# =============================================================================
# Group / Version / Kind
# =============================================================================


@dataclass(frozen=True, slots=True)
class GroupVersionKind:
    """
    Identifies a resource type on the cluster API.

    The core group is represented by an empty group string, so
    "v1"/"ConfigMap" has group "" and version "v1".
    """

    group: str
    version: str
    kind: str

    @classmethod
    def from_api_version(cls, api_version: str, kind: str) -> GroupVersionKind:
        """
        Build a GVK from an apiVersion string and a kind.

        Raises:
            StructuralParseError: If apiVersion is not "version" or "group/version"
        """
        if not api_version or not kind:
            raise StructuralParseError(
                f"apiVersion and kind are required (got apiVersion={api_version!r}, kind={kind!r})"
            )
        parts = api_version.split("/")
        if len(parts) == 1:
            return cls(group="", version=parts[0], kind=kind)
        if len(parts) == 2 and parts[0] and parts[1]:
            return cls(group=parts[0], version=parts[1], kind=kind)
        raise StructuralParseError(f"unexpected apiVersion {api_version!r}")

    @classmethod
    def of(cls, obj: Mapping[str, Any]) -> GroupVersionKind:
        """Extract the GVK of a resource object."""
        return cls.from_api_version(get_api_version(obj), get_kind(obj))

    @property
    def api_version(self) -> str:
        if not self.group:
            return self.version
        return f"{self.group}/{self.version}"

    @property
    def is_core(self) -> bool:
        return self.group == ""

    def __str__(self) -> str:
        return f"{self.api_version}, Kind={self.kind}"


# =============================================================================
# Accessors
# =============================================================================


def get_metadata(obj: Mapping[str, Any] | None) -> Mapping[str, Any]:
    """Return the metadata section, or an empty mapping."""
    if not isinstance(obj, Mapping):
        return {}
    metadata = obj.get("metadata")
    return metadata if isinstance(metadata, Mapping) else {}


def get_name(obj: Mapping[str, Any] | None) -> str:
    return str(get_metadata(obj).get("name") or "")


def get_namespace(obj: Mapping[str, Any] | None) -> str:
    return str(get_metadata(obj).get("namespace") or "")


def get_labels(obj: Mapping[str, Any] | None) -> dict[str, str]:
    labels = get_metadata(obj).get("labels")
    if not isinstance(labels, Mapping):
        return {}
    return {str(k): str(v) for k, v in labels.items()}


def get_annotations(obj: Mapping[str, Any] | None) -> dict[str, str]:
    annotations = get_metadata(obj).get("annotations")
    if not isinstance(annotations, Mapping):
        return {}
    return {str(k): "" if v is None else str(v) for k, v in annotations.items()}


def get_kind(obj: Mapping[str, Any] | None) -> str:
    if not isinstance(obj, Mapping):
        return ""
    return str(obj.get("kind") or "")


def get_api_version(obj: Mapping[str, Any] | None) -> str:
    if not isinstance(obj, Mapping):
        return ""
    return str(obj.get("apiVersion") or "")


def describe(obj: Mapping[str, Any] | None) -> str:
    """Short "Kind/name" label for log lines and error messages."""
    return f"{get_kind(obj)}/{get_name(obj)}"


# =============================================================================
# Parsing
# =============================================================================


def parse_manifest(data: bytes | str) -> Resource:
    """
    Parse rendered JSON or YAML into a resource object.

    JSON is tried first; YAML is the fallback.

    Raises:
        StructuralParseError: If the input is empty, unparsable, or not a mapping
    """
    if isinstance(data, bytes):
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise StructuralParseError(f"manifest is not valid UTF-8: {e}") from e
    else:
        text = data

    if not text.strip():
        raise StructuralParseError("manifest bytes cannot be empty")

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        try:
            parsed = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise StructuralParseError(f"failed to parse manifest: {e}") from e

    if not isinstance(parsed, dict):
        raise StructuralParseError(
            f"manifest must be an object, got {type(parsed).__name__}"
        )
    return parsed


def to_json_bytes(obj: Mapping[str, Any]) -> bytes:
    """Serialize a resource for transport."""
    return json.dumps(obj, separators=(",", ":"), default=str).encode("utf-8")


def validate_manifest_shape(obj: Mapping[str, Any]) -> None:
    """
    Check the identity fields every applied manifest needs.

    Raises:
        StructuralParseError: If apiVersion, kind, or metadata.name is missing
    """
    missing = [
        field_name
        for field_name, value in (
            ("apiVersion", get_api_version(obj)),
            ("kind", get_kind(obj)),
            ("metadata.name", get_name(obj)),
        )
        if not value
    ]
    if missing:
        raise StructuralParseError(f"manifest is missing required fields: {', '.join(missing)}")
