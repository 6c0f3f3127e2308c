"""
Backend-agnostic manifest handling.

- objects: accessors over resource dictionaries, manifest parsing
- generation: generation annotation, validation and the apply decision
- work: typed ManifestWork envelope view
- discovery: name/selector discovery and nested manifest lookup
"""

from .objects import (
    GroupVersionKind,
    Resource,
    describe,
    get_annotations,
    get_api_version,
    get_kind,
    get_labels,
    get_metadata,
    get_name,
    get_namespace,
    parse_manifest,
    to_json_bytes,
    validate_manifest_shape,
)
from .generation import (
    ApplyDecision,
    Operation,
    apply_recreate_policy,
    compare_generations,
    get_generation,
    get_latest_generation_from_list,
    validate_envelope_generation,
    validate_generation,
)
from .work import MANIFEST_WORK_GVK, ManifestWork
from .discovery import (
    ALL_NAMESPACES,
    Discovery,
    DiscoveryConfig,
    build_label_selector,
    discover_nested_manifest,
    matches_discovery_criteria,
    matches_labels,
    parse_label_selector,
)

__all__ = [
    "ALL_NAMESPACES",
    "MANIFEST_WORK_GVK",
    # Generation
    "ApplyDecision",
    # Discovery
    "Discovery",
    "DiscoveryConfig",
    # Objects
    "GroupVersionKind",
    "ManifestWork",
    "Operation",
    "Resource",
    "apply_recreate_policy",
    "build_label_selector",
    "compare_generations",
    "describe",
    "discover_nested_manifest",
    "get_annotations",
    "get_api_version",
    "get_generation",
    "get_kind",
    "get_labels",
    "get_latest_generation_from_list",
    "get_metadata",
    "get_name",
    "get_namespace",
    "matches_discovery_criteria",
    "matches_labels",
    "parse_label_selector",
    "parse_manifest",
    "to_json_bytes",
    "validate_envelope_generation",
    "validate_generation",
    "validate_manifest_shape",
]
