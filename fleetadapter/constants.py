"""
Wire constants shared by both transport backends.
"""

# Annotation carrying the render-time generation of a managed resource.
# Value is a positive base-10 integer encoded as a string, e.g. "5".
ANNOTATION_GENERATION = "hyperfleet.io/generation"

# OCM ManifestWork envelope
MANIFEST_WORK_GROUP = "work.open-cluster-management.io"
MANIFEST_WORK_VERSION = "v1"
MANIFEST_WORK_KIND = "ManifestWork"
MANIFEST_WORK_API_VERSION = f"{MANIFEST_WORK_GROUP}/{MANIFEST_WORK_VERSION}"

# Signed 64-bit bounds for generation parsing
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1
