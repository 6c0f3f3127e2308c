"""
Generation-based change detection.

Every managed resource carries its render-time generation in the
`hyperfleet.io/generation` annotation. This module reads it, validates it,
and turns a (new, existing, exists) triple into an apply decision.

Two reads are deliberately different:

- get_generation() is tolerant and returns 0 for anything unusable. It is
  only used to decide what to do.
- validate_generation() is strict and raises. It guards admission of a
  candidate so template mistakes surface before anything is applied.

Decision logic (compare_generations):
    not exists             -> create
    exists, same gen       -> skip
    exists, different gen  -> update  (either direction)

Recreate is never produced by the comparison itself; adapters apply
apply_recreate_policy() afterwards.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Any

from fleetadapter.constants import ANNOTATION_GENERATION, INT64_MAX, INT64_MIN
from fleetadapter.errors import InvalidGenerationError
from fleetadapter.manifest.objects import Resource, get_kind, get_metadata, get_name

if TYPE_CHECKING:
    from fleetadapter.manifest.work import ManifestWork
    from fleetadapter.transports.protocol import ApplyOptions

_INTEGER = re.compile(r"[+-]?[0-9]+")


# =============================================================================
# Decision types
# =============================================================================


class Operation(str, Enum):
    """Operation to perform on a resource."""

    CREATE = "create"
    UPDATE = "update"
    RECREATE = "recreate"
    SKIP = "skip"


@dataclass(frozen=True, slots=True)
class ApplyDecision:
    """
    Outcome of comparing a candidate against its existing counterpart.

    Attributes:
        operation: Recommended operation
        reason: Human-readable explanation
        new_generation: Generation of the candidate
        existing_generation: Generation of the existing resource (0 if none)
    """

    operation: Operation
    reason: str
    new_generation: int
    existing_generation: int


# =============================================================================
# Reading
# =============================================================================


def _parse_int64(value: str) -> int | None:
    if not _INTEGER.fullmatch(value):
        return None
    parsed = int(value)
    if parsed < INT64_MIN or parsed > INT64_MAX:
        return None
    return parsed


def _annotation_value(obj: Mapping[str, Any] | None) -> str | None:
    annotations = get_metadata(obj).get("annotations")
    if not isinstance(annotations, Mapping):
        return None
    value = annotations.get(ANNOTATION_GENERATION)
    if value is None:
        return None
    return str(value)


def get_generation(obj: Mapping[str, Any] | None) -> int:
    """
    Read the generation annotation of a resource.

    Returns 0 when the object, its metadata, or the annotation is missing,
    empty, or not a base-10 64-bit integer. Never raises.
    """
    value = _annotation_value(obj)
    if not value:
        return 0
    parsed = _parse_int64(value)
    return 0 if parsed is None else parsed


# =============================================================================
# Validation
# =============================================================================


def validate_generation(obj: Mapping[str, Any] | None) -> None:
    """
    Require a positive generation annotation on a resource.

    Raises:
        InvalidGenerationError: If the annotation is missing, empty,
            non-numeric, or <= 0
    """
    if obj is None:
        raise InvalidGenerationError("object cannot be None")

    value = _annotation_value(obj)
    if value is None:
        raise InvalidGenerationError(f"missing {ANNOTATION_GENERATION} annotation")
    if value == "":
        raise InvalidGenerationError(f"{ANNOTATION_GENERATION} annotation is empty")

    parsed = _parse_int64(value)
    if parsed is None:
        raise InvalidGenerationError(
            f"invalid {ANNOTATION_GENERATION} annotation value {value!r}"
        )
    if parsed <= 0:
        raise InvalidGenerationError(
            f"{ANNOTATION_GENERATION} annotation must be > 0, got {parsed}"
        )


def validate_envelope_generation(work: ManifestWork | None) -> None:
    """
    Require valid generations on a ManifestWork and on every inner manifest.

    The first failure aborts validation. Inner failures name the manifest
    index and its kind/name.

    Raises:
        InvalidGenerationError: On any missing or invalid generation
        StructuralParseError: If an inner manifest is not an object
    """
    if work is None:
        raise InvalidGenerationError("work cannot be None")

    try:
        validate_generation(work.raw)
    except InvalidGenerationError as e:
        raise InvalidGenerationError(f"ManifestWork {work.name!r}: {e}") from e

    for i, inner in enumerate(work.manifests):
        try:
            validate_generation(inner)
        except InvalidGenerationError as e:
            raise InvalidGenerationError(
                f"ManifestWork {work.name!r} manifest[{i}] "
                f"{get_kind(inner)}/{get_name(inner)}: {e}"
            ) from e


# =============================================================================
# Selection and comparison
# =============================================================================


def get_latest_generation_from_list(candidates: Iterable[Resource] | None) -> Resource | None:
    """
    Pick the candidate with the highest generation.

    Ties are broken by metadata.name ascending so the choice is stable
    regardless of input order. Returns None for an empty input. The input
    is not mutated.
    """
    if not candidates:
        return None

    ordered = sorted(
        list(candidates),
        key=lambda item: (-get_generation(item), get_name(item)),
    )
    return ordered[0] if ordered else None


def compare_generations(new_gen: int, existing_gen: int, exists: bool) -> ApplyDecision:
    """
    Decide what to do with a candidate given its existing counterpart.

    Content is never compared; generation equality is the only "no change"
    signal.
    """
    if not exists:
        return ApplyDecision(
            operation=Operation.CREATE,
            reason="resource not found",
            new_generation=new_gen,
            existing_generation=0,
        )

    if existing_gen == new_gen:
        return ApplyDecision(
            operation=Operation.SKIP,
            reason=f"generation {existing_gen} unchanged",
            new_generation=new_gen,
            existing_generation=existing_gen,
        )

    return ApplyDecision(
        operation=Operation.UPDATE,
        reason=f"generation changed {existing_gen}->{new_gen}",
        new_generation=new_gen,
        existing_generation=existing_gen,
    )


def apply_recreate_policy(decision: ApplyDecision, options: ApplyOptions | None) -> ApplyDecision:
    """
    Upgrade an update to a recreate when the resource asks for it.

    Some kinds reject in-place mutation of certain fields; for those the
    adapter deletes and re-creates instead. Every other decision is
    returned unchanged.
    """
    if options is not None and options.recreate_on_change and decision.operation is Operation.UPDATE:
        return replace(
            decision,
            operation=Operation.RECREATE,
            reason=f"{decision.reason}, recreateOnChange=true",
        )
    return decision
