"""
Tests for generation reading, validation and the apply decision.
"""

import pytest

from fleetadapter.errors import InvalidGenerationError, StructuralParseError
from fleetadapter.manifest import (
    ApplyDecision,
    ManifestWork,
    Operation,
    apply_recreate_policy,
    compare_generations,
    get_generation,
    get_latest_generation_from_list,
    validate_envelope_generation,
    validate_generation,
)
from fleetadapter.transports import ApplyOptions

from conftest import make_object, make_work


def _with_annotation(value):
    return {"metadata": {"name": "x", "annotations": {"hyperfleet.io/generation": value}}}


# =============================================================================
# get_generation
# =============================================================================


class TestGetGeneration:
    def test_reads_positive_value(self):
        assert get_generation(make_object(generation=5)) == 5

    def test_none_object(self):
        assert get_generation(None) == 0

    def test_missing_metadata(self):
        assert get_generation({"kind": "ConfigMap"}) == 0

    def test_missing_annotation(self):
        assert get_generation(make_object()) == 0

    @pytest.mark.parametrize("value", ["", "abc", "1.5", " 3", "0x10", "9223372036854775808"])
    def test_unusable_values_read_as_zero(self, value):
        assert get_generation(_with_annotation(value)) == 0

    def test_signed_values_are_accepted(self):
        assert get_generation(_with_annotation("+7")) == 7
        assert get_generation(_with_annotation("-3")) == -3

    def test_int64_bounds(self):
        assert get_generation(_with_annotation("9223372036854775807")) == 2**63 - 1
        assert get_generation(_with_annotation("-9223372036854775808")) == -(2**63)

    def test_annotations_not_a_mapping(self):
        assert get_generation({"metadata": {"annotations": ["x"]}}) == 0


# =============================================================================
# validate_generation
# =============================================================================


class TestValidateGeneration:
    def test_positive_passes(self):
        validate_generation(make_object(generation=1))

    def test_none_object(self):
        with pytest.raises(InvalidGenerationError, match="object cannot be None"):
            validate_generation(None)

    def test_missing_annotation(self):
        with pytest.raises(InvalidGenerationError, match="missing hyperfleet.io/generation annotation"):
            validate_generation(make_object())

    def test_empty_annotation(self):
        with pytest.raises(InvalidGenerationError, match="annotation is empty"):
            validate_generation(_with_annotation(""))

    def test_non_numeric(self):
        with pytest.raises(InvalidGenerationError, match="invalid hyperfleet.io/generation annotation value 'abc'"):
            validate_generation(_with_annotation("abc"))

    @pytest.mark.parametrize("value,shown", [("0", "0"), ("-1", "-1")])
    def test_not_positive(self, value, shown):
        with pytest.raises(InvalidGenerationError, match=f"must be > 0, got {shown}"):
            validate_generation(_with_annotation(value))

    def test_tolerant_and_strict_reads_agree_on_valid_values(self):
        obj = _with_annotation("42")
        validate_generation(obj)
        assert get_generation(obj) == 42


# =============================================================================
# validate_envelope_generation
# =============================================================================


class TestValidateEnvelopeGeneration:
    def test_valid_envelope(self):
        work = ManifestWork.from_dict(
            make_work("w", 2, [make_object("Namespace", "ns", 2, namespace=None)])
        )
        validate_envelope_generation(work)

    def test_none_envelope(self):
        with pytest.raises(InvalidGenerationError):
            validate_envelope_generation(None)

    def test_envelope_without_generation(self):
        work = ManifestWork.from_dict(make_work("w", None))
        with pytest.raises(InvalidGenerationError, match=r"^ManifestWork 'w': missing"):
            validate_envelope_generation(work)

    def test_inner_failure_names_index_and_identity(self):
        work = ManifestWork.from_dict(
            make_work(
                "w",
                1,
                [
                    make_object("Namespace", "ok", 1, namespace=None),
                    make_object("ConfigMap", "bad", "abc"),
                ],
            )
        )
        with pytest.raises(InvalidGenerationError) as exc_info:
            validate_envelope_generation(work)

        message = str(exc_info.value)
        assert message.startswith("ManifestWork 'w' manifest[1] ConfigMap/bad:")
        assert "'abc'" in message

    def test_first_failure_aborts(self):
        work = ManifestWork.from_dict(
            make_work("w", 1, [make_object("ConfigMap", "a"), make_object("ConfigMap", "b", "0")])
        )
        with pytest.raises(InvalidGenerationError, match=r"manifest\[0\] ConfigMap/a"):
            validate_envelope_generation(work)

    def test_non_object_entry_is_structural(self):
        work = ManifestWork.from_dict(make_work("w", 1, [make_object(generation=1), "oops"]))
        with pytest.raises(StructuralParseError) as exc_info:
            validate_envelope_generation(work)
        assert exc_info.value.index == 1


# =============================================================================
# get_latest_generation_from_list
# =============================================================================


class TestLatestGeneration:
    def test_empty_and_none(self):
        assert get_latest_generation_from_list([]) is None
        assert get_latest_generation_from_list(None) is None

    def test_highest_generation_wins(self):
        items = [make_object(name="a", generation=1), make_object(name="b", generation=3)]
        assert get_latest_generation_from_list(items)["metadata"]["name"] == "b"

    def test_tie_breaks_by_name_regardless_of_order(self):
        b = make_object(name="b", generation=5)
        a = make_object(name="a", generation=5)
        assert get_latest_generation_from_list([b, a])["metadata"]["name"] == "a"
        assert get_latest_generation_from_list([a, b])["metadata"]["name"] == "a"

    def test_missing_generation_counts_as_zero(self):
        items = [make_object(name="a"), make_object(name="z", generation=1)]
        assert get_latest_generation_from_list(items)["metadata"]["name"] == "z"

    def test_input_not_mutated(self):
        items = [make_object(name="b", generation=1), make_object(name="a", generation=2)]
        get_latest_generation_from_list(items)
        assert [i["metadata"]["name"] for i in items] == ["b", "a"]


# =============================================================================
# compare_generations / apply_recreate_policy
# =============================================================================


class TestCompareGenerations:
    def test_not_exists_is_create(self):
        decision = compare_generations(3, 99, exists=False)
        assert decision == ApplyDecision(Operation.CREATE, "resource not found", 3, 0)

    def test_equal_is_skip(self):
        decision = compare_generations(4, 4, exists=True)
        assert decision.operation is Operation.SKIP
        assert decision.reason == "generation 4 unchanged"

    def test_newer_is_update(self):
        decision = compare_generations(5, 4, exists=True)
        assert decision.operation is Operation.UPDATE
        assert decision.reason == "generation changed 4->5"
        assert (decision.new_generation, decision.existing_generation) == (5, 4)

    def test_rollback_is_also_update(self):
        decision = compare_generations(2, 7, exists=True)
        assert decision.operation is Operation.UPDATE
        assert decision.reason == "generation changed 7->2"

    def test_never_produces_recreate(self):
        for new, old, exists in [(1, 1, True), (1, 2, True), (1, 0, False)]:
            assert compare_generations(new, old, exists).operation is not Operation.RECREATE


class TestRecreatePolicy:
    def test_update_becomes_recreate(self):
        decision = apply_recreate_policy(
            compare_generations(2, 1, True), ApplyOptions(recreate_on_change=True)
        )
        assert decision.operation is Operation.RECREATE
        assert decision.reason == "generation changed 1->2, recreateOnChange=true"

    def test_without_options_unchanged(self):
        update = compare_generations(2, 1, True)
        assert apply_recreate_policy(update, None) is update
        assert apply_recreate_policy(update, ApplyOptions()) is update

    @pytest.mark.parametrize("exists,old", [(False, 0), (True, 2)])
    def test_only_updates_are_upgraded(self, exists, old):
        decision = compare_generations(2, old, exists)
        assert apply_recreate_policy(decision, ApplyOptions(recreate_on_change=True)) is decision
