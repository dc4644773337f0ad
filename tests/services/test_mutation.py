"""Tests for pipeline mutations."""

from __future__ import annotations

import pytest

from colony_sim.domain.enums import Op
from colony_sim.domain.values import Pipeline
from colony_sim.services.mutation import DualRun, Insert, Mutation, Remove, Replace, apply_mutation


class TestMutationBase:
    def test_base_is_abstract(self) -> None:
        with pytest.raises(TypeError, match="abstract"):
            Mutation()

    def test_subclass_must_define_tag(self) -> None:
        class Reverse(Mutation):
            def apply_ops(self, ops: list[Op]) -> list[Op]:
                return ops[::-1]

        with pytest.raises(TypeError, match="tag"):
            Reverse()


class TestInsert:
    def test_insert_before_index(self, telemetry_pipeline: Pipeline) -> None:
        mutated = apply_mutation(telemetry_pipeline, Insert(Op.CRC, 1))
        assert mutated.ops == (Op.UDP_DEMUX, Op.CRC, Op.DECODE, Op.KALMAN, Op.EXPORT)
        assert mutated.mutation_tag == "inserted_Crc"

    def test_insert_at_end_appends(self, telemetry_pipeline: Pipeline) -> None:
        mutated = apply_mutation(telemetry_pipeline, Insert(Op.CRC, 4))
        assert mutated.ops[-1] is Op.CRC

    @pytest.mark.parametrize("index", [-1, 5])
    def test_out_of_range(self, telemetry_pipeline: Pipeline, index: int) -> None:
        with pytest.raises(ValueError, match="out of range"):
            apply_mutation(telemetry_pipeline, Insert(Op.CRC, index))


class TestReplaceAndRemove:
    def test_replace(self, telemetry_pipeline: Pipeline) -> None:
        mutated = apply_mutation(telemetry_pipeline, Replace(2, Op.FFT))
        assert mutated.ops == (Op.UDP_DEMUX, Op.DECODE, Op.FFT, Op.EXPORT)
        assert mutated.mutation_tag == "replaced_Fft"

    def test_replace_out_of_range(self, telemetry_pipeline: Pipeline) -> None:
        with pytest.raises(ValueError):
            apply_mutation(telemetry_pipeline, Replace(4, Op.FFT))

    def test_remove(self, telemetry_pipeline: Pipeline) -> None:
        mutated = apply_mutation(telemetry_pipeline, Remove(0))
        assert mutated.ops == (Op.DECODE, Op.KALMAN, Op.EXPORT)
        assert mutated.mutation_tag == "removed_op"

    def test_cannot_remove_only_op(self) -> None:
        with pytest.raises(ValueError, match="only op"):
            apply_mutation(Pipeline(ops=(Op.CRC,)), Remove(0))


class TestDualRun:
    def test_runs_twice_then_adjudicates(self) -> None:
        pipeline = Pipeline(ops=(Op.DECODE, Op.KALMAN))
        mutated = apply_mutation(pipeline, DualRun(Op.CRC))
        assert mutated.ops == (Op.DECODE, Op.KALMAN, Op.DECODE, Op.KALMAN, Op.CRC)
        assert mutated.mutation_tag == "dual_run"


class TestTags:
    def test_original_untouched(self, telemetry_pipeline: Pipeline) -> None:
        apply_mutation(telemetry_pipeline, Remove(0))
        assert len(telemetry_pipeline) == 4
        assert telemetry_pipeline.mutation_tag is None

    def test_tags_stack(self, telemetry_pipeline: Pipeline) -> None:
        once = apply_mutation(telemetry_pipeline, Insert(Op.CRC, 0))
        twice = apply_mutation(once, DualRun(Op.CRC))
        assert twice.mutation_tag == "inserted_Crc+dual_run"
        assert len(twice) == 11
