"""Tests for domain value objects (Pipeline, Job, snapshots)."""

from __future__ import annotations

import dataclasses

import pytest

from colony_sim.domain.enums import Op, QoS
from colony_sim.domain.values import (
    MAINTENANCE_TAG,
    Job,
    Pipeline,
    YardSnapshot,
    make_maintenance_job,
)


class TestPipeline:
    def test_empty_pipeline_rejected(self) -> None:
        with pytest.raises(ValueError, match="at least one op"):
            Pipeline(ops=())

    def test_list_is_stored_as_tuple(self) -> None:
        p = Pipeline(ops=[Op.DECODE, Op.EXPORT])  # type: ignore[arg-type]
        assert p.ops == (Op.DECODE, Op.EXPORT)
        assert len(p) == 2

    def test_total_cost(self, telemetry_pipeline: Pipeline) -> None:
        # 2 + 4 + 3 + 2
        assert telemetry_pipeline.total_cost_ms == 11

    def test_frozen(self, telemetry_pipeline: Pipeline) -> None:
        with pytest.raises(dataclasses.FrozenInstanceError):
            telemetry_pipeline.mutation_tag = "x"  # type: ignore[misc]

    def test_value_equality(self) -> None:
        assert Pipeline(ops=(Op.CRC,)) == Pipeline(ops=(Op.CRC,))
        assert Pipeline(ops=(Op.CRC,)) != Pipeline(ops=(Op.CRC,), mutation_tag="t")


class TestJob:
    def test_defaults(self) -> None:
        job = Job(job_id=3, pipeline=Pipeline(ops=(Op.FFT,)))
        assert job.qos is QoS.BALANCED
        assert job.payload_sz == 0
        assert job.is_maintenance is False

    @pytest.mark.parametrize("field_name", ["job_id", "deadline_ms", "payload_sz"])
    def test_negative_fields_rejected(self, field_name: str) -> None:
        kwargs = {"job_id": 1, "pipeline": Pipeline(ops=(Op.FFT,)), field_name: -1}
        with pytest.raises(ValueError, match=field_name):
            Job(**kwargs)

    def test_maintenance_job(self) -> None:
        job = make_maintenance_job(9)
        assert job.job_id == 9
        assert job.pipeline.ops == (Op.MAINTENANCE_COOL,)
        assert job.pipeline.mutation_tag == MAINTENANCE_TAG
        assert job.qos is QoS.BALANCED
        assert job.deadline_ms == 5000
        assert job.payload_sz == 0
        assert job.is_maintenance is True


class TestYardSnapshot:
    def test_heat_fraction_clamped(self) -> None:
        hot = YardSnapshot(yard_id=0, heat=150.0, heat_cap=100.0, utilization=1.0, throttle=0.4)
        assert hot.heat_fraction == 1.0
        assert hot.headroom == 0.0

    def test_headroom(self) -> None:
        snap = YardSnapshot(yard_id=0, heat=25.0, heat_cap=100.0, utilization=0.0, throttle=1.0)
        assert snap.heat_fraction == pytest.approx(0.25)
        assert snap.headroom == pytest.approx(0.75)
