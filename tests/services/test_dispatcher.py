"""Tests for selection policies and the dispatcher."""

from __future__ import annotations

import numpy as np
import pytest

from colony_sim.domain.aggregates import Colony, JobQueue
from colony_sim.domain.enums import FaultKind, JobState, Op, QoS, SchedPolicy, WorkerState
from colony_sim.domain.events import (
    JobAbandoned,
    JobCompleted,
    JobDispatched,
    JobRetryScheduled,
    OpFaulted,
    OpProgressed,
)
from colony_sim.domain.values import Job, Pipeline, make_maintenance_job
from colony_sim.infrastructure.config import GameConfig, YardSpec
from colony_sim.services.corruption import FaultModel
from colony_sim.services.dispatcher import (
    DeadlinePolicy,
    Dispatcher,
    FcfsPolicy,
    SjfPolicy,
    policy_for,
)
from colony_sim.services.thermal import thermal_throttle


def _job(job_id: int, ops=(Op.DECODE,), qos: QoS = QoS.BALANCED, deadline_ms: int = 100) -> Job:
    return Job(job_id=job_id, pipeline=Pipeline(ops=tuple(ops)), qos=qos, deadline_ms=deadline_ms)


def _tick(dispatcher: Dispatcher, colony: Colony, tick: int, now_ms: int, tick_ms: int = 16):
    snap = colony.snapshot(tick, now_ms, thermal_throttle)
    rng = np.random.Generator(np.random.PCG64(tick))
    return dispatcher.dispatch(colony, snap, rng, tick, now_ms, tick_ms)


# ===================================================================== #
#  Policies                                                              #
# ===================================================================== #


class TestPolicies:
    def test_deadline_prefers_earliest_absolute_deadline(self) -> None:
        q = JobQueue()
        q.push(_job(1, deadline_ms=100), tick=0, now_ms=0)
        q.push(_job(2, deadline_ms=30), tick=0, now_ms=0)
        assert DeadlinePolicy().select(q.ready(0)).job_id == 2

    def test_deadline_tie_latency_first_then_id(self) -> None:
        q = JobQueue()
        q.push(_job(5, qos=QoS.BALANCED), tick=0)
        q.push(_job(4, qos=QoS.THROUGHPUT), tick=0)
        q.push(_job(9, qos=QoS.LATENCY), tick=0)
        ready = q.ready(0)
        assert DeadlinePolicy().select(ready).job_id == 9
        ready = [e for e in ready if e.job_id != 9]
        assert DeadlinePolicy().select(ready).job_id == 4

    def test_fcfs(self) -> None:
        q = JobQueue()
        q.push(_job(7, deadline_ms=1000), tick=0)
        q.push(_job(1, deadline_ms=1), tick=1)
        assert FcfsPolicy().select(q.ready(0)).job_id == 7

    def test_sjf(self) -> None:
        q = JobQueue()
        q.push(_job(1, ops=(Op.YOLO,)), tick=0)
        q.push(_job(2, ops=(Op.CRC, Op.EXPORT)), tick=0)
        assert SjfPolicy().select(q.ready(0)).job_id == 2

    def test_empty_candidates(self) -> None:
        assert DeadlinePolicy().select([]) is None

    @pytest.mark.parametrize("name", ["deadline", "fcfs", "sjf"])
    def test_policy_for(self, name: str) -> None:
        assert policy_for(name).name == name
        assert policy_for(SchedPolicy(name)).name == name

    def test_policy_for_unknown(self) -> None:
        with pytest.raises(ValueError):
            policy_for("lottery")


# ===================================================================== #
#  Assignment                                                            #
# ===================================================================== #


class TestAssignment:
    def test_assigns_idle_workers_in_id_order(self, colony: Colony, never_fault: FaultModel) -> None:
        colony.queue.push(_job(1, ops=(Op.YOLO,)), tick=0)
        colony.queue.push(_job(2, ops=(Op.YOLO,)), tick=0)
        events = _tick(Dispatcher(fault_model=never_fault), colony, 1, 16)
        dispatched = [e for e in events if isinstance(e, JobDispatched)]
        assert [(e.job_id, e.worker_id, e.yard_id) for e in dispatched] == [(1, 0, 0), (2, 1, 0)]
        assert colony.yard(0).workers[0].state is WorkerState.RUNNING

    def test_no_idle_worker_keeps_job_queued(self, never_fault: FaultModel) -> None:
        config = GameConfig(yards=[YardSpec(heat=0.0, workers=1)])
        colony = Colony.from_config(config)
        colony.queue.push(_job(1, ops=(Op.YOLO,)), tick=0)
        colony.queue.push(_job(2, ops=(Op.YOLO,)), tick=0)
        _tick(Dispatcher(fault_model=never_fault), colony, 1, 16)
        assert colony.queue.get(2).state is JobState.QUEUED

    def test_hot_yard_skipped(self, colony: Colony, never_fault: FaultModel) -> None:
        colony.yard(0).heat = 100.0
        colony.queue.push(_job(1, ops=(Op.YOLO,)), tick=0)
        events = _tick(Dispatcher(fault_model=never_fault), colony, 1, 16)
        dispatched = [e for e in events if isinstance(e, JobDispatched)]
        assert dispatched[0].yard_id == 1

    def test_power_cap_blocks_assignment(self, colony: Colony, never_fault: FaultModel) -> None:
        colony.meters.power_draw_kw = colony.power_cap_kw
        colony.queue.push(_job(1), tick=0)
        events = _tick(Dispatcher(fault_model=never_fault), colony, 1, 16)
        assert events == []

    def test_throughput_goes_to_coolest_yard(self, colony: Colony, never_fault: FaultModel) -> None:
        colony.yard(0).heat = 50.0
        colony.yard(1).heat = 0.0
        colony.queue.push(_job(1, ops=(Op.YOLO,), qos=QoS.THROUGHPUT), tick=0)
        events = _tick(Dispatcher(fault_model=never_fault), colony, 1, 16)
        dispatched = [e for e in events if isinstance(e, JobDispatched)]
        assert dispatched[0].yard_id == 1
        assert dispatched[0].worker_id == 4

    def test_backoff_gate(self, colony: Colony, never_fault: FaultModel) -> None:
        colony.queue.push(_job(1), tick=0)
        colony.queue.get(1).ready_at_ms = 100
        assert _tick(Dispatcher(fault_model=never_fault), colony, 1, 16) == []


# ===================================================================== #
#  Execution                                                             #
# ===================================================================== #


class TestExecution:
    def test_pipeline_completes_in_op_order(self, colony: Colony, never_fault: FaultModel) -> None:
        entry = colony.queue.push(_job(1, ops=(Op.UDP_DEMUX, Op.DECODE, Op.KALMAN)), tick=0)
        events = _tick(Dispatcher(fault_model=never_fault), colony, 1, 16)
        progressed = [e.op for e in events if isinstance(e, OpProgressed)]
        assert progressed == [Op.UDP_DEMUX, Op.DECODE, Op.KALMAN]
        completed = [e for e in events if isinstance(e, JobCompleted)]
        assert completed[0].deadline_met is True
        assert 1 not in colony.queue
        assert entry.state is JobState.COMPLETED
        assert colony.yard(0).workers[0].is_idle

    def test_progress_carries_across_ticks(self, colony: Colony, never_fault: FaultModel) -> None:
        colony.queue.push(_job(1, ops=(Op.YOLO, Op.YOLO)), tick=0)
        dispatcher = Dispatcher(fault_model=never_fault)
        first = _tick(dispatcher, colony, 1, 16)
        assert not any(isinstance(e, OpProgressed) for e in first)
        second = _tick(dispatcher, colony, 2, 32)
        assert [e.op for e in second if isinstance(e, OpProgressed)] == [Op.YOLO]
        third = _tick(dispatcher, colony, 3, 48)
        assert any(isinstance(e, JobCompleted) for e in third)

    def test_missed_deadline_reported(self, colony: Colony, never_fault: FaultModel) -> None:
        colony.queue.push(_job(1, deadline_ms=0), tick=0, now_ms=0)
        events = _tick(Dispatcher(fault_model=never_fault), colony, 1, 16)
        completed = [e for e in events if isinstance(e, JobCompleted)]
        assert completed[0].deadline_met is False

    def test_ingress_ops_move_payload(self, colony: Colony, never_fault: FaultModel) -> None:
        job = Job(job_id=1, pipeline=Pipeline(ops=(Op.UDP_DEMUX, Op.DECODE)), payload_sz=125_000_000)
        colony.queue.push(job, tick=0)
        _tick(Dispatcher(fault_model=never_fault), colony, 1, 16)
        assert colony.meters.gbits_this_tick == pytest.approx(1.0)

    def test_maintenance_adds_pending_cooling(self, colony: Colony, never_fault: FaultModel) -> None:
        colony.queue.push(make_maintenance_job(1), tick=0)
        events = _tick(Dispatcher(fault_model=never_fault), colony, 1, 16)
        completed = [e for e in events if isinstance(e, JobCompleted)]
        assert completed[0].maintenance is True
        assert colony.yard(0).pending_cooling == pytest.approx(15.0)


# ===================================================================== #
#  Faults and retries                                                    #
# ===================================================================== #


class TestRetryPolicy:
    def test_fault_requeues_with_backoff(self, colony: Colony, always_fault: FaultModel) -> None:
        colony.queue.push(_job(1), tick=0)
        events = _tick(Dispatcher(fault_model=always_fault), colony, 1, 16)
        fault = next(e for e in events if isinstance(e, OpFaulted))
        retry = next(e for e in events if isinstance(e, JobRetryScheduled))
        assert fault.attempt == 1 and fault.will_retry is True
        assert retry.attempt == 2
        assert retry.backoff_ms == 8
        assert retry.ready_at_ms == 24
        assert colony.queue.get(1).state is JobState.QUEUED
        assert colony.corruption_field.pending == pytest.approx(0.01)

    def test_every_attempt_faults_then_abandon(self, colony: Colony, always_fault: FaultModel) -> None:
        entry = colony.queue.push(_job(1), tick=0)
        dispatcher = Dispatcher(fault_model=always_fault)
        events = []
        for tick in range(1, 6):
            events.extend(_tick(dispatcher, colony, tick, tick * 16))

        faults = [e for e in events if isinstance(e, OpFaulted)]
        abandoned = [e for e in events if isinstance(e, JobAbandoned)]
        assert [f.attempt for f in faults] == [1, 2, 3]
        assert [f.will_retry for f in faults] == [True, True, False]
        assert [r.backoff_ms for r in events if isinstance(r, JobRetryScheduled)] == [8, 16]
        assert len(abandoned) == 1
        assert abandoned[0].attempts == 3
        assert not any(isinstance(e, JobCompleted) for e in events)
        assert 1 not in colony.queue
        assert entry.state is JobState.ABANDONED

    def test_sticky_fault_quarantines_worker(self, colony: Colony, sticky_fault: FaultModel) -> None:
        colony.queue.push(_job(1), tick=0)
        events = _tick(Dispatcher(fault_model=sticky_fault), colony, 3, 48)
        fault = next(e for e in events if isinstance(e, OpFaulted))
        assert fault.kind is FaultKind.STICKY_CONFIG
        worker = colony.yard(0).workers[0]
        assert worker.state is WorkerState.FAULTED
        assert worker.faulted_until_tick == 13
        assert worker.sticky_faults == 1

    def test_faults_use_snapshot_stress(self, colony: Colony) -> None:
        seen: list[float] = []

        class Recording(FaultModel):
            def decide(self, rng, probability):
                seen.append(probability)
                return False

        colony.queue.push(_job(1, ops=(Op.CRC, Op.CRC)), tick=0)
        _tick(Dispatcher(fault_model=Recording(colony.corruption)), colony, 1, 16)
        # base 0.002 + heat 0.2 * 0.8 + starvation (1 tick / 1000) * 0.4
        assert seen == pytest.approx([0.1624, 0.1624])
