"""Job dispatch: selection policies and the per-tick dispatcher.

The dispatcher is the only writer of the job queue during a tick.  It works
in two passes:

1. **Assign** -- for every yard with thermal and power headroom (yard id
   order) and every idle worker in it (worker id order), pick a ready job
   with the configured ``SelectionPolicy``.
2. **Advance** -- every busy worker gains progress on its current op; each
   op completion consults the ``FaultModel`` with the tick-start snapshot
   and one shared per-tick generator.

Faults go through the retry policy: attempt *n* faulting is requeued
behind a ``retry_backoff_ms * 2**(n-1)`` gate while ``n <= max_retries``,
otherwise the job is abandoned.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

import numpy as np

from colony_sim.domain.aggregates import Colony, QueueEntry
from colony_sim.domain.entities import Worker, Workyard
from colony_sim.domain.enums import FaultKind, QoS, SchedPolicy
from colony_sim.domain.events import (
    DomainEvent,
    JobAbandoned,
    JobCompleted,
    JobDispatched,
    JobRetryScheduled,
    OpFaulted,
    OpProgressed,
)
from colony_sim.domain.values import ColonySnapshot
from colony_sim.services.corruption import FaultModel
from colony_sim.services.thermal import bandwidth_latency_multiplier

logger = logging.getLogger(__name__)

_SOURCE = "dispatcher"


# ===================================================================== #
#  Selection policies                                                    #
# ===================================================================== #

class SelectionPolicy(ABC):
    """Chooses the next job for an idle worker among ready candidates.

    Candidates arrive in admission order; ``min`` keeps the first of equal
    keys, so admission order is always the final tie-break.
    """

    name: str = "base"

    @abstractmethod
    def sort_key(self, entry: QueueEntry) -> Any:
        """Smaller keys are dispatched first."""

    def select(self, candidates: Sequence[QueueEntry]) -> QueueEntry | None:
        if not candidates:
            return None
        return min(candidates, key=self.sort_key)


class DeadlinePolicy(SelectionPolicy):
    """Earliest absolute deadline; Latency jobs win ties, then lower ids."""

    name = SchedPolicy.DEADLINE.value

    def sort_key(self, entry: QueueEntry) -> tuple[int, int, int]:
        latency_rank = 0 if entry.job.qos is QoS.LATENCY else 1
        return (entry.deadline_at_ms, latency_rank, entry.job_id)


class FcfsPolicy(SelectionPolicy):
    """First come, first served."""

    name = SchedPolicy.FCFS.value

    def sort_key(self, entry: QueueEntry) -> tuple[int, int]:
        return (entry.enq_tick, entry.enq_ms)


class SjfPolicy(SelectionPolicy):
    """Shortest job first, by total nominal op cost."""

    name = SchedPolicy.SJF.value

    def sort_key(self, entry: QueueEntry) -> tuple[int, int]:
        return (entry.job.pipeline.total_cost_ms, entry.job_id)


_POLICIES: dict[SchedPolicy, type[SelectionPolicy]] = {
    SchedPolicy.DEADLINE: DeadlinePolicy,
    SchedPolicy.FCFS: FcfsPolicy,
    SchedPolicy.SJF: SjfPolicy,
}


def policy_for(policy: SchedPolicy | str) -> SelectionPolicy:
    """Instantiate the selection policy named by *policy*."""
    return _POLICIES[SchedPolicy(policy)]()


# ===================================================================== #
#  Dispatcher                                                            #
# ===================================================================== #

class Dispatcher:
    """Assigns ready jobs to idle workers and advances running jobs."""

    def __init__(
        self,
        policy: SelectionPolicy | None = None,
        fault_model: FaultModel | None = None,
    ) -> None:
        self.policy = policy or DeadlinePolicy()
        self.fault_model = fault_model

    def dispatch(
        self,
        colony: Colony,
        snapshot: ColonySnapshot,
        rng: np.random.Generator,
        tick: int,
        now_ms: int,
        tick_ms: int,
    ) -> list[DomainEvent]:
        """Run both passes for one tick and return the events, in order."""
        if self.fault_model is None:
            self.fault_model = FaultModel(colony.corruption)
        events: list[DomainEvent] = []
        self._assign(colony, snapshot, tick, now_ms, events)
        self._advance(colony, snapshot, rng, tick, now_ms, tick_ms, events)
        return events

    # -- assignment -----------------------------------------------------------

    def eligible_yards(self, colony: Colony, snapshot: ColonySnapshot) -> list[Workyard]:
        """Yards that may take new work this tick, in id order."""
        if not snapshot.power_headroom:
            return []
        return [
            yard for yard in colony.yards
            if snapshot.yards[yard.yard_id].heat < snapshot.yards[yard.yard_id].heat_cap
        ]

    def _assign(
        self,
        colony: Colony,
        snapshot: ColonySnapshot,
        tick: int,
        now_ms: int,
        events: list[DomainEvent],
    ) -> None:
        yards = self.eligible_yards(colony, snapshot)
        if not yards:
            return
        # Throughput work batches on the coolest eligible yard; max keeps the lowest id on ties
        coolest = max(yards, key=lambda y: snapshot.yards[y.yard_id].headroom).yard_id
        ready = colony.queue.ready(now_ms)

        for yard in yards:
            for worker in yard.iter_workers():
                if not ready:
                    return
                if not worker.is_idle:
                    continue
                candidates = [
                    e for e in ready
                    if e.job.qos is not QoS.THROUGHPUT or yard.yard_id == coolest
                ]
                entry = self.policy.select(candidates)
                if entry is None:
                    continue
                ready.remove(entry)
                colony.queue.mark_running(entry.job_id, worker.worker_id)
                worker.assign(entry.job_id, maintenance=entry.job.is_maintenance)
                events.append(JobDispatched(
                    tick=tick,
                    source_id=_SOURCE,
                    job_id=entry.job_id,
                    worker_id=worker.worker_id,
                    yard_id=yard.yard_id,
                    attempt=entry.attempt,
                ))

    # -- execution ------------------------------------------------------------

    def progress_budget(self, colony: Colony, snapshot: ColonySnapshot, yard_id: int, tick_ms: int) -> float:
        """Milliseconds of op progress a busy worker in *yard_id* earns this tick."""
        throttle = snapshot.yards[yard_id].throttle
        bw_mult = bandwidth_latency_multiplier(
            snapshot.bandwidth_util, colony.resource.bandwidth_tail_exp
        )
        return tick_ms * throttle * snapshot.power_scale / bw_mult

    def _advance(
        self,
        colony: Colony,
        snapshot: ColonySnapshot,
        rng: np.random.Generator,
        tick: int,
        now_ms: int,
        tick_ms: int,
        events: list[DomainEvent],
    ) -> None:
        for yard, worker in list(colony.iter_workers()):
            if worker.job_id is None:
                continue
            entry = colony.queue.get(worker.job_id)
            entry.progress_ms += self.progress_budget(colony, snapshot, yard.yard_id, tick_ms)
            self._run_ops(colony, snapshot, rng, yard, worker, entry, tick, now_ms, events)

    def _run_ops(
        self,
        colony: Colony,
        snapshot: ColonySnapshot,
        rng: np.random.Generator,
        yard: Workyard,
        worker: Worker,
        entry: QueueEntry,
        tick: int,
        now_ms: int,
        events: list[DomainEvent],
    ) -> None:
        model = self.fault_model
        worker_snap = snapshot.workers[worker.worker_id]
        yard_snap = snapshot.yards[yard.yard_id]

        while entry.progress_ms >= entry.current_op.cost_ms:
            op = entry.current_op
            p = model.probability(snapshot, worker_snap, yard_snap)
            if model.decide(rng, p):
                kind = model.pick_kind(rng, worker_snap.corruption)
                self._on_fault(colony, worker, entry, kind, tick, now_ms, events)
                return

            entry.progress_ms -= op.cost_ms
            if op.is_ingress:
                colony.meters.add_bytes(entry.job.payload_sz)
            events.append(OpProgressed(
                tick=tick,
                source_id=_SOURCE,
                worker_id=worker.worker_id,
                job_id=entry.job_id,
                op=op,
                ms=op.cost_ms,
            ))
            if entry.is_last_op:
                self._on_complete(colony, yard, worker, entry, tick, now_ms, events)
                return
            entry.op_index += 1

    def _on_fault(
        self,
        colony: Colony,
        worker: Worker,
        entry: QueueEntry,
        kind: FaultKind,
        tick: int,
        now_ms: int,
        events: list[DomainEvent],
    ) -> None:
        tunables = colony.corruption
        attempt = entry.attempt
        will_retry = attempt <= tunables.max_retries
        op = entry.current_op

        colony.queue.mark_faulted(entry.job_id)
        colony.corruption_field.raise_by(tunables.fault_corruption_bump)
        if kind is FaultKind.STICKY_CONFIG:
            worker.fault(until_tick=tick + tunables.sticky_quarantine_ticks, sticky=True)
        else:
            worker.release()

        events.append(OpFaulted(
            tick=tick,
            source_id=_SOURCE,
            worker_id=worker.worker_id,
            job_id=entry.job_id,
            op=op,
            kind=kind,
            attempt=attempt,
            will_retry=will_retry,
        ))

        if will_retry:
            backoff = tunables.retry_backoff_ms * 2 ** (attempt - 1)
            ready_at = now_ms + backoff
            colony.queue.requeue(entry.job_id, ready_at)
            entry.attempt += 1
            events.append(JobRetryScheduled(
                tick=tick,
                source_id=_SOURCE,
                job_id=entry.job_id,
                attempt=entry.attempt,
                backoff_ms=backoff,
                ready_at_ms=ready_at,
            ))
            return

        colony.queue.abandon(entry.job_id)
        logger.info(
            "Job %d abandoned after %d attempts (last op %s, %s)",
            entry.job_id, attempt, op.value, kind.value,
        )
        events.append(JobAbandoned(
            tick=tick,
            source_id=_SOURCE,
            job_id=entry.job_id,
            worker_id=worker.worker_id,
            op=op,
            attempts=attempt,
        ))

    def _on_complete(
        self,
        colony: Colony,
        yard: Workyard,
        worker: Worker,
        entry: QueueEntry,
        tick: int,
        now_ms: int,
        events: list[DomainEvent],
    ) -> None:
        colony.queue.complete(entry.job_id)
        worker.release()
        maintenance = entry.job.is_maintenance
        if maintenance:
            yard.pending_cooling += colony.resource.maintenance_cooling
        events.append(JobCompleted(
            tick=tick,
            source_id=_SOURCE,
            job_id=entry.job_id,
            worker_id=worker.worker_id,
            deadline_met=now_ms <= entry.deadline_at_ms,
            maintenance=maintenance,
        ))
