"""Aggregate roots for the colony simulation.

Aggregates enforce consistency boundaries.  External code should only mutate
domain state through aggregate methods, never by reaching into child entities
directly.

* ``JobQueue`` -- admission-ordered set of pending and in-flight jobs.
* ``Colony`` -- owns every workyard (and transitively every worker), the job
  queue, the corruption field, the meters and the tunables of one run.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .entities import CorruptionField, Worker, Workyard
from .enums import JobState, Op, WorkerState
from .exceptions import DuplicateJobError
from .values import ColonySnapshot, Job, WorkerSnapshot, YardSnapshot

if TYPE_CHECKING:
    from colony_sim.infrastructure.config import (
        CorruptionTunables,
        GameConfig,
        ResourceTunables,
    )

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# JobQueue
# ---------------------------------------------------------------------------

@dataclass
class QueueEntry:
    """Queue bookkeeping tracked alongside an immutable ``Job``."""

    job: Job
    enq_tick: int
    enq_ms: int
    state: JobState = JobState.QUEUED
    attempt: int = 1
    op_index: int = 0
    progress_ms: float = 0.0
    ready_at_ms: int = 0
    worker_id: int | None = None

    @property
    def job_id(self) -> int:
        return self.job.job_id

    @property
    def deadline_at_ms(self) -> int:
        """Absolute deadline on the simulation timeline."""
        return self.enq_ms + self.job.deadline_ms

    @property
    def current_op(self) -> Op:
        return self.job.pipeline.ops[self.op_index]

    @property
    def is_last_op(self) -> bool:
        return self.op_index == len(self.job.pipeline) - 1

    def is_ready(self, now_ms: int) -> bool:
        return self.state is JobState.QUEUED and self.ready_at_ms <= now_ms


class JobQueue:
    """Ordered multiset of pending and in-flight jobs.

    A job id appears at most once.  Entries leave the queue through
    :meth:`complete` or :meth:`abandon`, which stamp the terminal state on
    the returned entry, or through a bare :meth:`remove`.
    Iteration follows admission order.
    """

    def __init__(self) -> None:
        self._entries: dict[int, QueueEntry] = {}

    # -- mutations ------------------------------------------------------------

    def push(self, job: Job, tick: int, now_ms: int = 0) -> QueueEntry:
        """Admit *job* at *tick*.  Raises ``DuplicateJobError`` on reuse."""
        if job.job_id in self._entries:
            raise DuplicateJobError(job.job_id)
        entry = QueueEntry(job=job, enq_tick=tick, enq_ms=now_ms, ready_at_ms=now_ms)
        self._entries[job.job_id] = entry
        return entry

    def mark_running(self, job_id: int, worker_id: int) -> QueueEntry:
        entry = self.get(job_id)
        if entry.state is not JobState.QUEUED:
            raise ValueError(f"Job {job_id} is {entry.state.value}, not queued")
        entry.state = JobState.RUNNING
        entry.worker_id = worker_id
        return entry

    def mark_faulted(self, job_id: int) -> QueueEntry:
        entry = self.get(job_id)
        if entry.state is not JobState.RUNNING:
            raise ValueError(f"Job {job_id} is {entry.state.value}, not running")
        entry.state = JobState.FAULTED
        return entry

    def requeue(self, job_id: int, ready_at_ms: int) -> QueueEntry:
        """Return a faulted job to the queue behind a backoff gate."""
        entry = self.get(job_id)
        entry.state = JobState.QUEUED
        entry.worker_id = None
        entry.progress_ms = 0.0
        entry.ready_at_ms = ready_at_ms
        return entry

    def complete(self, job_id: int) -> QueueEntry:
        entry = self.remove(job_id)
        entry.state = JobState.COMPLETED
        return entry

    def abandon(self, job_id: int) -> QueueEntry:
        """Drop a job whose retries are exhausted."""
        entry = self.remove(job_id)
        entry.state = JobState.ABANDONED
        return entry

    def remove(self, job_id: int) -> QueueEntry:
        """Remove and return the entry.  Raises ``KeyError`` if missing."""
        try:
            return self._entries.pop(job_id)
        except KeyError:
            raise KeyError(f"Job {job_id} not in queue") from None

    def clear(self) -> None:
        self._entries.clear()

    # -- queries --------------------------------------------------------------

    def get(self, job_id: int) -> QueueEntry:
        try:
            return self._entries[job_id]
        except KeyError:
            raise KeyError(f"Job {job_id} not in queue") from None

    def ready(self, now_ms: int) -> list[QueueEntry]:
        """Entries eligible for dispatch at *now_ms*, in admission order."""
        return [e for e in self._entries.values() if e.is_ready(now_ms)]

    def count(self, state: JobState) -> int:
        return sum(1 for e in self._entries.values() if e.state is state)

    def starvation(self, now_tick: int, now_ms: int, window_ticks: int) -> float:
        """How long the oldest ready job has waited, normalised to ``[0, 1]``."""
        if window_ticks <= 0:
            return 0.0
        ready = self.ready(now_ms)
        if not ready:
            return 0.0
        oldest = min(e.enq_tick for e in ready)
        return max(0.0, min(1.0, (now_tick - oldest) / window_ticks))

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._entries

    def __iter__(self) -> Iterator[QueueEntry]:
        return iter(list(self._entries.values()))

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)


# ---------------------------------------------------------------------------
# Colony
# ---------------------------------------------------------------------------

@dataclass
class GlobalMeters:
    """Colony-wide meters, settled at the end of each tick."""

    power_draw_kw: float = 0.0
    power_scale: float = 1.0
    bandwidth_util: float = 0.0
    gbits_this_tick: float = 0.0

    def add_bytes(self, n: int) -> None:
        self.gbits_this_tick += (n * 8.0) / 1_000_000_000.0

    def take_gbits(self) -> float:
        value = self.gbits_this_tick
        self.gbits_this_tick = 0.0
        return value


class Colony:
    """Aggregate root of one simulation run.

    Built once from a ``GameConfig`` and passed explicitly into every tick
    update; there is no module-level simulation state.
    """

    def __init__(
        self,
        resource: ResourceTunables,
        corruption: CorruptionTunables,
        seed: int = 42,
        target_uptime_days: int = 365,
    ) -> None:
        self.resource = resource
        self.corruption = corruption
        self.seed = seed
        self.target_uptime_days = target_uptime_days
        self.power_cap_kw = resource.power_cap_kw
        self.bandwidth_total_gbps = resource.bandwidth_total_gbps
        self.meters = GlobalMeters()
        self.corruption_field = CorruptionField()
        self.queue = JobQueue()
        self._yards: dict[int, Workyard] = {}

    @classmethod
    def from_config(cls, config: GameConfig) -> Colony:
        """Build the yards and workers described by *config*.

        Yard ids follow the order of ``config.yards``; worker ids are
        assigned colony-wide in the same order, starting at 0.
        """
        colony = cls(
            resource=config.resource,
            corruption=config.corruption,
            seed=config.seed,
            target_uptime_days=config.target_uptime_days,
        )
        next_worker = 0
        for yard_id, spec in enumerate(config.yards):
            yard = Workyard(
                yard_id=yard_id,
                power_draw=spec.power_draw,
                heat=spec.heat,
                heat_cap=spec.heat_cap,
            )
            for _ in range(spec.workers):
                yard.add_worker(Worker(worker_id=next_worker, discipline=spec.discipline))
                next_worker += 1
            colony.add_yard(yard)
        logger.info(
            "Colony built: %d yards, %d workers, seed=%d",
            len(colony._yards), next_worker, colony.seed,
        )
        return colony

    # -- yards / workers ------------------------------------------------------

    def add_yard(self, yard: Workyard) -> None:
        if yard.yard_id in self._yards:
            raise ValueError(f"Yard {yard.yard_id} already exists")
        for worker_id in yard.workers:
            if self.find_worker(worker_id) is not None:
                raise ValueError(f"Worker {worker_id} already hosted elsewhere")
        self._yards[yard.yard_id] = yard

    @property
    def yards(self) -> list[Workyard]:
        """Yards in ascending id order."""
        return [self._yards[k] for k in sorted(self._yards)]

    def yard(self, yard_id: int) -> Workyard:
        try:
            return self._yards[yard_id]
        except KeyError:
            raise KeyError(f"Yard {yard_id} not found") from None

    def iter_workers(self) -> Iterator[tuple[Workyard, Worker]]:
        """Yield ``(yard, worker)`` pairs in yard id, then worker id order."""
        for yard in self.yards:
            for worker in yard.iter_workers():
                yield yard, worker

    def find_worker(self, worker_id: int) -> Worker | None:
        for yard in self._yards.values():
            if worker_id in yard.workers:
                return yard.workers[worker_id]
        return None

    @property
    def worker_count(self) -> int:
        return sum(len(y) for y in self._yards.values())

    # -- snapshot -------------------------------------------------------------

    def snapshot(self, tick: int, now_ms: int, throttle_fn) -> ColonySnapshot:
        """Freeze every stress signal of the colony before the tick mutates it.

        *throttle_fn* maps ``(heat, heat_cap)`` to a throttle factor; it is
        injected so the thermal policy stays in the resource-dynamics module.
        """
        yards = {
            y.yard_id: YardSnapshot(
                yard_id=y.yard_id,
                heat=y.heat,
                heat_cap=y.heat_cap,
                utilization=y.utilization,
                throttle=throttle_fn(y.heat, y.heat_cap),
            )
            for y in self.yards
        }
        workers = {
            w.worker_id: WorkerSnapshot(
                worker_id=w.worker_id,
                yard_id=y.yard_id,
                state=w.state,
                corruption=w.corruption,
                discipline=w.discipline,
            )
            for y, w in self.iter_workers()
        }
        return ColonySnapshot(
            tick=tick,
            now_ms=now_ms,
            global_corruption=self.corruption_field.level,
            bandwidth_util=self.meters.bandwidth_util,
            queue_starvation=self.queue.starvation(
                tick, now_ms, self.resource.starvation_window_ticks
            ),
            power_scale=self.meters.power_scale,
            power_draw_kw=self.meters.power_draw_kw,
            power_cap_kw=self.power_cap_kw,
            yards=yards,
            workers=workers,
        )

    def running_count(self) -> int:
        return sum(
            1 for _, w in self.iter_workers()
            if w.state in (WorkerState.RUNNING, WorkerState.MAINTENANCE)
        )

    def __repr__(self) -> str:
        return (
            f"Colony(yards={len(self._yards)}, workers={self.worker_count}, "
            f"queued={len(self.queue)}, "
            f"corruption={self.corruption_field.level:.3f})"
        )
