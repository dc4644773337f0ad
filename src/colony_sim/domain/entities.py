"""Domain entities for the colony simulation.

Entities have *identity* (an id that persists across mutations) and a mutable
lifecycle.  A ``Workyard`` owns its ``Worker`` instances outright: workers are
stored in the yard keyed by id and never point back at the yard.  Workers
refer to their current job by id only; the job itself lives in the queue.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

from .enums import WorkerState

# ---------------------------------------------------------------------------
# Worker
# ---------------------------------------------------------------------------

@dataclass
class Worker:
    """A single compute worker.

    ``discipline`` is an externally tuned resistance factor in ``[0, 1]``;
    ``corruption`` is a slow-moving per-worker degradation scalar in
    ``[0, 1]``, distinct from the colony-wide corruption field.
    """

    worker_id: int
    discipline: float = 0.7
    corruption: float = 0.0
    state: WorkerState = WorkerState.IDLE
    job_id: int | None = None
    sticky_faults: int = 0
    faulted_until_tick: int = 0

    def __post_init__(self) -> None:
        if not 0.0 <= self.discipline <= 1.0:
            raise ValueError(f"discipline must be in [0, 1], got {self.discipline}")
        if not 0.0 <= self.corruption <= 1.0:
            raise ValueError(f"corruption must be in [0, 1], got {self.corruption}")

    @property
    def is_idle(self) -> bool:
        return self.state is WorkerState.IDLE

    @property
    def is_busy(self) -> bool:
        """True while the worker holds a job (running or maintaining)."""
        return self.job_id is not None

    def assign(self, job_id: int, maintenance: bool = False) -> None:
        """Start working on *job_id*."""
        if self.is_busy:
            raise ValueError(
                f"Worker {self.worker_id} is already running job {self.job_id}"
            )
        self.job_id = job_id
        self.state = WorkerState.MAINTENANCE if maintenance else WorkerState.RUNNING

    def release(self) -> None:
        """Drop the current job and return to idle."""
        self.job_id = None
        self.state = WorkerState.IDLE

    def fault(self, until_tick: int, sticky: bool = False) -> None:
        """Drop the current job and sit out until *until_tick*."""
        self.job_id = None
        self.state = WorkerState.FAULTED
        self.faulted_until_tick = until_tick
        if sticky:
            self.sticky_faults += 1


# ---------------------------------------------------------------------------
# Workyard
# ---------------------------------------------------------------------------

@dataclass
class Workyard:
    """A physical/virtual resource pool hosting workers.

    ``power_draw`` is the rated draw in kW at full utilisation; ``heat`` is a
    unitless accumulator floored at zero.  ``pending_cooling`` collects the
    cooling earned by completed maintenance and is consumed by the next
    thermal update.
    """

    yard_id: int
    power_draw: float = 200.0
    heat: float = 0.0
    heat_cap: float = 100.0
    workers: dict[int, Worker] = field(default_factory=dict)
    pending_cooling: float = 0.0

    def __post_init__(self) -> None:
        if self.heat_cap <= 0:
            raise ValueError(f"heat_cap must be > 0, got {self.heat_cap}")
        if self.heat < 0:
            raise ValueError(f"heat must be >= 0, got {self.heat}")
        if self.power_draw < 0:
            raise ValueError(f"power_draw must be >= 0, got {self.power_draw}")

    # -- workers ------------------------------------------------------------

    def add_worker(self, worker: Worker) -> None:
        """Host *worker* in this yard.  Raises ``ValueError`` on duplicate ids."""
        if worker.worker_id in self.workers:
            raise ValueError(
                f"Worker {worker.worker_id} already hosted in yard {self.yard_id}"
            )
        self.workers[worker.worker_id] = worker

    def iter_workers(self) -> Iterator[Worker]:
        """Yield workers in ascending id order."""
        for worker_id in sorted(self.workers):
            yield self.workers[worker_id]

    def count(self, state: WorkerState) -> int:
        return sum(1 for w in self.workers.values() if w.state is state)

    @property
    def utilization(self) -> float:
        """Fraction of hosted workers currently ``Running``."""
        if not self.workers:
            return 0.0
        return self.count(WorkerState.RUNNING) / len(self.workers)

    @property
    def heat_fraction(self) -> float:
        return max(0.0, min(1.0, self.heat / self.heat_cap))

    def __len__(self) -> int:
        return len(self.workers)


# ---------------------------------------------------------------------------
# CorruptionField
# ---------------------------------------------------------------------------

@dataclass
class CorruptionField:
    """Process-wide corruption scalar in ``[0, 1]``.

    Faults and external events do not touch ``level`` directly: they add to
    ``pending`` and the fault-model step folds it in once per tick.
    """

    level: float = 0.0
    pending: float = 0.0

    def raise_by(self, amount: float) -> None:
        if amount < 0:
            raise ValueError(f"corruption increase must be >= 0, got {amount}")
        self.pending += amount
