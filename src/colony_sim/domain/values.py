"""Value objects for the colony simulation.

All types here are frozen dataclasses -- immutable, compared by value.
They describe work (pipelines and jobs) and the per-tick stress snapshot
that every fault decision of a tick reads from.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from .enums import Op, QoS, WorkerState

MAINTENANCE_TAG = "maintenance"

# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Pipeline:
    """Ordered sequence of ops a job must pass through.

    ``mutation_tag`` is an opaque string correlating the pipeline with a
    mod-provided modification; ``None`` for unmodified pipelines.
    """

    ops: tuple[Op, ...]
    mutation_tag: str | None = None

    def __post_init__(self) -> None:
        if not self.ops:
            raise ValueError("Pipeline must contain at least one op")
        # accept lists from callers but store a tuple
        object.__setattr__(self, "ops", tuple(self.ops))

    def __len__(self) -> int:
        return len(self.ops)

    @property
    def total_cost_ms(self) -> int:
        """Sum of the nominal op costs."""
        return sum(op.cost_ms for op in self.ops)

    @property
    def is_maintenance(self) -> bool:
        """True when the pipeline consists solely of the maintenance op."""
        return self.ops == (Op.MAINTENANCE_COOL,)


# ---------------------------------------------------------------------------
# Job
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Job:
    """A unit of deadline-bound work.

    Immutable after creation: queue bookkeeping (attempts, op index,
    backoff) lives in the queue entry that wraps it.
    """

    job_id: int
    pipeline: Pipeline
    qos: QoS = QoS.BALANCED
    deadline_ms: int = 100  # relative budget from enqueue
    payload_sz: int = 0

    def __post_init__(self) -> None:
        if self.job_id < 0:
            raise ValueError(f"job_id must be >= 0, got {self.job_id}")
        if self.deadline_ms < 0:
            raise ValueError(f"deadline_ms must be >= 0, got {self.deadline_ms}")
        if self.payload_sz < 0:
            raise ValueError(f"payload_sz must be >= 0, got {self.payload_sz}")

    @property
    def is_maintenance(self) -> bool:
        return self.pipeline.is_maintenance


def make_maintenance_job(job_id: int) -> Job:
    """Build the synthetic maintenance job: one cooling op, no payload."""
    return Job(
        job_id=job_id,
        pipeline=Pipeline(ops=(Op.MAINTENANCE_COOL,), mutation_tag=MAINTENANCE_TAG),
        qos=QoS.BALANCED,
        deadline_ms=5000,
        payload_sz=0,
    )


# ---------------------------------------------------------------------------
# Tick-start snapshot
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WorkerSnapshot:
    """Per-worker values frozen at tick start."""

    worker_id: int
    yard_id: int
    state: WorkerState
    corruption: float
    discipline: float


@dataclass(frozen=True)
class YardSnapshot:
    """Per-yard stress values frozen at tick start."""

    yard_id: int
    heat: float
    heat_cap: float
    utilization: float
    throttle: float

    @property
    def heat_fraction(self) -> float:
        """``heat / heat_cap`` clamped to ``[0, 1]``."""
        if self.heat_cap <= 0:
            return 1.0
        return max(0.0, min(1.0, self.heat / self.heat_cap))

    @property
    def headroom(self) -> float:
        """Remaining thermal headroom in ``[0, 1]``."""
        return 1.0 - self.heat_fraction


@dataclass(frozen=True)
class ColonySnapshot:
    """Stable view of every stress signal, taken before any tick mutation.

    Resource dynamics, the fault model and the dispatcher all read this
    snapshot, so the order in which they mutate state never leaks into the
    decisions of the same tick.
    """

    tick: int
    now_ms: int
    global_corruption: float
    bandwidth_util: float
    queue_starvation: float
    power_scale: float
    power_draw_kw: float
    power_cap_kw: float
    yards: Mapping[int, YardSnapshot] = field(default_factory=dict)
    workers: Mapping[int, WorkerSnapshot] = field(default_factory=dict)

    @property
    def power_headroom(self) -> bool:
        """True while the colony draws less than its power cap."""
        return self.power_draw_kw < self.power_cap_kw
