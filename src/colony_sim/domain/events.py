"""Domain events for the colony simulation.

Every event is a frozen dataclass inheriting from ``DomainEvent``.  Events are
the only channel from the simulation core to its collaborators (UI, scripting
hooks, telemetry): the core publishes, listeners react, nothing flows back.

Events are stamped with the simulation ``tick`` rather than wall-clock time so
that two runs with the same seed and inputs produce equal event sequences.
"""

from __future__ import annotations

from dataclasses import dataclass

from .enums import FaultKind, Op, QoS

# ---------------------------------------------------------------------------
# Base event
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events.

    Subclasses should remain frozen (immutable) and should *not* override
    ``__eq__``; value equality is what replay comparisons rely on.
    """

    tick: int = 0
    source_id: str = ""


# ---------------------------------------------------------------------------
# Job lifecycle events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class JobEnqueued(DomainEvent):
    """A producer admitted a job into the queue."""

    job_id: int = 0
    qos: QoS = QoS.BALANCED
    deadline_ms: int = 0
    pipeline_len: int = 0


@dataclass(frozen=True)
class JobDispatched(DomainEvent):
    """The dispatcher assigned a queued job to an idle worker."""

    job_id: int = 0
    worker_id: int = 0
    yard_id: int = 0
    attempt: int = 1


@dataclass(frozen=True)
class OpProgressed(DomainEvent):
    """A worker finished one op of its job without faulting."""

    worker_id: int = 0
    job_id: int = 0
    op: Op = Op.DECODE
    ms: int = 0


@dataclass(frozen=True)
class OpFaulted(DomainEvent):
    """The fault model turned an op completion into a fault.

    Emitted for every fault, whether or not a retry follows.
    """

    worker_id: int = 0
    job_id: int = 0
    op: Op = Op.DECODE
    kind: FaultKind = FaultKind.TRANSIENT
    attempt: int = 1
    will_retry: bool = False


@dataclass(frozen=True)
class JobRetryScheduled(DomainEvent):
    """A faulted job went back to the queue behind an exponential backoff."""

    job_id: int = 0
    attempt: int = 1
    backoff_ms: int = 0
    ready_at_ms: int = 0


@dataclass(frozen=True)
class JobCompleted(DomainEvent):
    """The final op of a job's pipeline succeeded."""

    job_id: int = 0
    worker_id: int = 0
    deadline_met: bool = True
    maintenance: bool = False


@dataclass(frozen=True)
class JobAbandoned(DomainEvent):
    """A job exhausted its retries and was dropped for good."""

    job_id: int = 0
    worker_id: int = 0
    op: Op = Op.DECODE
    attempts: int = 0


# ---------------------------------------------------------------------------
# Worker events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WorkerRecovered(DomainEvent):
    """A faulted worker came back online."""

    worker_id: int = 0
    yard_id: int = 0


# ---------------------------------------------------------------------------
# Content events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PipelineUpdated(DomainEvent):
    """A catalog entry was (re)validated and swapped in."""

    pipeline_id: str = ""
    ops: tuple[Op, ...] = ()
    mutation_tag: str | None = None


@dataclass(frozen=True)
class PipelineRejected(DomainEvent):
    """A submitted pipeline definition failed validation; entry unchanged."""

    pipeline_id: str = ""
    reason: str = ""


# ---------------------------------------------------------------------------
# Tick lifecycle
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TickCompleted(DomainEvent):
    """One full simulation tick settled."""

    queued: int = 0
    running: int = 0
    global_corruption: float = 0.0
    power_draw_kw: float = 0.0
    bandwidth_util: float = 0.0
