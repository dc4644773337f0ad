"""Domain layer for the colony simulation.

Re-exports all public domain types so that consumers can write::

    from colony_sim.domain import Job, Pipeline, Op, QoS
"""

# -- Enumerations -------------------------------------------------------------
from .enums import FaultKind, JobState, Op, QoS, SchedPolicy, WorkerState

# -- Value Objects ------------------------------------------------------------
from .values import (
    MAINTENANCE_TAG,
    ColonySnapshot,
    Job,
    Pipeline,
    WorkerSnapshot,
    YardSnapshot,
    make_maintenance_job,
)

# -- Entities -----------------------------------------------------------------
from .entities import CorruptionField, Worker, Workyard

# -- Aggregates ---------------------------------------------------------------
from .aggregates import Colony, GlobalMeters, JobQueue, QueueEntry

# -- Domain Events ------------------------------------------------------------
from .events import (
    DomainEvent,
    JobAbandoned,
    JobCompleted,
    JobDispatched,
    JobEnqueued,
    JobRetryScheduled,
    OpFaulted,
    OpProgressed,
    PipelineRejected,
    PipelineUpdated,
    TickCompleted,
    WorkerRecovered,
)

# -- Exceptions ---------------------------------------------------------------
from .exceptions import (
    ColonySimError,
    ConfigurationError,
    DuplicateJobError,
    UnknownOpError,
    UnknownPipelineError,
    UnknownQoSError,
    UnknownVocabularyError,
)

__all__ = [
    # Enums
    "FaultKind",
    "JobState",
    "Op",
    "QoS",
    "SchedPolicy",
    "WorkerState",
    # Values
    "MAINTENANCE_TAG",
    "ColonySnapshot",
    "Job",
    "Pipeline",
    "WorkerSnapshot",
    "YardSnapshot",
    "make_maintenance_job",
    # Entities
    "CorruptionField",
    "Worker",
    "Workyard",
    # Aggregates
    "Colony",
    "GlobalMeters",
    "JobQueue",
    "QueueEntry",
    # Events
    "DomainEvent",
    "JobAbandoned",
    "JobCompleted",
    "JobDispatched",
    "JobEnqueued",
    "JobRetryScheduled",
    "OpFaulted",
    "OpProgressed",
    "PipelineRejected",
    "PipelineUpdated",
    "TickCompleted",
    "WorkerRecovered",
    # Exceptions
    "ColonySimError",
    "ConfigurationError",
    "DuplicateJobError",
    "UnknownOpError",
    "UnknownPipelineError",
    "UnknownQoSError",
    "UnknownVocabularyError",
]
