"""Tick orchestration.

``Simulation`` wires the colony, clock, catalog, dispatcher and event bus
together and runs the fixed per-tick order:

1. advance the clock
2. recover workers whose fault quarantine is over
3. apply pending pipeline catalog changes
4. take the ``ColonySnapshot``
5. resource dynamics (heat, power, bandwidth)
6. fault step (corruption field and per-worker corruption)
7. dispatch (assignment, progress, faults, retries, completions)
8. publish the tick's events, ending with ``TickCompleted``

Every external input is recorded in a ``ReplayLog``, including catalog
submissions, which are logged when the tick that applies them starts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from colony_sim.domain.aggregates import Colony
from colony_sim.domain.enums import JobState, WorkerState
from colony_sim.domain.events import (
    DomainEvent,
    JobCompleted,
    JobEnqueued,
    OpFaulted,
    TickCompleted,
    WorkerRecovered,
)
from colony_sim.domain.values import ColonySnapshot, Job, make_maintenance_job
from colony_sim.infrastructure.config import GameConfig
from colony_sim.infrastructure.event_bus import EventBus
from colony_sim.infrastructure.pipelines import PipelineCatalog
from colony_sim.services.clock import SimClock, TickScale
from colony_sim.services.corruption import FaultModel, fault_step, tick_rng
from colony_sim.services.dispatcher import Dispatcher, policy_for
from colony_sim.services.replay import (
    EnqueueJob,
    EnqueueMaintenance,
    EnqueuePipeline,
    InjectCorruption,
    ReplayLog,
    SubmitPipeline,
    Tick,
)
from colony_sim.services.thermal import step_resources, throttle_for

logger = logging.getLogger(__name__)


@dataclass
class TickReport:
    """What happened during one tick."""

    tick: int
    now_ms: int
    snapshot: ColonySnapshot
    events: list[DomainEvent] = field(default_factory=list)

    @property
    def completed(self) -> int:
        return sum(1 for e in self.events if isinstance(e, JobCompleted))

    @property
    def faults(self) -> int:
        return sum(1 for e in self.events if isinstance(e, OpFaulted))


class Simulation:
    """One deterministic colony run.

    Parameters
    ----------
    config:
        Seed, tick scale, scheduler, tunables and yard layout.
    event_bus:
        Where tick events are published.  A private bus is created if omitted.
    catalog:
        Pipelines available to ``enqueue_pipeline``; defaults to the
        built-in vanilla set.
    dispatcher:
        Override the dispatcher (and with it the selection policy and fault
        model) built from *config*.
    """

    def __init__(
        self,
        config: GameConfig | None = None,
        event_bus: EventBus | None = None,
        catalog: PipelineCatalog | None = None,
        dispatcher: Dispatcher | None = None,
    ) -> None:
        self.config = config or GameConfig()
        self.config.validate()
        self.colony = Colony.from_config(self.config)
        self.clock = SimClock(TickScale.parse(self.config.tick_scale))
        self.event_bus = event_bus or EventBus()
        self.catalog = catalog if catalog is not None else PipelineCatalog.with_vanilla()
        self.dispatcher = dispatcher or Dispatcher(
            policy=policy_for(self.config.scheduler),
            fault_model=FaultModel(self.config.corruption),
        )
        self.replay_log = ReplayLog(
            seed=self.config.seed,
            config=self.config.to_dict(),
            pipelines=[entry.definition.model_dump() for entry in self.catalog],
        )
        self.tick = 0
        self.now_ms = 0
        self._next_job_id = 0
        self._throttle = throttle_for(self.config.resource)

    # -- producers ------------------------------------------------------------

    def enqueue(self, job: Job) -> Job:
        """Admit *job* now.  Raises ``DuplicateJobError`` if its id is queued."""
        self._admit(job)
        self.replay_log.record(EnqueueJob(job=job))
        return job

    def enqueue_pipeline(self, pipeline_id: str) -> Job:
        """Build a job from a catalog entry and admit it.

        Raises ``UnknownPipelineError`` for ids missing from the catalog.
        """
        entry = self.catalog.get(pipeline_id)
        job = self._admit(entry.make_job(self._next_job_id))
        self.replay_log.record(EnqueuePipeline(pipeline_id=pipeline_id))
        return job

    def enqueue_maintenance(self) -> Job:
        job = self._admit(make_maintenance_job(self._next_job_id))
        self.replay_log.record(EnqueueMaintenance())
        return job

    def _admit(self, job: Job) -> Job:
        self.colony.queue.push(job, self.tick, self.now_ms)
        self._next_job_id = max(self._next_job_id, job.job_id + 1)
        self.event_bus.publish(JobEnqueued(
            tick=self.tick,
            source_id="simulation",
            job_id=job.job_id,
            qos=job.qos,
            deadline_ms=job.deadline_ms,
            pipeline_len=len(job.pipeline),
        ))
        return job

    def inject_corruption(self, amount: float) -> None:
        """Raise the global corruption field; applied by the next fault step."""
        self.colony.corruption_field.raise_by(amount)
        self.replay_log.record(InjectCorruption(amount=amount))

    # -- ticking --------------------------------------------------------------

    def step(self, dt: float = 1.0) -> TickReport:
        """Run one full tick and publish its events."""
        submitted = self.catalog.drain_pending()
        for definition in submitted:
            self.replay_log.record(SubmitPipeline(definition=definition.model_dump()))
        self.replay_log.record(Tick(dt=dt))
        self.tick += 1
        self.clock.advance_time()
        tick_ms = self.clock.tick_ms()
        self.now_ms += tick_ms
        tick, now_ms = self.tick, self.now_ms
        colony = self.colony

        events: list[DomainEvent] = []
        events.extend(self._recover_workers(tick))
        events.extend(self.catalog.apply(submitted, tick))

        snapshot = colony.snapshot(tick, now_ms, self._throttle)
        step_resources(colony, snapshot, dt, tick_ms / 1000.0)
        fault_step(colony, dt)
        rng = tick_rng(colony.seed, tick)
        events.extend(self.dispatcher.dispatch(colony, snapshot, rng, tick, now_ms, tick_ms))

        events.append(TickCompleted(
            tick=tick,
            source_id="simulation",
            queued=colony.queue.count(JobState.QUEUED),
            running=colony.running_count(),
            global_corruption=colony.corruption_field.level,
            power_draw_kw=colony.meters.power_draw_kw,
            bandwidth_util=colony.meters.bandwidth_util,
        ))
        self.event_bus.publish_many(events)
        logger.debug("tick %d done: %d events", tick, len(events))
        return TickReport(tick=tick, now_ms=now_ms, snapshot=snapshot, events=events)

    def run(self, ticks: int, dt: float = 1.0) -> list[TickReport]:
        if ticks < 0:
            raise ValueError(f"ticks must be >= 0, got {ticks}")
        return [self.step(dt) for _ in range(ticks)]

    def _recover_workers(self, tick: int) -> list[DomainEvent]:
        events: list[DomainEvent] = []
        for yard, worker in self.colony.iter_workers():
            if worker.state is WorkerState.FAULTED and worker.faulted_until_tick < tick:
                worker.release()
                events.append(WorkerRecovered(
                    tick=tick, source_id="simulation",
                    worker_id=worker.worker_id, yard_id=yard.yard_id,
                ))
        return events

    def __repr__(self) -> str:
        return f"Simulation(tick={self.tick}, {self.colony!r})"
