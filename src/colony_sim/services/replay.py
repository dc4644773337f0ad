"""Replay log.

Every external input a ``Simulation`` receives is recorded as a command.
The log opens with a ``SimStart`` header carrying the seed, the full
``GameConfig`` and the pipeline catalog the run started with.  Because all
randomness derives from ``(seed, tick)``, feeding the same commands to a
fresh simulation built from that header reproduces the event sequence
exactly.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from colony_sim.domain.exceptions import ColonySimError
from colony_sim.domain.values import Job

if TYPE_CHECKING:
    from colony_sim.infrastructure.config import GameConfig
    from colony_sim.infrastructure.pipelines import PipelineCatalog
    from colony_sim.services.simulation import Simulation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReplayCommand:
    """Base class for recorded simulation inputs."""


@dataclass(frozen=True)
class SimStart(ReplayCommand):
    """Log header.

    ``config`` is ``GameConfig.to_dict()`` and ``pipelines`` the dumped
    definitions of the starting catalog.  Either may be ``None`` in
    hand-written logs; ``replay`` then falls back to its arguments.
    """

    seed: int
    config: Mapping[str, Any] | None = None
    pipelines: Sequence[Mapping[str, Any]] | None = None


@dataclass(frozen=True)
class EnqueueJob(ReplayCommand):
    job: Job


@dataclass(frozen=True)
class EnqueuePipeline(ReplayCommand):
    pipeline_id: str


@dataclass(frozen=True)
class EnqueueMaintenance(ReplayCommand):
    pass


@dataclass(frozen=True)
class InjectCorruption(ReplayCommand):
    amount: float


@dataclass(frozen=True)
class SubmitPipeline(ReplayCommand):
    """A catalog submission applied at the start of the following tick."""

    definition: Mapping[str, Any]


@dataclass(frozen=True)
class Tick(ReplayCommand):
    dt: float = 1.0


class ReplayLog:
    """Ordered list of commands, starting with ``SimStart``."""

    def __init__(
        self,
        seed: int | None = None,
        config: Mapping[str, Any] | None = None,
        pipelines: Sequence[Mapping[str, Any]] | None = None,
    ) -> None:
        self._commands: list[ReplayCommand] = []
        if seed is not None:
            self.record(SimStart(seed=seed, config=config, pipelines=pipelines))

    def record(self, command: ReplayCommand) -> None:
        self._commands.append(command)

    @property
    def commands(self) -> list[ReplayCommand]:
        return list(self._commands)

    @property
    def header(self) -> SimStart:
        if not self._commands or not isinstance(self._commands[0], SimStart):
            raise ColonySimError("Replay log does not start with SimStart")
        return self._commands[0]

    @property
    def seed(self) -> int:
        return self.header.seed

    @property
    def tick_count(self) -> int:
        return sum(1 for c in self._commands if isinstance(c, Tick))

    def __iter__(self) -> Iterator[ReplayCommand]:
        return iter(list(self._commands))

    def __len__(self) -> int:
        return len(self._commands)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ReplayLog):
            return NotImplemented
        return self._commands == other._commands


def replay(
    log: ReplayLog,
    config: GameConfig | None = None,
    catalog: PipelineCatalog | None = None,
    event_bus=None,
) -> Simulation:
    """Re-run *log* on a fresh simulation and return it.

    The header recorded in the log wins: its config and starting catalog
    are used when present, and *config* / *catalog* only fill in for logs
    that lack them.  The logged seed always overrides the config seed.
    Attach an ``EventStore`` to *event_bus* to collect the reproduced
    events.
    """
    from colony_sim.infrastructure.config import GameConfig
    from colony_sim.infrastructure.pipelines import PipelineCatalog, PipelineDef
    from colony_sim.services.simulation import Simulation

    header = log.header
    if header.config is not None:
        config = GameConfig.from_dict(dict(header.config))
    config = replace(config or GameConfig(), seed=header.seed)
    if header.pipelines is not None:
        catalog = PipelineCatalog(PipelineDef.model_validate(d) for d in header.pipelines)
    sim = Simulation(config, event_bus=event_bus, catalog=catalog)

    for command in list(log)[1:]:
        if isinstance(command, Tick):
            sim.step(command.dt)
        elif isinstance(command, EnqueuePipeline):
            sim.enqueue_pipeline(command.pipeline_id)
        elif isinstance(command, EnqueueJob):
            sim.enqueue(command.job)
        elif isinstance(command, EnqueueMaintenance):
            sim.enqueue_maintenance()
        elif isinstance(command, InjectCorruption):
            sim.inject_corruption(command.amount)
        elif isinstance(command, SubmitPipeline):
            sim.catalog.submit(PipelineDef.model_validate(command.definition))
        elif isinstance(command, SimStart):
            raise ColonySimError("SimStart may only appear once, at the start of a log")
        else:
            raise ColonySimError(f"Unknown replay command: {command!r}")

    logger.info("Replayed %d commands (%d ticks)", len(log), log.tick_count)
    return sim
