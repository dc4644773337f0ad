"""Corruption and fault model.

Maps stress signals from the tick-start snapshot to a per-op fault
probability, draws fault decisions from a generator seeded by
``(seed, tick)``, and owns the dynamics of the colony-wide corruption
field and of per-worker corruption.

Classes
-------
FaultModel
    Stateless policy object consulted by the dispatcher for every op
    completion.  Subclass it to force or suppress faults in tests.
"""

from __future__ import annotations

import logging

import numpy as np

from colony_sim.domain.aggregates import Colony
from colony_sim.domain.entities import Worker
from colony_sim.domain.enums import FaultKind, WorkerState
from colony_sim.domain.values import ColonySnapshot, WorkerSnapshot, YardSnapshot
from colony_sim.infrastructure.config import CorruptionTunables

logger = logging.getLogger(__name__)

GOLDEN = 0x9E3779B97F4A7C15
_MASK64 = (1 << 64) - 1
MAX_FAULT_PROBABILITY = 0.35
RUNNING_STRESS = 0.1

_KIND_ORDER = (
    FaultKind.TRANSIENT,
    FaultKind.DATA_SKEW,
    FaultKind.QUEUE_DROP,
    FaultKind.STICKY_CONFIG,
)


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def fault_probability(
    base: float,
    global_corruption: float,
    worker_corruption: float,
    heat_frac: float,
    bw_util: float,
    starvation: float,
    tunables: CorruptionTunables,
) -> float:
    """Stress-weighted fault probability of one op, in ``[0, 0.35]``.

    Monotone non-decreasing in every stress input for non-negative weights.
    """
    p = (
        base
        + 0.5 * global_corruption
        + 0.5 * worker_corruption
        + tunables.heat_weight * heat_frac
        + tunables.bw_weight * bw_util
        + tunables.starvation_weight * starvation
    )
    return max(0.0, min(MAX_FAULT_PROBABILITY, p))


def tick_seed(seed: int, tick: int) -> int:
    """Mix *seed* and *tick* into one 64-bit seed with the golden-ratio constant."""
    return (seed ^ ((tick * GOLDEN) & _MASK64)) & _MASK64


def tick_rng(seed: int, tick: int) -> np.random.Generator:
    """Return the PCG64 generator for ``(seed, tick)``.

    The same pair always yields the same stream; it is the only source of
    randomness for fault decisions.
    """
    return np.random.Generator(np.random.PCG64(tick_seed(seed, tick)))


# ---------------------------------------------------------------------------
# Field dynamics
# ---------------------------------------------------------------------------

def settle_field(colony: Colony, dt: float) -> float:
    """Decay the global field and fold in everything raised since last tick."""
    field = colony.corruption_field
    pending = field.pending
    field.pending = 0.0
    field.level = _clamp01(
        field.level - colony.corruption.decay_per_tick * dt + pending
    )
    return field.level


def next_worker_corruption(
    worker: Worker,
    dt: float,
    tunables: CorruptionTunables,
) -> float:
    stress = RUNNING_STRESS if worker.state is WorkerState.RUNNING else 0.0
    delta = stress * (1.0 - 0.5 * worker.discipline) - worker.corruption * tunables.worker_decay_rate
    value = worker.corruption + dt * delta
    if worker.state is WorkerState.MAINTENANCE:
        value -= tunables.recover_boost * dt
    return _clamp01(value)


def update_worker_corruption(colony: Colony, dt: float) -> None:
    """Advance per-worker corruption for every worker of *colony*."""
    for _, worker in colony.iter_workers():
        worker.corruption = next_worker_corruption(worker, dt, colony.corruption)


def fault_step(colony: Colony, dt: float) -> None:
    """The single per-tick writer of the corruption field and worker corruption."""
    level = settle_field(colony, dt)
    update_worker_corruption(colony, dt)
    logger.debug("corruption field settled at %.4f", level)


# ---------------------------------------------------------------------------
# Fault decisions
# ---------------------------------------------------------------------------

class FaultModel:
    """Decides whether an op completion faults, and how."""

    def __init__(self, tunables: CorruptionTunables) -> None:
        self.tunables = tunables

    def probability(
        self,
        snapshot: ColonySnapshot,
        worker: WorkerSnapshot,
        yard: YardSnapshot,
    ) -> float:
        return fault_probability(
            self.tunables.base_fault_rate,
            snapshot.global_corruption,
            worker.corruption,
            yard.heat_fraction,
            snapshot.bandwidth_util,
            snapshot.queue_starvation,
            self.tunables,
        )

    def decide(self, rng: np.random.Generator, probability: float) -> bool:
        """Consume one draw; ``True`` means the op faulted."""
        return bool(rng.random() < probability)

    def pick_kind(self, rng: np.random.Generator, corruption: float) -> FaultKind:
        """Consume one draw and classify the fault.

        Weights are 0.60 / 0.20 / 0.15 / ``0.05 + 0.1 * corruption`` for
        transient, data skew, queue drop and sticky config.
        """
        weights = (0.60, 0.20, 0.15, 0.05 + 0.1 * _clamp01(corruption))
        roll = rng.random() * sum(weights)
        acc = 0.0
        for kind, weight in zip(_KIND_ORDER, weights):
            acc += weight
            if roll < acc:
                return kind
        return _KIND_ORDER[-1]
