"""Shared fixtures for the colony simulation test suite."""

from __future__ import annotations

import numpy as np
import pytest

from colony_sim.domain.aggregates import Colony
from colony_sim.domain.enums import FaultKind, Op, QoS
from colony_sim.domain.values import Job, Pipeline
from colony_sim.infrastructure.config import GameConfig, YardSpec
from colony_sim.infrastructure.event_bus import EventBus, EventStore
from colony_sim.services.corruption import FaultModel

# ---------------------------------------------------------------------------
# Fault model doubles
# ---------------------------------------------------------------------------


class AlwaysFault(FaultModel):
    """Every op completion faults with a transient fault."""

    def decide(self, rng: np.random.Generator, probability: float) -> bool:
        return True

    def pick_kind(self, rng: np.random.Generator, corruption: float) -> FaultKind:
        return FaultKind.TRANSIENT


class NeverFault(FaultModel):
    def decide(self, rng: np.random.Generator, probability: float) -> bool:
        return False


class StickyFault(AlwaysFault):
    def pick_kind(self, rng: np.random.Generator, corruption: float) -> FaultKind:
        return FaultKind.STICKY_CONFIG


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def default_config() -> GameConfig:
    return GameConfig()


@pytest.fixture
def single_worker_config() -> GameConfig:
    """One cool yard with exactly one worker."""
    return GameConfig(
        seed=7,
        yards=[YardSpec(power_draw=100.0, heat=0.0, heat_cap=100.0, workers=1, discipline=0.5)],
    )


@pytest.fixture
def colony(default_config: GameConfig) -> Colony:
    return Colony.from_config(default_config)


@pytest.fixture
def always_fault(default_config: GameConfig) -> FaultModel:
    return AlwaysFault(default_config.corruption)


@pytest.fixture
def never_fault(default_config: GameConfig) -> FaultModel:
    return NeverFault(default_config.corruption)


@pytest.fixture
def sticky_fault(default_config: GameConfig) -> FaultModel:
    return StickyFault(default_config.corruption)


# ---------------------------------------------------------------------------
# Job fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def decode_job() -> Job:
    """Single-op job whose op completes within one real-time tick."""
    return Job(job_id=1, pipeline=Pipeline(ops=(Op.DECODE,)), qos=QoS.BALANCED, deadline_ms=100)


@pytest.fixture
def telemetry_pipeline() -> Pipeline:
    return Pipeline(ops=(Op.UDP_DEMUX, Op.DECODE, Op.KALMAN, Op.EXPORT))


# ---------------------------------------------------------------------------
# Bus fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def store(bus: EventBus) -> EventStore:
    """An EventStore already subscribed to every event on ``bus``."""
    s = EventStore()
    bus.subscribe_all(s.append)
    return s
