"""Service layer for the colony simulation.

Re-exports public service types for convenient top-level access::

    from colony_sim.services import (
        SimClock, TickScale,
        FaultModel, fault_probability, tick_rng,
        Dispatcher, DeadlinePolicy, FcfsPolicy, SjfPolicy,
        Simulation, ReplayLog, replay,
    )
"""

from colony_sim.services.clock import SimClock, TickScale
from colony_sim.services.corruption import (
    FaultModel,
    fault_probability,
    tick_rng,
)
from colony_sim.services.dispatcher import (
    DeadlinePolicy,
    Dispatcher,
    FcfsPolicy,
    SelectionPolicy,
    SjfPolicy,
    policy_for,
)
from colony_sim.services.mutation import (
    DualRun,
    Insert,
    Mutation,
    Remove,
    Replace,
    apply_mutation,
)
from colony_sim.services.replay import ReplayLog, replay
from colony_sim.services.simulation import Simulation, TickReport
from colony_sim.services.thermal import (
    bandwidth_latency_multiplier,
    thermal_throttle,
)

__all__ = [
    # Clock
    "SimClock",
    "TickScale",
    # Fault model
    "FaultModel",
    "fault_probability",
    "tick_rng",
    # Dispatch
    "DeadlinePolicy",
    "Dispatcher",
    "FcfsPolicy",
    "SelectionPolicy",
    "SjfPolicy",
    "policy_for",
    # Mutation
    "DualRun",
    "Insert",
    "Mutation",
    "Remove",
    "Replace",
    "apply_mutation",
    # Orchestration
    "ReplayLog",
    "Simulation",
    "TickReport",
    "replay",
    # Resource dynamics
    "bandwidth_latency_multiplier",
    "thermal_throttle",
]
