"""colony-sim: a deterministic fleet simulation.

Compute workers grouped into workyards run deadline-bound jobs through
processing pipelines, under heat, power and bandwidth limits and a seeded,
stress-correlated fault model.
"""

__version__ = "0.1.0"

from colony_sim.infrastructure.config import GameConfig, load_config
from colony_sim.services.simulation import Simulation

__all__ = [
    "GameConfig",
    "Simulation",
    "load_config",
]
