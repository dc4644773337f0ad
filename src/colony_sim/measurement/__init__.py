"""Measurement layer for the colony simulation.

Public API
----------
- :class:`FleetKpis` -- subscribes to domain events and tallies outcomes
- :class:`KpiReport` -- immutable report value object
"""

from colony_sim.measurement.kpis import FleetKpis, KpiReport

__all__ = [
    "FleetKpis",
    "KpiReport",
]
