"""Resource dynamics: heat, power and bandwidth per tick.

Per workyard, heat accumulates with utilised power draw and decays in
proportion to itself, floored at zero.  Once heat passes the throttle knee
(85% of capacity by default) effective throughput degrades smoothly toward
a floor and never halts.  This module performs no scheduling: utilisation
comes from the tick-start snapshot.
"""

from __future__ import annotations

import logging

from colony_sim.domain.aggregates import Colony
from colony_sim.domain.entities import Workyard
from colony_sim.domain.values import ColonySnapshot
from colony_sim.infrastructure.config import ResourceTunables

logger = logging.getLogger(__name__)


def thermal_throttle(
    heat: float,
    heat_cap: float,
    knee: float = 0.85,
    floor: float = 0.4,
) -> float:
    """Throughput multiplier for a yard at *heat*.

    ``1.0`` below ``knee * heat_cap``; above it ``heat_cap / heat`` clamped
    to ``[floor, 1.0]``.  Continuous at the knee because ``heat_cap / heat``
    is still above 1 there.
    """
    if heat < heat_cap * knee:
        return 1.0
    return max(floor, min(1.0, heat_cap / heat))


def bandwidth_latency_multiplier(util: float, tail_exp: float = 2.2) -> float:
    """Latency multiplier that blows up as the shared bus nears saturation."""
    if util <= 0.7:
        return 1.0
    return 1.0 + max(0.0, (util - 0.7) / 0.3) ** tail_exp


def next_heat(
    heat: float,
    power_draw: float,
    utilization: float,
    dt: float,
    tunables: ResourceTunables,
    cooling: float = 0.0,
) -> float:
    """One thermal step: generation minus proportional decay, floored at 0."""
    generation = power_draw * utilization * dt * tunables.heat_gain
    decay = heat * tunables.heat_decay_rate * dt
    return max(0.0, heat + generation - decay - cooling)


def update_yard_heat(
    yard: Workyard,
    utilization: float,
    dt: float,
    tunables: ResourceTunables,
) -> float:
    """Apply one thermal step to *yard*, consuming its pending cooling."""
    yard.heat = next_heat(
        yard.heat, yard.power_draw, utilization, dt, tunables, yard.pending_cooling
    )
    yard.pending_cooling = 0.0
    return yard.heat


def throttle_for(tunables: ResourceTunables):
    """Bind the throttle knee and floor of *tunables* into a two-arg callable."""

    def _throttle(heat: float, heat_cap: float) -> float:
        return thermal_throttle(
            heat, heat_cap, tunables.thermal_throttle_knee, tunables.thermal_min_throttle
        )

    return _throttle


def step_resources(
    colony: Colony,
    snapshot: ColonySnapshot,
    dt: float,
    tick_seconds: float,
) -> None:
    """Advance heat for every yard and settle the colony power meters.

    Bandwidth utilisation is settled from the bits moved during the
    previous tick, so the value the dispatcher reads is always a fully
    settled one.
    """
    tunables = colony.resource
    draw = 0.0
    for yard in colony.yards:
        utilization = snapshot.yards[yard.yard_id].utilization
        update_yard_heat(yard, utilization, dt, tunables)
        draw += yard.power_draw * utilization

    meters = colony.meters
    meters.power_draw_kw = draw
    meters.power_scale = colony.power_cap_kw / draw if draw > colony.power_cap_kw else 1.0

    gbits = meters.take_gbits()
    capacity = colony.bandwidth_total_gbps * tick_seconds
    meters.bandwidth_util = max(0.0, min(1.0, gbits / capacity)) if capacity > 0 else 0.0

    logger.debug(
        "tick %d resources: draw=%.1fkW scale=%.3f bw=%.3f",
        snapshot.tick, meters.power_draw_kw, meters.power_scale, meters.bandwidth_util,
    )
