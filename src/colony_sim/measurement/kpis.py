"""Fleet KPI collector -- subscribes to domain events and tallies outcomes.

The :class:`FleetKpis` collector listens to an :class:`EventBus` and keeps
running counters of faults, completions and abandonments, plus per-tick
histories of the corruption field and bandwidth utilisation.  It is purely
passive: it never publishes events and never touches the colony.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from colony_sim.domain.enums import FaultKind
from colony_sim.domain.events import (
    DomainEvent,
    JobAbandoned,
    JobCompleted,
    JobRetryScheduled,
    OpFaulted,
    TickCompleted,
)
from colony_sim.infrastructure.event_bus import EventBus


@dataclass(frozen=True)
class KpiReport:
    """Immutable summary of a run so far."""

    ticks: int = 0
    completed: int = 0
    deadline_hits: int = 0
    abandoned: int = 0
    retries: int = 0
    faults_total: int = 0
    faults_by_kind: dict[str, int] = field(default_factory=dict)
    maintenance_completed: int = 0
    mean_corruption: float = 0.0
    peak_corruption: float = 0.0
    mean_bandwidth_util: float = 0.0

    @property
    def deadline_hit_rate(self) -> float:
        """Fraction of completed jobs that met their deadline."""
        return self.deadline_hits / self.completed if self.completed else 1.0

    @property
    def soft_drop_rate(self) -> float:
        """Abandoned jobs as a fraction of all finished jobs."""
        finished = self.completed + self.abandoned
        return self.abandoned / finished if finished else 0.0

    @property
    def sticky_quarantines(self) -> int:
        return self.faults_by_kind.get(FaultKind.STICKY_CONFIG.value, 0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticks": self.ticks,
            "completed": self.completed,
            "deadline_hit_rate": self.deadline_hit_rate,
            "abandoned": self.abandoned,
            "soft_drop_rate": self.soft_drop_rate,
            "retries": self.retries,
            "faults_total": self.faults_total,
            "faults_by_kind": dict(self.faults_by_kind),
            "sticky_quarantines": self.sticky_quarantines,
            "maintenance_completed": self.maintenance_completed,
            "mean_corruption": self.mean_corruption,
            "peak_corruption": self.peak_corruption,
            "mean_bandwidth_util": self.mean_bandwidth_util,
        }


class FleetKpis:
    """Subscribes to the event bus and builds a :class:`KpiReport` on demand.

    Usage::

        bus = EventBus()
        kpis = FleetKpis(bus)
        Simulation(config, event_bus=bus).run(1000)
        print(kpis.report().soft_drop_rate)
    """

    def __init__(self, event_bus: EventBus) -> None:
        self._event_bus = event_bus
        self._faults: Counter[str] = Counter()
        self._completed = 0
        self._deadline_hits = 0
        self._maintenance = 0
        self._abandoned = 0
        self._retries = 0
        self._corruption: list[float] = []
        self._bandwidth: list[float] = []
        self._subscribe()

    def _subscribe(self) -> None:
        self._event_bus.subscribe(OpFaulted, self._on_fault)
        self._event_bus.subscribe(JobCompleted, self._on_completed)
        self._event_bus.subscribe(JobAbandoned, self._on_abandoned)
        self._event_bus.subscribe(JobRetryScheduled, self._on_retry)
        self._event_bus.subscribe(TickCompleted, self._on_tick)

    # -- event handlers -------------------------------------------------------

    def _on_fault(self, event: DomainEvent) -> None:
        assert isinstance(event, OpFaulted)
        self._faults[event.kind.value] += 1

    def _on_completed(self, event: DomainEvent) -> None:
        assert isinstance(event, JobCompleted)
        if event.maintenance:
            self._maintenance += 1
            return
        self._completed += 1
        if event.deadline_met:
            self._deadline_hits += 1

    def _on_abandoned(self, event: DomainEvent) -> None:
        self._abandoned += 1

    def _on_retry(self, event: DomainEvent) -> None:
        self._retries += 1

    def _on_tick(self, event: DomainEvent) -> None:
        assert isinstance(event, TickCompleted)
        self._corruption.append(event.global_corruption)
        self._bandwidth.append(event.bandwidth_util)

    # -- public query API -----------------------------------------------------

    @property
    def corruption_history(self) -> list[float]:
        """Global corruption level at the end of every tick seen."""
        return list(self._corruption)

    def report(self) -> KpiReport:
        corruption = np.asarray(self._corruption, dtype=float)
        bandwidth = np.asarray(self._bandwidth, dtype=float)
        return KpiReport(
            ticks=len(self._corruption),
            completed=self._completed,
            deadline_hits=self._deadline_hits,
            abandoned=self._abandoned,
            retries=self._retries,
            faults_total=sum(self._faults.values()),
            faults_by_kind=dict(self._faults),
            maintenance_completed=self._maintenance,
            mean_corruption=float(corruption.mean()) if corruption.size else 0.0,
            peak_corruption=float(corruption.max()) if corruption.size else 0.0,
            mean_bandwidth_util=float(bandwidth.mean()) if bandwidth.size else 0.0,
        )

    def detach(self) -> None:
        """Stop listening to the bus."""
        self._event_bus.unsubscribe(OpFaulted, self._on_fault)
        self._event_bus.unsubscribe(JobCompleted, self._on_completed)
        self._event_bus.unsubscribe(JobAbandoned, self._on_abandoned)
        self._event_bus.unsubscribe(JobRetryScheduled, self._on_retry)
        self._event_bus.unsubscribe(TickCompleted, self._on_tick)

    def clear(self) -> None:
        self._faults.clear()
        self._completed = self._deadline_hits = self._maintenance = 0
        self._abandoned = self._retries = 0
        self._corruption.clear()
        self._bandwidth.clear()
