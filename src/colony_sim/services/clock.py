"""Simulation clock.

Defines what one tick means: a 16 ms real-time frame, or an accelerated
step of seconds, days or years.  The clock is a pure mapping from its
``TickScale`` to a ``timedelta`` plus a single mutable timestamp.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

from colony_sim.domain.exceptions import ConfigurationError

REAL_TIME_TICK_MS = 16
SECONDS_PER_DAY = 86_400
SECONDS_PER_YEAR = 31_557_600  # Julian year
MAX_YEARS_PER_TICK = 10


class ScaleUnit(Enum):
    REAL_TIME = "RealTime"
    SECONDS = "Seconds"
    DAYS = "Days"
    YEARS = "Years"


@dataclass(frozen=True)
class TickScale:
    """How much simulated time a single tick represents."""

    unit: ScaleUnit = ScaleUnit.REAL_TIME
    count: int = 1

    def __post_init__(self) -> None:
        if self.count < 0:
            raise ValueError(f"tick scale count must be >= 0, got {self.count}")

    @classmethod
    def real_time(cls) -> TickScale:
        return cls(ScaleUnit.REAL_TIME, 1)

    @classmethod
    def seconds(cls, n: int) -> TickScale:
        return cls(ScaleUnit.SECONDS, n)

    @classmethod
    def days(cls, n: int) -> TickScale:
        return cls(ScaleUnit.DAYS, n)

    @classmethod
    def years(cls, n: int) -> TickScale:
        return cls(ScaleUnit.YEARS, n)

    @classmethod
    def parse(cls, text: str) -> TickScale:
        """Parse ``"RealTime"``, ``"Seconds:n"``, ``"Days:n"`` or ``"Years:n"``."""
        text = text.strip()
        if text == ScaleUnit.REAL_TIME.value:
            return cls.real_time()
        name, sep, raw_count = text.partition(":")
        try:
            unit = ScaleUnit(name)
        except ValueError:
            raise ConfigurationError(f"Unknown tick scale: {text!r}") from None
        if unit is ScaleUnit.REAL_TIME or not sep:
            raise ConfigurationError(f"Tick scale {text!r} needs the form '{name}:n'")
        try:
            count = int(raw_count)
        except ValueError:
            raise ConfigurationError(f"Tick scale count must be an integer: {text!r}") from None
        if count < 0:
            raise ConfigurationError(f"Tick scale count must be >= 0: {text!r}")
        return cls(unit, count)

    def __str__(self) -> str:
        if self.unit is ScaleUnit.REAL_TIME:
            return ScaleUnit.REAL_TIME.value
        return f"{self.unit.value}:{self.count}"


class SimClock:
    """Maps the tick scale to a time delta and keeps the simulated ``now``."""

    def __init__(
        self,
        tick_scale: TickScale | None = None,
        now: datetime | None = None,
    ) -> None:
        self.tick_scale = tick_scale or TickScale.real_time()
        self.now = now or datetime(2000, 1, 1, tzinfo=timezone.utc)

    def advance(self) -> timedelta:
        """Return the simulated time one tick represents.

        Years are capped at ten per tick to keep the delta well inside
        ``timedelta`` range.
        """
        scale = self.tick_scale
        if scale.unit is ScaleUnit.REAL_TIME:
            return timedelta(milliseconds=REAL_TIME_TICK_MS)
        if scale.unit is ScaleUnit.SECONDS:
            return timedelta(seconds=scale.count)
        if scale.unit is ScaleUnit.DAYS:
            return timedelta(seconds=SECONDS_PER_DAY * scale.count)
        return timedelta(seconds=SECONDS_PER_YEAR * min(scale.count, MAX_YEARS_PER_TICK))

    def advance_time(self) -> datetime:
        """Apply one tick to ``now`` and return the new timestamp."""
        self.now = self.now + self.advance()
        return self.now

    def tick_ms(self) -> int:
        """Length of one tick in whole simulated milliseconds."""
        return self.advance() // timedelta(milliseconds=1)

    def is_paused(self) -> bool:
        """True only for real-time scale (the live / interactive flag)."""
        return self.tick_scale.unit is ScaleUnit.REAL_TIME

    def display(self) -> str:
        scale = self.tick_scale
        if scale.unit is ScaleUnit.REAL_TIME:
            return "Real Time"
        return f"{scale.count}{scale.unit.value[0].lower()}"

    def simulation_speed(self) -> float:
        """Simulated seconds per tick-second, relative to real time."""
        scale = self.tick_scale
        if scale.unit is ScaleUnit.REAL_TIME:
            return 1.0
        if scale.unit is ScaleUnit.SECONDS:
            return float(scale.count)
        if scale.unit is ScaleUnit.DAYS:
            return float(scale.count * SECONDS_PER_DAY)
        return float(scale.count * SECONDS_PER_YEAR)

    def __repr__(self) -> str:
        return f"SimClock(scale={self.tick_scale}, now={self.now.isoformat()})"
