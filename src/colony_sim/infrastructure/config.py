"""Configuration dataclasses for the colony simulation.

Each config is a plain ``dataclass`` with a ``validate()`` method that raises
``ValueError`` on invalid combinations, plus ``to_dict()`` / ``from_dict()``
for persistence.  Configs are **frozen**: tunables are read once when a
colony is built and never mutated by simulation logic.

``GameConfig`` is persisted as a human-editable YAML file.  ``load_config``
creates and writes the defaults when the file does not exist yet; any other
problem with the file is reported as a ``ConfigurationError``.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from colony_sim.domain.enums import SchedPolicy
from colony_sim.domain.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _filtered(cls: type, data: dict[str, Any]) -> dict[str, Any]:
    valid_keys = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in valid_keys}


# ===================================================================== #
#  Resource Tunables                                                     #
# ===================================================================== #

@dataclass(frozen=True)
class ResourceTunables:
    """Knobs for the thermal / power / bandwidth model.

    Attributes
    ----------
    power_cap_kw:
        Colony-wide power cap.  Above it, progress is scaled down.
    bandwidth_total_gbps:
        Shared bus capacity used to normalise bandwidth utilisation.
    bandwidth_tail_exp:
        Exponent of the latency blow-up above 70% bus utilisation.
    heat_gain:
        Heat generated per kW of utilised draw per unit of ``dt``.
    heat_decay_rate:
        Fraction of current heat shed per unit of ``dt``.
    thermal_throttle_knee:
        Fraction of ``heat_cap`` where throttling starts.
    thermal_min_throttle:
        Floor of the throttle multiplier; work never fully halts.
    maintenance_cooling:
        Heat removed from a yard when a maintenance job completes there.
    starvation_window_ticks:
        Wait (in ticks) at which queue starvation saturates at 1.0.
    """

    power_cap_kw: float = 1000.0
    bandwidth_total_gbps: float = 32.0
    bandwidth_tail_exp: float = 2.2
    heat_gain: float = 0.02
    heat_decay_rate: float = 0.05
    thermal_throttle_knee: float = 0.85
    thermal_min_throttle: float = 0.4
    maintenance_cooling: float = 15.0
    starvation_window_ticks: int = 1000

    def validate(self) -> None:
        """Raise ``ValueError`` if any field is out of valid range."""
        if self.power_cap_kw <= 0:
            raise ValueError(f"power_cap_kw must be > 0, got {self.power_cap_kw}")
        if self.bandwidth_total_gbps <= 0:
            raise ValueError(
                f"bandwidth_total_gbps must be > 0, got {self.bandwidth_total_gbps}"
            )
        if self.bandwidth_tail_exp < 1.0:
            raise ValueError(
                f"bandwidth_tail_exp must be >= 1, got {self.bandwidth_tail_exp}"
            )
        if self.heat_gain < 0:
            raise ValueError(f"heat_gain must be >= 0, got {self.heat_gain}")
        if not (0.0 <= self.heat_decay_rate <= 1.0):
            raise ValueError(
                f"heat_decay_rate must be in [0, 1], got {self.heat_decay_rate}"
            )
        if not (0.0 < self.thermal_throttle_knee <= 1.0):
            raise ValueError(
                f"thermal_throttle_knee must be in (0, 1], got {self.thermal_throttle_knee}"
            )
        if not (0.0 < self.thermal_min_throttle <= 1.0):
            raise ValueError(
                f"thermal_min_throttle must be in (0, 1], got {self.thermal_min_throttle}"
            )
        if self.maintenance_cooling < 0:
            raise ValueError(
                f"maintenance_cooling must be >= 0, got {self.maintenance_cooling}"
            )
        if self.starvation_window_ticks < 0:
            raise ValueError(
                f"starvation_window_ticks must be >= 0, got {self.starvation_window_ticks}"
            )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResourceTunables:
        cfg = cls(**_filtered(cls, data))
        cfg.validate()
        return cfg


# ===================================================================== #
#  Corruption Tunables                                                   #
# ===================================================================== #

@dataclass(frozen=True)
class CorruptionTunables:
    """Weights of the stress-to-fault formula, decay rates and retry policy.

    Attributes
    ----------
    base_fault_rate:
        Fault probability per op at zero stress.
    heat_weight, bw_weight, starvation_weight:
        Contribution of each normalised stress signal.
    decay_per_tick:
        Passive decay of the global corruption field.
    worker_decay_rate:
        Proportional passive decay of per-worker corruption.
    recover_boost:
        Extra per-worker decay while the worker is in maintenance.
    retry_backoff_ms:
        Base backoff; attempt *n* waits ``retry_backoff_ms * 2**(n-1)``.
    max_retries:
        Retries allowed after the first attempt before a job is abandoned.
    fault_corruption_bump:
        Global corruption added for every fault.
    sticky_quarantine_ticks:
        Ticks a worker sits out after a sticky-config fault.
    """

    base_fault_rate: float = 0.002
    heat_weight: float = 0.8
    bw_weight: float = 0.6
    starvation_weight: float = 0.4
    decay_per_tick: float = 0.0015
    worker_decay_rate: float = 0.1
    recover_boost: float = 0.01
    retry_backoff_ms: int = 8
    max_retries: int = 2
    fault_corruption_bump: float = 0.01
    sticky_quarantine_ticks: int = 10

    def validate(self) -> None:
        if not (0.0 <= self.base_fault_rate <= 0.35):
            raise ValueError(
                f"base_fault_rate must be in [0, 0.35], got {self.base_fault_rate}"
            )
        for name in ("heat_weight", "bw_weight", "starvation_weight",
                     "decay_per_tick", "worker_decay_rate", "recover_boost",
                     "fault_corruption_bump"):
            value = getattr(self, name)
            if value < 0:
                raise ValueError(f"{name} must be >= 0, got {value}")
        if self.retry_backoff_ms < 0:
            raise ValueError(
                f"retry_backoff_ms must be >= 0, got {self.retry_backoff_ms}"
            )
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.sticky_quarantine_ticks < 1:
            raise ValueError(
                f"sticky_quarantine_ticks must be >= 1, got {self.sticky_quarantine_ticks}"
            )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CorruptionTunables:
        cfg = cls(**_filtered(cls, data))
        cfg.validate()
        return cfg


# ===================================================================== #
#  Yard layout                                                           #
# ===================================================================== #

@dataclass(frozen=True)
class YardSpec:
    """Initial layout of one workyard.

    Attributes
    ----------
    power_draw:
        Rated draw in kW at full utilisation.
    heat:
        Starting heat.
    heat_cap:
        Thermal capacity.
    workers:
        Number of workers hosted in the yard.
    discipline:
        Starting discipline of every worker in the yard.
    """

    power_draw: float = 200.0
    heat: float = 20.0
    heat_cap: float = 100.0
    workers: int = 4
    discipline: float = 0.7

    def validate(self) -> None:
        if self.power_draw < 0:
            raise ValueError(f"power_draw must be >= 0, got {self.power_draw}")
        if self.heat < 0:
            raise ValueError(f"heat must be >= 0, got {self.heat}")
        if self.heat_cap <= 0:
            raise ValueError(f"heat_cap must be > 0, got {self.heat_cap}")
        if self.workers < 0:
            raise ValueError(f"workers must be >= 0, got {self.workers}")
        if not (0.0 <= self.discipline <= 1.0):
            raise ValueError(f"discipline must be in [0, 1], got {self.discipline}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> YardSpec:
        cfg = cls(**_filtered(cls, data))
        cfg.validate()
        return cfg


def _default_yards() -> list[YardSpec]:
    return [
        YardSpec(power_draw=200.0, heat=20.0, heat_cap=100.0, workers=4, discipline=0.7),
        YardSpec(power_draw=300.0, heat=25.0, heat_cap=85.0, workers=2, discipline=0.8),
    ]


# ===================================================================== #
#  Game Configuration                                                    #
# ===================================================================== #

@dataclass(frozen=True)
class GameConfig:
    """Everything needed to construct a colony at simulation start.

    Attributes
    ----------
    seed:
        Global seed; together with the tick number it fixes every fault
        decision of the run.
    tick_scale:
        ``"RealTime"``, ``"Seconds:n"``, ``"Days:n"`` or ``"Years:n"``.
    scheduler:
        Name of the dispatcher's job selection policy.
    target_uptime_days:
        Uptime goal carried on the colony for collaborators.
    resource, corruption:
        Tunables for the resource dynamics and fault model.
    yards:
        Initial workyard layout; yard ids follow list order.
    """

    seed: int = 42
    tick_scale: str = "RealTime"
    scheduler: str = SchedPolicy.DEADLINE.value
    target_uptime_days: int = 365
    resource: ResourceTunables = field(default_factory=ResourceTunables)
    corruption: CorruptionTunables = field(default_factory=CorruptionTunables)
    yards: list[YardSpec] = field(default_factory=_default_yards)

    def validate(self) -> None:
        if not (0 <= self.seed < 2**64):
            raise ValueError(f"seed must be an unsigned 64-bit integer, got {self.seed}")
        valid_policies = sorted(p.value for p in SchedPolicy)
        if self.scheduler not in valid_policies:
            raise ValueError(
                f"scheduler must be one of {valid_policies}, got '{self.scheduler}'"
            )
        if self.target_uptime_days < 0:
            raise ValueError(
                f"target_uptime_days must be >= 0, got {self.target_uptime_days}"
            )
        if not self.yards:
            raise ValueError("at least one yard is required")
        self.resource.validate()
        self.corruption.validate()
        for spec in self.yards:
            spec.validate()

    def to_dict(self) -> dict[str, Any]:
        return {
            "seed": self.seed,
            "tick_scale": self.tick_scale,
            "scheduler": self.scheduler,
            "target_uptime_days": self.target_uptime_days,
            "resource": self.resource.to_dict(),
            "corruption": self.corruption.to_dict(),
            "yards": [spec.to_dict() for spec in self.yards],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GameConfig:
        kwargs = _filtered(cls, data)
        if "resource" in kwargs:
            kwargs["resource"] = ResourceTunables.from_dict(_section(kwargs["resource"], "resource"))
        if "corruption" in kwargs:
            kwargs["corruption"] = CorruptionTunables.from_dict(
                _section(kwargs["corruption"], "corruption")
            )
        if "yards" in kwargs:
            raw_yards = kwargs["yards"]
            if not isinstance(raw_yards, list):
                raise ValueError("'yards' must be a list")
            kwargs["yards"] = [YardSpec.from_dict(_section(y, "yards[]")) for y in raw_yards]
        cfg = cls(**kwargs)
        cfg.validate()
        return cfg


def _section(value: Any, name: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ValueError(f"'{name}' must be a mapping, got {type(value).__name__}")
    return value


# ===================================================================== #
#  Persistence                                                           #
# ===================================================================== #

def save_config(config: GameConfig, path: str | Path) -> None:
    """Write *config* to *path* as YAML."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        yaml.safe_dump(config.to_dict(), sort_keys=False, default_flow_style=False),
        encoding="utf-8",
    )


def load_config(path: str | Path) -> GameConfig:
    """Load a ``GameConfig`` from *path*.

    If the file does not exist, the defaults are written to *path* and
    returned.  Malformed YAML, non-mapping documents and out-of-range values
    raise ``ConfigurationError``.
    """
    path = Path(path)
    if not path.exists():
        config = GameConfig()
        save_config(config, path)
        logger.info("No config at %s; wrote defaults", path)
        return config

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Malformed YAML in {path}: {exc}", path=str(path)) from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigurationError(
            f"Top-level YAML in {path} must be a mapping", path=str(path)
        )
    try:
        config = GameConfig.from_dict(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid config in {path}: {exc}", path=str(path)) from exc

    logger.info("Loaded config from %s (seed=%d)", path, config.seed)
    return config
