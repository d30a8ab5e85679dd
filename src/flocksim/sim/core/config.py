from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

import yaml

from .errors import ConfigurationError

# Ranges of the interactive control panel.
OBJECT_SIZE_RANGE = (1.0, 300.0)
OBJECT_COUNT_RANGE = (1, 300)
VELOCITY_SCALAR_RANGE = (0.1, 10.0)
CLOSE_DISTANCE_MAX = 1000.0


class BoundaryPolicy(str, Enum):
    WRAP = "wrap"
    CLAMP = "clamp"


class NeighborIndex(str, Enum):
    BRUTE_FORCE = "brute_force"
    GRID = "grid"


@dataclass(frozen=True)
class ArenaConfig:
    width: float = 640.0
    height: float = 480.0

    @property
    def center(self) -> tuple[float, float]:
        return (self.width * 0.5, self.height * 0.5)


@dataclass
class FlockConfig:
    object_count: int = 10
    object_size: float = 50.0
    velocity_scalar: float = 1.0
    contact_factor: float = 1.3
    close_factor: float = 3.9
    # None means "derive from object_size"
    contact_distance: Optional[float] = None
    close_distance: Optional[float] = None

    def derived_contact_distance(self) -> float:
        return self.object_size * self.contact_factor

    def derived_close_distance(self) -> float:
        return self.object_size * self.close_factor

    def resolve_thresholds(self) -> None:
        if self.contact_distance is None:
            self.contact_distance = self.derived_contact_distance()
        if self.close_distance is None:
            self.close_distance = self.derived_close_distance()


@dataclass
class BehaviorConfig:
    boundary_policy: BoundaryPolicy = BoundaryPolicy.WRAP
    separation_enabled: bool = True
    separation_divisor: float = 100.0
    alignment_enabled: bool = False
    neighbor_index: NeighborIndex = NeighborIndex.BRUTE_FORCE
    strict_components: bool = False


@dataclass
class SimulationConfig:
    seed: Optional[int] = None
    frame_rate: int = 60
    config_version: str = "v1"
    arena: ArenaConfig = field(default_factory=ArenaConfig)
    flock: FlockConfig = field(default_factory=FlockConfig)
    behavior: BehaviorConfig = field(default_factory=BehaviorConfig)

    def __post_init__(self) -> None:
        self.flock.resolve_thresholds()

    @staticmethod
    def from_yaml(path: Path) -> "SimulationConfig":
        data = yaml.safe_load(Path(path).read_text()) or {}
        return load_config(data)

    def validate(self) -> None:
        validate_flock(self.flock)
        if self.arena.width <= 0 or self.arena.height <= 0:
            raise ConfigurationError("arena", f"dimensions must be positive, got {self.arena.width}x{self.arena.height}")
        if self.frame_rate <= 0:
            raise ConfigurationError("frame_rate", f"must be positive, got {self.frame_rate}")
        if self.behavior.separation_divisor == 0:
            raise ConfigurationError("separation_divisor", "must be non-zero")


def validate_flock(flock: FlockConfig) -> None:
    if isinstance(flock.object_count, bool) or not isinstance(flock.object_count, int) or flock.object_count < 1:
        raise ConfigurationError("object_count", f"must be an integer >= 1, got {flock.object_count}")
    if not math.isfinite(flock.object_size) or flock.object_size <= 0:
        raise ConfigurationError("object_size", f"must be > 0, got {flock.object_size}")
    if not math.isfinite(flock.velocity_scalar):
        raise ConfigurationError("velocity_scalar", f"must be finite, got {flock.velocity_scalar}")
    contact = flock.contact_distance if flock.contact_distance is not None else flock.derived_contact_distance()
    close = flock.close_distance if flock.close_distance is not None else flock.derived_close_distance()
    if contact < 0:
        raise ConfigurationError("contact_distance", f"must be >= 0, got {contact}")
    if contact > close:
        raise ConfigurationError(
            "contact_distance", f"must not exceed close_distance ({contact} > {close})"
        )


def _enum(enum_type: type[Enum], value: object, name: str) -> Enum:
    try:
        return enum_type(value)
    except ValueError:
        choices = ", ".join(member.value for member in enum_type)
        raise ConfigurationError(name, f"unknown value {value!r} (expected one of: {choices})") from None


def load_config(raw: dict) -> SimulationConfig:
    arena_raw = raw.get("arena", {})
    arena = ArenaConfig(**{k: float(v) for k, v in arena_raw.items()})
    flock = FlockConfig(**raw.get("flock", {}))
    behavior_raw = dict(raw.get("behavior", {}))
    if "boundary_policy" in behavior_raw:
        behavior_raw["boundary_policy"] = _enum(BoundaryPolicy, behavior_raw["boundary_policy"], "boundary_policy")
    if "neighbor_index" in behavior_raw:
        behavior_raw["neighbor_index"] = _enum(NeighborIndex, behavior_raw["neighbor_index"], "neighbor_index")
    behavior = BehaviorConfig(**behavior_raw)
    sim_values = {k: v for k, v in raw.items() if k not in {"arena", "flock", "behavior"}}
    config = SimulationConfig(arena=arena, flock=flock, behavior=behavior, **sim_values)
    config.validate()
    return config
