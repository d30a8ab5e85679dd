from __future__ import annotations

import math

from ..core.components import Orientation, Position, Rotation, Velocity
from ..core.config import SimulationConfig
from ..core.registry import EntityStore


def integrate_rotation(store: EntityStore, config: SimulationConfig) -> None:
    strict = config.behavior.strict_components
    for handle in store.each(Orientation, Rotation, strict=strict):
        rotation = store.get(handle, Rotation).value
        if rotation == 0.0:
            continue
        store.patch(handle, Orientation, lambda ori, delta=rotation: _turn(ori, delta))


def project_heading(store: EntityStore, config: SimulationConfig) -> None:
    """Heading is the sole source of velocity direction; speed is unit length."""
    strict = config.behavior.strict_components
    for handle in store.each(Velocity, Orientation, strict=strict):
        radians = math.radians(store.get(handle, Orientation).value)
        store.get(handle, Velocity).vec.update(math.cos(radians), math.sin(radians))


def integrate_position(store: EntityStore, config: SimulationConfig) -> None:
    strict = config.behavior.strict_components
    scalar = config.flock.velocity_scalar
    for handle in store.each(Position, Velocity, strict=strict):
        velocity = store.get(handle, Velocity).vec
        if scalar == 0.0 or velocity.length_squared() == 0.0:
            continue
        store.patch(
            handle,
            Position,
            lambda pos, dx=velocity.x * scalar, dy=velocity.y * scalar: pos.vec.update(pos.vec.x + dx, pos.vec.y + dy),
        )


def run(store: EntityStore, config: SimulationConfig) -> None:
    if config.behavior.alignment_enabled:
        integrate_rotation(store, config)
    project_heading(store, config)
    integrate_position(store, config)


def _turn(orientation: Orientation, delta: float) -> None:
    orientation.value += delta
