from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from ..core.components import Orientation, Position, Rotation, Velocity
from ..core.config import SimulationConfig
from ..core.registry import EntityStore
from ..utils.math2d import _angle_between_deg, _is_on_right, _safe_normalize
from .neighbors import NeighborQuery


@dataclass(slots=True)
class FlockingReport:
    separation_nudges: int = 0
    aligned: int = 0
    neighbor_checks: int = 0


def separation(store: EntityStore, config: SimulationConfig) -> tuple[int, int]:
    """Turn every neighbour within close distance away from each agent's forward cone.

    The nudge lands on the neighbour, so an agent's turn is the sum of the
    nudges from every agent that has it in range. Nudges only read Position and
    Velocity, neither of which this stage writes, so they are accumulated per
    neighbour and applied once per agent after all pairs are visited.
    """
    close = config.flock.close_distance
    divisor = config.behavior.separation_divisor
    handles = list(store.each(Position, Velocity, Orientation, strict=config.behavior.strict_components))
    query = NeighborQuery(store, handles, config.behavior.neighbor_index, close)

    turns: Dict[int, float] = {}
    for handle in handles:
        origin = query.position(handle)
        velocity = store.get(handle, Velocity).vec
        forward = origin + _safe_normalize(velocity)
        for other, _distance in query.within(handle, close):
            target = query.position(other)
            angle = _angle_between_deg(forward, target, origin)
            side = 1.0 if _is_on_right(origin, target, velocity) else -1.0
            turns[other] = turns.get(other, 0.0) + angle / divisor * side

    nudged = 0
    for handle, delta in turns.items():
        if delta == 0.0:
            continue
        store.patch(handle, Orientation, lambda ori, value=delta: _turn(ori, value))
        nudged += 1
    return nudged, query.neighbor_checks


def alignment(store: EntityStore, config: SimulationConfig) -> tuple[int, int]:
    """Set each agent's rotation to the mean over itself and neighbours strictly inside close distance.

    Means are taken from the rotations at stage start, then written together.
    """
    close = config.flock.close_distance
    handles = list(store.each(Rotation, Position, strict=config.behavior.strict_components))
    query = NeighborQuery(store, handles, config.behavior.neighbor_index, close)
    start = {handle: store.get(handle, Rotation).value for handle in handles}

    means: Dict[int, float] = {}
    for handle in handles:
        total = start[handle]
        count = 1
        for other, _distance in query.within(handle, close, inclusive=False):
            total += start[other]
            count += 1
        means[handle] = total / count

    changed = 0
    for handle, mean in means.items():
        if mean == start[handle]:
            continue
        store.patch(handle, Rotation, lambda rot, value=mean: _set_rotation(rot, value))
        changed += 1
    return changed, query.neighbor_checks


def run(store: EntityStore, config: SimulationConfig) -> FlockingReport:
    report = FlockingReport()
    behavior = config.behavior
    if behavior.separation_enabled:
        report.separation_nudges, checks = separation(store, config)
        report.neighbor_checks += checks
    if behavior.alignment_enabled:
        report.aligned, checks = alignment(store, config)
        report.neighbor_checks += checks
    return report


def _turn(orientation: Orientation, delta: float) -> None:
    orientation.value += delta


def _set_rotation(rotation: Rotation, value: float) -> None:
    rotation.value = value
