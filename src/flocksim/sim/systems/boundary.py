"""Arena containment policies.

Both policies share the containment box ``[r, dim - r]`` per axis, where ``r``
is the agent radius.

``wrap`` lets an agent drift ``2r`` past an edge before teleporting it to the
same slack distance beyond the opposite edge, so the jump happens off screen.

``clamp`` snaps an agent that reached an edge back onto it and points it at
the arena centre, measured from where it was before the snap. The redirect
overrides any steering accumulated that frame and can leave an agent pinned
against a wall when the centre lies almost parallel to it; it is kept as the
observed deflect-off-wall behaviour rather than a physical reflection.
"""

from __future__ import annotations

from typing import Callable, Dict

from pygame.math import Vector2

from ..core.components import Orientation, Position
from ..core.config import BoundaryPolicy, SimulationConfig
from ..core.registry import EntityStore
from ..utils.math2d import _heading_toward_deg


def containment_box(config: SimulationConfig) -> tuple[float, float, float, float]:
    radius = config.flock.object_size
    arena = config.arena
    return (radius, arena.width - radius, radius, arena.height - radius)


def wrap_around(store: EntityStore, config: SimulationConfig) -> int:
    left, right, up, down = containment_box(config)
    slack = config.flock.object_size * 2.0
    wrapped = 0
    for handle in store.each(Position, strict=config.behavior.strict_components):
        pos = store.get(handle, Position).vec
        x = pos.x
        y = pos.y
        if x < left - slack:
            x = right + slack
        elif x > right + slack:
            x = left - slack
        if y < up - slack:
            y = down + slack
        elif y > down + slack:
            y = up - slack
        if x != pos.x or y != pos.y:
            store.patch(handle, Position, lambda p, nx=x, ny=y: p.vec.update(nx, ny))
            wrapped += 1
    return wrapped


def clamp_and_redirect(store: EntityStore, config: SimulationConfig) -> int:
    left, right, up, down = containment_box(config)
    center = Vector2(config.arena.center)
    clamped = 0
    for handle in store.each(Position, strict=config.behavior.strict_components):
        pos = store.get(handle, Position).vec
        x = min(max(pos.x, left), right)
        y = min(max(pos.y, up), down)
        at_edge = pos.x <= left or pos.x >= right or pos.y <= up or pos.y >= down
        if not at_edge:
            continue
        heading = _heading_toward_deg(pos, center)
        if x != pos.x or y != pos.y:
            store.patch(handle, Position, lambda p, nx=x, ny=y: p.vec.update(nx, ny))
        if heading is not None and store.has(handle, Orientation):
            store.patch(handle, Orientation, lambda ori, value=heading: _set_heading(ori, value))
        clamped += 1
    return clamped


POLICIES: Dict[BoundaryPolicy, Callable[[EntityStore, SimulationConfig], int]] = {
    BoundaryPolicy.WRAP: wrap_around,
    BoundaryPolicy.CLAMP: clamp_and_redirect,
}


def run(store: EntityStore, config: SimulationConfig) -> int:
    return POLICIES[config.behavior.boundary_policy](store, config)


def _set_heading(orientation: Orientation, value: float) -> None:
    orientation.value = value
