from __future__ import annotations

import logging
from typing import Optional

from pygame.math import Vector2

from ..core.components import Orientation, Position, Rotation, Velocity, VisualState
from ..core.config import ArenaConfig, FlockConfig, validate_flock
from ..core.errors import ConfigurationError
from ..core.registry import EntityStore
from ..core.rng import DeterministicRng
from .display import Drawable, ShapeFactory

logger = logging.getLogger(__name__)


def rebuild(
    store: EntityStore,
    arena: ArenaConfig,
    flock: FlockConfig,
    rng: DeterministicRng,
    shapes: Optional[ShapeFactory] = None,
) -> list[int]:
    """Replace every agent in ``store`` with ``flock.object_count`` fresh ones.

    Positions are uniform over the containment box ``[r, W - r] x [r, H - r]``,
    orientations uniform over ``[0, 360)``, velocity and rotation zero. The
    derived contact/close thresholds are written back onto ``flock``.
    """
    validate_flock(flock)
    radius = flock.object_size
    if arena.width < 2 * radius or arena.height < 2 * radius:
        raise ConfigurationError(
            "object_size",
            f"agents of radius {radius} do not fit in a {arena.width}x{arena.height} arena",
        )

    destroyed = len(store)
    store.clear()

    handles = []
    for _ in range(int(flock.object_count)):
        handle = store.create()
        if shapes is not None:
            store.attach(handle, Drawable(shapes.create(radius)))
        store.attach(
            handle,
            Position(
                Vector2(
                    rng.next_range(radius, arena.width - radius),
                    rng.next_range(radius, arena.height - radius),
                )
            ),
        )
        store.attach(handle, Velocity())
        store.attach(handle, Orientation(rng.next_angle_deg()))
        store.attach(handle, Rotation())
        store.attach(handle, VisualState.FAR)
        handles.append(handle)

    flock.contact_distance = flock.derived_contact_distance()
    flock.close_distance = flock.derived_close_distance()
    logger.info(
        "rebuilt scene: destroyed=%d created=%d radius=%.2f contact=%.2f close=%.2f",
        destroyed,
        len(handles),
        radius,
        flock.contact_distance,
        flock.close_distance,
    )
    return handles
