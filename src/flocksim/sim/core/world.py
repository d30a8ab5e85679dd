from __future__ import annotations

import dataclasses
import logging
from time import perf_counter
from typing import Any, Callable, Dict, Optional

from pygame.math import Vector2

from .components import Orientation, Position, Rotation, Velocity, VisualState
from .config import FlockConfig, SimulationConfig, validate_flock
from .errors import ConfigurationError, FlockError
from .registry import EntityStore
from .rng import DeterministicRng
from ..systems import boundary, flocking, kinematics, proximity, scene
from ..systems import metrics as metrics_system
from ..systems.display import ShapeFactory, ShapeSync
from ..types.metrics import FrameMetrics
from ..types.snapshot import Snapshot, SnapshotArena, SnapshotMetadata
from ..utils.math2d import _normalize_degrees

logger = logging.getLogger(__name__)

VisibleCallback = Callable[[Vector2, float, VisualState], None]


class World:
    """A flock of agents in a fixed-size arena, advanced one frame per ``step``.

    Each frame runs kinematics, containment, proximity classification and
    flocking in that order over the same entity store. Shapes owned by the
    agents are kept in sync through store events.
    """

    def __init__(self, config: Optional[SimulationConfig] = None, shapes: Optional[ShapeFactory] = None):
        self._config = config if config is not None else SimulationConfig()
        self._config.validate()
        self._rng = DeterministicRng(self._config.seed)
        self._store = EntityStore()
        self._shapes = shapes if shapes is not None else ShapeFactory()
        self._shape_sync = ShapeSync()
        self._shape_sync.attach(self._store)
        self._frame = 0
        self._metrics: FrameMetrics | None = None
        self._proximity = proximity.ProximityReport()
        self._closed = False
        explicit = (self._config.flock.contact_distance, self._config.flock.close_distance)
        self._rebuild()
        self._apply_thresholds(*explicit)

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def store(self) -> EntityStore:
        return self._store

    @property
    def shapes(self) -> ShapeFactory:
        return self._shapes

    @property
    def frame(self) -> int:
        return self._frame

    @property
    def metrics(self) -> FrameMetrics | None:
        return self._metrics

    @property
    def closed(self) -> bool:
        return self._closed

    def configure(
        self,
        object_count: Optional[int] = None,
        object_size: Optional[float] = None,
        velocity_scalar: Optional[float] = None,
        close_distance: Optional[float] = None,
        contact_distance: Optional[float] = None,
    ) -> bool:
        """Apply new flock settings; returns True when the scene was rebuilt.

        Omitted values keep their current setting. Changing the agent count or
        size rebuilds the scene and re-derives both thresholds from the size
        unless they are passed explicitly. Invalid settings raise
        ``ConfigurationError`` and leave the current configuration untouched.
        """
        self._ensure_open()
        current = self._config.flock
        candidate = dataclasses.replace(current)
        if object_count is not None:
            candidate.object_count = object_count
        if object_size is not None:
            candidate.object_size = float(object_size)
        if velocity_scalar is not None:
            candidate.velocity_scalar = float(velocity_scalar)
        needs_rebuild = (
            candidate.object_count != current.object_count or candidate.object_size != current.object_size
        )
        if needs_rebuild:
            candidate.contact_distance = candidate.derived_contact_distance()
            candidate.close_distance = candidate.derived_close_distance()
        if contact_distance is not None:
            candidate.contact_distance = float(contact_distance)
        if close_distance is not None:
            candidate.close_distance = float(close_distance)

        try:
            validate_flock(candidate)
            self._check_fits(candidate)
        except ConfigurationError as exc:
            logger.warning("rejected configuration: %s", exc)
            raise

        self._config.flock = candidate
        if needs_rebuild:
            self._rebuild()
            self._apply_thresholds(contact_distance, close_distance)
        logger.debug(
            "configured flock: count=%d size=%.2f scalar=%.3f contact=%.2f close=%.2f",
            candidate.object_count,
            candidate.object_size,
            candidate.velocity_scalar,
            candidate.contact_distance,
            candidate.close_distance,
        )
        return needs_rebuild

    def step(self, frame_delta: float = 0.0) -> FrameMetrics:
        """Advance one frame. ``frame_delta`` is recorded but the update uses fixed per-frame scalars."""
        self._ensure_open()
        start = perf_counter()
        store = self._store
        config = self._config

        kinematics.run(store, config)
        contained = boundary.run(store, config)
        self._proximity = proximity.run(store, config)
        flock_report = flocking.run(store, config)

        self._frame += 1
        elapsed_ms = (perf_counter() - start) * 1000.0
        metrics = metrics_system.create_metrics(
            self._frame,
            len(store),
            contained,
            self._proximity,
            flock_report,
            frame_delta,
            elapsed_ms,
        )
        self._metrics = metrics
        logger.debug(
            "frame %d: contact=%d close=%d far=%d checks=%d %.3fms",
            metrics.frame,
            metrics.contact,
            metrics.close,
            metrics.far,
            metrics.neighbor_checks,
            elapsed_ms,
        )
        return metrics

    def for_each_visible(self, callback: VisibleCallback) -> None:
        store = self._store
        for handle in store.each(Position, Orientation, VisualState):
            callback(
                Vector2(store.get(handle, Position).vec),
                store.get(handle, Orientation).value,
                store.get(handle, VisualState),
            )

    def reset(self) -> None:
        self._ensure_open()
        self._rng.reset()
        self._frame = 0
        self._metrics = None
        flock = self._config.flock
        thresholds = (flock.contact_distance, flock.close_distance)
        self._rebuild()
        self._apply_thresholds(*thresholds)

    def shutdown(self) -> None:
        if self._closed:
            return
        count = len(self._store)
        self._store.clear()
        self._shape_sync.detach()
        self._proximity = proximity.ProximityReport()
        self._closed = True
        logger.info("simulation shut down: destroyed=%d live_shapes=%d", count, self._shapes.live_count)

    def snapshot(self) -> Snapshot:
        metrics = self._metrics if self._metrics is not None else self._empty_metrics()
        flock = self._config.flock
        behavior = self._config.behavior
        metadata = SnapshotMetadata(
            object_count=flock.object_count,
            object_size=flock.object_size,
            velocity_scalar=flock.velocity_scalar,
            contact_distance=flock.contact_distance,
            close_distance=flock.close_distance,
            boundary_policy=behavior.boundary_policy.value,
            alignment_enabled=behavior.alignment_enabled,
            frame_rate=self._config.frame_rate,
            seed=self._config.seed,
            config_version=self._config.config_version,
        )
        agents = [self._agent_snapshot(handle) for handle in self._store.each(Position, Orientation)]
        return Snapshot(
            frame=self._frame,
            metrics=metrics,
            agents=agents,
            arena=SnapshotArena(width=self._config.arena.width, height=self._config.arena.height),
            metadata=metadata,
        )

    def _rebuild(self) -> None:
        scene.rebuild(self._store, self._config.arena, self._config.flock, self._rng, self._shapes)
        self._proximity = proximity.ProximityReport()

    def _apply_thresholds(self, contact_distance: Optional[float], close_distance: Optional[float]) -> None:
        flock = self._config.flock
        if contact_distance is not None:
            flock.contact_distance = contact_distance
        if close_distance is not None:
            flock.close_distance = close_distance

    def _check_fits(self, flock: FlockConfig) -> None:
        arena = self._config.arena
        if arena.width < 2 * flock.object_size or arena.height < 2 * flock.object_size:
            raise ConfigurationError(
                "object_size",
                f"agents of radius {flock.object_size} do not fit in a {arena.width}x{arena.height} arena",
            )

    def _ensure_open(self) -> None:
        if self._closed:
            raise FlockError("simulation has been shut down")

    def _agent_snapshot(self, handle: int) -> Dict[str, Any]:
        store = self._store
        position = store.get(handle, Position).vec
        velocity = store.try_get(handle, Velocity)
        rotation = store.try_get(handle, Rotation)
        state = store.try_get(handle, VisualState)
        orientation = store.get(handle, Orientation).value
        return {
            "id": handle,
            "x": position.x,
            "y": position.y,
            "vx": velocity.vec.x if velocity is not None else 0.0,
            "vy": velocity.vec.y if velocity is not None else 0.0,
            "orientation": orientation,
            "heading": _normalize_degrees(orientation),
            "rotation": rotation.value if rotation is not None else 0.0,
            "visual_state": state.value if state is not None else VisualState.FAR.value,
            "nearest": proximity.nearest_or_none(self._proximity, handle),
        }

    def _empty_metrics(self) -> FrameMetrics:
        return FrameMetrics(
            frame=self._frame,
            agents=len(self._store),
            far=0,
            close=0,
            contact=0,
            contained=0,
            separation_nudges=0,
            aligned=0,
            neighbor_checks=0,
        )
