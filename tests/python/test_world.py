from __future__ import annotations

import math

import pytest
from pygame import Color
from pygame.math import Vector2
from pytest import approx

from flocksim.sim.core.components import Orientation, Position, VisualState
from flocksim.sim.core.config import BehaviorConfig, BoundaryPolicy, FlockConfig, SimulationConfig
from flocksim.sim.core.errors import ConfigurationError, FlockError
from flocksim.sim.core.world import World
from flocksim.sim.systems.display import CLOSE_COLOR, CONTACT_COLOR, FAR_COLOR, Drawable


def _world(count: int = 10, size: float = 50.0, scalar: float = 1.0, **behavior) -> World:
    return World(
        SimulationConfig(
            seed=1234,
            flock=FlockConfig(object_count=count, object_size=size, velocity_scalar=scalar),
            behavior=BehaviorConfig(**behavior),
        )
    )


def _trace(world: World, steps: int) -> list[tuple[float, float, float]]:
    for _ in range(steps):
        world.step(1.0 / 60.0)
    return [(agent["x"], agent["y"], agent["orientation"]) for agent in world.snapshot().agents]


def test_deterministic_steps_for_same_seed():
    assert _trace(_world(), 50) == _trace(_world(), 50)


def test_configure_count_change_rebuilds_scene():
    world = _world(count=5)
    old_handles = world.store.handles()

    rebuilt = world.configure(object_count=8)

    assert rebuilt
    assert len(world.store) == 8
    assert not set(old_handles) & set(world.store.handles())
    assert world.shapes.live_count == 8


def test_configure_size_change_rederives_thresholds():
    world = _world()
    world.configure(contact_distance=5.0, close_distance=10.0)

    assert world.configure(object_size=20.0)

    assert world.config.flock.contact_distance == approx(26.0)
    assert world.config.flock.close_distance == approx(78.0)
    for handle in world.store.each(Position):
        pos = world.store.get(handle, Position).vec
        assert 20.0 <= pos.x <= 620.0
        assert 20.0 <= pos.y <= 460.0


def test_configure_explicit_thresholds_win_over_derived_ones():
    world = _world()

    world.configure(object_size=20.0, contact_distance=30.0, close_distance=90.0)

    assert world.config.flock.contact_distance == 30.0
    assert world.config.flock.close_distance == 90.0


def test_configure_without_count_or_size_change_keeps_agents():
    world = _world(count=4)
    handles = world.store.handles()
    positions = [Vector2(world.store.get(handle, Position).vec) for handle in handles]

    rebuilt = world.configure(object_count=4, velocity_scalar=3.0, close_distance=300.0, contact_distance=20.0)

    assert not rebuilt
    assert world.store.handles() == handles
    assert [world.store.get(handle, Position).vec for handle in handles] == positions
    assert world.config.flock.velocity_scalar == 3.0
    assert world.config.flock.close_distance == 300.0


@pytest.mark.parametrize(
    "kwargs, field",
    [
        ({"object_count": 0}, "object_count"),
        ({"object_size": 0.0}, "object_size"),
        ({"object_size": -1.0}, "object_size"),
        ({"contact_distance": 500.0}, "contact_distance"),
        ({"contact_distance": 50.0, "close_distance": 40.0}, "contact_distance"),
        ({"object_size": 400.0}, "object_size"),
    ],
)
def test_rejected_configuration_keeps_previous_state(kwargs, field):
    world = _world(count=6)
    handles = world.store.handles()
    before = (
        world.config.flock.object_count,
        world.config.flock.object_size,
        world.config.flock.contact_distance,
        world.config.flock.close_distance,
    )

    with pytest.raises(ConfigurationError) as excinfo:
        world.configure(**kwargs)

    assert excinfo.value.field == field
    after = (
        world.config.flock.object_count,
        world.config.flock.object_size,
        world.config.flock.contact_distance,
        world.config.flock.close_distance,
    )
    assert after == before
    assert world.store.handles() == handles


def test_for_each_visible_reports_every_agent():
    world = _world(count=7)
    world.step()
    seen = []

    world.for_each_visible(lambda position, orientation, state: seen.append((position, orientation, state)))

    assert len(seen) == 7
    for position, orientation, state in seen:
        assert isinstance(position, Vector2)
        assert isinstance(orientation, float)
        assert isinstance(state, VisualState)


def test_for_each_visible_hands_out_copies():
    world = _world(count=1)
    handle = world.store.handles()[0]
    before = Vector2(world.store.get(handle, Position).vec)

    world.for_each_visible(lambda position, _orientation, _state: position.update(-1.0, -1.0))

    assert world.store.get(handle, Position).vec == before


def test_shapes_mirror_agent_state():
    world = _world(count=2, scalar=0.0)
    a, b = world.store.handles()
    world.configure(contact_distance=65.0, close_distance=195.0)
    world.store.patch(a, Position, lambda p: p.vec.update(200.0, 200.0))
    world.store.patch(b, Position, lambda p: p.vec.update(200.0, 300.0))

    world.step()

    store = world.store
    for handle in (a, b):
        shape = store.get(handle, Drawable).shape
        assert shape.position == store.get(handle, Position).vec
        assert shape.rotation == approx(store.get(handle, Orientation).value + 90.0)
        assert shape.radius == 50.0
        assert shape.point_count == 3
        assert shape.origin == Vector2(50.0, 50.0)
        assert shape.fill_color == CLOSE_COLOR

    world.store.patch(b, Position, lambda p: p.vec.update(200.0, 250.0))
    world.step()
    assert store.get(a, Drawable).shape.fill_color == CONTACT_COLOR

    world.store.patch(b, Position, lambda p: p.vec.update(500.0, 400.0))
    world.step()
    assert store.get(a, Drawable).shape.fill_color == FAR_COLOR
    assert isinstance(FAR_COLOR, Color)


def test_shutdown_releases_all_shapes_and_blocks_steps():
    world = _world(count=9)
    shapes = [world.store.get(handle, Drawable).shape for handle in world.store.handles()]

    world.shutdown()

    assert len(world.store) == 0
    assert not world._shape_sync.attached
    assert world.shapes.live_count == 0
    assert all(shape.released for shape in shapes)
    assert world.closed
    with pytest.raises(FlockError):
        world.step()
    world.shutdown()


def test_reset_restores_seeded_layout():
    world = _world()
    first = [(agent["x"], agent["y"]) for agent in world.snapshot().agents]
    _trace(world, 10)

    world.reset()

    assert world.frame == 0
    assert [(agent["x"], agent["y"]) for agent in world.snapshot().agents] == first


def test_reset_keeps_configured_thresholds():
    world = World(
        SimulationConfig(seed=1, flock=FlockConfig(contact_distance=20.0, close_distance=300.0))
    )
    world.configure(close_distance=500.0)
    _trace(world, 3)

    world.reset()

    assert (world.config.flock.contact_distance, world.config.flock.close_distance) == (20.0, 500.0)
    assert world.config.flock.object_size == 50.0


def test_snapshot_contains_metadata_and_agent_payload():
    world = _world(count=3, boundary_policy=BoundaryPolicy.CLAMP, alignment_enabled=True)
    metrics = world.step(0.016)
    snapshot = world.snapshot()

    assert snapshot.frame == 1
    assert snapshot.metrics == metrics
    assert metrics.frame_delta == approx(0.016)
    assert metrics.agents == 3
    assert metrics.far + metrics.close + metrics.contact == 3
    assert snapshot.arena.width == 640.0
    assert snapshot.metadata.boundary_policy == "clamp"
    assert snapshot.metadata.alignment_enabled
    assert snapshot.metadata.seed == 1234
    for payload in snapshot.agents:
        for key in ["id", "x", "y", "vx", "vy", "orientation", "heading", "rotation", "visual_state", "nearest"]:
            assert key in payload
        assert 0.0 <= payload["heading"] < 360.0
        assert payload["heading"] == approx(payload["orientation"] % 360.0)
        assert math.hypot(payload["vx"], payload["vy"]) == approx(1.0)


def test_agents_stay_near_arena_under_wrap_over_long_run():
    world = _world(count=30, size=10.0, scalar=3.0)
    for _ in range(400):
        world.step()
    for agent in world.snapshot().agents:
        assert -30.0 <= agent["x"] <= 670.0
        assert -30.0 <= agent["y"] <= 510.0


def test_agents_stay_inside_box_under_clamp_over_long_run():
    world = _world(count=30, size=10.0, scalar=3.0, boundary_policy=BoundaryPolicy.CLAMP)
    for _ in range(400):
        world.step()
    for agent in world.snapshot().agents:
        assert 10.0 <= agent["x"] <= 630.0
        assert 10.0 <= agent["y"] <= 470.0
