from __future__ import annotations

import pytest
from pygame.math import Vector2

from flocksim.sim.core.components import Orientation, Position, Velocity, VisualState
from flocksim.sim.core.errors import MissingComponent, UnknownEntity
from flocksim.sim.core.registry import EntityStore, StoreEvent


class _Resource:
    def __init__(self) -> None:
        self.released = 0

    def release(self) -> None:
        self.released += 1


def test_handles_are_never_reused():
    store = EntityStore()
    first = store.create()
    store.destroy(first)
    second = store.create()

    assert second != first
    assert first not in store
    assert second in store
    assert len(store) == 1


def test_get_missing_component_raises_missing_component():
    store = EntityStore()
    handle = store.create()
    store.attach(handle, Position(Vector2(1, 2)))

    assert store.get(handle, Position).vec == Vector2(1, 2)
    assert store.has(handle, Position)
    assert not store.has(handle, Position, Velocity)
    with pytest.raises(MissingComponent):
        store.get(handle, Velocity)
    assert store.try_get(handle, Velocity) is None


def test_get_on_destroyed_handle_raises_unknown_entity():
    store = EntityStore()
    handle = store.create()
    store.attach(handle, Position())
    store.destroy(handle)

    with pytest.raises(UnknownEntity):
        store.get(handle, Position)
    with pytest.raises(UnknownEntity):
        store.destroy(handle)


def test_each_yields_only_handles_with_every_component():
    store = EntityStore()
    full = store.create()
    partial = store.create()
    store.attach(full, Position())
    store.attach(full, Velocity())
    store.attach(partial, Position())

    assert list(store.each(Position, Velocity)) == [full]
    assert sorted(store.each(Position)) == [full, partial]
    assert store.count(Position, Velocity) == 1


def test_strict_each_raises_for_missing_component():
    store = EntityStore()
    handle = store.create()
    store.attach(handle, Position())

    with pytest.raises(MissingComponent):
        list(store.each(Position, Velocity, strict=True))


def test_patch_emits_update_after_mutation():
    store = EntityStore()
    handle = store.create()
    store.attach(handle, Orientation(10.0))
    seen = []
    store.on_update(Orientation, lambda s, h: seen.append(s.get(h, Orientation).value))

    store.patch(handle, Orientation, lambda ori: setattr(ori, "value", ori.value + 5.0))

    assert seen == [15.0]


def test_replace_swaps_enum_components_and_notifies():
    store = EntityStore()
    handle = store.create()
    events = []
    store.on_construct(VisualState, lambda s, h: events.append(("construct", s.get(h, VisualState))))
    store.on_update(VisualState, lambda s, h: events.append(("update", s.get(h, VisualState))))

    store.attach(handle, VisualState.FAR)
    store.replace(handle, VisualState.CONTACT)

    assert store.get(handle, VisualState) is VisualState.CONTACT
    assert events == [("construct", VisualState.FAR), ("update", VisualState.CONTACT)]


def test_unsubscribe_stops_notifications():
    store = EntityStore()
    handle = store.create()
    store.attach(handle, Orientation())
    seen = []
    unsubscribe = store.subscribe(Orientation, StoreEvent.UPDATE, lambda s, h: seen.append(h))

    store.patch(handle, Orientation)
    unsubscribe()
    store.patch(handle, Orientation)

    assert seen == [handle]


def test_destroy_releases_owned_resources_once():
    store = EntityStore()
    handle = store.create()
    resource = _Resource()
    store.attach(handle, resource)
    destroyed = []
    store.on_destroy(_Resource, lambda s, h: destroyed.append(s.get(h, _Resource)))

    store.destroy(handle)

    assert destroyed == [resource]
    assert resource.released == 1


def test_clear_destroys_everything():
    store = EntityStore()
    resources = []
    for _ in range(4):
        handle = store.create()
        resource = _Resource()
        resources.append(resource)
        store.attach(handle, resource)
        store.attach(handle, Position())

    store.clear()

    assert len(store) == 0
    assert list(store.each(Position)) == []
    assert all(resource.released == 1 for resource in resources)


def test_each_tolerates_destroy_during_iteration():
    store = EntityStore()
    handles = [store.create() for _ in range(3)]
    for handle in handles:
        store.attach(handle, Position())

    visited = []
    for handle in store.each(Position):
        visited.append(handle)
        if handle == handles[0]:
            store.destroy(handles[1])

    assert visited == [handles[0], handles[2]]


def test_remove_detaches_one_component_and_releases_it():
    store = EntityStore()
    handle = store.create()
    resource = _Resource()
    store.attach(handle, resource)
    store.attach(handle, Orientation(5.0))
    destroyed = []
    store.on_destroy(_Resource, lambda _store, h: destroyed.append(h))

    store.remove(handle, _Resource)

    assert destroyed == [handle]
    assert resource.released == 1
    assert store.try_get(handle, _Resource) is None
    assert store.get(handle, Orientation).value == 5.0
    with pytest.raises(MissingComponent):
        store.remove(handle, _Resource)
