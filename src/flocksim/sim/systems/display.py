from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Set

from pygame import Color
from pygame.math import Vector2

from ..core.components import Orientation, Position, VisualState
from ..core.registry import EntityStore, StoreEvent

FAR_COLOR = Color(0, 255, 0)
CLOSE_COLOR = Color(255, 255, 0)
CONTACT_COLOR = Color(255, 0, 0)

STATE_COLORS = {
    VisualState.FAR: FAR_COLOR,
    VisualState.CLOSE: CLOSE_COLOR,
    VisualState.CONTACT: CONTACT_COLOR,
}

# Triangles point along +y in shape space; headings are measured from +x.
ROTATION_OFFSET_DEG = 90.0


@dataclass(eq=False)
class Shape:
    radius: float
    point_count: int = 3
    origin: Vector2 = field(default_factory=Vector2)
    position: Vector2 = field(default_factory=Vector2)
    rotation: float = 0.0
    fill_color: Color = field(default_factory=lambda: Color(FAR_COLOR))
    released: bool = False
    _on_release: Optional[Callable[["Shape"], None]] = field(default=None, repr=False)

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        if self._on_release is not None:
            self._on_release(self)


class ShapeFactory:
    """Creates agent shapes and keeps track of the ones not yet released."""

    def __init__(self) -> None:
        self._live: Set[int] = set()
        self._created = 0

    @property
    def live_count(self) -> int:
        return len(self._live)

    @property
    def created_count(self) -> int:
        return self._created

    def create(self, radius: float) -> Shape:
        shape = Shape(radius=radius, origin=Vector2(radius, radius), _on_release=self._forget)
        self._live.add(id(shape))
        self._created += 1
        return shape

    def _forget(self, shape: Shape) -> None:
        self._live.discard(id(shape))


@dataclass(slots=True, eq=False)
class Drawable:
    shape: Shape

    def release(self) -> None:
        self.shape.release()


class ShapeSync:
    """Mirrors Position, Orientation and VisualState changes onto agent shapes.

    Subscribes to store events, so simulation stages never reference shapes.
    """

    def __init__(self) -> None:
        self._unsubscribers: List[Callable[[], None]] = []

    @property
    def attached(self) -> bool:
        return bool(self._unsubscribers)

    def attach(self, store: EntityStore) -> None:
        self.detach()
        for event in (StoreEvent.CONSTRUCT, StoreEvent.UPDATE):
            self._unsubscribers.append(store.subscribe(Position, event, self._sync_position))
            self._unsubscribers.append(store.subscribe(Orientation, event, self._sync_orientation))
            self._unsubscribers.append(store.subscribe(VisualState, event, self._sync_visual_state))
        self._unsubscribers.append(store.on_construct(Drawable, self._sync_all))

    def detach(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

    def _sync_all(self, store: EntityStore, handle: int) -> None:
        self._sync_position(store, handle)
        self._sync_orientation(store, handle)
        self._sync_visual_state(store, handle)

    @staticmethod
    def _sync_position(store: EntityStore, handle: int) -> None:
        drawable = store.try_get(handle, Drawable)
        position = store.try_get(handle, Position)
        if drawable is None or position is None:
            return
        drawable.shape.position.update(position.vec.x, position.vec.y)

    @staticmethod
    def _sync_orientation(store: EntityStore, handle: int) -> None:
        drawable = store.try_get(handle, Drawable)
        orientation = store.try_get(handle, Orientation)
        if drawable is None or orientation is None:
            return
        drawable.shape.rotation = orientation.value + ROTATION_OFFSET_DEG

    @staticmethod
    def _sync_visual_state(store: EntityStore, handle: int) -> None:
        drawable = store.try_get(handle, Drawable)
        state = store.try_get(handle, VisualState)
        if drawable is None or state is None:
            return
        drawable.shape.fill_color = Color(STATE_COLORS[state])
