from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, TypeVar

from .components import Releasable
from .errors import MissingComponent, UnknownEntity

T = TypeVar("T")
Listener = Callable[["EntityStore", int], None]


class StoreEvent(str, Enum):
    CONSTRUCT = "construct"
    UPDATE = "update"
    DESTROY = "destroy"


class EntityStore:
    """Sparse component storage keyed by opaque integer handles.

    Handles increase monotonically and are never reused. Components are stored
    per type; any value can be a component and is keyed by ``type(value)``.
    Listeners subscribe per (component type, event) and run synchronously after
    a component is constructed or updated, and before it is destroyed. A
    component implementing ``release()`` is released when it leaves the store.
    """

    def __init__(self) -> None:
        self._next_handle = 0
        self._alive: Dict[int, None] = {}
        self._pools: Dict[type, Dict[int, Any]] = {}
        self._listeners: Dict[Tuple[type, StoreEvent], List[Listener]] = {}

    def __len__(self) -> int:
        return len(self._alive)

    def __contains__(self, handle: object) -> bool:
        return handle in self._alive

    def handles(self) -> List[int]:
        return list(self._alive)

    def create(self) -> int:
        handle = self._next_handle
        self._next_handle += 1
        self._alive[handle] = None
        return handle

    def destroy(self, handle: int) -> None:
        self._ensure_alive(handle)
        for component_type, pool in list(self._pools.items()):
            if handle in pool:
                self._drop(handle, component_type, pool)
        del self._alive[handle]

    def clear(self) -> None:
        for handle in list(self._alive):
            self.destroy(handle)

    def attach(self, handle: int, value: T, component_type: Optional[type] = None) -> T:
        self._ensure_alive(handle)
        key = component_type or type(value)
        pool = self._pools.setdefault(key, {})
        existed = handle in pool
        if existed:
            previous = pool[handle]
            if previous is not value and isinstance(previous, Releasable):
                previous.release()
        pool[handle] = value
        self._emit(key, StoreEvent.UPDATE if existed else StoreEvent.CONSTRUCT, handle)
        return value

    def remove(self, handle: int, component_type: type) -> None:
        self._ensure_alive(handle)
        pool = self._pools.get(component_type)
        if pool is None or handle not in pool:
            raise MissingComponent(handle, component_type)
        self._drop(handle, component_type, pool)

    def get(self, handle: int, component_type: type[T]) -> T:
        pool = self._pools.get(component_type)
        if pool is None or handle not in pool:
            self._ensure_alive(handle)
            raise MissingComponent(handle, component_type)
        return pool[handle]

    def try_get(self, handle: int, component_type: type[T]) -> Optional[T]:
        pool = self._pools.get(component_type)
        if pool is None:
            return None
        return pool.get(handle)

    def has(self, handle: int, *component_types: type) -> bool:
        for component_type in component_types:
            pool = self._pools.get(component_type)
            if pool is None or handle not in pool:
                return False
        return True

    def patch(self, handle: int, component_type: type[T], fn: Optional[Callable[[T], Optional[T]]] = None) -> T:
        """Mutate a component in place (or replace it with ``fn``'s return value) and emit an update."""
        component = self.get(handle, component_type)
        if fn is not None:
            replacement = fn(component)
            if replacement is not None:
                component = replacement
                self._pools[component_type][handle] = component
        self._emit(component_type, StoreEvent.UPDATE, handle)
        return component

    def replace(self, handle: int, value: T, component_type: Optional[type] = None) -> T:
        key = component_type or type(value)
        return self.patch(handle, key, lambda _previous: value)

    def each(self, *component_types: type, strict: bool = False) -> Iterator[int]:
        """Iterate handles possessing every listed component.

        The smallest pool drives iteration and is snapshotted, so listeners and
        stages may patch components while iterating. With ``strict`` the first
        component type drives iteration and a handle missing any other listed
        component raises ``MissingComponent`` instead of being skipped.
        """
        if not component_types:
            yield from list(self._alive)
            return
        pools = [self._pools.get(component_type, {}) for component_type in component_types]
        if strict:
            for handle in list(pools[0]):
                for component_type, pool in zip(component_types[1:], pools[1:]):
                    if handle not in pool:
                        raise MissingComponent(handle, component_type)
                yield handle
            return
        driver = min(pools, key=len)
        for handle in list(driver):
            if all(handle in pool for pool in pools):
                yield handle

    def count(self, *component_types: type) -> int:
        return sum(1 for _ in self.each(*component_types))

    def subscribe(self, component_type: type, event: StoreEvent, listener: Listener) -> Callable[[], None]:
        listeners = self._listeners.setdefault((component_type, event), [])
        listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in listeners:
                listeners.remove(listener)

        return _unsubscribe

    def on_construct(self, component_type: type, listener: Listener) -> Callable[[], None]:
        return self.subscribe(component_type, StoreEvent.CONSTRUCT, listener)

    def on_update(self, component_type: type, listener: Listener) -> Callable[[], None]:
        return self.subscribe(component_type, StoreEvent.UPDATE, listener)

    def on_destroy(self, component_type: type, listener: Listener) -> Callable[[], None]:
        return self.subscribe(component_type, StoreEvent.DESTROY, listener)

    def _drop(self, handle: int, component_type: type, pool: Dict[int, Any]) -> None:
        self._emit(component_type, StoreEvent.DESTROY, handle)
        component = pool.pop(handle)
        if isinstance(component, Releasable):
            component.release()

    def _emit(self, component_type: type, event: StoreEvent, handle: int) -> None:
        listeners = self._listeners.get((component_type, event))
        if not listeners:
            return
        for listener in list(listeners):
            listener(self, handle)

    def _ensure_alive(self, handle: int) -> None:
        if handle not in self._alive:
            raise UnknownEntity(handle)
