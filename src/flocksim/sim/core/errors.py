from __future__ import annotations


class FlockError(Exception):
    """Base class for errors raised by the flock simulation."""


class ConfigurationError(FlockError, ValueError):
    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field


class UnknownEntity(FlockError, KeyError):
    def __init__(self, handle: int):
        super().__init__(f"entity {handle} does not exist")
        self.handle = handle


class MissingComponent(FlockError, KeyError):
    def __init__(self, handle: int, component_type: type):
        super().__init__(f"entity {handle} has no {component_type.__name__} component")
        self.handle = handle
        self.component_type = component_type
