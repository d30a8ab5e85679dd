from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable

from pygame.math import Vector2


class VisualState(str, Enum):
    FAR = "Far"
    CLOSE = "Close"
    CONTACT = "Contact"


@dataclass(slots=True)
class Position:
    vec: Vector2 = field(default_factory=Vector2)


@dataclass(slots=True)
class Velocity:
    vec: Vector2 = field(default_factory=Vector2)


@dataclass(slots=True)
class Orientation:
    # Degrees. Not wrapped; readers normalise for display.
    value: float = 0.0


@dataclass(slots=True)
class Rotation:
    # Degrees per frame.
    value: float = 0.0


@runtime_checkable
class Releasable(Protocol):
    def release(self) -> None: ...
