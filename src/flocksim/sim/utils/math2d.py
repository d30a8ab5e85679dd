from __future__ import annotations

import math
from typing import Optional

from pygame.math import Vector2

_EPSILON_SQ = 1e-10


def _safe_normalize(vector: Vector2) -> Vector2:
    return _safe_normalize_xy(vector.x, vector.y)


def _safe_normalize_xy(x: float, y: float) -> Vector2:
    magnitude_sq = x * x + y * y
    if magnitude_sq < _EPSILON_SQ:
        return Vector2()
    inv = 1.0 / math.sqrt(magnitude_sq)
    return Vector2(x * inv, y * inv)


def _direction_from_degrees(degrees: float) -> Vector2:
    radians = math.radians(degrees)
    return Vector2(math.cos(radians), math.sin(radians))


def _angle_between_deg(a: Vector2, b: Vector2, origin: Vector2) -> float:
    """Unsigned angle in degrees between ``a - origin`` and ``b - origin``.

    Zero when either arm is degenerate.
    """
    da = _safe_normalize_xy(a.x - origin.x, a.y - origin.y)
    db = _safe_normalize_xy(b.x - origin.x, b.y - origin.y)
    if da.length_squared() == 0.0 or db.length_squared() == 0.0:
        return 0.0
    dot = _clamp_value(da.x * db.x + da.y * db.y, -1.0, 1.0)
    return math.degrees(math.acos(dot))


def _is_on_right(a: Vector2, b: Vector2, direction: Vector2) -> bool:
    """True when ``b`` lies to the right of ``a`` facing ``direction``.

    Screen coordinates (y grows downward), so the right-hand side of a heading
    is its clockwise side.
    """
    heading = _safe_normalize(direction)
    other_x = a.x - b.x
    other_y = a.y - b.y
    return heading.x * other_y - heading.y * other_x < 0.0


def _heading_toward_deg(origin: Vector2, target: Vector2) -> Optional[float]:
    dx = target.x - origin.x
    dy = target.y - origin.y
    if dx * dx + dy * dy < _EPSILON_SQ:
        return None
    return math.degrees(math.atan2(dy, dx))


def _normalize_degrees(degrees: float) -> float:
    return degrees % 360.0


def _clamp_value(value: float, min_value: float, max_value: float) -> float:
    return max(min_value, min(max_value, value))
