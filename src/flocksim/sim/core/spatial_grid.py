from __future__ import annotations

import math
from typing import Dict, List, Tuple

from pygame.math import Vector2


class SpatialGrid:
    """Uniform bucket grid over entity handles.

    Returns exactly the entries a brute-force radius test would, so it can stand
    in for an all-pairs scan without changing per-pair results.
    """

    def __init__(self, cell_size: float) -> None:
        if cell_size <= 0:
            raise ValueError(f"cell_size must be positive, got {cell_size}")
        self._cell_size = cell_size
        self._cells: Dict[Tuple[int, int], List[Tuple[int, Vector2]]] = {}
        self._active_keys: List[Tuple[int, int]] = []

    @property
    def cell_size(self) -> float:
        return self._cell_size

    def clear(self) -> None:
        for key in self._active_keys:
            bucket = self._cells.get(key)
            if bucket:
                bucket.clear()
        self._active_keys.clear()

    def insert(self, handle: int, position: Vector2) -> None:
        key = self._cell_key(position)
        bucket = self._cells.get(key)
        if bucket is None:
            bucket = []
            self._cells[key] = bucket
            self._active_keys.append(key)
        elif not bucket:
            # Bucket exists but was cleared; mark it active again.
            self._active_keys.append(key)
        bucket.append((handle, position))

    def get_neighbors(self, position: Vector2, radius: float) -> List[int]:
        out_handles: List[int] = []
        self.collect_neighbors(position, radius, out_handles, [])
        return out_handles

    def collect_neighbors(
        self,
        position: Vector2,
        radius: float,
        out_handles: List[int],
        out_dist_sq: List[float],
        exclude: int | None = None,
    ) -> None:
        """
        Fill the provided buffers with handles within ``radius`` (inclusive) of
        ``position`` and their squared distances. Buffers are cleared first.
        """

        out_handles.clear()
        out_dist_sq.clear()
        base_key = self._cell_key(position)
        cell_range = int(math.ceil(radius / self._cell_size))
        radius_sq = radius * radius
        pos_x = position.x
        pos_y = position.y
        cells = self._cells

        for dx in range(-cell_range, cell_range + 1):
            for dy in range(-cell_range, cell_range + 1):
                bucket = cells.get((base_key[0] + dx, base_key[1] + dy))
                if not bucket:
                    continue
                for handle, pos in bucket:
                    if exclude is not None and handle == exclude:
                        continue
                    offset_x = pos.x - pos_x
                    offset_y = pos.y - pos_y
                    dist_sq = offset_x * offset_x + offset_y * offset_y
                    if dist_sq <= radius_sq:
                        out_handles.append(handle)
                        out_dist_sq.append(dist_sq)

    def _cell_key(self, position: Vector2) -> Tuple[int, int]:
        return (int(position.x // self._cell_size), int(position.y // self._cell_size))
