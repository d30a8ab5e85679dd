from __future__ import annotations

import math
from typing import Dict, Iterable, List, Tuple

from pygame.math import Vector2

from ..core.components import Position
from ..core.config import NeighborIndex
from ..core.registry import EntityStore
from ..core.spatial_grid import SpatialGrid


class NeighborQuery:
    """Pairwise distance queries over a fixed set of agents for one stage.

    The brute-force index scans all pairs (O(n^2)). The grid index buckets
    agents by ``radius`` and returns the same neighbours for any query radius up
    to ``radius``; beyond it ``nearest_distance`` reports ``inf``. Results are
    ordered by handle so callers accumulate in a stable order.
    """

    def __init__(
        self,
        store: EntityStore,
        handles: Iterable[int],
        index: NeighborIndex = NeighborIndex.BRUTE_FORCE,
        radius: float = 0.0,
    ) -> None:
        self._handles: List[int] = list(handles)
        self._positions: Dict[int, Vector2] = {
            handle: store.get(handle, Position).vec for handle in self._handles
        }
        self._radius = radius
        self._grid: SpatialGrid | None = None
        self._scratch_handles: List[int] = []
        self._scratch_dist_sq: List[float] = []
        self.neighbor_checks = 0
        if index == NeighborIndex.GRID and radius > 0.0:
            self._grid = SpatialGrid(radius)
            for handle in self._handles:
                self._grid.insert(handle, self._positions[handle])

    @property
    def handles(self) -> List[int]:
        return self._handles

    def position(self, handle: int) -> Vector2:
        return self._positions[handle]

    def within(self, handle: int, radius: float, inclusive: bool = True) -> List[Tuple[int, float]]:
        """Other agents within ``radius`` of ``handle`` with their distances."""
        origin = self._positions[handle]
        radius_sq = radius * radius
        found: List[Tuple[int, float]] = []
        for other, dist_sq in self._candidates(handle, origin, radius):
            if dist_sq < radius_sq or (inclusive and dist_sq == radius_sq):
                found.append((other, math.sqrt(dist_sq)))
        return found

    def nearest_distance(self, handle: int) -> float:
        origin = self._positions[handle]
        best_sq = math.inf
        for _other, dist_sq in self._candidates(handle, origin, self._radius):
            if dist_sq < best_sq:
                best_sq = dist_sq
        return math.sqrt(best_sq) if best_sq != math.inf else math.inf

    def _candidates(self, handle: int, origin: Vector2, radius: float) -> List[Tuple[int, float]]:
        if self._grid is not None and radius <= self._radius:
            self._grid.collect_neighbors(
                origin, radius, self._scratch_handles, self._scratch_dist_sq, exclude=handle
            )
            self.neighbor_checks += len(self._scratch_handles)
            return sorted(zip(self._scratch_handles, self._scratch_dist_sq))
        ox = origin.x
        oy = origin.y
        out = []
        for other in self._handles:
            if other == handle:
                continue
            pos = self._positions[other]
            dx = pos.x - ox
            dy = pos.y - oy
            out.append((other, dx * dx + dy * dy))
        self.neighbor_checks += len(out)
        return out
