from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict

from ..core.components import Position, VisualState
from ..core.config import SimulationConfig
from ..core.registry import EntityStore
from .neighbors import NeighborQuery


@dataclass(slots=True)
class ProximityReport:
    min_distances: Dict[int, float] = field(default_factory=dict)
    far: int = 0
    close: int = 0
    contact: int = 0
    neighbor_checks: int = 0


def classify(min_distance: float, contact_distance: float, close_distance: float) -> VisualState:
    if min_distance <= contact_distance:
        return VisualState.CONTACT
    if min_distance <= close_distance:
        return VisualState.CLOSE
    return VisualState.FAR


def run(store: EntityStore, config: SimulationConfig) -> ProximityReport:
    flock = config.flock
    contact = flock.contact_distance
    close = flock.close_distance
    handles = list(store.each(Position, VisualState, strict=config.behavior.strict_components))
    query = NeighborQuery(store, handles, config.behavior.neighbor_index, close)

    report = ProximityReport()
    # All distances are measured before any state is written.
    for handle in handles:
        report.min_distances[handle] = query.nearest_distance(handle)
    report.neighbor_checks = query.neighbor_checks

    for handle, min_distance in report.min_distances.items():
        state = classify(min_distance, contact, close)
        if state is VisualState.CONTACT:
            report.contact += 1
        elif state is VisualState.CLOSE:
            report.close += 1
        else:
            report.far += 1
        if store.get(handle, VisualState) is not state:
            store.replace(handle, state)
    return report


def nearest_or_none(report: ProximityReport, handle: int) -> float | None:
    distance = report.min_distances.get(handle)
    if distance is None or math.isinf(distance):
        return None
    return distance
