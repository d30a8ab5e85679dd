from __future__ import annotations

from ..types.metrics import FrameMetrics
from .flocking import FlockingReport
from .proximity import ProximityReport


def create_metrics(
    frame: int,
    agents: int,
    contained: int,
    proximity: ProximityReport,
    flocking: FlockingReport,
    frame_delta: float,
    duration_ms: float,
) -> FrameMetrics:
    return FrameMetrics(
        frame=frame,
        agents=agents,
        far=proximity.far,
        close=proximity.close,
        contact=proximity.contact,
        contained=contained,
        separation_nudges=flocking.separation_nudges,
        aligned=flocking.aligned,
        neighbor_checks=proximity.neighbor_checks + flocking.neighbor_checks,
        frame_delta=frame_delta,
        frame_duration_ms=duration_ms,
    )
